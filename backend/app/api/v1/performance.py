from datetime import date
from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.api.deps import get_current_principal, get_db, get_reviewing_manager
from app.api.helpers import apply_updates, get_employee, validate_employee_id
from app.core.errors import APIError
from app.core.logging_config import get_logger
from app.core.session import Principal, get_active_assignment
from app.models.employee import Employee
from app.models.performance import PerformanceReview
from app.schemas.performance import PerformanceCreate, PerformanceResponse, PerformanceUpdate

router = APIRouter()
logger = get_logger("perftracker.performance")

MIN_SCORE = 0
MAX_SCORE = 100


def _check_score(score: Optional[int]) -> None:
    if score is not None and not MIN_SCORE <= score <= MAX_SCORE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Performance score must be between {MIN_SCORE} and {MAX_SCORE}",
        )


def _check_bonus(bonus: Optional[Decimal]) -> None:
    if bonus is not None and bonus < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Bonus amount must be a positive number",
        )


def _to_response(review: PerformanceReview, employee_name: Optional[str], reviewer_name: Optional[str]) -> PerformanceResponse:
    return PerformanceResponse(
        performance_id=review.performance_id,
        employee_id=review.employee_id,
        employee_name=employee_name,
        review_date=review.review_date,
        reviewer_id=review.reviewer_id,
        reviewer_name=reviewer_name,
        performance_score=review.performance_score,
        key_strengths=review.key_strengths,
        areas_for_improvement=review.areas_for_improvement,
        goals_achieved=review.goals_achieved,
        next_period_goals=review.next_period_goals,
        feedback=review.feedback,
        promotion_eligible=review.promotion_eligible,
        bonus_awarded=review.bonus_awarded,
        created_at=review.created_at,
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_review(
    review_in: PerformanceCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_reviewing_manager),
) -> Any:
    """
    Record a performance review written by the current manager.

    The manager must belong to the employee's department. A bonus is added
    to the employee's current monthly salary in the same transaction.
    """
    validate_employee_id(review_in.employee_id, prefixes=("EMP",))
    _check_score(review_in.performance_score)
    _check_bonus(review_in.bonus_awarded)

    employee = await get_employee(db, review_in.employee_id, raise_not_found=False)
    if employee is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found or is inactive")

    assignment = await get_active_assignment(db, employee.employee_id)
    if assignment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee department not found")

    if not principal.department:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Manager department not found")

    if assignment.department_name != principal.department:
        raise APIError(
            status.HTTP_403_FORBIDDEN,
            "Department mismatch - you can only review employees in your department",
            details={
                "employeeDepartment": assignment.department_name,
                "managerDepartment": principal.department,
            },
        )

    review = PerformanceReview(
        employee_id=employee.employee_id,
        reviewer_id=principal.manager_id,
        review_date=review_in.review_date or date.today(),
        performance_score=review_in.performance_score,
        key_strengths=review_in.key_strengths,
        areas_for_improvement=review_in.areas_for_improvement,
        goals_achieved=review_in.goals_achieved,
        next_period_goals=review_in.next_period_goals,
        feedback=review_in.feedback,
        promotion_eligible=review_in.promotion_eligible,
        bonus_awarded=review_in.bonus_awarded,
    )

    try:
        db.add(review)
        if review_in.bonus_awarded:
            assignment.salary_per_month_npr = (assignment.salary_per_month_npr or Decimal("0")) + review_in.bonus_awarded
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(review)
    await db.refresh(assignment)

    logger.info(
        f"Review {review.performance_id} for {employee.employee_id} by {principal.manager_id} "
        f"(score={review.performance_score})"
    )
    return {
        "success": True,
        "message": "Performance review created successfully",
        "data": _to_response(review, employee.full_name, principal.full_name),
        "updated_salary": float(assignment.salary_per_month_npr) if assignment.salary_per_month_npr is not None else None,
    }


@router.get("/{employee_id}")
async def read_reviews(
    employee_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    """Reviews of an employee, newest first, with employee and reviewer names."""
    validate_employee_id(employee_id)

    subject = aliased(Employee)
    reviewer = aliased(Employee)
    result = await db.execute(
        select(PerformanceReview, subject, reviewer)
        .join(subject, subject.employee_id == PerformanceReview.employee_id)
        .outerjoin(reviewer, reviewer.manager_id == PerformanceReview.reviewer_id)
        .where(
            (subject.employee_id == employee_id) | (subject.manager_id == employee_id)
        )
        .order_by(PerformanceReview.review_date.desc(), PerformanceReview.performance_id.desc())
    )
    rows = result.all()
    if not rows:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No performance records found for this employee")

    return {
        "success": True,
        "count": len(rows),
        "data": [
            _to_response(review, emp.full_name, rev.full_name if rev is not None else None)
            for review, emp, rev in rows
        ],
    }


@router.patch("/{employee_id}")
async def update_reviews(
    employee_id: str,
    review_in: PerformanceUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    """
    Update the employee's reviews, or only ``performance_id`` when given.
    """
    validate_employee_id(employee_id)

    updates = review_in.model_dump(exclude_unset=True, exclude={"performance_id"})
    for field in ("performance_score", "review_date", "promotion_eligible"):
        if field in updates and updates[field] is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} cannot be empty")
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid fields to update")
    _check_score(updates.get("performance_score"))
    _check_bonus(updates.get("bonus_awarded"))

    employee = await get_employee(db, employee_id)

    query = select(PerformanceReview).where(PerformanceReview.employee_id == employee.employee_id)
    if review_in.performance_id is not None:
        query = query.where(PerformanceReview.performance_id == review_in.performance_id)
    result = await db.execute(query)
    reviews = result.scalars().all()
    if not reviews:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No performance records found to update")

    for review in reviews:
        apply_updates(review, updates)
    await db.commit()

    logger.info(f"Updated {len(reviews)} reviews for {employee.employee_id} by {principal.role}:{principal.id}")
    return {
        "success": True,
        "message": "Performance record updated successfully",
        "data": [_to_response(r, employee.full_name, None) for r in reviews],
    }


@router.delete("/{employee_id}")
async def delete_reviews(
    employee_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    validate_employee_id(employee_id)
    employee = await get_employee(db, employee_id)

    result = await db.execute(
        delete(PerformanceReview)
        .where(PerformanceReview.employee_id == employee.employee_id)
        .returning(PerformanceReview.performance_id)
    )
    deleted = result.all()
    if not deleted:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No performance records found to delete")
    await db.commit()

    logger.info(f"Deleted {len(deleted)} reviews for {employee.employee_id} by {principal.role}:{principal.id}")
    return {
        "success": True,
        "message": "Performance records deleted successfully",
        "deletedCount": len(deleted),
    }
