import uuid
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.api.deps import get_current_admin, get_current_principal, get_db
from app.api.helpers import apply_updates, build_pagination, get_employee, validate_employee_id
from app.core.config import settings
from app.core.logging_config import get_logger
from app.core.security import get_password_hash
from app.core.session import Principal
from app.models.department_history import DepartmentHistory
from app.models.employee import Employee
from app.models.manager import ManagerRole
from app.models.performance import PerformanceReview
from app.schemas.employee import (
    EmployeeCreate,
    EmployeeRecords,
    EmployeeResponse,
    EmployeeUpdate,
    EmployeeUpdateResponse,
    HistoryRecord,
    ManagerSummary,
    PerformanceRecord,
)

router = APIRouter()
logger = get_logger("perftracker.employees")


def generate_employee_id() -> str:
    """``EMP`` followed by the last five hex characters of a uuid4."""
    return "EMP" + uuid.uuid4().hex[-5:]


def manager_id_for(employee_id: str) -> str:
    return "MNG" + employee_id[3:]


async def _email_taken(db: AsyncSession, email: str, exclude_employee_id: Optional[str] = None) -> bool:
    query = select(Employee.id).where(
        func.lower(Employee.email) == email.lower(),
        Employee.deleted_at.is_(None),
    )
    if exclude_employee_id:
        query = query.where(Employee.employee_id != exclude_employee_id)
    result = await db.execute(query)
    return result.first() is not None


async def _unique_employee_id(db: AsyncSession) -> str:
    # Five hex chars leave room for collisions; retry until free
    while True:
        candidate = generate_employee_id()
        result = await db.execute(select(Employee.id).where(Employee.employee_id == candidate))
        if result.first() is None:
            return candidate


async def _load_records(db: AsyncSession, employees: List[Employee]) -> List[EmployeeRecords]:
    """Attach department history and performance reviews to each employee."""
    ids = [e.employee_id for e in employees]
    if not ids:
        return []

    history_result = await db.execute(
        select(DepartmentHistory)
        .where(DepartmentHistory.employee_id.in_(ids))
        .order_by(DepartmentHistory.employee_id, DepartmentHistory.start_date.desc())
    )
    history: Dict[str, List[HistoryRecord]] = defaultdict(list)
    for row in history_result.scalars().all():
        history[row.employee_id].append(HistoryRecord.model_validate(row))

    reviewer = aliased(Employee)
    review_result = await db.execute(
        select(PerformanceReview, reviewer.first_name, reviewer.last_name)
        .outerjoin(reviewer, reviewer.manager_id == PerformanceReview.reviewer_id)
        .where(PerformanceReview.employee_id.in_(ids))
        .order_by(PerformanceReview.employee_id, PerformanceReview.review_date.desc())
    )
    reviews: Dict[str, List[PerformanceRecord]] = defaultdict(list)
    for review, first_name, last_name in review_result.all():
        reviews[review.employee_id].append(PerformanceRecord(
            performance_id=review.performance_id,
            review_date=review.review_date,
            reviewer_id=review.reviewer_id,
            reviewer_name=f"{first_name} {last_name}" if first_name else None,
            performance_score=review.performance_score,
            key_strengths=review.key_strengths,
            areas_for_improvement=review.areas_for_improvement,
            goals_achieved=review.goals_achieved,
            next_period_goals=review.next_period_goals,
            feedback=review.feedback,
            promotion_eligible=review.promotion_eligible,
            bonus_awarded=review.bonus_awarded,
        ))

    return [
        EmployeeRecords(
            **EmployeeResponse.model_validate(e).model_dump(),
            department_history=history[e.employee_id],
            performance_history=reviews[e.employee_id],
        )
        for e in employees
    ]


@router.post("", status_code=status.HTTP_201_CREATED)
async def register_employee(
    employee_in: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_admin),
) -> Any:
    """
    Register a new employee.
    """
    if await _email_taken(db, employee_in.email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Employee with this email already exists",
        )

    employee = Employee(
        employee_id=await _unique_employee_id(db),
        **employee_in.model_dump(),
    )
    db.add(employee)
    await db.commit()
    await db.refresh(employee)

    logger.info(f"Employee {employee.employee_id} registered by admin:{principal.id}")
    return {
        "success": True,
        "message": "Employee registered successfully",
        "data": EmployeeResponse.model_validate(employee),
    }


@router.get("")
async def list_employees(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    """Non-deleted employees, newest first, with optional search."""
    query = select(Employee).where(Employee.deleted_at.is_(None))
    count_query = select(func.count(Employee.id)).where(Employee.deleted_at.is_(None))

    if search:
        search_filter = or_(
            Employee.first_name.ilike(f"%{search}%"),
            Employee.last_name.ilike(f"%{search}%"),
            Employee.email.ilike(f"%{search}%"),
            Employee.employee_id.ilike(f"%{search}%"),
        )
        query = query.where(search_filter)
        count_query = count_query.where(search_filter)

    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    offset = (page - 1) * limit
    query = query.order_by(Employee.created_at.desc(), Employee.id.desc()).offset(offset).limit(limit)
    result = await db.execute(query)

    return {
        "success": True,
        "data": [EmployeeResponse.model_validate(e) for e in result.scalars().all()],
        "pagination": build_pagination(total, page, limit),
    }


@router.get("/deleted")
async def list_deleted_employees(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DELETED_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    """Soft-deleted employees, most recently deleted first."""
    total_result = await db.execute(
        select(func.count(Employee.id)).where(Employee.deleted_at.is_not(None))
    )
    total = total_result.scalar() or 0

    result = await db.execute(
        select(Employee)
        .where(Employee.deleted_at.is_not(None))
        .order_by(Employee.deleted_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    return {
        "success": True,
        "data": [EmployeeResponse.model_validate(e) for e in result.scalars().all()],
        "pagination": build_pagination(total, page, limit),
    }


@router.get("/managers")
async def list_managers(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    result = await db.execute(
        select(Employee)
        .where(Employee.deleted_at.is_(None), Employee.manager_id.is_not(None))
        .order_by(Employee.last_name, Employee.first_name)
    )
    managers = [ManagerSummary.model_validate(e) for e in result.scalars().all()]
    return {"success": True, "count": len(managers), "data": managers}


@router.get("/records")
async def export_records(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    """
    Every employee, including soft-deleted ones, with department and performance history.
    """
    result = await db.execute(select(Employee).order_by(Employee.created_at.desc(), Employee.id.desc()))
    records = await _load_records(db, list(result.scalars().all()))
    return {"success": True, "count": len(records), "data": records}


@router.get("/{employee_id}")
async def read_employee(
    employee_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    validate_employee_id(employee_id)
    employee = await get_employee(db, employee_id)
    return {"success": True, "data": EmployeeResponse.model_validate(employee)}


@router.get("/{employee_id}/records")
async def read_employee_records(
    employee_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    validate_employee_id(employee_id)
    result = await db.execute(
        select(Employee).where(
            or_(Employee.employee_id == employee_id, Employee.manager_id == employee_id)
        )
    )
    employee = result.scalar_one_or_none()
    if employee is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found")

    records = await _load_records(db, [employee])
    return {"success": True, "data": records[0]}


@router.patch("/{employee_id}")
async def update_employee(
    employee_id: str,
    employee_in: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_admin),
) -> Any:
    """
    Update personal details and optionally promote the employee to manager.

    Promotion creates the manager login (``MNG`` id derived from the ``EMP`` id)
    and stamps ``manager_id`` on the employee in the same transaction.
    """
    validate_employee_id(employee_id, prefixes=("EMP",))

    promote = employee_in.promote_to_manager
    if promote and not employee_in.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password is required for manager promotion",
        )

    updates = employee_in.model_dump(exclude_unset=True, exclude={"promote_to_manager", "password"})
    # Required columns cannot be cleared
    for field in ("first_name", "last_name", "email"):
        if field in updates and updates[field] is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{field} cannot be empty",
            )
    if not updates and not promote:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid fields to update")

    employee = await get_employee(db, employee_id)

    if promote:
        if employee.manager_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Employee is already a manager")
        if len(employee_in.password) < settings.MIN_PASSWORD_LENGTH:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long.",
            )

    if "email" in updates and await _email_taken(db, updates["email"], exclude_employee_id=employee.employee_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Employee with this email already exists",
        )

    try:
        apply_updates(employee, updates)
        employee.updated_at = datetime.utcnow()

        if promote:
            manager_id = manager_id_for(employee.employee_id)
            existing = await db.execute(
                select(ManagerRole.id).where(func.lower(ManagerRole.email) == employee.email.lower())
            )
            if existing.first() is not None:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="A manager account with this email already exists",
                )
            db.add(ManagerRole(
                employee_id=employee.employee_id,
                manager_id=manager_id,
                email=employee.email,
                password_hash=get_password_hash(employee_in.password),
            ))
            employee.manager_id = manager_id

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(employee)

    if promote:
        logger.info(f"Employee {employee.employee_id} promoted to {employee.manager_id} by admin:{principal.id}")

    data = EmployeeUpdateResponse(
        **EmployeeResponse.model_validate(employee).model_dump(),
        is_manager=employee.manager_id is not None,
        assigned_manager_id=employee.manager_id,
    )
    return {
        "success": True,
        "message": "Employee promoted to manager successfully" if promote else "Employee updated successfully",
        "data": data,
    }


@router.delete("/{employee_id}")
async def delete_employee(
    employee_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_admin),
) -> Any:
    """Soft delete: the row stays and shows up under /employees/deleted."""
    validate_employee_id(employee_id)
    employee = await get_employee(db, employee_id)

    employee.deleted_at = datetime.utcnow()
    await db.commit()

    logger.info(f"Employee {employee.employee_id} soft-deleted by admin:{principal.id}")
    return {
        "success": True,
        "message": "Employee deleted successfully",
        "data": {"employee_id": employee.employee_id, "deleted_at": employee.deleted_at},
    }
