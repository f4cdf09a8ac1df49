from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_principal, get_db
from app.api.helpers import apply_updates, get_employee, validate_employee_id
from app.core.logging_config import get_logger
from app.core.session import Principal
from app.models.department_history import DepartmentHistory
from app.models.employee import Employee
from app.models.goal import Goal
from app.schemas.goal import GoalCreate, GoalPriority, GoalResponse, GoalStatus, GoalUpdate

router = APIRouter()
logger = get_logger("perftracker.goals")

COMPLETED = "Completed"


def _check_progress(progress: Optional[int]) -> None:
    if progress is not None and not 0 <= progress <= 100:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Progress must be between 0 and 100",
        )


def _goal_query():
    """Goals of non-deleted employees with the employee's name and current department."""
    return (
        select(Goal, Employee.first_name, Employee.last_name, DepartmentHistory.department_name)
        .join(Employee, Employee.employee_id == Goal.employee_id)
        .outerjoin(
            DepartmentHistory,
            and_(
                DepartmentHistory.employee_id == Goal.employee_id,
                DepartmentHistory.is_active.is_(True),
            ),
        )
        .where(Employee.deleted_at.is_(None))
    )


def _to_response(goal: Goal, first_name: str, last_name: str, department: Optional[str]) -> GoalResponse:
    return GoalResponse(
        goal_id=goal.goal_id,
        employee_id=goal.employee_id,
        employee_name=f"{first_name} {last_name}",
        department=department,
        title=goal.title,
        description=goal.description,
        assigned_by=goal.assigned_by,
        progress=goal.progress,
        deadline=goal.deadline,
        status=goal.status,
        priority=goal.priority,
        is_overdue=goal.is_overdue(),
        created_at=goal.created_at,
        updated_at=goal.updated_at,
    )


async def _load_goal(db: AsyncSession, goal_id: int) -> GoalResponse:
    result = await db.execute(_goal_query().where(Goal.goal_id == goal_id))
    row = result.first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Goal not found")
    return _to_response(*row)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_goal(
    goal_in: GoalCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    validate_employee_id(goal_in.employee_id)
    _check_progress(goal_in.progress)
    employee = await get_employee(db, goal_in.employee_id)

    goal = Goal(
        employee_id=employee.employee_id,
        title=goal_in.title,
        description=goal_in.description,
        assigned_by=principal.full_name or principal.email,
        progress=goal_in.progress,
        deadline=goal_in.deadline,
        status=COMPLETED if goal_in.progress == 100 else goal_in.status,
        priority=goal_in.priority,
    )
    db.add(goal)
    await db.commit()

    logger.info(f"Goal {goal.goal_id} assigned to {employee.employee_id} by {principal.role}:{principal.id}")
    return {
        "success": True,
        "message": "Goal created successfully",
        "data": await _load_goal(db, goal.goal_id),
    }


@router.get("")
async def list_goals(
    status_filter: Optional[GoalStatus] = Query(None, alias="status"),
    priority: Optional[GoalPriority] = None,
    employee_id: Optional[str] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    query = _goal_query()

    if status_filter:
        query = query.where(Goal.status == status_filter)
    if priority:
        query = query.where(Goal.priority == priority)
    if employee_id:
        query = query.where(Goal.employee_id == employee_id)
    if search:
        query = query.where(
            or_(
                Goal.title.ilike(f"%{search}%"),
                Employee.first_name.ilike(f"%{search}%"),
                Employee.last_name.ilike(f"%{search}%"),
            )
        )

    result = await db.execute(query.order_by(Goal.created_at.desc(), Goal.goal_id.desc()))
    goals = [_to_response(*row) for row in result.all()]
    return {"success": True, "count": len(goals), "data": goals}


@router.get("/{goal_id}")
async def read_goal(
    goal_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    return {"success": True, "data": await _load_goal(db, goal_id)}


@router.patch("/{goal_id}")
async def update_goal(
    goal_id: int,
    goal_in: GoalUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    """
    Update a goal. Reaching 100% progress marks it Completed.
    """
    updates = goal_in.model_dump(exclude_unset=True)
    for field in ("title", "status", "priority", "progress"):
        if field in updates and updates[field] is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} cannot be empty")
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid fields to update")
    _check_progress(updates.get("progress"))

    goal = await db.get(Goal, goal_id)
    if goal is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Goal not found")

    apply_updates(goal, updates)
    if goal.progress == 100:
        goal.status = COMPLETED
    goal.updated_at = datetime.utcnow()
    await db.commit()

    return {
        "success": True,
        "message": "Goal updated successfully",
        "data": await _load_goal(db, goal_id),
    }


@router.delete("/{goal_id}")
async def delete_goal(
    goal_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    goal = await db.get(Goal, goal_id)
    if goal is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Goal not found")

    await db.delete(goal)
    await db.commit()

    logger.info(f"Goal {goal_id} deleted by {principal.role}:{principal.id}")
    return {"success": True, "message": "Goal deleted successfully", "data": {"goal_id": goal_id}}
