from datetime import date, datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_admin, get_current_principal, get_db
from app.api.helpers import (
    apply_updates,
    get_employee,
    is_valid_reporting_manager,
    validate_department,
    validate_employee_id,
)
from app.core.logging_config import get_logger
from app.core.session import Principal, get_active_assignment
from app.models.department_history import DepartmentHistory
from app.schemas.history import HistoryCreate, HistoryResponse, HistoryUpdate

router = APIRouter()
logger = get_logger("perftracker.employee_history")


async def _deactivate_other_rows(
    db: AsyncSession,
    employee_id: str,
    start_date: date,
    keep_history_id: Optional[int] = None,
) -> int:
    """
    Close the employee's other active rows so that only one stays active.
    An open ``end_date`` is set to the start of the new assignment.
    """
    query = select(DepartmentHistory).where(
        DepartmentHistory.employee_id == employee_id,
        DepartmentHistory.is_active.is_(True),
    )
    if keep_history_id is not None:
        query = query.where(DepartmentHistory.history_id != keep_history_id)

    result = await db.execute(query)
    rows = result.scalars().all()
    for row in rows:
        row.is_active = False
        if row.end_date is None:
            row.end_date = start_date
        row.updated_at = datetime.utcnow()
    return len(rows)


async def _check_reporting_manager(db: AsyncSession, manager_id: Optional[str]) -> None:
    if manager_id and not await is_valid_reporting_manager(db, manager_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Reporting manager ID is not valid (no employee has this manager ID assigned)",
        )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_history(
    history_in: HistoryCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_admin),
) -> Any:
    """
    Record a department/designation assignment. A new active row
    deactivates the employee's previous active row.
    """
    validate_employee_id(history_in.employee_id)
    validate_department(history_in.department_name)
    employee = await get_employee(db, history_in.employee_id)
    await _check_reporting_manager(db, history_in.reporting_manager_id)

    data = history_in.model_dump()
    data["employee_id"] = employee.employee_id

    try:
        if history_in.is_active:
            await _deactivate_other_rows(db, employee.employee_id, history_in.start_date)
        row = DepartmentHistory(**data)
        db.add(row)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(row)
    logger.info(
        f"History {row.history_id} created for {employee.employee_id}: "
        f"{row.department_name}/{row.designation}"
    )
    return {
        "success": True,
        "message": "Department/designation history created successfully",
        "data": HistoryResponse.model_validate(row),
    }


@router.get("/{employee_id}")
async def read_history(
    employee_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    validate_employee_id(employee_id)
    employee = await get_employee(db, employee_id)

    result = await db.execute(
        select(DepartmentHistory)
        .where(DepartmentHistory.employee_id == employee.employee_id)
        .order_by(DepartmentHistory.start_date.desc())
    )
    rows = result.scalars().all()
    return {
        "success": True,
        "count": len(rows),
        "data": [HistoryResponse.model_validate(r) for r in rows],
    }


@router.patch("/{employee_id}")
async def update_history(
    employee_id: str,
    history_in: HistoryUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_admin),
) -> Any:
    """
    Update one history row: the one named by ``history_id``, or the active row.
    """
    validate_employee_id(employee_id)
    employee = await get_employee(db, employee_id)

    updates = history_in.model_dump(exclude_unset=True, exclude={"history_id"})
    for field in ("department_name", "designation", "start_date", "is_active"):
        if field in updates and updates[field] is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} cannot be empty")
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid fields to update")

    if history_in.history_id is not None:
        result = await db.execute(
            select(DepartmentHistory).where(
                DepartmentHistory.history_id == history_in.history_id,
                DepartmentHistory.employee_id == employee.employee_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="History record not found for this employee",
            )
    else:
        row = await get_active_assignment(db, employee.employee_id)
        if row is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No active history record found for this employee",
            )

    if "department_name" in updates:
        validate_department(updates["department_name"])
    await _check_reporting_manager(db, updates.get("reporting_manager_id"))

    try:
        apply_updates(row, updates)
        row.updated_at = datetime.utcnow()
        if updates.get("is_active"):
            await _deactivate_other_rows(db, employee.employee_id, row.start_date, keep_history_id=row.history_id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(row)
    return {
        "success": True,
        "message": "Employee history record updated successfully",
        "data": HistoryResponse.model_validate(row),
    }


@router.delete("/{employee_id}")
async def delete_history(
    employee_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_admin),
) -> Any:
    validate_employee_id(employee_id)
    employee = await get_employee(db, employee_id)

    result = await db.execute(
        delete(DepartmentHistory)
        .where(DepartmentHistory.employee_id == employee.employee_id)
        .returning(DepartmentHistory.history_id)
    )
    deleted_ids = [row[0] for row in result.all()]
    if not deleted_ids:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No history records found for this employee",
        )
    await db.commit()

    logger.info(f"Deleted {len(deleted_ids)} history records for {employee.employee_id}")
    return {
        "success": True,
        "message": f"Deleted {len(deleted_ids)} history records for employee {employee.employee_id}",
        "data": {"deleted_history_ids": deleted_ids},
    }
