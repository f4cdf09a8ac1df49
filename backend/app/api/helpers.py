"""
Common API Helper Functions

Reusable lookups and validation shared by the employee, history,
performance and goal endpoints.
"""

import math
import re
from typing import Any, Dict, Iterable, Optional

from fastapi import HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import APIError
from app.models.employee import Employee
from app.schemas.employee import Pagination

EMPLOYEE_ID_PATTERN = re.compile(r"^(EMP|MNG)[A-Za-z0-9]+$")


def validate_employee_id(employee_id: str, prefixes: Iterable[str] = ("EMP", "MNG")) -> str:
    """
    Check the public id format.

    Raises:
        HTTPException: 400 if the id is malformed or has a prefix not in ``prefixes``
    """
    if not employee_id or not EMPLOYEE_ID_PATTERN.match(employee_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Employee ID format")
    if not employee_id.startswith(tuple(prefixes)):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Employee ID must start with {' or '.join(prefixes)}",
        )
    return employee_id


async def get_employee(
    db: AsyncSession,
    employee_id: str,
    raise_not_found: bool = True,
) -> Optional[Employee]:
    """
    Get a non-deleted employee by ``EMP`` id or by the ``MNG`` id of a promoted employee.

    Raises:
        HTTPException: 404 if not found and raise_not_found=True
    """
    result = await db.execute(
        select(Employee).where(
            or_(Employee.employee_id == employee_id, Employee.manager_id == employee_id),
            Employee.deleted_at.is_(None),
        )
    )
    employee = result.scalar_one_or_none()

    if employee is None and raise_not_found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Employee not found")

    return employee


async def is_valid_reporting_manager(db: AsyncSession, manager_id: str) -> bool:
    """True when some non-deleted employee carries ``manager_id``."""
    result = await db.execute(
        select(Employee.id).where(
            Employee.manager_id == manager_id,
            Employee.deleted_at.is_(None),
        )
    )
    return result.first() is not None


def validate_department(department: str) -> str:
    if department not in settings.DEPARTMENTS:
        raise APIError(
            status.HTTP_400_BAD_REQUEST,
            "Invalid department",
            validDepartments=list(settings.DEPARTMENTS),
        )
    return department


def build_pagination(total: int, page: int, limit: int) -> Pagination:
    total_pages = math.ceil(total / limit) if limit else 0
    return Pagination(
        total=total,
        page=page,
        limit=limit,
        totalPages=total_pages,
        hasNextPage=page < total_pages,
        hasPrevPage=page > 1,
    )


def apply_updates(instance: Any, updates: Dict[str, Any]) -> list[str]:
    """Copy ``updates`` onto a model instance and return the changed field names."""
    changed = []
    for field, value in updates.items():
        setattr(instance, field, value)
        changed.append(field)
    return changed
