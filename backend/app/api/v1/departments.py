from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_principal, get_db
from app.api.helpers import validate_department
from app.core.errors import APIError
from app.core.session import Principal
from app.models.department_history import DepartmentHistory
from app.models.employee import Employee
from app.schemas.history import DepartmentRosterEntry

router = APIRouter()


@router.get("/{department}/history")
async def read_department_history(
    department: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Any:
    """
    Assignment history of every non-deleted employee in a department.
    Managers only see their own department; admins see any.
    """
    validate_department(department)

    if principal.is_manager and principal.department != department:
        raise APIError(
            status.HTTP_403_FORBIDDEN,
            "Not authorized to access this department's data",
            yourDepartment=principal.department,
            requestedDepartment=department,
        )

    result = await db.execute(
        select(DepartmentHistory, Employee.first_name, Employee.last_name)
        .join(Employee, Employee.employee_id == DepartmentHistory.employee_id)
        .where(
            DepartmentHistory.department_name == department,
            Employee.deleted_at.is_(None),
        )
        .order_by(DepartmentHistory.start_date.desc())
    )

    employees = [
        DepartmentRosterEntry(
            history_id=row.history_id,
            employee_id=row.employee_id,
            first_name=first_name,
            last_name=last_name,
            department_name=row.department_name,
            designation=row.designation,
            start_date=row.start_date,
            end_date=row.end_date,
            reporting_manager_id=row.reporting_manager_id,
            is_active=row.is_active,
            salary_per_month_npr=row.salary_per_month_npr,
        )
        for row, first_name, last_name in result.all()
    ]
    return {
        "success": True,
        "message": "Employee history retrieved successfully",
        "department": department,
        "employees": employees,
    }
