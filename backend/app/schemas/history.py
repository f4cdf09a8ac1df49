from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

from app.schemas.employee import HistoryRecord


class HistoryCreate(BaseModel):
    employee_id: str = Field(..., min_length=1)
    department_name: str = Field(..., min_length=1)
    designation: str = Field(..., min_length=1)
    start_date: date
    end_date: Optional[date] = None
    reporting_manager_id: Optional[str] = None
    is_active: bool = True
    salary_per_month_npr: Optional[Decimal] = Field(default=None, ge=0)


class HistoryUpdate(BaseModel):
    """
    Without ``history_id`` the employee's active row is updated.
    """
    history_id: Optional[int] = None
    department_name: Optional[str] = Field(default=None, min_length=1)
    designation: Optional[str] = Field(default=None, min_length=1)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reporting_manager_id: Optional[str] = None
    is_active: Optional[bool] = None
    salary_per_month_npr: Optional[Decimal] = Field(default=None, ge=0)


class HistoryResponse(HistoryRecord):
    employee_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DepartmentRosterEntry(HistoryRecord):
    employee_id: str
    first_name: str
    last_name: str
