from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import date, datetime


class EmployeeBase(BaseModel):
    phone_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    current_address: Optional[str] = None
    permanent_address: Optional[str] = None
    marital_status: Optional[str] = None
    blood_group: Optional[str] = None


class EmployeeCreate(EmployeeBase):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr


class EmployeeUpdate(EmployeeBase):
    """Personal fields an admin may change; unknown keys are ignored."""
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    promote_to_manager: bool = False
    password: Optional[str] = None


class EmployeeResponse(EmployeeBase):
    id: int
    employee_id: str
    first_name: str
    last_name: str
    email: str
    manager_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EmployeeUpdateResponse(EmployeeResponse):
    is_manager: bool = False
    assigned_manager_id: Optional[str] = None


class ManagerSummary(BaseModel):
    employee_id: str
    manager_id: str
    first_name: str
    last_name: str
    email: str

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    totalPages: int
    hasNextPage: bool
    hasPrevPage: bool


# ============ Full record export ============

class HistoryRecord(BaseModel):
    history_id: int
    department_name: str
    designation: str
    start_date: date
    end_date: Optional[date] = None
    reporting_manager_id: Optional[str] = None
    is_active: bool
    salary_per_month_npr: Optional[float] = None

    class Config:
        from_attributes = True


class PerformanceRecord(BaseModel):
    performance_id: int
    review_date: date
    reviewer_id: Optional[str] = None
    reviewer_name: Optional[str] = None
    performance_score: int
    key_strengths: Optional[str] = None
    areas_for_improvement: Optional[str] = None
    goals_achieved: Optional[str] = None
    next_period_goals: Optional[str] = None
    feedback: Optional[str] = None
    promotion_eligible: bool = False
    bonus_awarded: Optional[float] = None


class EmployeeRecords(EmployeeResponse):
    department_history: List[HistoryRecord] = []
    performance_history: List[PerformanceRecord] = []
