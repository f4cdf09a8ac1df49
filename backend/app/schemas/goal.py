from pydantic import BaseModel, Field
from typing import Optional, Literal
from datetime import date, datetime

GoalStatus = Literal["Not Started", "In Progress", "Completed"]
GoalPriority = Literal["Low", "Medium", "High"]


class GoalCreate(BaseModel):
    employee_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    deadline: Optional[date] = None
    status: GoalStatus = "Not Started"
    priority: GoalPriority = "Medium"
    progress: int = 0


class GoalUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    deadline: Optional[date] = None
    status: Optional[GoalStatus] = None
    priority: Optional[GoalPriority] = None
    progress: Optional[int] = None


class GoalResponse(BaseModel):
    goal_id: int
    employee_id: str
    employee_name: Optional[str] = None
    department: Optional[str] = None
    title: str
    description: Optional[str] = None
    assigned_by: Optional[str] = None
    progress: int
    deadline: Optional[date] = None
    status: str
    priority: str
    is_overdue: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
