from pydantic import BaseModel
from typing import Optional, List, Dict


class DepartmentSummary(BaseModel):
    department: str
    employees: int
    average_score: Optional[float] = None
    reviews: int


class ReportSummary(BaseModel):
    headcount: int
    managers: int
    departments: List[DepartmentSummary]
    goal_status: Dict[str, int]
    promotion_eligible: int
    average_performance_score: Optional[float] = None
