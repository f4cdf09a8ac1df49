from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

from app.schemas.employee import PerformanceRecord


class PerformanceCreate(BaseModel):
    # Range checks happen in the handler so they can answer with a precise message
    employee_id: str = Field(..., min_length=1)
    performance_score: int
    review_date: Optional[date] = None
    key_strengths: Optional[str] = None
    areas_for_improvement: Optional[str] = None
    goals_achieved: Optional[str] = None
    next_period_goals: Optional[str] = None
    feedback: Optional[str] = None
    promotion_eligible: bool = False
    bonus_awarded: Optional[Decimal] = None


class PerformanceUpdate(BaseModel):
    """With ``performance_id`` only that review is updated, otherwise all of the employee's reviews."""
    performance_id: Optional[int] = None
    review_date: Optional[date] = None
    performance_score: Optional[int] = None
    key_strengths: Optional[str] = None
    areas_for_improvement: Optional[str] = None
    goals_achieved: Optional[str] = None
    next_period_goals: Optional[str] = None
    feedback: Optional[str] = None
    promotion_eligible: Optional[bool] = None
    bonus_awarded: Optional[Decimal] = None


class PerformanceResponse(PerformanceRecord):
    employee_id: str
    employee_name: Optional[str] = None
    created_at: Optional[datetime] = None
