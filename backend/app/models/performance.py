from datetime import date, datetime

from sqlalchemy import Column, Integer, String, Date, DateTime, Boolean, Numeric, Text, ForeignKey, Index
from app.db.base_class import Base


class PerformanceReview(Base):
    __tablename__ = "performance_history"

    performance_id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(
        String(20),
        ForeignKey("employee_personal_details.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    review_date = Column(Date, default=date.today, nullable=False)
    # MNG id of the reviewing manager
    reviewer_id = Column(String(20), nullable=True)
    performance_score = Column(Integer, nullable=False)
    key_strengths = Column(Text, nullable=True)
    areas_for_improvement = Column(Text, nullable=True)
    goals_achieved = Column(Text, nullable=True)
    next_period_goals = Column(Text, nullable=True)
    feedback = Column(Text, nullable=True)
    promotion_eligible = Column(Boolean, default=False, nullable=False)
    bonus_awarded = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


Index('ix_performance_history_employee', PerformanceReview.employee_id, PerformanceReview.review_date)
