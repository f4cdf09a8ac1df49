from datetime import date, datetime

from sqlalchemy import Column, Integer, String, Date, DateTime, Text, ForeignKey, Index
from app.db.base_class import Base

GOAL_STATUSES = ("Not Started", "In Progress", "Completed")
GOAL_PRIORITIES = ("Low", "Medium", "High")


class Goal(Base):
    __tablename__ = "goals"

    goal_id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(
        String(20),
        ForeignKey("employee_personal_details.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    assigned_by = Column(String(255), nullable=True)
    progress = Column(Integer, default=0, nullable=False)
    deadline = Column(Date, nullable=True)
    status = Column(String(20), default="Not Started", nullable=False)
    priority = Column(String(10), default="Medium", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def is_overdue(self, today: date | None = None) -> bool:
        """A goal is overdue once its deadline has passed without completion."""
        if self.deadline is None or self.status == "Completed":
            return False
        return self.deadline < (today or date.today())


Index('ix_goals_employee', Goal.employee_id)
Index('ix_goals_status', Goal.status)
