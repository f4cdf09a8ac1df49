from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from app.db.base_class import Base


class ManagerRole(Base):
    """Login account created when an employee is promoted to manager."""
    __tablename__ = "manager_role"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(
        String(20),
        ForeignKey("employee_personal_details.employee_id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    manager_id = Column(String(20), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
