from datetime import datetime

from sqlalchemy import Column, Integer, String, Date, DateTime, Boolean, Numeric, ForeignKey, Index
from app.db.base_class import Base


class DepartmentHistory(Base):
    """
    One department/designation assignment of an employee. At most one row
    per employee has ``is_active`` set; that row also carries the current salary.
    """
    __tablename__ = "department_designation_history"

    history_id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(
        String(20),
        ForeignKey("employee_personal_details.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    department_name = Column(String(100), nullable=False)
    designation = Column(String(100), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    reporting_manager_id = Column(String(20), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    salary_per_month_npr = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


Index('ix_department_history_employee_active', DepartmentHistory.employee_id, DepartmentHistory.is_active)
Index('ix_department_history_department', DepartmentHistory.department_name)
