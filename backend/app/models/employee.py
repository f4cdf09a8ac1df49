from datetime import datetime

from sqlalchemy import Column, Integer, String, Date, DateTime, Text, Index
from app.db.base_class import Base


class Employee(Base):
    """
    Personal details of an employee.

    ``employee_id`` is the public identifier (``EMP`` + 5 hex chars). Once the
    employee is promoted, ``manager_id`` holds the matching ``MNG`` id.
    Rows are soft deleted through ``deleted_at``.
    """
    __tablename__ = "employee_personal_details"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String(20), unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone_number = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    emergency_contact_name = Column(String(200), nullable=True)
    emergency_contact_phone = Column(String(20), nullable=True)
    current_address = Column(Text, nullable=True)
    permanent_address = Column(Text, nullable=True)
    marital_status = Column(String(20), nullable=True)
    blood_group = Column(String(5), nullable=True)
    manager_id = Column(String(20), unique=True, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


Index('ix_employee_personal_details_deleted_created', Employee.deleted_at, Employee.created_at)
