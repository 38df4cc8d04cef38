"""
Employee read model.

The employee directory is owned by another system; this table mirrors the
fields the leave rules need (department and hire date).
"""
from sqlalchemy import Column, String, Date, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from leave_engine.database import Base


class Employee(Base):
    __tablename__ = "employees"

    id = Column(String, primary_key=True, index=True)
    full_name = Column(String, nullable=True)
    department = Column(String, nullable=True, index=True)
    hire_date = Column(Date, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    leave_requests = relationship("LeaveRequest", back_populates="employee")

    def __repr__(self):
        return f"<Employee {self.id} ({self.department})>"
