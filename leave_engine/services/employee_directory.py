from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from leave_engine.models.employee import Employee
from leave_engine.services.balance_cache import BalanceCache
from leave_engine.services.base import BaseService, Clock


class EmployeeDirectory(BaseService):
    """Local mirror of the employee directory (identity, department, hire date)."""

    def __init__(self, db: Session, clock: Optional[Clock] = None, cache: Optional[BalanceCache] = None):
        super().__init__(db, clock)
        self.cache = cache

    def get(self, employee_id: str) -> Optional[Employee]:
        return self.db.get(Employee, employee_id)

    def upsert(self, employee_id: str, hire_date: date, department: Optional[str] = None,
               full_name: Optional[str] = None) -> Employee:
        employee = self.get(employee_id)
        if employee is None:
            employee = Employee(id=employee_id)
            self.db.add(employee)
        employee.hire_date = hire_date
        employee.department = department
        employee.full_name = full_name
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        # Hire date and department drive accrual and eligibility
        if self.cache is not None:
            self.cache.invalidate_employee(employee_id)
        self.db.refresh(employee)
        self.log_info("Employee record updated", employee_id=employee_id)
        return employee
