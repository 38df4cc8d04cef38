# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    employee, holiday, leave_type, leave_policy, leave_request, audit_log
)

# Explicit class exports for cleaner imports
from .employee import Employee
from .holiday import Holiday
from .leave_type import LeaveType, LeaveCategory
from .leave_policy import LeavePolicy, AccrualRate, ALL_DEPARTMENTS
from .leave_request import LeaveRequest, LeaveAttachment, LeaveStatus, HalfDayPeriod, ACTIVE_STATUSES
from .audit_log import LeaveAuditLog

__all__ = [
    "Employee",
    "Holiday",
    "LeaveType",
    "LeaveCategory",
    "LeavePolicy",
    "AccrualRate",
    "ALL_DEPARTMENTS",
    "LeaveRequest",
    "LeaveAttachment",
    "LeaveStatus",
    "HalfDayPeriod",
    "ACTIVE_STATUSES",
    "LeaveAuditLog",
]
