"""
Typed outcomes of leave validation and workflow transitions.

Rule violations are values, not exceptions: callers branch on `ok` and
render `Rejected.code` / `Rejected.details` as they see fit.
"""
import enum
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Union


class LeaveErrorCode(str, enum.Enum):
    INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"
    OVERLAPPING_REQUEST = "OVERLAPPING_REQUEST"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    MISSING_DOCUMENTS = "MISSING_DOCUMENTS"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    PAST_APPROVED_CANCELLATION = "PAST_APPROVED_CANCELLATION"
    NOT_FOUND = "NOT_FOUND"


class LeaveEvent(str, enum.Enum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Attachment:
    filename: str
    content_type: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class LeaveCandidate:
    """A leave request that has not been stored yet."""
    employee_id: str
    leave_type_id: int
    start_date: date
    end_date: date
    is_half_day: bool = False
    half_day_period: Optional[str] = None
    reason: str = ""
    contact_info: str = ""
    attachments: List[Attachment] = field(default_factory=list)
    number_of_days: Optional[float] = None

    @classmethod
    def full_day(cls, employee_id: str, leave_type_id: int, start_date: date, end_date: date, **kwargs):
        return cls(employee_id, leave_type_id, start_date, end_date, **kwargs)

    @classmethod
    def half_day(cls, employee_id: str, leave_type_id: int, on: date, period: str, **kwargs):
        return cls(employee_id, leave_type_id, on, on, is_half_day=True, half_day_period=period, **kwargs)


@dataclass(frozen=True)
class Ok:
    request: LeaveCandidate
    ok: bool = True


@dataclass(frozen=True)
class Rejected:
    code: LeaveErrorCode
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    ok: bool = False


ValidationResult = Union[Ok, Rejected]


@dataclass(frozen=True)
class TransitionResult:
    ok: bool
    request: Any = None  # LeaveRequest
    event: Optional[LeaveEvent] = None
    balance: Any = None  # LeaveBalance after the transition
    rejection: Optional[Rejected] = None

    @classmethod
    def succeeded(cls, request, event: LeaveEvent) -> "TransitionResult":
        return cls(ok=True, request=request, event=event)

    @classmethod
    def failed(cls, rejection: Rejected, request=None) -> "TransitionResult":
        return cls(ok=False, request=request, rejection=rejection)
