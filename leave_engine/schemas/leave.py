from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag
from datetime import date, datetime
from typing import Annotated, List, Literal, Optional, Union

from leave_engine.models.leave_request import HalfDayPeriod
from leave_engine.services.results import Attachment, LeaveCandidate


class AttachmentIn(BaseModel):
    filename: str = Field(..., min_length=1)
    content_type: Optional[str] = None
    url: Optional[str] = None


class AttachmentResponse(AttachmentIn):
    id: int

    model_config = ConfigDict(from_attributes=True)


class LeaveSubmissionBase(BaseModel):
    employee_id: str = Field(..., min_length=1)
    leave_type_id: int
    reason: str = Field(..., min_length=10, description="At least 10 characters")
    contact_info: str = Field(..., min_length=1)
    attachments: List[AttachmentIn] = []

    def _common(self) -> dict:
        return {
            "reason": self.reason,
            "contact_info": self.contact_info,
            "attachments": [Attachment(**a.model_dump()) for a in self.attachments],
        }


class FullDayRequest(LeaveSubmissionBase):
    kind: Literal["full_day"] = "full_day"
    start_date: date
    end_date: date

    def to_candidate(self) -> LeaveCandidate:
        return LeaveCandidate.full_day(self.employee_id, self.leave_type_id,
                                       self.start_date, self.end_date, **self._common())


class HalfDayRequest(LeaveSubmissionBase):
    kind: Literal["half_day"]
    date: date
    period: HalfDayPeriod

    def to_candidate(self) -> LeaveCandidate:
        return LeaveCandidate.half_day(self.employee_id, self.leave_type_id,
                                       self.date, self.period.value, **self._common())


def _submission_kind(value) -> str:
    # Requests without a kind are full-day requests
    if isinstance(value, dict):
        return value.get("kind", "full_day")
    return getattr(value, "kind", "full_day")


LeaveSubmission = Annotated[
    Union[Annotated[FullDayRequest, Tag("full_day")], Annotated[HalfDayRequest, Tag("half_day")]],
    Discriminator(_submission_kind),
]


class LeaveRequestResponse(BaseModel):
    id: int
    employee_id: str
    leave_type_id: int
    start_date: date
    end_date: date
    is_half_day: bool
    half_day_period: Optional[str] = None
    number_of_days: float
    reason: Optional[str] = None
    contact_info: Optional[str] = None
    status: str
    applied_on: Optional[datetime] = None
    actioned_by: Optional[str] = None
    actioned_on: Optional[datetime] = None
    comment: Optional[str] = None
    attachments: List[AttachmentResponse] = []

    model_config = ConfigDict(from_attributes=True)


class LeaveBalanceResponse(BaseModel):
    employee_id: str
    leave_type_id: int
    year: int
    entitled: float
    accrued: float
    carried_forward: float
    used: float
    pending: float
    balance: float

    model_config = ConfigDict(from_attributes=True)


class TransitionAction(BaseModel):
    actor_id: str = Field(..., min_length=1)
    comment: Optional[str] = None


class TransitionResponse(BaseModel):
    success: bool = True
    event: str
    request: LeaveRequestResponse
    balance: Optional[LeaveBalanceResponse] = None


class DayCountRequest(BaseModel):
    start_date: date
    end_date: date
    is_half_day: bool = False


class DayCountResponse(BaseModel):
    start_date: date
    end_date: date
    number_of_days: float


class CalendarLeave(BaseModel):
    id: int
    employee_id: str
    full_name: Optional[str] = None
    leave_type_id: int
    start_date: date
    end_date: date
    status: str
    is_half_day: bool = False
    half_day_period: Optional[str] = None


class CalendarDayResponse(BaseModel):
    date: date
    is_weekend: bool
    holiday: Optional[str] = None
    leaves: List[CalendarLeave] = []


# Resolve forward references for Pydantic V2
LeaveRequestResponse.model_rebuild()
TransitionResponse.model_rebuild()
CalendarDayResponse.model_rebuild()
