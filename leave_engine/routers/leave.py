"""
Leave Router

HTTP surface for leave requests, balances and the leave calendar.
All rules are delegated to the services; rejected results are converted
into structured error responses here.
"""
import calendar
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from leave_engine.core.exceptions import LeaveRuleViolation, NotFoundError
from leave_engine.database import get_db
from leave_engine.dependencies import get_balance_engine, get_validator, get_workflow
from leave_engine.models.employee import Employee
from leave_engine.models.leave_request import LeaveRequest, ACTIVE_STATUSES
from leave_engine.schemas.leave import (
    LeaveSubmission, LeaveRequestResponse, LeaveBalanceResponse, TransitionAction,
    TransitionResponse, DayCountRequest, DayCountResponse, CalendarLeave, CalendarDayResponse,
)
from leave_engine.services.balance_engine import LeaveBalanceEngine
from leave_engine.services.calendar_index import LeaveCalendarIndex, CalendarFilters
from leave_engine.services.results import LeaveCandidate, LeaveErrorCode, Rejected, TransitionResult
from leave_engine.services.validator import LeaveRequestValidator
from leave_engine.services.workflow import LeaveApprovalWorkflow

router = APIRouter(
    prefix="/leaves",
    tags=["leave"]
)

STATUS_BY_CODE = {
    LeaveErrorCode.NOT_FOUND: 404,
    LeaveErrorCode.OVERLAPPING_REQUEST: 409,
    LeaveErrorCode.INVALID_TRANSITION: 409,
}


def raise_rejection(rejection: Rejected):
    raise LeaveRuleViolation(
        message=rejection.message,
        error_code=rejection.code.value,
        status_code=STATUS_BY_CODE.get(rejection.code, 400),
        details=rejection.details or None,
    )


def to_response(result: TransitionResult) -> TransitionResponse:
    if not result.ok:
        raise_rejection(result.rejection)
    return TransitionResponse(
        event=result.event.value,
        request=LeaveRequestResponse.model_validate(result.request),
        balance=LeaveBalanceResponse.model_validate(result.balance) if result.balance else None,
    )


def _parse_statuses(status: Optional[str], default=()):
    if not status:
        return default
    if status == "all":
        return ()
    return tuple(s.strip() for s in status.split(",") if s.strip())


def _calendar_entry(request: LeaveRequest) -> CalendarLeave:
    return CalendarLeave(
        id=request.id,
        employee_id=request.employee_id,
        full_name=request.employee.full_name if request.employee else None,
        leave_type_id=request.leave_type_id,
        start_date=request.start_date,
        end_date=request.end_date,
        status=request.status,
        is_half_day=request.is_half_day,
        half_day_period=request.half_day_period,
    )


# --- Requests ---

@router.post("", response_model=TransitionResponse)
def submit_leave_request(
    submission: LeaveSubmission,
    workflow: LeaveApprovalWorkflow = Depends(get_workflow),
):
    return to_response(workflow.submit(submission.to_candidate()))


@router.get("", response_model=List[LeaveRequestResponse])
def list_leave_requests(
    employee_id: Optional[str] = None,
    status: Optional[str] = None,
    leave_type_id: Optional[int] = None,
    department: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_db),
):
    """Approval queue listing; `start`/`end` keep requests that overlap the range."""
    query = db.query(LeaveRequest)
    if department:
        query = query.join(Employee, LeaveRequest.employee_id == Employee.id).filter(
            Employee.department == department
        )
    if start is not None:
        query = query.filter(LeaveRequest.end_date >= start)
    if end is not None:
        query = query.filter(LeaveRequest.start_date <= end)
    if employee_id:
        query = query.filter(LeaveRequest.employee_id == employee_id)
    statuses = _parse_statuses(status)
    if statuses:
        query = query.filter(LeaveRequest.status.in_(statuses))
    if leave_type_id is not None:
        query = query.filter(LeaveRequest.leave_type_id == leave_type_id)
    return query.order_by(LeaveRequest.start_date.desc(), LeaveRequest.id.desc()).all()


@router.post("/days", response_model=DayCountResponse)
def preview_day_count(
    payload: DayCountRequest,
    validator: LeaveRequestValidator = Depends(get_validator),
):
    """Chargeable days for a date range, computed exactly as on submission."""
    candidate = LeaveCandidate(employee_id="", leave_type_id=0, start_date=payload.start_date,
                               end_date=payload.end_date, is_half_day=payload.is_half_day)
    return DayCountResponse(start_date=payload.start_date, end_date=payload.end_date,
                            number_of_days=validator.chargeable_days(candidate))


# --- Balances ---

@router.get("/balance/{employee_id}", response_model=List[LeaveBalanceResponse])
def get_leave_balances(
    employee_id: str,
    year: Optional[int] = None,
    balances: LeaveBalanceEngine = Depends(get_balance_engine),
):
    if balances.directory.get(employee_id) is None:
        raise NotFoundError(f"Employee {employee_id} not found")
    return [
        LeaveBalanceResponse.model_validate(b)
        for b in balances.compute_all_balances(employee_id, year or balances.today().year)
    ]


@router.get("/balance/{employee_id}/{leave_type_id}", response_model=LeaveBalanceResponse)
def get_leave_balance(
    employee_id: str,
    leave_type_id: int,
    year: Optional[int] = None,
    balances: LeaveBalanceEngine = Depends(get_balance_engine),
):
    if balances.directory.get(employee_id) is None:
        raise NotFoundError(f"Employee {employee_id} not found")
    return LeaveBalanceResponse.model_validate(
        balances.compute_balance(employee_id, leave_type_id, year or balances.today().year)
    )


# --- Calendar ---

@router.get("/calendar", response_model=List[CalendarDayResponse])
def leave_calendar(
    year: int = Query(..., ge=1900, le=9999),
    month: int = Query(..., ge=1, le=12),
    department: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
):
    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    index = LeaveCalendarIndex.from_session(db, first, last, department=department)
    filters = CalendarFilters(department=department, statuses=_parse_statuses(status, ACTIVE_STATUSES))
    return [
        CalendarDayResponse(
            date=day.date,
            is_weekend=day.is_weekend,
            holiday=day.holiday,
            leaves=[_calendar_entry(r) for r in day.leaves],
        )
        for day in index.month_view(year, month, filters)
    ]


@router.get("/calendar/range", response_model=List[CalendarLeave])
def leave_calendar_range(
    start: date,
    end: date,
    employee_id: Optional[str] = None,
    department: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
):
    index = LeaveCalendarIndex.from_session(db, start, end, employee_id=employee_id, department=department)
    filters = CalendarFilters(employee_id=employee_id, department=department,
                              statuses=_parse_statuses(status, ACTIVE_STATUSES))
    return [_calendar_entry(r) for r in index.leaves_in_range(start, end, filters)]


# --- Single request & transitions ---

@router.get("/{request_id}", response_model=LeaveRequestResponse)
def get_leave_request(request_id: int, workflow: LeaveApprovalWorkflow = Depends(get_workflow)):
    request = workflow.get_request(request_id)
    if request is None:
        raise NotFoundError(f"Leave request {request_id} not found")
    return request


@router.put("/{request_id}/approve", response_model=TransitionResponse)
def approve_leave_request(
    request_id: int,
    action: TransitionAction,
    workflow: LeaveApprovalWorkflow = Depends(get_workflow),
):
    return to_response(workflow.approve(request_id, action.actor_id, action.comment))


@router.put("/{request_id}/reject", response_model=TransitionResponse)
def reject_leave_request(
    request_id: int,
    action: TransitionAction,
    workflow: LeaveApprovalWorkflow = Depends(get_workflow),
):
    return to_response(workflow.reject(request_id, action.actor_id, action.comment))


@router.put("/{request_id}/cancel", response_model=TransitionResponse)
def cancel_leave_request(
    request_id: int,
    action: TransitionAction,
    workflow: LeaveApprovalWorkflow = Depends(get_workflow),
):
    return to_response(workflow.cancel(request_id, action.actor_id, action.comment))
