"""
Leave Calendar Index

Read-only projection of leave requests by calendar date. It is built from
the request set at the moment of use, so it always reflects the latest
committed transitions.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from leave_engine.models.employee import Employee
from leave_engine.models.holiday import Holiday
from leave_engine.models.leave_request import LeaveRequest, ACTIVE_STATUSES
from leave_engine.services.business_days import iter_dates, is_weekend


@dataclass(frozen=True)
class CalendarFilters:
    employee_id: Optional[str] = None
    leave_type_id: Optional[int] = None
    department: Optional[str] = None
    statuses: Sequence[str] = ACTIVE_STATUSES

    def matches(self, request: LeaveRequest) -> bool:
        if self.statuses and request.status not in self.statuses:
            return False
        if self.employee_id is not None and request.employee_id != self.employee_id:
            return False
        if self.leave_type_id is not None and request.leave_type_id != self.leave_type_id:
            return False
        if self.department is not None:
            employee = request.employee
            if employee is None or employee.department != self.department:
                return False
        return True


@dataclass
class CalendarDay:
    date: date
    is_weekend: bool
    holiday: Optional[str] = None
    leaves: List[LeaveRequest] = field(default_factory=list)


def ranges_conflict(existing: LeaveRequest, start: date, end: date,
                    half_day_period: Optional[str] = None) -> bool:
    """Two half-days on the same date only collide when they take the same half."""
    if existing.end_date < start or existing.start_date > end:
        return False
    if half_day_period and existing.is_half_day:
        return existing.half_day_period == half_day_period
    return True


class LeaveCalendarIndex:

    def __init__(self, requests: Iterable[LeaveRequest], holidays: Iterable[Holiday] = ()):
        self._requests: List[LeaveRequest] = list(requests)
        self._by_date: Dict[date, List[LeaveRequest]] = defaultdict(list)
        for request in self._requests:
            for day in iter_dates(request.start_date, request.end_date):
                self._by_date[day].append(request)
        self._holidays: Dict[date, str] = {h.date: h.name for h in holidays}

    @classmethod
    def from_session(cls, db: Session, start: Optional[date] = None, end: Optional[date] = None,
                     employee_id: Optional[str] = None, statuses: Optional[Sequence[str]] = None,
                     department: Optional[str] = None) -> "LeaveCalendarIndex":
        query = db.query(LeaveRequest)
        if start is not None:
            query = query.filter(LeaveRequest.end_date >= start)
        if end is not None:
            query = query.filter(LeaveRequest.start_date <= end)
        if employee_id is not None:
            query = query.filter(LeaveRequest.employee_id == employee_id)
        if statuses:
            query = query.filter(LeaveRequest.status.in_(list(statuses)))
        if department is not None:
            query = query.join(Employee, LeaveRequest.employee_id == Employee.id).filter(
                Employee.department == department
            )

        holidays = []
        if start is not None and end is not None:
            holidays = db.query(Holiday).filter(Holiday.date >= start, Holiday.date <= end).all()
        return cls(query.order_by(LeaveRequest.start_date, LeaveRequest.id).all(), holidays)

    def __len__(self) -> int:
        return len(self._requests)

    def leaves_on_date(self, day: date, filters: Optional[CalendarFilters] = None) -> List[LeaveRequest]:
        filters = filters or CalendarFilters()
        return [r for r in self._by_date.get(day, []) if filters.matches(r)]

    def leaves_in_range(self, start: date, end: date,
                        filters: Optional[CalendarFilters] = None) -> List[LeaveRequest]:
        filters = filters or CalendarFilters()
        return [
            r for r in self._requests
            if r.start_date <= end and r.end_date >= start and filters.matches(r)
        ]

    def overlapping(self, employee_id: str, start: date, end: date,
                    half_day_period: Optional[str] = None,
                    exclude_request_id: Optional[int] = None) -> Optional[LeaveRequest]:
        """First active request of the employee that collides with [start, end]."""
        filters = CalendarFilters(employee_id=employee_id)
        for request in self.leaves_in_range(start, end, filters):
            if exclude_request_id is not None and request.id == exclude_request_id:
                continue
            if ranges_conflict(request, start, end, half_day_period):
                return request
        return None

    def month_view(self, year: int, month: int,
                   filters: Optional[CalendarFilters] = None) -> List[CalendarDay]:
        first = date(year, month, 1)
        last = (first.replace(day=28) + timedelta(days=4)).replace(day=1) - timedelta(days=1)
        return [
            CalendarDay(
                date=day,
                is_weekend=is_weekend(day),
                holiday=self._holidays.get(day),
                leaves=self.leaves_on_date(day, filters),
            )
            for day in iter_dates(first, last)
        ]
