"""
Leave Request Validator

Runs the admission checks for a new leave request, in order, stopping at
the first failure:

1. date range is well formed (half-days cover a single date)
2. no backdating unless the policy allows retroactive leave
3. employee is eligible for the leave type
4. no overlap with the employee's pending/approved requests
5. enough balance for the chargeable days
6. supporting documents attached when the policy demands them

Validation never writes anything.
"""
from dataclasses import replace
from typing import Optional

from sqlalchemy.orm import Session

from leave_engine.models.leave_request import HalfDayPeriod, ACTIVE_STATUSES
from leave_engine.services.balance_cache import BalanceCache
from leave_engine.services.balance_engine import LeaveBalanceEngine
from leave_engine.services.base import BaseService, Clock
from leave_engine.services.business_days import count_chargeable_days
from leave_engine.services.calendar_index import LeaveCalendarIndex
from leave_engine.services.holiday_service import HolidayService
from leave_engine.services.policy_store import is_eligible, applies_to_department
from leave_engine.services.results import LeaveCandidate, LeaveErrorCode, Ok, Rejected, ValidationResult

HALF_DAY_PERIODS = {p.value for p in HalfDayPeriod}


class LeaveRequestValidator(BaseService):

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        cache: Optional[BalanceCache] = None,
        balances: Optional[LeaveBalanceEngine] = None,
        holidays: Optional[HolidayService] = None,
    ):
        super().__init__(db, clock)
        self.balances = balances or LeaveBalanceEngine(db, clock, cache)
        self.policies = self.balances.policies
        self.directory = self.balances.directory
        self.holidays = holidays or HolidayService(db, clock)

    def chargeable_days(self, candidate: LeaveCandidate) -> float:
        """The same day count the validator charges, for previews."""
        holidays = self.holidays.dates_between(candidate.start_date, candidate.end_date)
        return count_chargeable_days(candidate.start_date, candidate.end_date, holidays, candidate.is_half_day)

    def validate(self, candidate: LeaveCandidate) -> ValidationResult:
        start, end = candidate.start_date, candidate.end_date
        today = self.today()

        # 1. Date range
        if end < start:
            return Rejected(LeaveErrorCode.INVALID_DATE_RANGE, "End date cannot be before start date",
                            {"start_date": start.isoformat(), "end_date": end.isoformat()})
        if candidate.is_half_day:
            if start != end:
                return Rejected(LeaveErrorCode.INVALID_DATE_RANGE, "A half-day leave must start and end on the same date")
            if candidate.half_day_period not in HALF_DAY_PERIODS:
                return Rejected(LeaveErrorCode.INVALID_DATE_RANGE, "Please specify which half of the day")

        policy = self.policies.get_policy(candidate.leave_type_id)

        # 2. Backdating
        if start < today and not (policy is not None and policy.allow_retroactive):
            return Rejected(LeaveErrorCode.INVALID_DATE_RANGE, "Start date cannot be in the past",
                            {"today": today.isoformat()})

        # 3. Eligibility
        employee = self.directory.get(candidate.employee_id)
        if employee is None:
            return Rejected(LeaveErrorCode.NOT_ELIGIBLE, f"Unknown employee {candidate.employee_id}")
        if policy is None or not policy.is_active:
            return Rejected(LeaveErrorCode.NOT_ELIGIBLE, "This leave type is not currently offered",
                            {"leave_type_id": candidate.leave_type_id})
        if not applies_to_department(policy, employee.department):
            return Rejected(LeaveErrorCode.NOT_ELIGIBLE, "This leave type does not apply to your department",
                            {"department": employee.department})
        if not is_eligible(employee.hire_date, policy, today):
            return Rejected(LeaveErrorCode.NOT_ELIGIBLE,
                            f"Leave type becomes available {policy.applicable_after_days} days after joining",
                            {"applicable_after_days": policy.applicable_after_days})

        # 4. Overlap
        index = LeaveCalendarIndex.from_session(self.db, start, end, employee_id=candidate.employee_id,
                                                statuses=ACTIVE_STATUSES)
        conflict = index.overlapping(candidate.employee_id, start, end,
                                     candidate.half_day_period if candidate.is_half_day else None)
        if conflict is not None:
            return Rejected(LeaveErrorCode.OVERLAPPING_REQUEST,
                            "You already have a leave request covering these dates",
                            {"conflicting_request_id": conflict.id,
                             "start_date": conflict.start_date.isoformat(),
                             "end_date": conflict.end_date.isoformat()})

        # 5. Balance
        days = self.chargeable_days(candidate)
        if days <= 0:
            return Rejected(LeaveErrorCode.INVALID_DATE_RANGE, "The selected dates contain no working days")
        available = self.balances.compute_balance(candidate.employee_id, candidate.leave_type_id, start.year).balance
        if days > available:
            shortfall = days - available
            return Rejected(LeaveErrorCode.INSUFFICIENT_BALANCE,
                            f"Insufficient leave balance. Available: {available:g} days, requested: {days:g}",
                            {"requested": days, "available": available, "shortfall": shortfall})

        # 6. Documents
        if policy.requires_documents and not candidate.attachments:
            return Rejected(LeaveErrorCode.MISSING_DOCUMENTS, "Supporting documents are required for this leave type")

        return Ok(replace(candidate, number_of_days=days))
