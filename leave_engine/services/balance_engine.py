"""
Leave Balance Engine

Balances are never stored. They are derived on demand from the policy, the
employee's hire date and the request log:

    balance = accrued - used

where `used` counts both approved and pending requests (pending days are a
provisional reservation), so rejecting or cancelling a request releases its
days without any explicit credit.
"""
import calendar
import math
from dataclasses import dataclass, asdict
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from leave_engine.core.config import settings
from leave_engine.models.leave_policy import LeavePolicy, AccrualRate
from leave_engine.models.leave_request import LeaveRequest, LeaveStatus, ACTIVE_STATUSES
from leave_engine.services.balance_cache import BalanceCache
from leave_engine.services.base import BaseService, Clock
from leave_engine.services.employee_directory import EmployeeDirectory
from leave_engine.services.policy_store import LeavePolicyStore, applies_to_department

PERIODS_PER_YEAR = {
    AccrualRate.MONTHLY.value: 12,
    AccrualRate.QUARTERLY.value: 4,
}


@dataclass(frozen=True)
class LeaveBalance:
    employee_id: str
    leave_type_id: int
    year: int
    entitled: float
    accrued: float  # includes carried_forward
    carried_forward: float
    used: float  # includes pending
    pending: float

    @property
    def balance(self) -> float:
        return self.accrued - self.used

    def to_dict(self) -> dict:
        return {**asdict(self), "balance": self.balance}


def floor_to_step(value: float, step: float) -> float:
    if step <= 0:
        return value
    # Tolerance keeps 0.1 * 3 style float noise from dropping a whole step
    return math.floor(value / step + 1e-9) * step


def period_index(accrual_rate: str, day: date) -> int:
    """1-based accrual period containing `day`."""
    if accrual_rate == AccrualRate.QUARTERLY.value:
        return (day.month - 1) // 3 + 1
    return day.month


def accrue(policy: LeavePolicy, hire_date: date, year: int, as_of: date,
           rounding_step: Optional[float] = None) -> float:
    """
    Days credited for `year` as of `as_of`, before carry-forward.

    Periodic policies credit each period on its first day, counting from the
    hire period for employees hired during `year`. Lump-sum policies credit
    the whole entitlement, pro-rated over the rest of the hire year when the
    policy asks for it.
    """
    if year < hire_date.year:
        return 0.0

    if rounding_step is None:
        rounding_step = settings.accrual.rounding_step
    step = rounding_step if policy.fractional_accrual else 1.0
    entitled = float(policy.days_allowed or 0.0)
    hired_this_year = hire_date.year == year

    periods = PERIODS_PER_YEAR.get(policy.accrual_rate)
    if periods:
        if as_of.year < year:
            elapsed = 0
        elif as_of.year > year:
            elapsed = periods
        else:
            elapsed = period_index(policy.accrual_rate, as_of)
        first = period_index(policy.accrual_rate, hire_date) if hired_this_year else 1
        credited = max(0, elapsed - first + 1)
        return floor_to_step(entitled * credited / periods, step)

    if hired_this_year and policy.pro_rated:
        days_in_year = 366 if calendar.isleap(year) else 365
        remaining = (date(year, 12, 31) - hire_date).days + 1
        return floor_to_step(entitled * remaining / days_in_year, step)

    return entitled


class LeaveBalanceEngine(BaseService):

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        cache: Optional[BalanceCache] = None,
        policies: Optional[LeavePolicyStore] = None,
        directory: Optional[EmployeeDirectory] = None,
    ):
        super().__init__(db, clock)
        self.cache = cache
        self.policies = policies or LeavePolicyStore(db, clock, cache)
        self.directory = directory or EmployeeDirectory(db, clock, cache)

    def compute_balance(self, employee_id: str, leave_type_id: int, year: int) -> LeaveBalance:
        as_of = self.today()
        key = (employee_id, leave_type_id, year, as_of)
        if self.cache is None:
            return self._compute(employee_id, leave_type_id, year, as_of)

        cached = self.cache.get(key)
        if cached is not None:
            return cached
        # A transition committed while computing makes this result stale; put skips it then
        generation = self.cache.generation(employee_id, leave_type_id)
        result = self._compute(employee_id, leave_type_id, year, as_of)
        self.cache.put(key, result, generation)
        return result

    def compute_all_balances(self, employee_id: str, year: int) -> List[LeaveBalance]:
        """One balance per active policy, as shown on the balance overview."""
        return [
            self.compute_balance(employee_id, policy.leave_type_id, year)
            for policy in self.policies.list_policies(active_only=True)
        ]

    def _compute(self, employee_id: str, leave_type_id: int, year: int, as_of: date) -> LeaveBalance:
        used, pending = self._used_days(employee_id, leave_type_id, year)
        employee = self.directory.get(employee_id)
        policy = self.policies.get_policy(leave_type_id)

        if (
            employee is None
            or policy is None
            or not policy.is_active
            or not applies_to_department(policy, employee.department)
        ):
            return LeaveBalance(employee_id, leave_type_id, year,
                                entitled=0.0, accrued=0.0, carried_forward=0.0,
                                used=used, pending=pending)

        accrued = accrue(policy, employee.hire_date, year, as_of)

        carried = 0.0
        if policy.carry_forward and year > employee.hire_date.year:
            prior = self.compute_balance(employee_id, leave_type_id, year - 1).balance
            carried = min(max(prior, 0.0), policy.max_carry_forward or 0.0)

        return LeaveBalance(
            employee_id,
            leave_type_id,
            year,
            entitled=float(policy.days_allowed),
            accrued=accrued + carried,
            carried_forward=carried,
            used=used,
            pending=pending,
        )

    def _used_days(self, employee_id: str, leave_type_id: int, year: int) -> Tuple[float, float]:
        # Requests are charged to the year they start in
        rows = self.db.query(LeaveRequest.status, func.sum(LeaveRequest.number_of_days)).filter(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.leave_type_id == leave_type_id,
            LeaveRequest.status.in_(ACTIVE_STATUSES),
            LeaveRequest.start_date >= date(year, 1, 1),
            LeaveRequest.start_date <= date(year, 12, 31),
        ).group_by(LeaveRequest.status).all()

        totals = {status: float(total or 0.0) for status, total in rows}
        pending = totals.get(LeaveStatus.PENDING.value, 0.0)
        return pending + totals.get(LeaveStatus.APPROVED.value, 0.0), pending
