"""
Service providers for the routers.

Each provider builds a service bound to the request's database session.
`get_clock` is the single source of the business "today" so tests can pin
it with `app.dependency_overrides`.
"""
from datetime import date
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from leave_engine.core.config import settings
from leave_engine.database import get_db
from leave_engine.services.balance_cache import BalanceCache, balance_cache
from leave_engine.services.balance_engine import LeaveBalanceEngine
from leave_engine.services.base import Clock
from leave_engine.services.employee_directory import EmployeeDirectory
from leave_engine.services.holiday_service import HolidayService
from leave_engine.services.policy_store import LeavePolicyStore
from leave_engine.services.validator import LeaveRequestValidator
from leave_engine.services.workflow import LeaveApprovalWorkflow


def get_clock() -> Clock:
    return date.today


def get_balance_cache() -> Optional[BalanceCache]:
    return balance_cache if settings.enable_caching else None


def get_policy_store(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    cache: Optional[BalanceCache] = Depends(get_balance_cache),
) -> LeavePolicyStore:
    return LeavePolicyStore(db, clock, cache)


def get_balance_engine(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    cache: Optional[BalanceCache] = Depends(get_balance_cache),
) -> LeaveBalanceEngine:
    return LeaveBalanceEngine(db, clock, cache)


def get_validator(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    cache: Optional[BalanceCache] = Depends(get_balance_cache),
) -> LeaveRequestValidator:
    return LeaveRequestValidator(db, clock, cache)


def get_workflow(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    cache: Optional[BalanceCache] = Depends(get_balance_cache),
) -> LeaveApprovalWorkflow:
    return LeaveApprovalWorkflow(db, clock, cache)


def get_directory(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    cache: Optional[BalanceCache] = Depends(get_balance_cache),
) -> EmployeeDirectory:
    return EmployeeDirectory(db, clock, cache)


def get_holiday_service(db: Session = Depends(get_db)) -> HolidayService:
    return HolidayService(db)
