"""
Leave Approval Workflow

State machine for a leave request:

    pending ──approve──▶ approved ──cancel──▶ cancelled
       │                                        ▲
       ├──reject──▶ rejected                    │
       └──cancel────────────────────────────────┘

Balance effects follow from the state alone: pending and approved requests
count as used, rejected and cancelled ones do not. Each operation runs under
a per-employee lock inside one database transaction, so either the whole
transition (request row, attachments, audit entry) is committed or nothing
is. Storage conflicts are retried with fresh state before surfacing a
ConflictError.
"""
import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from leave_engine.core.config import settings
from leave_engine.core.exceptions import ConflictError
from leave_engine.models.leave_request import LeaveRequest, LeaveAttachment, LeaveStatus
from leave_engine.services.audit import AuditService
from leave_engine.services.balance_cache import BalanceCache
from leave_engine.services.balance_engine import LeaveBalanceEngine
from leave_engine.services.base import BaseService, Clock, utc_now
from leave_engine.services.results import (
    LeaveCandidate, LeaveErrorCode, LeaveEvent, Rejected, TransitionResult,
)
from leave_engine.services.validator import LeaveRequestValidator

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"

TRANSITIONS = {
    LeaveStatus.PENDING.value: {LeaveStatus.APPROVED.value, LeaveStatus.REJECTED.value, LeaveStatus.CANCELLED.value},
    # An approved leave can still be withdrawn before it starts
    LeaveStatus.APPROVED.value: {LeaveStatus.CANCELLED.value},
    LeaveStatus.REJECTED.value: set(),
    LeaveStatus.CANCELLED.value: set(),
}

EVENTS = {
    LeaveStatus.APPROVED.value: LeaveEvent.APPROVED,
    LeaveStatus.REJECTED.value: LeaveEvent.REJECTED,
    LeaveStatus.CANCELLED.value: LeaveEvent.CANCELLED,
}

STORAGE_CONFLICTS = (StaleDataError, IntegrityError, OperationalError)

_locks_guard = threading.Lock()
_employee_locks: Dict[str, threading.Lock] = {}


def employee_lock(employee_id: str) -> threading.Lock:
    with _locks_guard:
        lock = _employee_locks.get(employee_id)
        if lock is None:
            lock = _employee_locks[employee_id] = threading.Lock()
        return lock


class LeaveApprovalWorkflow(BaseService):

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        cache: Optional[BalanceCache] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__(db, clock)
        self.cache = cache
        self.now = now or utc_now
        self.balances = LeaveBalanceEngine(db, clock, cache)
        self.validator = LeaveRequestValidator(db, clock, cache, balances=self.balances)
        self.policies = self.balances.policies
        self.audit = AuditService(db, clock)

    # --- Public operations ---

    def submit(self, candidate: LeaveCandidate) -> TransitionResult:
        with employee_lock(candidate.employee_id):
            return self._run_atomic(lambda: self._submit(candidate))

    def approve(self, request_id: int, approver_id: str, comment: Optional[str] = None) -> TransitionResult:
        return self._transition(request_id, LeaveStatus.APPROVED.value, approver_id, comment)

    def reject(self, request_id: int, approver_id: str, comment: Optional[str] = None) -> TransitionResult:
        return self._transition(request_id, LeaveStatus.REJECTED.value, approver_id, comment)

    def cancel(self, request_id: int, actor_id: str, comment: Optional[str] = None) -> TransitionResult:
        return self._transition(request_id, LeaveStatus.CANCELLED.value, actor_id, comment)

    def get_request(self, request_id: int) -> Optional[LeaveRequest]:
        return self.db.get(LeaveRequest, request_id)

    # --- Internals ---

    def _submit(self, candidate: LeaveCandidate) -> TransitionResult:
        outcome = self.validator.validate(candidate)
        if not outcome.ok:
            logger.info(f"Leave submission rejected: {outcome.code.value}",
                        extra={"employee_id": candidate.employee_id, "code": outcome.code.value})
            return TransitionResult.failed(outcome)

        validated = outcome.request
        request = LeaveRequest(
            employee_id=validated.employee_id,
            leave_type_id=validated.leave_type_id,
            start_date=validated.start_date,
            end_date=validated.end_date,
            is_half_day=validated.is_half_day,
            half_day_period=validated.half_day_period if validated.is_half_day else None,
            number_of_days=validated.number_of_days,
            reason=validated.reason,
            contact_info=validated.contact_info,
            status=LeaveStatus.PENDING.value,
            applied_on=self.now(),
        )
        request.attachments = [
            LeaveAttachment(filename=a.filename, content_type=a.content_type, url=a.url)
            for a in validated.attachments
        ]
        self.db.add(request)
        self.db.flush()
        self.audit.record(request, "submit", validated.employee_id, None,
                          {"number_of_days": validated.number_of_days})

        policy = self.policies.get_policy(validated.leave_type_id)
        if not policy.requires_approval:
            self._apply(request, LeaveStatus.APPROVED.value, SYSTEM_ACTOR,
                        "Auto-approved: leave type does not require approval")
            return TransitionResult.succeeded(request, LeaveEvent.APPROVED)
        return TransitionResult.succeeded(request, LeaveEvent.SUBMITTED)

    def _transition(self, request_id: int, target: str, actor_id: str,
                    comment: Optional[str]) -> TransitionResult:
        request = self.db.get(LeaveRequest, request_id)
        if request is None:
            return TransitionResult.failed(
                Rejected(LeaveErrorCode.NOT_FOUND, f"Leave request {request_id} not found")
            )
        with employee_lock(request.employee_id):
            return self._run_atomic(lambda: self._apply_transition(request_id, target, actor_id, comment))

    def _apply_transition(self, request_id: int, target: str, actor_id: str,
                          comment: Optional[str]) -> TransitionResult:
        # Re-read under the lock so the decision is made on current state
        request = self.db.get(LeaveRequest, request_id, populate_existing=True)
        current = request.status

        if target not in TRANSITIONS.get(current, set()):
            return TransitionResult.failed(
                Rejected(LeaveErrorCode.INVALID_TRANSITION,
                         f"Cannot move a {current} request to {target}",
                         {"status": current, "target": target}),
                request,
            )

        if (
            target == LeaveStatus.CANCELLED.value
            and current == LeaveStatus.APPROVED.value
            and request.start_date < self.today()
        ):
            return TransitionResult.failed(
                Rejected(LeaveErrorCode.PAST_APPROVED_CANCELLATION,
                         "Leave that has already started cannot be cancelled",
                         {"start_date": request.start_date.isoformat()}),
                request,
            )

        self._apply(request, target, actor_id, comment)
        return TransitionResult.succeeded(request, EVENTS[target])

    def _apply(self, request: LeaveRequest, target: str, actor_id: str, comment: Optional[str]):
        before = request.status
        request.status = target
        request.actioned_by = actor_id
        request.actioned_on = self.now()
        if comment is not None:
            request.comment = comment
        self.db.flush()
        self.audit.record(request, target, actor_id, before, {"comment": comment} if comment else None)

    def _run_atomic(self, operation: Callable[[], TransitionResult]) -> TransitionResult:
        attempts = 1 + max(settings.conflict_retries, 0)
        for attempt in range(1, attempts + 1):
            try:
                result = operation()
                if not result.ok:
                    self.db.rollback()
                    return result
                self.db.commit()
            except STORAGE_CONFLICTS as exc:
                self.db.rollback()
                if attempt == attempts:
                    logger.warning(f"Leave write conflict persisted after {attempt} attempts: {exc}")
                    raise ConflictError() from exc
                logger.warning(f"Leave write conflict, retrying with fresh state: {exc}")
                continue
            except Exception:
                self.db.rollback()
                raise

            request = result.request
            self.db.refresh(request)
            if self.cache is not None:
                self.cache.invalidate(request.employee_id, request.leave_type_id)
            balance = self.balances.compute_balance(request.employee_id, request.leave_type_id,
                                                    request.start_date.year)
            logger.info(f"Leave request {request.id} {result.event.value}",
                        extra={"leave_request_id": request.id, "employee_id": request.employee_id,
                               "status": request.status})
            return replace(result, balance=balance)
