import threading
import pytest
from datetime import date

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from leave_engine.core.exceptions import ConflictError
from leave_engine.database import Base
from leave_engine.models import Employee, LeaveAuditLog, LeavePolicy, LeaveRequest, LeaveType
from leave_engine.services.balance_cache import BalanceCache
from leave_engine.services.balance_engine import LeaveBalanceEngine
from leave_engine.services.results import LeaveCandidate, LeaveErrorCode, LeaveEvent
from leave_engine.services.workflow import LeaveApprovalWorkflow, SYSTEM_ACTOR


@pytest.fixture
def workflow(db_session, clock, fixed_now):
    return LeaveApprovalWorkflow(db_session, clock, now=fixed_now)


def _week_of_march_4(employee, policy):
    return LeaveCandidate.full_day(employee.id, policy.leave_type_id, date(2024, 3, 4), date(2024, 3, 8),
                                   reason="Family wedding out of town", contact_info="555-0101")


def _balance(db_session, clock, employee, policy):
    return LeaveBalanceEngine(db_session, clock).compute_balance(employee.id, policy.leave_type_id, 2024).balance


def test_submission_reserves_days(workflow, db_session, clock, employee, annual_policy):
    result = workflow.submit(_week_of_march_4(employee, annual_policy))
    assert result.ok
    assert result.event == LeaveEvent.SUBMITTED
    assert result.request.status == "pending"
    assert result.request.number_of_days == 5
    assert result.balance.balance == 15
    assert result.balance.pending == 5
    assert _balance(db_session, clock, employee, annual_policy) == 15

def test_overlapping_submission_is_refused(workflow, db_session, employee, annual_policy):
    workflow.submit(_week_of_march_4(employee, annual_policy))
    second = LeaveCandidate.full_day(employee.id, annual_policy.leave_type_id, date(2024, 3, 6), date(2024, 3, 6),
                                     reason="Another errand to run", contact_info="555-0101")
    result = workflow.submit(second)
    assert not result.ok
    assert result.rejection.code == LeaveErrorCode.OVERLAPPING_REQUEST
    assert db_session.query(LeaveRequest).count() == 1

def test_rejection_releases_days(workflow, db_session, clock, employee, annual_policy):
    submitted = workflow.submit(_week_of_march_4(employee, annual_policy))
    result = workflow.reject(submitted.request.id, "MGR-1", "Release is that week")
    assert result.ok
    assert result.event == LeaveEvent.REJECTED
    assert result.balance.balance == 20
    assert _balance(db_session, clock, employee, annual_policy) == 20

    again = workflow.submit(_week_of_march_4(employee, annual_policy))
    assert again.ok

def test_insufficient_balance_is_refused(workflow, employee, annual_policy):
    candidate = LeaveCandidate.full_day(employee.id, annual_policy.leave_type_id, date(2024, 3, 4),
                                        date(2024, 4, 5), reason="Long trip around the world",
                                        contact_info="555-0101")
    result = workflow.submit(candidate)
    assert result.rejection.code == LeaveErrorCode.INSUFFICIENT_BALANCE
    assert result.rejection.details["shortfall"] == 5

def test_approval_records_actor(workflow, fixed_now, employee, annual_policy):
    submitted = workflow.submit(_week_of_march_4(employee, annual_policy))
    result = workflow.approve(submitted.request.id, "MGR-1", "Enjoy")
    request = result.request
    assert request.status == "approved"
    assert request.actioned_by == "MGR-1"
    assert request.comment == "Enjoy"
    assert request.actioned_on is not None
    # Approved days stay used
    assert result.balance.balance == 15
    assert result.balance.pending == 0

@pytest.mark.parametrize("finish", ["reject", "cancel"])
def test_terminal_requests_do_not_move(workflow, employee, annual_policy, finish):
    submitted = workflow.submit(_week_of_march_4(employee, annual_policy))
    getattr(workflow, finish)(submitted.request.id, "MGR-1")

    result = workflow.approve(submitted.request.id, "MGR-2")
    assert not result.ok
    assert result.rejection.code == LeaveErrorCode.INVALID_TRANSITION
    request = workflow.get_request(submitted.request.id)
    assert request.status != "approved"
    assert request.actioned_by == "MGR-1"

def test_rejected_request_cannot_be_cancelled(workflow, employee, annual_policy):
    submitted = workflow.submit(_week_of_march_4(employee, annual_policy))
    workflow.reject(submitted.request.id, "MGR-1")
    assert workflow.cancel(submitted.request.id, employee.id).rejection.code == LeaveErrorCode.INVALID_TRANSITION

def test_employee_cancels_pending_request(workflow, employee, annual_policy):
    submitted = workflow.submit(_week_of_march_4(employee, annual_policy))
    result = workflow.cancel(submitted.request.id, employee.id)
    assert result.event == LeaveEvent.CANCELLED
    assert result.balance.balance == 20

def test_future_approved_leave_can_be_cancelled(workflow, employee, annual_policy):
    submitted = workflow.submit(_week_of_march_4(employee, annual_policy))
    workflow.approve(submitted.request.id, "MGR-1")
    result = workflow.cancel(submitted.request.id, employee.id)
    assert result.ok
    assert result.request.status == "cancelled"
    assert result.balance.balance == 20

def test_started_approved_leave_cannot_be_cancelled(workflow, db_session, fixed_now, employee, annual_policy):
    submitted = workflow.submit(_week_of_march_4(employee, annual_policy))
    workflow.approve(submitted.request.id, "MGR-1")

    later = LeaveApprovalWorkflow(db_session, lambda: date(2024, 3, 5), now=fixed_now)
    result = later.cancel(submitted.request.id, employee.id)
    assert result.rejection.code == LeaveErrorCode.PAST_APPROVED_CANCELLATION
    assert later.get_request(submitted.request.id).status == "approved"

def test_unknown_request(workflow):
    result = workflow.approve(9999, "MGR-1")
    assert not result.ok
    assert result.rejection.code == LeaveErrorCode.NOT_FOUND

def test_auto_approval_when_policy_needs_no_approval(workflow, employee, make_policy):
    policy = make_policy("Work From Home", requires_approval=False)
    result = workflow.submit(_week_of_march_4(employee, policy))
    assert result.event == LeaveEvent.APPROVED
    assert result.request.status == "approved"
    assert result.request.actioned_by == SYSTEM_ACTOR

def test_audit_trail_follows_transitions(workflow, employee, annual_policy):
    submitted = workflow.submit(_week_of_march_4(employee, annual_policy))
    workflow.approve(submitted.request.id, "MGR-1", "Fine by me")
    workflow.cancel(submitted.request.id, employee.id)

    history = workflow.audit.history(submitted.request.id)
    assert [entry.action for entry in history] == ["submit", "approved", "cancelled"]
    assert [entry.before_status for entry in history] == [None, "pending", "approved"]
    assert history[1].actor_id == "MGR-1"
    assert history[1].details == {"comment": "Fine by me"}

def test_refused_transition_leaves_no_audit_entry(workflow, db_session, employee, annual_policy):
    submitted = workflow.submit(_week_of_march_4(employee, annual_policy))
    workflow.reject(submitted.request.id, "MGR-1")
    workflow.approve(submitted.request.id, "MGR-1")
    assert db_session.query(LeaveAuditLog).count() == 2

def test_storage_conflict_is_retried_once(workflow, employee, annual_policy, monkeypatch):
    submitted = workflow.submit(_week_of_march_4(employee, annual_policy))
    real = workflow._apply_transition
    calls = []

    def flaky(*args):
        calls.append(args)
        if len(calls) == 1:
            raise StaleDataError("row was updated concurrently")
        return real(*args)

    monkeypatch.setattr(workflow, "_apply_transition", flaky)
    result = workflow.approve(submitted.request.id, "MGR-1")
    assert result.ok
    assert len(calls) == 2

def test_persistent_conflict_surfaces(workflow, employee, annual_policy, monkeypatch):
    submitted = workflow.submit(_week_of_march_4(employee, annual_policy))
    calls = []

    def always_stale(*args):
        calls.append(args)
        raise StaleDataError("row was updated concurrently")

    monkeypatch.setattr(workflow, "_apply_transition", always_stale)
    with pytest.raises(ConflictError):
        workflow.approve(submitted.request.id, "MGR-1")
    assert len(calls) == 2
    assert workflow.get_request(submitted.request.id).status == "pending"

def test_transitions_invalidate_cached_balance(db_session, clock, fixed_now, employee, annual_policy):
    cache = BalanceCache()
    workflow = LeaveApprovalWorkflow(db_session, clock, cache, now=fixed_now)
    assert workflow.balances.compute_balance(employee.id, annual_policy.leave_type_id, 2024).balance == 20

    submitted = workflow.submit(_week_of_march_4(employee, annual_policy))
    assert workflow.balances.compute_balance(employee.id, annual_policy.leave_type_id, 2024).balance == 15

    workflow.reject(submitted.request.id, "MGR-1")
    assert workflow.balances.compute_balance(employee.id, annual_policy.leave_type_id, 2024).balance == 20

def test_concurrent_overlapping_submissions(tmp_path, fixed_now):
    """Two workers submit overlapping leave for one employee at the same moment."""
    engine = create_engine(f"sqlite:///{tmp_path / 'leave.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    with Session() as session:
        session.add(Employee(id="EMP-900", full_name="Noor Haddad", department="Engineering",
                             hire_date=date(2022, 1, 10)))
        leave_type = LeaveType(name="Annual Leave", category="paid")
        session.add(leave_type)
        session.flush()
        session.add(LeavePolicy(leave_type_id=leave_type.id, days_allowed=20.0, accrual_rate="annually"))
        session.commit()
        leave_type_id = leave_type.id

    candidates = [
        LeaveCandidate.full_day("EMP-900", leave_type_id, date(2024, 3, 4), date(2024, 3, 8),
                                reason="Family wedding out of town", contact_info="555-0101"),
        LeaveCandidate.full_day("EMP-900", leave_type_id, date(2024, 3, 6), date(2024, 3, 12),
                                reason="Conference and travel days", contact_info="555-0101"),
    ]
    barrier = threading.Barrier(len(candidates))
    results = []

    def submit(candidate):
        with Session() as session:
            workflow = LeaveApprovalWorkflow(session, lambda: date(2024, 3, 1), now=fixed_now)
            barrier.wait()
            result = workflow.submit(candidate)
            results.append((result.ok, result.rejection.code if result.rejection else None))

    workers = [threading.Thread(target=submit, args=(c,)) for c in candidates]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=30)

    try:
        assert sorted(results, key=lambda r: r[0]) == [
            (False, LeaveErrorCode.OVERLAPPING_REQUEST),
            (True, None),
        ]
        with Session() as session:
            assert session.query(LeaveRequest).count() == 1
    finally:
        engine.dispose()
