import pytest
from datetime import date

from leave_engine.models import LeaveRequest
from leave_engine.services.balance_cache import BalanceCache
from leave_engine.services.balance_engine import LeaveBalanceEngine, accrue, floor_to_step


@pytest.fixture
def add_request(db_session):
    def _add(employee_id, leave_type_id, start, end, days, status="approved"):
        request = LeaveRequest(employee_id=employee_id, leave_type_id=leave_type_id,
                               start_date=start, end_date=end, number_of_days=days,
                               reason="Family holiday trip", contact_info="555-0100", status=status)
        db_session.add(request)
        db_session.commit()
        return request
    return _add


def engine_at(db_session, today, cache=None):
    return LeaveBalanceEngine(db_session, lambda: today, cache)


def test_full_annual_entitlement_for_tenured_employee(db_session, clock, employee, annual_policy):
    balance = LeaveBalanceEngine(db_session, clock).compute_balance(employee.id, annual_policy.leave_type_id, 2024)
    assert (balance.entitled, balance.accrued, balance.used, balance.balance) == (20, 20, 0, 20)

def test_pending_and_approved_count_as_used(db_session, clock, employee, annual_policy, add_request):
    lt = annual_policy.leave_type_id
    add_request(employee.id, lt, date(2024, 3, 4), date(2024, 3, 8), 5, status="pending")
    add_request(employee.id, lt, date(2024, 4, 1), date(2024, 4, 2), 2, status="approved")
    add_request(employee.id, lt, date(2024, 5, 6), date(2024, 5, 6), 1, status="rejected")
    add_request(employee.id, lt, date(2024, 5, 7), date(2024, 5, 7), 1, status="cancelled")

    balance = LeaveBalanceEngine(db_session, clock).compute_balance(employee.id, lt, 2024)
    assert balance.used == 7
    assert balance.pending == 5
    assert balance.balance == 13

def test_requests_are_charged_to_their_start_year(db_session, clock, employee, annual_policy, add_request):
    lt = annual_policy.leave_type_id
    add_request(employee.id, lt, date(2023, 12, 28), date(2024, 1, 3), 4)
    engine = LeaveBalanceEngine(db_session, clock)
    assert engine.compute_balance(employee.id, lt, 2023).used == 4
    assert engine.compute_balance(employee.id, lt, 2024).used == 0

def test_monthly_accrual_floors_to_whole_days(db_session, employee, make_policy):
    policy = make_policy(days_allowed=15.0, accrual_rate="monthly")
    balance = engine_at(db_session, date(2024, 2, 15)).compute_balance(employee.id, policy.leave_type_id, 2024)
    # 15 * 2/12 = 2.5
    assert balance.accrued == 2.0

def test_fractional_accrual_floors_to_half_days(db_session, employee, make_policy):
    policy = make_policy(days_allowed=15.0, accrual_rate="monthly", fractional_accrual=True)
    balance = engine_at(db_session, date(2024, 2, 15)).compute_balance(employee.id, policy.leave_type_id, 2024)
    assert balance.accrued == 2.5

def test_monthly_accrual_of_five_months(db_session, employee, make_policy):
    policy = make_policy(days_allowed=20.0, accrual_rate="monthly", fractional_accrual=True)
    balance = engine_at(db_session, date(2024, 5, 31)).compute_balance(employee.id, policy.leave_type_id, 2024)
    # 20 * 5/12 = 8.33 -> 8.0
    assert balance.accrued == 8.0

def test_quarterly_accrual(db_session, clock, employee, make_policy):
    policy = make_policy(days_allowed=20.0, accrual_rate="quarterly")
    engine = LeaveBalanceEngine(db_session, clock)
    assert engine.compute_balance(employee.id, policy.leave_type_id, 2024).accrued == 5
    # A finished year has accrued everything
    assert engine.compute_balance(employee.id, policy.leave_type_id, 2023).accrued == 20

def test_monthly_accrual_starts_at_hire_month(db_session, clock, make_employee, make_policy):
    employee = make_employee(hire_date=date(2023, 10, 15))
    policy = make_policy(days_allowed=12.0, accrual_rate="monthly")
    balance = LeaveBalanceEngine(db_session, clock).compute_balance(employee.id, policy.leave_type_id, 2023)
    assert balance.accrued == 3

def test_annual_entitlement_is_pro_rated_in_hire_year(db_session, clock, make_employee, annual_policy):
    employee = make_employee(hire_date=date(2023, 7, 1))
    balance = LeaveBalanceEngine(db_session, clock).compute_balance(employee.id, annual_policy.leave_type_id, 2023)
    # 184 of 365 days remain: 20 * 184 / 365 = 10.08
    assert balance.entitled == 20
    assert balance.accrued == 10

def test_pro_ration_can_be_switched_off(db_session, clock, make_employee, make_policy):
    employee = make_employee(hire_date=date(2023, 7, 1))
    policy = make_policy(pro_rated=False)
    balance = LeaveBalanceEngine(db_session, clock).compute_balance(employee.id, policy.leave_type_id, 2023)
    assert balance.accrued == 20

def test_nothing_accrues_before_hire(db_session, clock, make_employee, annual_policy):
    employee = make_employee(hire_date=date(2023, 7, 1))
    balance = LeaveBalanceEngine(db_session, clock).compute_balance(employee.id, annual_policy.leave_type_id, 2022)
    assert balance.accrued == 0

def test_unused_days_carry_forward_up_to_cap(db_session, clock, employee, make_policy, add_request):
    policy = make_policy(carry_forward=True, max_carry_forward=5.0)
    add_request(employee.id, policy.leave_type_id, date(2023, 6, 5), date(2023, 6, 20), 12)

    engine = LeaveBalanceEngine(db_session, clock)
    # 2022 hire year unused 20 -> capped to 5 in 2023; 2023 leaves 25 - 12 = 13 -> capped to 5
    assert engine.compute_balance(employee.id, policy.leave_type_id, 2023).balance == 13
    balance = engine.compute_balance(employee.id, policy.leave_type_id, 2024)
    assert balance.carried_forward == 5
    assert balance.accrued == 25

def test_small_prior_balance_carries_in_full(db_session, clock, make_employee, make_policy, add_request):
    employee = make_employee(hire_date=date(2023, 1, 2))
    policy = make_policy(carry_forward=True, max_carry_forward=10.0, pro_rated=False)
    add_request(employee.id, policy.leave_type_id, date(2023, 3, 1), date(2023, 3, 31), 17)
    balance = LeaveBalanceEngine(db_session, clock).compute_balance(employee.id, policy.leave_type_id, 2024)
    assert balance.carried_forward == 3
    assert balance.balance == 23

def test_inactive_policy_grants_nothing(db_session, clock, employee, make_policy):
    policy = make_policy(is_active=False)
    balance = LeaveBalanceEngine(db_session, clock).compute_balance(employee.id, policy.leave_type_id, 2024)
    assert balance.entitled == 0
    assert balance.balance == 0

def test_other_department_policy_grants_nothing(db_session, clock, employee, make_policy):
    policy = make_policy(department="Finance")
    balance = LeaveBalanceEngine(db_session, clock).compute_balance(employee.id, policy.leave_type_id, 2024)
    assert balance.entitled == 0

def test_all_balances_cover_active_policies(db_session, clock, employee, make_policy):
    make_policy("Annual Leave")
    make_policy("Sick Leave", days_allowed=12.0)
    make_policy("Old Leave", is_active=False)
    balances = LeaveBalanceEngine(db_session, clock).compute_all_balances(employee.id, 2024)
    assert sorted(b.entitled for b in balances) == [12, 20]

def test_cached_balance_is_reused_until_invalidated(db_session, clock, employee, annual_policy, add_request):
    cache = BalanceCache()
    engine = LeaveBalanceEngine(db_session, clock, cache)
    lt = annual_policy.leave_type_id
    first = engine.compute_balance(employee.id, lt, 2024)
    add_request(employee.id, lt, date(2024, 3, 4), date(2024, 3, 4), 1)
    assert engine.compute_balance(employee.id, lt, 2024) is first

    cache.invalidate(employee.id, lt)
    assert engine.compute_balance(employee.id, lt, 2024).balance == 19

def test_floor_to_step():
    assert floor_to_step(8.333, 0.5) == 8.0
    assert floor_to_step(8.5, 0.5) == 8.5
    assert floor_to_step(0.1 * 3, 0.1) == pytest.approx(0.3)
    assert floor_to_step(7.9, 1.0) == 7.0

def test_one_time_accrues_like_annual(annual_policy):
    annual_policy.accrual_rate = "one-time"
    annual_policy.fractional_accrual = False
    assert accrue(annual_policy, date(2020, 1, 1), 2024, date(2024, 3, 1)) == 20

def test_directory_update_drops_cached_balances(db_session, clock, employee, annual_policy):
    cache = BalanceCache()
    engine = LeaveBalanceEngine(db_session, clock, cache)
    lt = annual_policy.leave_type_id
    assert engine.compute_balance(employee.id, lt, 2024).balance == 20

    engine.directory.upsert(employee.id, date(2024, 3, 1), employee.department, employee.full_name)
    assert len(cache) == 0
    assert engine.compute_balance(employee.id, lt, 2024).balance == 16

def test_put_after_invalidation_is_skipped():
    cache = BalanceCache()
    key = ("EMP-001", 1, 2024, date(2024, 3, 1))
    generation = cache.generation("EMP-001", 1)
    cache.invalidate("EMP-001", 1)
    assert cache.put(key, object(), generation) is False
    assert cache.get(key) is None

    assert cache.put(key, "fresh", cache.generation("EMP-001", 1)) is True
    assert cache.get(key) == "fresh"

def test_other_pairs_keep_their_generation():
    cache = BalanceCache()
    generation = cache.generation("EMP-001", 1)
    cache.invalidate("EMP-001", 2)
    cache.invalidate("EMP-002", 1)
    assert cache.generation("EMP-001", 1) == generation
    cache.invalidate_employee("EMP-001")
    assert cache.generation("EMP-001", 1) != generation

def test_balance_computed_across_a_commit_is_not_cached(db_session, clock, employee, annual_policy,
                                                        add_request, monkeypatch):
    cache = BalanceCache()
    engine = LeaveBalanceEngine(db_session, clock, cache)
    lt = annual_policy.leave_type_id
    real_compute = engine._compute

    def compute_then_commit_elsewhere(*args):
        result = real_compute(*args)
        # Another worker commits a request and invalidates after our read
        add_request(employee.id, lt, date(2024, 3, 4), date(2024, 3, 4), 1)
        cache.invalidate(employee.id, lt)
        return result

    monkeypatch.setattr(engine, "_compute", compute_then_commit_elsewhere)
    assert engine.compute_balance(employee.id, lt, 2024).balance == 20
    assert len(cache) == 0

    monkeypatch.setattr(engine, "_compute", real_compute)
    assert engine.compute_balance(employee.id, lt, 2024).balance == 19
