import pytest
import os
from datetime import date, datetime, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SEED_DEFAULT_LEAVE_TYPES"] = "false"

from leave_engine.database import Base, get_db
from leave_engine.dependencies import get_clock
from leave_engine.main import app
from leave_engine.models import Employee, LeaveType, LeavePolicy
from leave_engine.services.balance_cache import balance_cache
from fastapi.testclient import TestClient

# Business "today" for every test: Friday 1 March 2024
TODAY = date(2024, 3, 1)

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create tables once for the whole test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def db_session():
    """A session per test; every table is emptied afterwards."""
    session = TestingSessionLocal()

    yield session

    session.rollback()
    session.close()
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())
    balance_cache.clear()

@pytest.fixture
def clock():
    return lambda: TODAY

@pytest.fixture
def fixed_now():
    return lambda: datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

@pytest.fixture
def make_employee(db_session):
    def _make_employee(employee_id="EMP-001", hire_date=date(2022, 1, 10), department="Engineering",
                       full_name="Asha Rao"):
        employee = Employee(id=employee_id, hire_date=hire_date, department=department, full_name=full_name)
        db_session.add(employee)
        db_session.commit()
        return employee
    return _make_employee

@pytest.fixture
def make_policy(db_session):
    """Create a leave type with its policy; keyword arguments override policy fields."""
    def _make_policy(name="Annual Leave", **overrides):
        leave_type = LeaveType(name=name, category="paid")
        db_session.add(leave_type)
        db_session.flush()
        fields = dict(
            days_allowed=20.0,
            accrual_rate="annually",
            carry_forward=False,
            max_carry_forward=None,
            pro_rated=True,
            applicable_after_days=0,
            requires_approval=True,
            requires_documents=False,
            is_active=True,
            department="all",
        )
        fields.update(overrides)
        policy = LeavePolicy(leave_type_id=leave_type.id, **fields)
        db_session.add(policy)
        db_session.commit()
        return policy
    return _make_policy

@pytest.fixture
def employee(make_employee):
    return make_employee()

@pytest.fixture
def annual_policy(make_policy):
    return make_policy()

@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: (lambda: TODAY)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
