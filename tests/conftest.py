import pytest
import os
from datetime import date
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["STORAGE_RETRY_BACKOFF"] = "0"

from college_leave.database import Base, build_engine, get_db, init_db
from college_leave.main import app
from college_leave.schemas.auth import Caller, CallerRole
from college_leave.schemas.leave import LeaveRequestCreate
from fastapi.testclient import TestClient

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def engine():
    """A fresh in-memory database per test."""
    engine = build_engine(SQLALCHEMY_DATABASE_URL, poolclass=StaticPool)
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(session_factory):
    """TestClient whose requests each get their own session on the test database."""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def employee():
    return Caller(employee_id="E1", role=CallerRole.EMPLOYEE, department="Computer Science")


@pytest.fixture
def reviewer():
    return Caller(employee_id="R1", role=CallerRole.REVIEWER, department="Computer Science")


@pytest.fixture
def other_reviewer():
    return Caller(employee_id="R2", role=CallerRole.REVIEWER, department="Mathematics")


@pytest.fixture
def admin():
    return Caller(employee_id="A1", role=CallerRole.ADMIN)


@pytest.fixture
def headers_for():
    """Helper fixture turning a Caller into request headers."""
    def _headers_for(caller: Caller):
        headers = {"X-Employee-Id": caller.employee_id, "X-Role": caller.role.value}
        if caller.department:
            headers["X-Department"] = caller.department
        return headers
    return _headers_for


@pytest.fixture
def make_request():
    """Builds a LeaveRequestCreate; defaults describe E1's June vacation."""
    def _make_request(**overrides):
        data = {
            "employee_id": "E1",
            "employee_name": "Dana Cole",
            "department": "Computer Science",
            "position": "Lecturer",
            "leave_type": "Vacation",
            "start_date": date(2023, 6, 15),
            "end_date": date(2023, 6, 22),
            "reason": "Family trip",
        }
        data.update(overrides)
        return LeaveRequestCreate(**data)
    return _make_request
