"""
Pytest configuration and fixtures
"""
import os

# Settings are required at import time; tests never read a real .env
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-pytest-only-0123456789")
os.environ.setdefault("APP_ENV", "local")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.engine import Engine

from fieldservice.main import app
from fieldservice.db.base import Base
from fieldservice.core.deps import get_db
from fieldservice.core.security import hash_password, create_access_token

# Import all models to ensure they're registered with Base.metadata
from fieldservice.models import (
    Tenant,
    User,
    UserStatus,
    Role,
    UserRoleAssignment,
    WorkOrder,
    TimeEntry,
    AuditLog,
)  # noqa


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PASSWORD = "testpass123"

DISPATCHER_PERMISSIONS = {
    "work-orders": True,
    "scheduling": True,
    "timesheets": True,
    "roles": True,
    "users": {"assign": True},
    "platform-templates": {"view": True},
}

TECHNICIAN_PERMISSIONS = {
    "work-orders": {"view": True},
    "timesheets": {"view": True, "create": True},
}


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Test client fixture with database override"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def tenant(db):
    company = Tenant(name="Acme Heating & Cooling", active=True)
    db.add(company)
    db.commit()
    db.refresh(company)
    return company


@pytest.fixture
def other_tenant(db):
    company = Tenant(name="Northside Plumbing", active=True)
    db.add(company)
    db.commit()
    db.refresh(company)
    return company


@pytest.fixture
def make_user(db):
    """Factory: make_user(tenant_id, email, status="active")"""
    def _make(tenant_id, email, status=UserStatus.ACTIVE.value, **fields):
        user = User(
            tenant_id=tenant_id,
            email=email,
            full_name=fields.pop("full_name", email.split("@")[0].title()),
            password_hash=hash_password(TEST_PASSWORD),
            status=status,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def make_role(db):
    """Factory: make_role(tenant_id, name, permissions)"""
    def _make(tenant_id, name, permissions, is_template=False):
        role = Role(tenant_id=tenant_id, name=name, permissions=permissions, is_template=is_template)
        db.add(role)
        db.commit()
        db.refresh(role)
        return role
    return _make


@pytest.fixture
def grant(db):
    """Assign a role to a user inside the user's home tenant"""
    def _grant(user, role):
        assignment = UserRoleAssignment(user_id=user.id, role_id=role.id, tenant_id=user.tenant_id)
        db.add(assignment)
        db.commit()
        return assignment
    return _grant


@pytest.fixture
def dispatcher(tenant, make_user, make_role, grant):
    user = make_user(tenant.id, "dispatch@acme.test")
    grant(user, make_role(tenant.id, "Dispatcher", DISPATCHER_PERMISSIONS))
    return user


@pytest.fixture
def technician(tenant, make_user, make_role, grant):
    user = make_user(tenant.id, "tech@acme.test")
    grant(user, make_role(tenant.id, "Technician", TECHNICIAN_PERMISSIONS))
    return user


@pytest.fixture
def platform_admin(db):
    from fieldservice.services.bootstrap_service import bootstrap_platform_admin
    from fieldservice.core.config import settings

    bootstrap_platform_admin(db)
    return db.query(User).filter(User.email == settings.INITIAL_ADMIN_EMAIL).first()


def token_for(user):
    return create_access_token({"sub": user.id, "tenant_id": user.tenant_id})


@pytest.fixture
def auth_headers():
    """auth_headers(user) -> Authorization header dict"""
    def _headers(user):
        return {"Authorization": f"Bearer {token_for(user)}"}
    return _headers


@pytest.fixture
def make_work_order(db):
    """Factory: make_work_order(tenant_id, **fields) creates a row directly in status new"""
    def _make(tenant_id, **fields):
        fields.setdefault("customer_id", "cust-1")
        fields.setdefault("location_id", "loc-1")
        fields.setdefault("summary", "No heat in unit 4B")
        fields.setdefault("notes", [])
        work_order = WorkOrder(tenant_id=tenant_id, **fields)
        db.add(work_order)
        db.commit()
        db.refresh(work_order)
        return work_order
    return _make
