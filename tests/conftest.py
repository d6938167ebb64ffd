"""
Shared fixtures.
Every test gets a fresh in-memory SQLite database; the API client runs against it
with the signed-in user and the storage provider overridden.
"""
import os
import tempfile
import uuid
from datetime import date
from decimal import Decimal

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["LOCAL_STORAGE_DIR"] = tempfile.mkdtemp(prefix="solarops-test-")
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
os.environ.pop("FUNCTIONS_BASE_URL", None)
os.environ.pop("STORAGE_PROVIDER", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from solarops.auth.security import get_current_user
from solarops.db import Base, get_db
from solarops.main import app
from solarops.models.models import (
    AppUser,
    CrmCustomer,
    SalesCommission,
    SchedulingTicket,
)
from solarops.storage.factory import get_storage
from solarops.storage.local_provider import LocalStorageProvider


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def storage(tmp_path):
    return LocalStorageProvider(str(tmp_path / "storage"))


@pytest.fixture
def make_user(db):
    def _make(**kwargs):
        n = uuid.uuid4().hex[:8]
        data = {
            "email": f"user-{n}@example.com",
            "full_name": f"User {n}",
            "role_category": "employee",
            "status": "active",
        }
        data.update(kwargs)
        user = AppUser(**data)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_customer(db):
    def _make(**kwargs):
        data = {
            "full_name": "Jordan Rivera",
            "address": "1 Main St, Fresno, CA",
            "system_size_kw": Decimal("8"),
            "panel_quantity": 20,
            "battery_quantity": 0,
        }
        data.update(kwargs)
        customer = CrmCustomer(**data)
        db.add(customer)
        db.commit()
        db.refresh(customer)
        return customer

    return _make


@pytest.fixture
def make_ticket(db):
    def _make(customer, **kwargs):
        data = {
            "customer_id": customer.id,
            "ticket_type": "installation",
            "ticket_status": "scheduled",
            "scheduled_date": date(2025, 1, 6),
        }
        data.update(kwargs)
        ticket = SchedulingTicket(**data)
        db.add(ticket)
        db.commit()
        db.refresh(ticket)
        return ticket

    return _make


@pytest.fixture
def make_commission(db):
    def _make(customer, **kwargs):
        data = {
            "customer_id": customer.id,
            "total_commission": Decimal("3000"),
            "m1_payment_amount": Decimal("1000"),
            "m2_payment_amount": Decimal("2000"),
        }
        data.update(kwargs)
        commission = SalesCommission(**data)
        db.add(commission)
        db.commit()
        db.refresh(commission)
        return commission

    return _make


@pytest.fixture
def admin(make_user):
    return make_user(full_name="Avery Admin", role_category="admin")


@pytest.fixture
def current_user(admin):
    """Mutable holder for the signed-in user; tests swap `current_user["user"]`."""
    return {"user": admin}


@pytest.fixture
def client(db, storage, current_user):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user] = lambda: current_user["user"]
    app.dependency_overrides[get_storage] = lambda: storage
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
