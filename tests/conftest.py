# tests/conftest.py

"""
Shared fixtures for the Vending Service tests.
Each test gets its own in-memory SQLite database, a fake clock, a fresh rate
limiter and no processing delay, all wired into the app through
`app.dependency_overrides`.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# The app builds its engine at import time, so point it at SQLite first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["VENDING_SEED_PRODUCTS"] = "false"
os.environ["VENDING_PROCESSING_DELAY_SECONDS"] = "0"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vending_service.db import Base, get_db
from vending_service.dependencies import get_clock, get_processing_delay, get_rate_limiter
from vending_service.main import app
from vending_service.models import Product, Purchase
from vending_service.purchases import no_delay
from vending_service.rate_limiter import CooldownRateLimiter

# Suppress noisy logs from SQLAlchemy/FastAPI during tests for cleaner output
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
logging.getLogger("fastapi").setLevel(logging.WARNING)

START_TIME = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime = START_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


# --- Pytest Fixtures ---
@pytest.fixture
def db_engine():
    """
    Provides a brand new in-memory database for one test.
    StaticPool keeps a single connection so every session sees the same data.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory) -> Session:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiter(fake_clock) -> CooldownRateLimiter:
    return CooldownRateLimiter(cooldown_seconds=5, clock=fake_clock)


@pytest.fixture
def db_session_for_test(session_factory, db_session, fake_clock, rate_limiter):
    """
    Wires the per-test database, clock and rate limiter into the app.
    This fixture:
    1. Overrides `get_db` to hand out sessions on the test database.
    2. Overrides the clock, the rate limiter and the processing delay.
    3. Yields a session the test can use to seed and inspect data.
    4. Removes the overrides afterwards.
    """

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: fake_clock
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_processing_delay] = lambda: no_delay

    try:
        yield db_session
    finally:
        for dependency in (get_db, get_clock, get_rate_limiter, get_processing_delay):
            app.dependency_overrides.pop(dependency, None)


@pytest.fixture(scope="module")  # Client is created once per test module
def client():
    """
    Provides a TestClient for making HTTP requests to the FastAPI application.
    The TestClient automatically manages the app's lifespan events (startup/shutdown).
    """
    with TestClient(app) as test_client:
        yield test_client


# --- Data helpers ---
def add_product(db: Session, product_id: str, name: str, price: str, stock: int) -> Product:
    product = Product(id=product_id, name=name, price=Decimal(price), stock=stock)
    db.add(product)
    db.commit()
    return product


def add_purchase(
    db: Session,
    product_name: str,
    amount: str,
    purchase_time: datetime,
    machine_id: str = "machine-001",
    quantity: int = 1,
    product_id: str = None,
) -> Purchase:
    purchase = Purchase(
        product_id=product_id or product_name.lower().replace(" ", "-"),
        product_name=product_name,
        quantity=quantity,
        amount=Decimal(amount),
        purchase_time=purchase_time,
        machine_id=machine_id,
    )
    db.add(purchase)
    db.commit()
    return purchase


def stock_of(db: Session, product_id: str) -> int:
    return db.get(Product, product_id, populate_existing=True).stock


def purchase_count(db: Session) -> int:
    return db.query(Purchase).count()
