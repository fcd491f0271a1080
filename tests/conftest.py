# tests/conftest.py
"""
Pytest configuration and shared fixtures for the affiliate engine tests.

Every test runs against a fresh in-memory SQLite database.

Run:
    pytest tests -v
"""
import uuid
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import Config
from models import (
    Base, Affiliate, AffiliateStatus, Order, OrderStatus, CommissionState,
    Commission, CommissionStatus, Withdrawal, WithdrawalStatus
)
from affiliate_system.config.schedule import CommissionSchedule

# =============================================================================
# CONSTANTS
# =============================================================================

TEST_SCHEDULE = {1: 75000, 2: 12500, 3: 12500}


# =============================================================================
# CONFIG FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def test_config():
    """Deterministic configuration for every test."""
    saved = Config.get_all()
    Config._config.clear()
    Config.set(Config.DATABASE_URL, "sqlite://", source="tests")
    Config.set(Config.COMMISSION_SCHEDULE, dict(TEST_SCHEDULE), source="tests")
    Config.set(Config.MAX_UPLINE_LEVELS, 10, source="tests")
    Config.set(Config.REQUIRE_ACTIVE_UPLINE, False, source="tests")
    Config.set(Config.TREE_MAX_DEPTH, 10, source="tests")
    Config.set(Config.ACCEPTED_ORDER_STATUSES, ["completed", "processing"], source="tests")
    Config.set(Config.ORDER_REFERENCE_PREFIX, "WC", source="tests")
    yield Config
    Config._config.clear()
    Config._config.update(saved)


@pytest.fixture
def schedule():
    return CommissionSchedule(TEST_SCHEDULE)


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
def engine():
    """In-memory database shared by every connection of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def session(session_factory):
    """Create database session for each test."""
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# FACTORY FIXTURES
# =============================================================================

@pytest.fixture
def make_affiliate(session):
    """
    Create an affiliate.

    Usage:
        root = make_affiliate("Root")
        child = make_affiliate("Child", referrer=root)
    """
    counter = {"user": 0}

    def _make(name="Affiliate", referrer=None, status=AffiliateStatus.ACTIVE, email=None):
        counter["user"] += 1
        user_id = 1000 + counter["user"]
        affiliate = Affiliate(
            userID=user_id,
            displayName=name,
            email=email or f"{name.lower().replace(' ', '.')}.{user_id}@example.com",
            code=f"AFF{user_id}{uuid.uuid4().hex[:4].upper()}",
            status=status.value,
            referredByID=referrer.affiliateID if referrer is not None else None,
        )
        session.add(affiliate)
        session.commit()
        return affiliate

    return _make


@pytest.fixture
def make_chain(make_affiliate):
    """
    Create a straight upline chain.

    Returns list [direct_referrer, its referrer, ...]: chain[0] is level 1.
    """

    def _make(length, status=AffiliateStatus.ACTIVE):
        top = None
        created = []
        for i in range(length, 0, -1):
            top = make_affiliate(f"Upline {i}", referrer=top, status=status)
            created.append(top)
        return list(reversed(created))

    return _make


@pytest.fixture
def make_order(session):
    """Create a completed order pending distribution."""
    counter = {"order": 0}

    def _make(amount=500000, referrer=None, buyer=None, status=OrderStatus.COMPLETED):
        counter["order"] += 1
        order = Order(
            reference=f"WC-{counter['order']}",
            buyerUserID=buyer.userID if buyer is not None else None,
            buyerEmail=buyer.email if buyer is not None else None,
            buyerAffiliateID=buyer.affiliateID if buyer is not None else None,
            referredByID=referrer.affiliateID if referrer is not None else None,
            amount=Decimal(str(amount)),
            status=status.value,
            commissionStatus=CommissionState.PENDING.value,
        )
        session.add(order)
        session.commit()
        return order

    return _make


@pytest.fixture
def make_commission(session, make_order):
    """Insert a commission row directly (bypasses distribution)."""

    def _make(affiliate, amount, status=CommissionStatus.APPROVED, level=1, order=None):
        order = order or make_order()
        commission = Commission(
            affiliateID=affiliate.affiliateID,
            orderID=order.orderID,
            level=level,
            amount=Decimal(str(amount)),
            status=status.value,
            reference=f"{order.reference}-L{level}",
        )
        session.add(commission)
        session.commit()
        return commission

    return _make


@pytest.fixture
def make_withdrawal(session):
    def _make(affiliate, amount, status=WithdrawalStatus.PENDING):
        withdrawal = Withdrawal(
            affiliateID=affiliate.affiliateID,
            amount=Decimal(str(amount)),
            status=status.value,
        )
        session.add(withdrawal)
        session.commit()
        return withdrawal

    return _make


@pytest.fixture
def count_queries(engine):
    """
    Count SELECT statements issued inside a block.

    Usage:
        with count_queries() as counter:
            ...
        assert counter["selects"] <= 2
    """
    from contextlib import contextmanager
    from sqlalchemy import event

    @contextmanager
    def _count():
        counter = {"selects": 0}

        def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            if statement.lstrip().upper().startswith("SELECT"):
                counter["selects"] += 1

        event.listen(engine, "before_cursor_execute", before_cursor_execute)
        try:
            yield counter
        finally:
            event.remove(engine, "before_cursor_execute", before_cursor_execute)

    return _count
