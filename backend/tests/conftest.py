"""
Pytest fixtures for shiftguard backend tests.

Provides test database setup, a business with a cashier and a manager,
a transaction factory, and a test client.
"""

import pytest

from shiftguard import create_app
from shiftguard.config import TestConfig
from shiftguard.extensions import db
from shiftguard.models import Business, Role, Transaction, User
from shiftguard.services.auth_service import hash_pin
from shiftguard.time_utils import MS_PER_MINUTE

MANAGER_PIN = "4321"


@pytest.fixture(scope='session')
def manager_pin():
    return MANAGER_PIN


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def business(db_session):
    biz = Business(name="Corner Cafe", code="CAFE", is_active=True)
    db_session.add(biz)
    db_session.commit()
    return biz


@pytest.fixture(scope='function')
def cashier_role(db_session, business):
    role = Role(business_id=business.id, name="cashier", shift_required=True, can_approve_cash_variance=False)
    db_session.add(role)
    db_session.commit()
    return role


@pytest.fixture(scope='function')
def manager_role(db_session, business):
    role = Role(business_id=business.id, name="manager", shift_required=None, can_approve_cash_variance=True)
    db_session.add(role)
    db_session.commit()
    return role


@pytest.fixture(scope='function')
def cashier(db_session, business, cashier_role):
    user = User(
        business_id=business.id,
        role_id=cashier_role.id,
        username="cashier",
        display_name="Casey Cashier",
        pin_hash=hash_pin("1111"),
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def manager(db_session, business, manager_role):
    user = User(
        business_id=business.id,
        role_id=manager_role.id,
        username="manager",
        display_name="Morgan Manager",
        pin_hash=hash_pin(MANAGER_PIN),
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def make_transaction(db_session):
    """Insert a sales-subsystem transaction for a shift (amounts in cents)."""
    def _make(shift, tx_type="sale", total_cents=0, **kwargs):
        tx = Transaction(
            shift_id=shift.id,
            business_id=shift.business_id,
            tx_type=tx_type,
            status=kwargs.pop("status", "completed"),
            payment_method=kwargs.pop("payment_method", "cash"),
            total_cents=total_cents,
            cash_amount_cents=kwargs.pop("cash_amount_cents", None),
            discount_cents=kwargs.pop("discount_cents", 0),
            is_partial_refund=kwargs.pop("is_partial_refund", False),
            timestamp=kwargs.pop("timestamp", shift.started_at + MS_PER_MINUTE),
            **kwargs,
        )
        db_session.add(tx)
        db_session.commit()
        return tx

    return _make
