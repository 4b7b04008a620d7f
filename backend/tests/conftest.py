"""
Pytest fixtures for storage billing backend tests.

Provides test database setup, warehouse/customer/crop fixtures, a storage
record factory, an SMS outbox and the test client.
"""

from datetime import date

import pytest
from app import create_app
from app.extensions import db
from app.models import Crop, CropRateTier, Customer, Warehouse
from app.services import storage_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'PAYMENT_WEBHOOK_SECRET': 'test-webhook-secret',
        'SMS_ENABLED': False,
        'SMS_DISPATCHER': None,
    })

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
        app.extensions.pop("view_versions", None)

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def sms_outbox(app):
    """Enable SMS and capture every dispatched message as (to, message)."""
    sent = []
    previous = (app.config['SMS_ENABLED'], app.config['SMS_DISPATCHER'])
    app.config['SMS_ENABLED'] = True
    app.config['SMS_DISPATCHER'] = lambda to, message: sent.append((to, message))
    yield sent
    app.config['SMS_ENABLED'], app.config['SMS_DISPATCHER'] = previous


@pytest.fixture(scope='function')
def warehouse(db_session):
    wh = Warehouse(name="Main Godown", code="MAIN")
    db_session.add(wh)
    db_session.commit()
    return wh


@pytest.fixture(scope='function')
def other_warehouse(db_session):
    wh = Warehouse(name="River Side", code="RISI")
    db_session.add(wh)
    db_session.commit()
    return wh


@pytest.fixture(scope='function')
def customer(db_session, warehouse):
    c = Customer(warehouse_id=warehouse.id, name="Ramesh Patil", phone="+919800000001")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def crop(db_session, warehouse):
    """Wheat with a 6-month tier (Rs.36/bag) and a 1-year tier (Rs.55/bag)."""
    c = Crop(warehouse_id=warehouse.id, name="Wheat")
    db_session.add(c)
    db_session.flush()
    db_session.add_all([
        CropRateTier(crop_id=c.id, label="6-Month Initial", max_days=182, rate_paise=3600),
        CropRateTier(crop_id=c.id, label="1-Year", max_days=365, rate_paise=5500),
    ])
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def make_record(db_session, warehouse, customer, crop):
    """Factory: make_record(bags_in, start_date, **overrides) -> StorageRecord."""
    def _make(bags_in=100, storage_start_date=date(2024, 1, 1), **kwargs):
        params = {
            "warehouse_id": warehouse.id,
            "customer_id": customer.id,
            "crop_id": crop.id,
            "commodity": "Wheat",
            "bags_in": bags_in,
            "storage_start_date": storage_start_date,
        }
        params.update(kwargs)
        return storage_service.create_storage_record(**params)

    return _make


@pytest.fixture(scope='function')
def three_records(make_record):
    """Three 100-bag wheat records dated Jan 1/2/3 2024."""
    return [
        make_record(100, date(2024, 1, 1)),
        make_record(100, date(2024, 1, 2)),
        make_record(100, date(2024, 1, 3)),
    ]


@pytest.fixture(scope='function')
def headers(warehouse):
    return {"X-Warehouse-Id": str(warehouse.id), "X-Actor-Id": "staff-1"}
