"""
Pytest fixtures for retailpos backend tests.

Provides an in-memory application, a per-test table wipe, the test client
and small catalog factories.
"""

import pytest

from retailpos import create_app
from retailpos.extensions import db
from retailpos.services import products_service, vendor_service


ACTOR = "cashier-1"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_TAX_RATE_BPS': 0,
        'LOCK_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
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
        db.session.remove()


@pytest.fixture(scope='function')
def actor():
    return ACTOR


@pytest.fixture(scope='function')
def make_vendor(db_session):
    """Factory: make_vendor("Acme") -> Vendor."""
    def _make(name="Acme Wholesale", **kwargs):
        return vendor_service.create_vendor(name=name, **kwargs)
    return _make


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product("SKU-1", qty=10, price_cents=1000, ...) -> Product."""
    counter = {"n": 0}

    def _make(sku=None, qty=0, price_cents=1000, **fields):
        counter["n"] += 1
        payload = {
            "sku": sku or f"SKU-{counter['n']:03d}",
            "name": fields.pop("name", f"Product {counter['n']}"),
            "price_cents": price_cents,
            "initial_quantity": qty,
        }
        payload.update(fields)
        return products_service.create_product(payload, ACTOR)
    return _make


@pytest.fixture(scope='function')
def vendor(make_vendor):
    return make_vendor()


@pytest.fixture(scope='function')
def product(make_product):
    """Active product with 10 on hand at $10.00, no tax."""
    return make_product("WIDGET-1", qty=10, price_cents=1000)
