"""
Pytest fixtures for storefront backend tests.

Provides an app on the in-memory storage backend, a per-test table wipe,
the test client, admin headers and a product factory.
"""

import pytest

from storefront import create_app
from storefront.extensions import db, GUEST_CART_KEY
from storefront.models import Product

ADMIN_PASSWORD = "test-admin-secret"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'STORAGE_BACKEND': 'memory',
        'ADMIN_PASSWORD': ADMIN_PASSWORD,
        'SECRET_KEY': 'test-secret-key',
    })
    yield app


@pytest.fixture(autouse=True)
def clean_state(app):
    """Clear all data but keep schema; empty the guest cart."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
    app.extensions[GUEST_CART_KEY].clear()
    yield


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def app_ctx(app):
    """Application context for calling services directly."""
    with app.app_context():
        yield app
        db.session.rollback()


@pytest.fixture
def admin_headers():
    return {"Admin-Password": ADMIN_PASSWORD}


@pytest.fixture
def make_product(app):
    """Insert a product and return its id."""
    def _make(**overrides):
        data = {
            "name": "Test Product",
            "description": "A product for tests",
            "price_cents": 1000,
            "category": "flower",
            "image": "/images/test.jpg",
            "stock": 10,
        }
        data.update(overrides)
        with app.app_context():
            product = Product(**data)
            db.session.add(product)
            db.session.commit()
            return product.id

    return _make


@pytest.fixture
def login():
    """Give a client's session a persistent identity."""
    def _login(client, user_id):
        with client.session_transaction() as sess:
            sess["user_id"] = user_id

    return _login
