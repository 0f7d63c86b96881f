"""
Pytest fixtures for back-office ledger tests.

Provides an in-memory database, a staff user with session headers, API key
headers for the mobile assistant, and product/customer factories.
"""

from decimal import Decimal

import pytest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.services import api_key_service, customers_service, products_service, session_service
from backoffice.services.actor import Actor
from backoffice.services.auth_service import create_user


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_BACKOFF': 0,
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

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def user(db_session):
    """Staff user; low bcrypt cost keeps the suite fast."""
    return create_user("owner", "Password123", email="owner@shop.local", rounds=4)


@pytest.fixture(scope='function')
def actor(user):
    return Actor.for_user(user.id)


@pytest.fixture(scope='function')
def auth_headers(user):
    _, token = session_service.create_session(user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def make_api_key(db_session):
    """Returns a factory producing X-API-Key headers for the given scopes."""
    def _make(permissions=api_key_service.ALL_PERMISSIONS, name="assistant"):
        api_key, plaintext = api_key_service.create_api_key(name, list(permissions))
        return api_key, {'X-API-Key': plaintext}
    return _make


@pytest.fixture(scope='function')
def api_key_headers(make_api_key):
    _, headers = make_api_key()
    return headers


@pytest.fixture(scope='function')
def make_product(db_session):
    def _make(name="Yerba 1kg", sale_price="10.00", stock="10", barcode=None, **extra):
        payload = {"name": name, "sale_price": sale_price, "current_stock": stock, **extra}
        if barcode:
            payload["barcode"] = barcode
        return products_service.create_product(payload)
    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    def _make(name="Ana Perez", credit_limit="0", debt=None, **extra):
        customer = customers_service.create_customer({"name": name, "credit_limit": credit_limit, **extra})
        if debt is not None:
            # Opening balance for tests that start from an existing debt
            customer.current_debt = Decimal(debt)
            db_session.commit()
        return customer
    return _make


def auth_headers_for(client, username: str, password: str) -> dict:
    """Helper to log in through the API and build Authorization headers."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    assert response.status_code == 200
    return {'Authorization': f'Bearer {response.json["token"]}'}
