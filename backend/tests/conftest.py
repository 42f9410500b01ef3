"""
Pytest fixtures for distro backend tests.

Provides test database setup, user/store/product factories, and test client.
"""

import pytest

from distro import create_app
from distro.extensions import db
from distro.models import Product, Store, User
from distro.permissions import ROLE_ADMIN, ROLE_OFFICER, ROLE_STOCK_MANAGER, Actor
from distro.services import session_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
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


# =============================================================================
# FACTORIES
# =============================================================================

@pytest.fixture(scope='function')
def make_user(db_session):
    counter = {"n": 0}

    def _make(role=ROLE_OFFICER, status="active", name=None):
        counter["n"] += 1
        user = User(
            name=name or f"{role} {counter['n']}",
            email=f"{role}{counter['n']}@example.com",
            # Factories skip bcrypt; login tests go through auth_service
            password_hash="x",
            role=role,
            status=status,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture(scope='function')
def make_store(db_session):
    counter = {"n": 0}

    def _make(officer, name=None):
        counter["n"] += 1
        store = Store(
            store_code=f"ST-{counter['n']:03d}",
            name=name or f"Store {counter['n']}",
            officer_id=officer.id,
        )
        db_session.add(store)
        db_session.commit()
        return store

    return _make


@pytest.fixture(scope='function')
def make_product(db_session):
    counter = {"n": 0}

    def _make(stock=10, price_cents=10000, name=None):
        counter["n"] += 1
        product = Product(
            product_code=f"P-{counter['n']:03d}",
            name=name or f"Product {counter['n']}",
            price_cents=price_cents,
            stock=stock,
            unit="piece",
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def officer(make_user):
    return make_user(ROLE_OFFICER)


@pytest.fixture(scope='function')
def admin(make_user):
    return make_user(ROLE_ADMIN)


@pytest.fixture(scope='function')
def stock_manager(make_user):
    return make_user(ROLE_STOCK_MANAGER)


@pytest.fixture(scope='function')
def store(make_store, officer):
    return make_store(officer)


@pytest.fixture(scope='function')
def product(make_product):
    return make_product(stock=10, price_cents=10000)


def actor(user) -> Actor:
    """Explicit acting user for service calls."""
    return Actor.from_user(user)


def token_for(user) -> str:
    _, token = session_service.create_session(user.id)
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
