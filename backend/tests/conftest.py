"""
Pytest fixtures for ClothPOS backend tests.

Provides the application on an in-memory database, per-test cleanup, catalog
fixtures and authenticated headers for both roles.
"""

import pytest
from clothpos import create_app
from clothpos.extensions import db
from clothpos.services import products_service, auth_service
from clothpos.services.schema_service import seed_default_admin

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SECRET_KEY': 'test',
    'BCRYPT_ROUNDS': 4,
    'DEFAULT_ADMIN_PASSWORD': 'admin123',
    'ALLOW_NEGATIVE_STOCK': True,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing (schema migrated, admin seeded)."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test: every table emptied, default admin re-seeded."""
    app.config['ALLOW_NEGATIVE_STOCK'] = True

    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    seed_default_admin()
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture
def shirt(db_session):
    """T-shirt with two variants: M/Red (10 in stock) and L/Blue (5)."""
    product_id = products_service.create_product(
        {"name": "T-Shirt", "cost_price": "4.00", "selling_price": "10.00", "category": "Tops"},
        [
            {"size": "M", "color": "Red", "stock_qty": 10},
            {"size": "L", "color": "Blue", "stock_qty": 5},
        ],
    )
    return products_service.get_product(product_id)


@pytest.fixture
def jeans(db_session):
    product_id = products_service.create_product(
        {"name": "Jeans", "cost_price": "15.00", "selling_price": "40.00", "category": "Bottoms"},
        [{"size": "32", "color": "Indigo", "stock_qty": 3}],
    )
    return products_service.get_product(product_id)


def line(product: dict, variant_index: int = 0, qty: int = 1, **overrides) -> dict:
    """Sale line for a product fixture at its current prices."""
    variant = product["variants"][variant_index]
    item = {
        "product_id": product["id"],
        "variant_id": variant["id"],
        "qty": qty,
        "cost_at_sale": product["cost_price"],
        "price_at_sale": product["selling_price"],
    }
    item.update(overrides)
    return item


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={'username': username, 'password': password})
    assert response.status_code == 200, response.json
    return response.json.get('token')


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_headers(client, db_session):
    return auth_headers(get_auth_token(client, 'admin', 'admin123'))


@pytest.fixture
def cashier(db_session):
    user_id = auth_service.create_user('cashier1', 'cashpass', 'cashier')
    return auth_service.get_user(user_id)


@pytest.fixture
def cashier_headers(client, cashier):
    return auth_headers(get_auth_token(client, 'cashier1', 'cashpass'))
