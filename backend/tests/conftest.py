"""
Pytest fixtures for sales management backend tests.

Provides the test database, users of both roles, a distributor assigned to
the sales staff user, products and authenticated headers.
"""

import pytest
from app import create_app
from app.extensions import db
from app.models import User, Distributor, SalesStaffDistributor, Product
from app.services.auth_service import hash_password


PASSWORD = "secret123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_ENGINE_OPTIONS': {},
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'JWT_SECRET': 'test-access-secret',
        'JWT_REFRESH_SECRET': 'test-refresh-secret',
        'CORS_ORIGINS': ['http://localhost:3000'],
        'APP_VERSION': '1.0.0',
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


def make_user(session, *, username, role="sales_staff", full_name=None, is_active=True) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash=hash_password(PASSWORD),
        role=role,
        full_name=full_name or username.replace("_", " ").title(),
        is_active=is_active,
    )
    session.add(user)
    session.commit()
    return user


def make_distributor(session, *, name, creator=None, city="Lahore", assign_to=None) -> Distributor:
    distributor = Distributor(
        distributor_name=name,
        primary_contact_person=f"{name} Owner",
        city=city,
        created_by=creator.user_id if creator else None,
    )
    session.add(distributor)
    session.flush()
    for staff in assign_to or []:
        session.add(SalesStaffDistributor(sales_staff_id=staff.user_id, distributor_id=distributor.distributor_id))
    session.commit()
    return distributor


@pytest.fixture(scope='function')
def admin_user(db_session):
    return make_user(db_session, username="admin", role="admin", full_name="System Administrator")


@pytest.fixture(scope='function')
def staff_user(db_session):
    return make_user(db_session, username="staff_one", full_name="Staff One")


@pytest.fixture(scope='function')
def other_staff(db_session):
    return make_user(db_session, username="staff_two", full_name="Staff Two")


@pytest.fixture(scope='function')
def distributor(db_session, admin_user, staff_user):
    """Distributor assigned to staff_user."""
    return make_distributor(db_session, name="Alpha Traders", creator=admin_user, assign_to=[staff_user])


@pytest.fixture(scope='function')
def other_distributor(db_session, admin_user, other_staff):
    """Distributor assigned to other_staff only."""
    return make_distributor(
        db_session, name="Beta Supplies", creator=admin_user, city="Karachi", assign_to=[other_staff],
    )


@pytest.fixture(scope='function')
def product(db_session):
    product = Product(
        product_name="Widget",
        product_code="WID-001",
        unit_price=100,
        tax_rate=10,
        category="Hardware",
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def plain_product(db_session):
    """Product without tax."""
    product = Product(product_name="Gadget", product_code="GAD-001", unit_price=50, tax_rate=0)
    db_session.add(product)
    db_session.commit()
    return product


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json['data']['accessToken']
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email))


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, staff_user.email))


@pytest.fixture(scope='function')
def other_staff_headers(client, other_staff):
    return auth_headers(get_auth_token(client, other_staff.email))


def create_invoice(client, headers, distributor_id, items, **extra):
    """POST an invoice and return the response."""
    return client.post(
        '/api/invoices',
        json={'distributor_id': distributor_id, 'items': items, **extra},
        headers=headers,
    )


@pytest.fixture(scope='function')
def sent_invoice(client, staff_headers, distributor, product):
    """
    Sent invoice issued by staff_user:
    2 x 100 with 10% tax -> subtotal 200, tax 20, total 220.
    """
    resp = create_invoice(client, staff_headers, distributor.distributor_id, [
        {'product_id': product.product_id, 'quantity': 2},
    ])
    invoice_id = resp.json['data']['invoice_id']
    client.post(f'/api/invoices/{invoice_id}/send', headers=staff_headers)
    return invoice_id
