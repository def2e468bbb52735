"""
Pytest fixtures for SuperSave backend tests.

Provides test database setup, user fixtures, and test client.
"""

import pytest
from supersave import create_app
from supersave.extensions import db
from supersave.models import Account, Voucher
from supersave.services import auth_service
from supersave.services.integrations import clear_token_cache


ADMIN_EMAIL = "admin@supersave.test"
EDITOR_EMAIL = "editor@supersave.test"
PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'EXPOSE_RESET_LINK': True,
        'RESEND_API_KEY': None,
        'GOOGLE_DRIVE_ACCESS_TOKEN': None,
        'GITHUB_TOKEN': None,
        'CONNECTORS_HOSTNAME': None,
        'CONNECTORS_IDENTITY': None,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        clear_token_cache()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def admin_user(db_session):
    return auth_service.create_user(ADMIN_EMAIL, PASSWORD, role="admin")


@pytest.fixture(scope='function')
def editor_user(db_session, admin_user):
    return auth_service.create_user(EDITOR_EMAIL, PASSWORD, role="editor", created_by_user_id=admin_user.id)


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, ADMIN_EMAIL, PASSWORD))


@pytest.fixture(scope='function')
def editor_headers(client, editor_user):
    return auth_headers(get_auth_token(client, EDITOR_EMAIL, PASSWORD))


@pytest.fixture(scope='function')
def account(db_session, admin_user):
    account = Account(name="Spar Kloof Street", contact_name="Thandi", created_by_user_id=admin_user.id)
    db_session.add(account)
    db_session.commit()
    return account


def make_vouchers(db_session, barcodes, *, batch_number="B-001", value_cents=5000, **fields):
    """Insert available vouchers directly."""
    vouchers = [
        Voucher(barcode=code, batch_number=batch_number, value_cents=value_cents, **fields)
        for code in barcodes
    ]
    db_session.add_all(vouchers)
    db_session.commit()
    return vouchers


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
