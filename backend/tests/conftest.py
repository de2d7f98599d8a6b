"""
Pytest fixtures for ViBa backend tests.

Provides test database setup, seeded users and inventory, and test client.
"""

import pytest

from viba import create_app
from viba.extensions import db
from viba.models import User
from viba.repositories import InventoryRepository
from viba.services.auth_service import hash_password
from viba.services.totp_service import TOTPEngine


PASSWORD = "Password123"
# Low bcrypt cost keeps the suite fast; verification reads the cost from the hash
TEST_ROUNDS = 4


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret-key',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'COOKIE_SECURE': False,
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
def totp_engine(app):
    return TOTPEngine(app.config["TOTP_ISSUER"])


def make_user(db_session, email, nombre="Usuario", rol="detallista", totp_secret=None):
    user = User(
        email=email,
        nombre=nombre,
        rol=rol,
        password_hash=hash_password(PASSWORD, rounds=TEST_ROUNDS),
        totp_secret=totp_secret,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def new_user(db_session):
    """Detallista who has never enrolled 2FA."""
    return make_user(db_session, "nuevo@viba.test", nombre="Nuevo")


@pytest.fixture(scope='function')
def enrolled_user(db_session, totp_engine):
    """Detallista with an enrolled TOTP secret."""
    secret = totp_engine.generate_secret("enrolado@viba.test").secret
    return make_user(db_session, "enrolado@viba.test", nombre="Enrolado", totp_secret=secret)


@pytest.fixture(scope='function')
def admin_user(db_session, totp_engine):
    secret = totp_engine.generate_secret("admin@viba.test").secret
    return make_user(db_session, "admin@viba.test", nombre="Admin", rol="admin", totp_secret=secret)


@pytest.fixture(scope='function')
def seed_units(db_session):
    """seed_units("ribeye", 10) inserts available units and commits."""
    def _seed(producto, cantidad, fecha=None):
        InventoryRepository(db_session).insert_units(producto, cantidad, "Carga de prueba", fecha=fecha)
        db_session.commit()
    return _seed


@pytest.fixture(scope='function')
def login(client):
    """login(user) posts credentials; the client keeps the PreAuth cookie."""
    def _login(user_or_email, password=PASSWORD):
        email = getattr(user_or_email, 'email', user_or_email)
        return client.post('/api/login', json={'email': email, 'password': password})
    return _login


@pytest.fixture(scope='function')
def login_full(client, login, totp_engine):
    """
    login_full(user) drives login + verify through the API and returns the
    TOTP code it used. The client keeps the Auth cookie.
    """
    def _login_full(user):
        assert login(user).status_code == 200
        code = totp_engine.code_at(user.totp_secret)
        resp = client.post('/api/auth/2fa/verify', json={'token': code})
        assert resp.status_code == 200, resp.get_json()
        return code
    return _login_full


@pytest.fixture(scope='function')
def auth_client(client, enrolled_user, login_full):
    """Test client holding a full session for enrolled_user."""
    login_full(enrolled_user)
    return client
