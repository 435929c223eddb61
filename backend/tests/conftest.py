"""
Pytest fixtures for the procurement portal backend tests.

Provides the application, an in-memory database cleared per test,
user/product factories and token helpers for the HTTP tests.
"""

import pytest

from portal import create_app
from portal.extensions import db
from portal.models import Product, Role, User
from portal.services.approval_service import ApprovalWorkflow
from portal.services.order_service import OrderLifecycleEngine


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory: make_user("a@bund.de", Role.APPROVER, department="IT")."""
    def _make_user(email, role, department="Marketing", cost_center="CC-001", is_active=True):
        user = User(
            email=email,
            name=email.split("@")[0].replace(".", " ").title(),
            role=role,
            department=department,
            cost_center=cost_center,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture(scope='function')
def make_product(db_session):
    def _make_product(name, requires_approval=False, is_active=True, responsible_role=Role.IT_SUPPORT):
        product = Product(
            name=name,
            category="TEST",
            requires_approval=requires_approval,
            responsible_role=responsible_role,
            is_active=is_active,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make_product


@pytest.fixture(scope='function')
def requester(make_user):
    return make_user("user@bund.de", Role.REQUESTER)


@pytest.fixture(scope='function')
def other_requester(make_user):
    return make_user("colleague@bund.de", Role.REQUESTER)


@pytest.fixture(scope='function')
def it_support(make_user):
    return make_user("it@bund.de", Role.IT_SUPPORT, department="IT", cost_center="IT-001")


@pytest.fixture(scope='function')
def empfang(make_user):
    return make_user("reception@bund.de", Role.EMPFANG, department="Reception", cost_center="RCP-001")


@pytest.fixture(scope='function')
def approver(make_user):
    """APPROVER in the requester's department (Marketing)."""
    return make_user("manager@bund.de", Role.APPROVER)


@pytest.fixture(scope='function')
def admin(make_user):
    return make_user("admin@bund.de", Role.ADMIN, department="IT", cost_center="ADM-001")


@pytest.fixture(scope='function')
def webcam(make_product):
    """Product that does not need approval."""
    return make_product("Logitech C270 HD-Webcam")


@pytest.fixture(scope='function')
def chair(make_product):
    """Product that needs approval."""
    return make_product("Office Chair", requires_approval=True, responsible_role=Role.EMPFANG)


@pytest.fixture(scope='function')
def engine(db_session):
    return OrderLifecycleEngine(db_session, retry_backoff=0)


@pytest.fixture(scope='function')
def workflow(engine):
    return ApprovalWorkflow(engine)


def get_auth_token(client, email: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={'email': email})
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def login(client, user) -> dict:
    """Log a user in and return ready-to-use headers."""
    token = get_auth_token(client, user.email)
    assert token, f"login failed for {user.email}"
    return auth_headers(token)
