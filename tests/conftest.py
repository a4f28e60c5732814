# tests/conftest.py
import itertools
import os
import tempfile

# DBStorage reads DATABASE_URL when `models` is first imported
_DB_DIR = tempfile.mkdtemp(prefix="security-auth-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_DB_DIR, "test.db")
os.environ["APP_ENV"] = "test"

import pytest

from models import storage
from models.base_model import Base
from models.person import Person
from models.role import RoleUser
from models.user import User
from api import create_app
from api.cli import ensure_role
from services.auth import AuthService
from services.settings import AuthSettings
from utils.security import hash_password

TEST_SECRET = "unit-test-secret-0123456789abcdef0123456789"
PASSWORD = "StrongPass1"


@pytest.fixture(autouse=True)
def clean_db():
    storage.drop_all()
    Base.metadata.create_all(storage.engine)
    yield
    storage.close()


@pytest.fixture
def settings():
    return AuthSettings(
        secret=TEST_SECRET,
        issuer="securityauthapi",
        audience="securityauthclient",
        access_token_minutes=60,
        refresh_token_days=7,
        admin_role_name="admin",
        admin_redirect_url="/admin/persons",
        default_redirect_url="/admin/role-users",
    )


@pytest.fixture
def service(settings):
    return AuthService(settings, storage)


@pytest.fixture
def make_user():
    counter = itertools.count(1)

    def _make(username=None, password=PASSWORD, roles=(), inactive_roles=(), is_active=True):
        n = next(counter)
        username = username or f"user_{n}"
        person = Person(first_name="Ana", last_name=f"Tester{n}", document_number=f"DOC-{username}")
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=hash_password(password),
            person=person,
            is_active=is_active,
        )
        storage.new(person)
        storage.new(user)
        assignments = [(name, True) for name in roles] + [(name, False) for name in inactive_roles]
        for name, active in assignments:
            storage.new(RoleUser(role=ensure_role(name), user=user, is_active=active))
        storage.save()
        return user

    return _make


@pytest.fixture
def app():
    return create_app("testing")


@pytest.fixture
def client(app):
    return app.test_client()
