"""Shared fixtures: a fresh in-memory application per test, users and tokens."""

import base64
from datetime import datetime

import pytest

from taskmanager import create_app
from taskmanager.config import TestingConfig
from taskmanager.models import db, User, UserStatus
from taskmanager.policy import role_for_status
from taskmanager.security import ClaimsIdentity, hash_password
from taskmanager.services import desks as desk_service
from taskmanager.services import tasks as task_service
from taskmanager.tokens import TokenIssuer

DEFAULT_PASSWORD = 'secret123'


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


# ============================================
# Users
# ============================================

@pytest.fixture
def make_user(app):
    def _make(login, user_status=UserStatus.USER.value, password=DEFAULT_PASSWORD, **fields):
        user = User(
            first_name=fields.pop('first_name', login.capitalize()),
            last_name=fields.pop('last_name', 'Tester'),
            login=login,
            email=fields.pop('email', f'{login.lower()}@example.com'),
            password_hash=hash_password(password),
            user_status=user_status,
            **fields
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def admin(make_user):
    return make_user('admin', UserStatus.ADMIN.value)


@pytest.fixture
def editor(make_user):
    return make_user('editor', UserStatus.EDITOR.value)


@pytest.fixture
def alice(make_user):
    return make_user('alice')


@pytest.fixture
def bob(make_user):
    return make_user('bob')


# ============================================
# Tokens and headers
# ============================================

def encode_basic(login, password):
    encoded = base64.b64encode(f'{login}:{password}'.encode('utf-8')).decode('ascii')
    return f'Basic {encoded}'


@pytest.fixture
def basic_header():
    def _header(login, password):
        return {'Authorization': encode_basic(login, password)}
    return _header


def identity_for(user):
    return ClaimsIdentity(
        name=user.login,
        user_id=user.id,
        email=user.email,
        role=role_for_status(user.user_status).value,
    )


@pytest.fixture
def auth_headers(app):
    """Bearer header for `user`, signed with the test configuration."""
    def _headers(user, now=None):
        issued = TokenIssuer.from_config(app.config).issue(identity_for(user), now=now)
        return {'Authorization': f'Bearer {issued.token}'}
    return _headers


# ============================================
# Desks and tasks
# ============================================

@pytest.fixture
def make_desk(app):
    def _make(name='Board', admin=None, project=None):
        return desk_service.create_desk({
            'name': name,
            'admin_id': admin.id if admin else None,
            'project_id': project.id if project else None,
        })
    return _make


@pytest.fixture
def make_task(app):
    def _make(desk, name='Task', column=None, creator=None, executor=None, description=None):
        column = column or desk.columns[0]
        return task_service.create_task({
            'name': name,
            'description': description,
            'start_date': datetime(2025, 1, 6, 9, 0),
            'end_date': datetime(2025, 1, 10, 18, 0),
            'desk_id': desk.id,
            'column_id': column.id,
            'creator_id': creator.id if creator else None,
            'executor_id': executor.id if executor else None,
        })
    return _make
