"""Tests for /api/users, the administrator-only user management."""

import base64
from datetime import datetime, timezone

import jwt as pyjwt
import pytest

from taskmanager.config import TestingConfig
from taskmanager.models import db, Project, ProjectAdmin, User
from taskmanager.security import ClaimsIdentity
from taskmanager.tokens import TokenIssuer


def _payload(login, **overrides):
    payload = {
        'first_name': 'Carol',
        'last_name': 'Danvers',
        'login': login,
        'email': f'{login}@example.com',
        'password': 'secret123',
    }
    payload.update(overrides)
    return payload


# ============================================
# Access control
# ============================================

def test_no_token_is_401(client):
    assert client.get('/api/users/all').status_code == 401


def test_bad_token_is_401(client):
    response = client.get('/api/users/all', headers={'Authorization': 'Bearer abc.def.ghi'})
    assert response.status_code == 401


@pytest.mark.parametrize('login, status', [('plain', 'User'), ('writer', 'Editor')])
def test_non_admin_is_403(client, make_user, auth_headers, login, status):
    user = make_user(login, status)
    response = client.get('/api/users/all', headers=auth_headers(user))

    assert response.status_code == 403
    assert response.get_json()['error'] == 'forbidden'


def test_token_without_role_claim_is_403(client, admin):
    identity = ClaimsIdentity(name=admin.login, user_id=admin.id, email=admin.email, role='Admin')
    payload, _ = TokenIssuer(
        secret=TestingConfig.JWT_SECRET_KEY, issuer=TestingConfig.JWT_ISSUER,
        audience=TestingConfig.JWT_AUDIENCE, lifetime_minutes=30
    ).build_payload(identity, datetime.now(timezone.utc))
    payload.pop('role')
    token = pyjwt.encode(payload, TestingConfig.JWT_SECRET_KEY, algorithm='HS256')

    response = client.get('/api/users/all', headers={'Authorization': f'Bearer {token}'})

    assert response.status_code == 403
    assert response.get_json()['error'] == 'forbidden'


def test_role_comes_from_token_not_from_database(client, alice, auth_headers):
    headers = auth_headers(alice)
    alice.user_status = 'Admin'
    db.session.commit()

    assert client.get('/api/users/all', headers=headers).status_code == 403

    fresh = client.get('/api/users/all', headers=auth_headers(alice))
    assert fresh.status_code == 200


# ============================================
# Create
# ============================================

def test_admin_creates_user(client, admin, auth_headers):
    photo = base64.b64encode(b'\x89PNG').decode('ascii')
    response = client.post('/api/users/create', headers=auth_headers(admin),
                           json=_payload('carol', photo=photo))

    assert response.status_code == 201
    body = response.get_json()['user']
    assert body['login'] == 'carol'
    assert body['user_status'] == 'User'
    assert body['photo'] == photo
    assert 'password_hash' not in body

    stored = User.query.filter_by(login='carol').one()
    assert stored.password_hash != 'secret123'
    assert stored.photo == b'\x89PNG'


def test_create_rejects_invalid_payload(client, admin, auth_headers):
    response = client.post('/api/users/create', headers=auth_headers(admin),
                           json=_payload('carol', email='not-an-email'))

    assert response.status_code == 400
    assert response.get_json()['error'] == 'validation_failed'


def test_create_rejects_bad_base64(client, admin, auth_headers):
    response = client.post('/api/users/create', headers=auth_headers(admin),
                           json=_payload('carol', photo='***'))
    assert response.status_code == 400


def test_duplicate_login_is_409(client, admin, alice, auth_headers):
    response = client.post('/api/users/create', headers=auth_headers(admin),
                           json=_payload('alice', email='other@example.com'))

    assert response.status_code == 409
    assert response.get_json()['error'] == 'conflict'


def test_bulk_create(client, admin, auth_headers):
    response = client.post('/api/users/create/bulk', headers=auth_headers(admin),
                           json=[_payload('dave'), _payload('erin', user_status='Editor')])

    assert response.status_code == 201
    assert response.get_json()['total'] == 2
    assert User.query.filter_by(login='erin').one().user_status == 'Editor'


def test_bulk_create_is_all_or_nothing(client, admin, auth_headers):
    response = client.post('/api/users/create/bulk', headers=auth_headers(admin),
                           json=[_payload('dave'), _payload('dave', email='dave2@example.com')])

    assert response.status_code == 409
    assert User.query.filter_by(login='dave').count() == 0


def test_bulk_create_with_duplicate_login_in_batch_writes_nothing(client, admin, auth_headers):
    before = User.query.count()
    response = client.post('/api/users/create/bulk', headers=auth_headers(admin), json=[
        _payload('frank'),
        _payload('grace'),
        _payload('frank', email='frank.other@example.com'),
    ])

    assert response.status_code == 409
    assert response.get_json()['error'] == 'conflict'
    db.session.expire_all()
    assert User.query.count() == before
    assert User.query.filter_by(login='grace').count() == 0


def test_bulk_create_requires_list(client, admin, auth_headers):
    response = client.post('/api/users/create/bulk', headers=auth_headers(admin),
                           json=_payload('dave'))
    assert response.status_code == 400


# ============================================
# Read, update, delete
# ============================================

def test_get_user(client, admin, alice, auth_headers):
    response = client.get(f'/api/users/{alice.id}', headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.get_json()['login'] == 'alice'


def test_get_missing_user_is_404(client, admin, auth_headers):
    response = client.get('/api/users/9999', headers=auth_headers(admin))

    assert response.status_code == 404
    assert response.get_json()['error'] == 'not_found'


def test_list_users(client, admin, alice, bob, auth_headers):
    response = client.get('/api/users/all', headers=auth_headers(admin))

    assert response.status_code == 200
    assert [user['login'] for user in response.get_json()['users']] == ['admin', 'alice', 'bob']


def test_admin_can_promote_user(client, admin, alice, auth_headers):
    response = client.put(f'/api/users/{alice.id}', headers=auth_headers(admin),
                          json={'user_status': 'Editor'})

    assert response.status_code == 200
    assert response.get_json()['user']['user_status'] == 'Editor'
    assert response.get_json()['user']['email'] == 'alice@example.com'


def test_update_missing_user_is_404(client, admin, auth_headers):
    response = client.put('/api/users/9999', headers=auth_headers(admin), json={'phone': '1'})
    assert response.status_code == 404


def test_delete_user(client, admin, alice, auth_headers):
    alice_id = alice.id
    response = client.delete(f'/api/users/{alice_id}', headers=auth_headers(admin))

    assert response.status_code == 204
    db.session.expire_all()
    assert db.session.get(User, alice_id) is None


def test_delete_task_creator_is_restricted(client, admin, alice, make_desk, make_task, auth_headers):
    desk = make_desk()
    make_task(desk, creator=alice)

    response = client.delete(f'/api/users/{alice.id}', headers=auth_headers(admin))

    assert response.status_code == 409
    assert response.get_json()['error'] == 'delete_restricted'
    assert User.query.filter_by(login='alice').one() is alice


def test_delete_desk_admin_is_restricted(client, admin, alice, make_desk, auth_headers):
    make_desk(admin=alice)

    response = client.delete(f'/api/users/{alice.id}', headers=auth_headers(admin))
    assert response.status_code == 409


def test_delete_user_releases_project_admin_and_membership(client, admin, alice, auth_headers):
    headers = auth_headers(admin)
    created = client.post('/api/project/create', headers=headers,
                          json={'name': 'Apollo', 'admin_id': alice.id, 'user_ids': [alice.id]})
    project_id = created.get_json()['project']['id']

    response = client.delete(f'/api/users/{alice.id}', headers=headers)

    assert response.status_code == 204
    project = client.get(f'/api/project/{project_id}', headers=headers).get_json()
    assert project['admin'] is None
    assert project['users'] == []
    db.session.expire_all()
    assert ProjectAdmin.query.count() == 0
    assert db.session.get(Project, project_id) is not None
