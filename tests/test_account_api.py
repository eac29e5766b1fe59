"""Tests for /api/account: token issuance and the caller's own profile."""

import jwt as pyjwt
import pytest

from taskmanager.config import TestingConfig
from taskmanager.models import db


def _claims(token):
    return pyjwt.decode(
        token, TestingConfig.JWT_SECRET_KEY, algorithms=['HS256'],
        audience=TestingConfig.JWT_AUDIENCE, issuer=TestingConfig.JWT_ISSUER
    )


# ============================================
# POST /auth (Basic header)
# ============================================

def test_auth_returns_token(client, alice, basic_header):
    response = client.post('/api/account/auth', headers=basic_header('alice', 'secret123'))

    assert response.status_code == 200
    body = response.get_json()
    assert body['username'] == 'alice'
    assert body['expires_in'] == TestingConfig.JWT_ACCESS_TOKEN_EXPIRES_MINUTES

    claims = _claims(body['access_token'])
    assert claims['sub'] == 'alice'
    assert claims['uid'] == alice.id
    assert claims['role'] == 'User'


def test_auth_records_last_login(client, alice, basic_header):
    client.post('/api/account/auth', headers=basic_header('alice', 'secret123'))
    db.session.expire_all()
    assert alice.last_login_date is not None


def test_auth_without_header_is_400(client, alice):
    response = client.post('/api/account/auth')
    assert response.status_code == 400


def test_auth_with_malformed_header_is_400(client, alice):
    response = client.post('/api/account/auth', headers={'Authorization': 'Basic %%%'})
    assert response.status_code == 400


def test_auth_with_wrong_password_is_401(client, alice, basic_header):
    response = client.post('/api/account/auth', headers=basic_header('alice', 'wrong'))

    assert response.status_code == 401
    assert response.get_json()['error'] == 'invalid_credentials'


def test_auth_with_unknown_login_is_401(client, alice, basic_header):
    response = client.post('/api/account/auth', headers=basic_header('nobody', 'secret123'))
    assert response.status_code == 401


# ============================================
# POST /login (JSON body)
# ============================================

def test_login_returns_token(client, admin):
    response = client.post('/api/account/login', json={'login': 'admin', 'password': 'secret123'})

    assert response.status_code == 200
    assert _claims(response.get_json()['access_token'])['role'] == 'Admin'


def test_login_keys_are_case_insensitive(client, editor):
    response = client.post('/api/account/login', json={'Login': 'editor', 'Password': 'secret123'})

    assert response.status_code == 200
    assert response.get_json()['username'] == 'editor'


def test_login_without_body_is_400(client, alice):
    response = client.post('/api/account/login')
    assert response.status_code == 400


def test_login_missing_password_is_400(client, alice):
    response = client.post('/api/account/login', json={'login': 'alice'})
    assert response.status_code == 400


@pytest.mark.parametrize('payload', [
    {'login': '   ', 'password': 'secret123'},
    {'login': 'alice', 'password': ' '},
])
def test_login_with_blank_values_is_400(client, alice, payload):
    response = client.post('/api/account/login', json=payload)

    assert response.status_code == 400
    assert response.get_json()['error'] == 'bad_request'


def test_login_trims_surrounding_whitespace(client, alice):
    response = client.post('/api/account/login', json={'login': ' alice ', 'password': 'secret123'})

    assert response.status_code == 200
    assert response.get_json()['username'] == 'alice'


def test_login_with_bad_credentials_is_401(client, alice):
    response = client.post('/api/account/login', json={'login': 'alice', 'password': 'bad'})
    assert response.status_code == 401


# ============================================
# GET /info, PUT /update
# ============================================

def test_info_returns_own_profile_without_hash(client, alice, auth_headers):
    response = client.get('/api/account/info', headers=auth_headers(alice))

    assert response.status_code == 200
    body = response.get_json()
    assert body['id'] == alice.id
    assert body['email'] == 'alice@example.com'
    assert 'password_hash' not in body
    assert 'password' not in body


def test_info_requires_token(client):
    response = client.get('/api/account/info')

    assert response.status_code == 401
    assert response.get_json()['error'] == 'authorization_required'


def test_info_with_garbage_token_is_401(client):
    response = client.get('/api/account/info', headers={'Authorization': 'Bearer not.a.token'})

    assert response.status_code == 401
    assert response.get_json()['error'] == 'invalid_token'


def test_update_changes_only_given_fields(client, alice, auth_headers):
    response = client.put('/api/account/update', headers=auth_headers(alice),
                          json={'phone': '+1 555 0100', 'last_name': None})

    assert response.status_code == 200
    user = response.get_json()['user']
    assert user['phone'] == '+1 555 0100'
    assert user['last_name'] == 'Tester'
    assert user['first_name'] == 'Alice'


def test_update_new_password_is_used_for_login(client, alice, auth_headers):
    client.put('/api/account/update', headers=auth_headers(alice), json={'password': 'new-pass'})

    old = client.post('/api/account/login', json={'login': 'alice', 'password': 'secret123'})
    new = client.post('/api/account/login', json={'login': 'alice', 'password': 'new-pass'})
    assert old.status_code == 401
    assert new.status_code == 200


def test_update_cannot_change_own_status(client, alice, auth_headers):
    response = client.put('/api/account/update', headers=auth_headers(alice),
                          json={'user_status': 'Admin'})

    assert response.status_code == 400
    assert alice.user_status == 'User'


def test_update_to_taken_email_is_409(client, alice, bob, auth_headers):
    response = client.put('/api/account/update', headers=auth_headers(alice),
                          json={'email': 'bob@example.com'})

    assert response.status_code == 409
    assert response.get_json()['error'] == 'conflict'


def test_update_cannot_change_own_login(client, alice, auth_headers):
    headers = auth_headers(alice)
    response = client.put('/api/account/update', headers=headers, json={'login': 'alice2'})

    assert response.status_code == 400
    assert 'login' in response.get_json()['details']
    assert client.get('/api/account/info', headers=headers).status_code == 200
