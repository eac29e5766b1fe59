import logging

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required
from marshmallow import Schema, fields, post_load, validate

from .extensions import limiter
from .policy import current_login
from .security import extract_basic_credentials, get_claims_identity
from .services import users as user_service
from .tokens import TokenIssuer
from .users import serialize_user
from .validation import (
    Base64Bytes, CaseInsensitiveSchema, get_json_body, validate_request_data
)

logger = logging.getLogger(__name__)

account_bp = Blueprint('account', __name__)


def login_rate_limit():
    return current_app.config['LOGIN_RATE_LIMIT']

# ============================================
# Input Validation Schemas
# ============================================

class LoginSchema(CaseInsensitiveSchema):
    """Login payload; `Login`/`Password` keys are accepted as well"""
    login = fields.Str(
        required=True,
        validate=validate.Length(min=1),
        error_messages={'required': 'Login is required'}
    )
    password = fields.Str(
        required=True,
        validate=validate.Length(min=1),
        error_messages={'required': 'Password is required'}
    )

    @post_load
    def strip_credentials(self, data, **kwargs):
        # Trimmed like the Basic header credentials
        return {key: value.strip() for key, value in data.items()}


class UpdateProfileSchema(Schema):
    """Self-service profile update; login and status stay with administrators"""
    first_name = fields.Str(allow_none=True, validate=validate.Length(min=1, max=50))
    last_name = fields.Str(allow_none=True, validate=validate.Length(min=1, max=50))
    email = fields.Email(allow_none=True, validate=validate.Length(max=50))
    password = fields.Str(allow_none=True, validate=validate.Length(min=3, max=72))
    phone = fields.Str(allow_none=True, validate=validate.Length(max=30))
    photo = Base64Bytes(allow_none=True)

# ============================================
# Token issuance
# ============================================

def _issue_token(login, password):
    """Shared tail of /auth and /login."""
    if not login or not password:
        return jsonify({
            'error': 'bad_request',
            'message': 'Login and password are required'
        }), 400

    identity = get_claims_identity(login, password)
    if identity is None:
        logger.warning(f"Failed login attempt for: {login}")
        return jsonify({
            'error': 'invalid_credentials',
            'message': 'Invalid login or password'
        }), 401

    issued = TokenIssuer.from_config(current_app.config).issue(identity)

    return jsonify({
        'access_token': issued.token,
        'username': identity.name,
        'expires_in': issued.lifetime_minutes
    }), 200


@account_bp.route('/auth', methods=['POST'])
@limiter.limit(login_rate_limit)
def auth():
    """Exchange a Basic authorization header for an access token"""
    login, password = extract_basic_credentials(request.headers.get('Authorization'))
    return _issue_token(login, password)


@account_bp.route('/login', methods=['POST'])
@limiter.limit(login_rate_limit)
def login():
    """Exchange a JSON {login, password} body for an access token"""
    data = request.get_json(silent=True)
    if not data:
        return jsonify({
            'error': 'bad_request',
            'message': 'Login and password are required'
        }), 400

    is_valid, result = validate_request_data(LoginSchema, data)
    if not is_valid:
        return jsonify({'error': 'validation_failed', 'details': result}), 400

    return _issue_token(result['login'], result['password'])

# ============================================
# Own account
# ============================================

@account_bp.route('/info', methods=['GET'])
@jwt_required()
def info():
    user = user_service.get_user_by_login(current_login())
    return jsonify(serialize_user(user)), 200


@account_bp.route('/update', methods=['PUT'])
@jwt_required()
def update():
    data = get_json_body()

    is_valid, result = validate_request_data(UpdateProfileSchema, data)
    if not is_valid:
        return jsonify({'error': 'validation_failed', 'details': result}), 400

    user = user_service.update_user_by_login(current_login(), result)

    return jsonify({
        'message': 'Profile updated successfully',
        'user': serialize_user(user)
    }), 200
