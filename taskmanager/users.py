from flask import Blueprint, jsonify
from marshmallow import Schema, fields, validate

from .models import UserStatus
from .policy import Role, role_required
from .services import users as user_service
from .validation import Base64Bytes, get_json_body, encode_blob, validate_request_data

users_bp = Blueprint('users', __name__)

USER_STATUSES = [status.value for status in UserStatus]

# ============================================
# Input Validation Schemas
# ============================================

class CreateUserSchema(Schema):
    """User creation payload"""
    first_name = fields.Str(required=True, validate=validate.Length(min=1, max=50))
    last_name = fields.Str(required=True, validate=validate.Length(min=1, max=50))
    login = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=50),
        error_messages={'required': 'Login is required'}
    )
    email = fields.Email(
        required=True,
        validate=validate.Length(max=50),
        error_messages={'required': 'Email is required', 'invalid': 'Invalid email format'}
    )
    password = fields.Str(
        required=True,
        validate=validate.Length(min=3, max=72, error='Password must be 3-72 characters'),
        error_messages={'required': 'Password is required'}
    )
    phone = fields.Str(allow_none=True, validate=validate.Length(max=30))
    photo = Base64Bytes(allow_none=True)
    user_status = fields.Str(validate=validate.OneOf(USER_STATUSES), load_default=UserStatus.USER.value)


class UpdateUserSchema(Schema):
    """Partial user update; absent or null fields are left untouched"""
    first_name = fields.Str(allow_none=True, validate=validate.Length(min=1, max=50))
    last_name = fields.Str(allow_none=True, validate=validate.Length(min=1, max=50))
    login = fields.Str(allow_none=True, validate=validate.Length(min=1, max=50))
    email = fields.Email(allow_none=True, validate=validate.Length(max=50))
    password = fields.Str(allow_none=True, validate=validate.Length(min=3, max=72))
    phone = fields.Str(allow_none=True, validate=validate.Length(max=30))
    photo = Base64Bytes(allow_none=True)
    user_status = fields.Str(allow_none=True, validate=validate.OneOf(USER_STATUSES))

# ============================================
# Serialization
# ============================================

def serialize_user(user):
    return {
        'id': user.id,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'full_name': user.full_name,
        'login': user.login,
        'email': user.email,
        'phone': user.phone,
        'user_status': user.user_status,
        'registration_date': user.registration_date.isoformat() if user.registration_date else None,
        'last_login_date': user.last_login_date.isoformat() if user.last_login_date else None,
        'photo': encode_blob(user.photo)
    }

# ============================================
# Routes (administrators only)
# ============================================

@users_bp.route('/create', methods=['POST'])
@role_required(Role.ADMIN)
def create_user():
    data = get_json_body()

    is_valid, result = validate_request_data(CreateUserSchema, data)
    if not is_valid:
        return jsonify({'error': 'validation_failed', 'details': result}), 400

    user = user_service.create_user(result)

    return jsonify({
        'message': 'User created successfully',
        'user': serialize_user(user)
    }), 201


@users_bp.route('/create/bulk', methods=['POST'])
@role_required(Role.ADMIN)
def create_users():
    data = get_json_body()
    if not isinstance(data, list):
        return jsonify({'error': 'bad_request', 'message': 'Request body must be a JSON list'}), 400

    is_valid, result = validate_request_data(CreateUserSchema, data, many=True)
    if not is_valid:
        return jsonify({'error': 'validation_failed', 'details': result}), 400

    users = user_service.create_users(result)

    return jsonify({
        'message': f'{len(users)} users created successfully',
        'users': [serialize_user(user) for user in users],
        'total': len(users)
    }), 201


@users_bp.route('/<int:user_id>', methods=['GET'])
@role_required(Role.ADMIN)
def get_user(user_id):
    return jsonify(serialize_user(user_service.get_user(user_id))), 200


@users_bp.route('/all', methods=['GET'])
@role_required(Role.ADMIN)
def get_all_users():
    users = user_service.get_all_users()
    return jsonify({
        'users': [serialize_user(user) for user in users],
        'total': len(users)
    }), 200


@users_bp.route('/<int:user_id>', methods=['PUT'])
@role_required(Role.ADMIN)
def update_user(user_id):
    data = get_json_body()

    is_valid, result = validate_request_data(UpdateUserSchema, data)
    if not is_valid:
        return jsonify({'error': 'validation_failed', 'details': result}), 400

    user = user_service.update_user(user_id, result)

    return jsonify({
        'message': 'User updated successfully',
        'user': serialize_user(user)
    }), 200


@users_bp.route('/<int:user_id>', methods=['DELETE'])
@role_required(Role.ADMIN)
def delete_user(user_id):
    user_service.delete_user(user_id)
    return '', 204
