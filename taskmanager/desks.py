from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required
from marshmallow import Schema, fields, validate

from .services import desks as desk_service
from .validation import Base64Bytes, encode_blob, get_json_body, validate_request_data

desks_bp = Blueprint('desks', __name__)

# ============================================
# Input Validation Schemas
# ============================================

class CreateDeskSchema(Schema):
    name = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=50),
        error_messages={'required': 'Desk name is required'}
    )
    description = fields.Str(allow_none=True, validate=validate.Length(max=100))
    is_private = fields.Bool(load_default=False)
    photo = Base64Bytes(allow_none=True)
    admin_id = fields.Int(allow_none=True)
    project_id = fields.Int(allow_none=True)


class UpdateDeskSchema(Schema):
    name = fields.Str(allow_none=True, validate=validate.Length(min=1, max=50))
    description = fields.Str(allow_none=True, validate=validate.Length(max=100))
    is_private = fields.Bool(allow_none=True)
    photo = Base64Bytes(allow_none=True)
    admin_id = fields.Int(allow_none=True)
    project_id = fields.Int(allow_none=True)

# ============================================
# Serialization
# ============================================

def serialize_column(column):
    return {
        'id': column.id,
        'name': column.name,
        'order': column.order,
        'description': column.description,
        'desk_id': column.desk_id
    }


def serialize_desk(desk):
    return {
        'id': desk.id,
        'name': desk.name,
        'description': desk.description,
        'is_private': desk.is_private,
        'photo': encode_blob(desk.photo),
        'created_at': desk.created_at.isoformat() if desk.created_at else None,
        'admin_id': desk.admin_id,
        'admin_name': desk.admin.full_name if desk.admin else None,
        'project_id': desk.project_id,
        'project_name': desk.project.name if desk.project else None,
        'columns': [serialize_column(column) for column in desk.columns],
        'tasks': [
            {'id': task.id, 'name': task.name, 'column_id': task.column_id,
             'executor_id': task.executor_id}
            for task in desk.tasks
        ]
    }

# ============================================
# Routes
# ============================================

@desks_bp.route('/create', methods=['POST'])
@jwt_required()
def create_desk():
    data = get_json_body()

    is_valid, result = validate_request_data(CreateDeskSchema, data)
    if not is_valid:
        return jsonify({'error': 'validation_failed', 'details': result}), 400

    desk = desk_service.create_desk(result)

    return jsonify({
        'message': 'Desk created successfully',
        'desk': serialize_desk(desk)
    }), 201


@desks_bp.route('/<int:desk_id>', methods=['GET'])
@jwt_required()
def get_desk(desk_id):
    return jsonify(serialize_desk(desk_service.get_desk(desk_id))), 200


@desks_bp.route('/all', methods=['GET'])
@jwt_required()
def get_all_desks():
    desks = desk_service.get_all_desks()
    return jsonify({
        'desks': [serialize_desk(desk) for desk in desks],
        'total': len(desks)
    }), 200


@desks_bp.route('/<int:desk_id>', methods=['PUT'])
@jwt_required()
def update_desk(desk_id):
    data = get_json_body()

    is_valid, result = validate_request_data(UpdateDeskSchema, data)
    if not is_valid:
        return jsonify({'error': 'validation_failed', 'details': result}), 400

    desk = desk_service.update_desk(desk_id, result)

    return jsonify({
        'message': 'Desk updated successfully',
        'desk': serialize_desk(desk)
    }), 200


@desks_bp.route('/<int:desk_id>', methods=['DELETE'])
@jwt_required()
def delete_desk(desk_id):
    desk_service.delete_desk(desk_id)
    return '', 204
