import logging

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required
from marshmallow import Schema, fields, validate

from .errors import InvalidPayloadError
from .policy import current_identity
from .services import tasks as task_service
from .validation import (
    Base64Bytes, NaiveUTCDateTime, encode_blob, get_json_body, validate_request_data
)

logger = logging.getLogger(__name__)

tasks_bp = Blueprint('tasks', __name__)

# ============================================
# Input Validation Schemas
# ============================================

class CreateTaskSchema(Schema):
    """Task creation payload"""
    name = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=50),
        error_messages={'required': 'Task name is required'}
    )
    description = fields.Str(allow_none=True, validate=validate.Length(max=100))
    start_date = NaiveUTCDateTime(required=True)
    end_date = NaiveUTCDateTime(required=True)
    file = Base64Bytes(allow_none=True)
    photo = Base64Bytes(allow_none=True)
    desk_id = fields.Int(required=True)
    column_id = fields.Int(required=True)
    creator_id = fields.Int(allow_none=True)
    executor_id = fields.Int(allow_none=True)


class UpdateTaskSchema(Schema):
    """Partial task update; absent or null fields are left untouched"""
    name = fields.Str(allow_none=True, validate=validate.Length(min=1, max=50))
    description = fields.Str(allow_none=True, validate=validate.Length(max=100))
    start_date = NaiveUTCDateTime(allow_none=True)
    end_date = NaiveUTCDateTime(allow_none=True)
    file = Base64Bytes(allow_none=True)
    photo = Base64Bytes(allow_none=True)
    desk_id = fields.Int(allow_none=True)
    column_id = fields.Int(allow_none=True)
    executor_id = fields.Int(allow_none=True)

# ============================================
# Serialization
# ============================================

def serialize_task(task):
    return {
        'id': task.id,
        'name': task.name,
        'description': task.description,
        'start_date': task.start_date.isoformat(),
        'end_date': task.end_date.isoformat(),
        'created_at': task.created_at.isoformat() if task.created_at else None,
        'file': encode_blob(task.file),
        'photo': encode_blob(task.photo),
        'desk_id': task.desk_id,
        'desk_name': task.desk.name,
        'column_id': task.column_id,
        'column_name': task.column.name,
        'creator_id': task.creator_id,
        'creator_name': task.creator.full_name if task.creator else None,
        'executor_id': task.executor_id,
        'executor_name': task.executor.full_name if task.executor else None
    }


def _task_list(tasks):
    return jsonify({
        'tasks': [serialize_task(task) for task in tasks],
        'total': len(tasks)
    }), 200


def _required_int_arg(name):
    value = request.args.get(name, type=int)
    if value is None:
        raise InvalidPayloadError(f'Query parameter {name} is required and must be an integer')
    return value

# ============================================
# Routes
# ============================================

@tasks_bp.route('/create', methods=['POST'])
@jwt_required()
def create_task():
    data = get_json_body()

    is_valid, result = validate_request_data(CreateTaskSchema, data)
    if not is_valid:
        return jsonify({'error': 'validation_failed', 'details': result}), 400

    if result.get('creator_id') is None:
        result['creator_id'] = current_identity()[0]

    task = task_service.create_task(result)

    return jsonify({
        'message': 'Task created successfully',
        'task': serialize_task(task)
    }), 201


@tasks_bp.route('/<int:task_id>', methods=['GET'])
@jwt_required()
def get_task(task_id):
    return jsonify(serialize_task(task_service.get_task(task_id))), 200


@tasks_bp.route('', methods=['GET'])
@jwt_required()
def get_all_tasks():
    return _task_list(task_service.get_all_tasks())


@tasks_bp.route('/desk/<int:desk_id>', methods=['GET'])
@jwt_required()
def get_desk_tasks(desk_id):
    return _task_list(task_service.get_tasks_by_desk(desk_id))


@tasks_bp.route('/column/<int:column_id>', methods=['GET'])
@jwt_required()
def get_column_tasks(column_id):
    return _task_list(task_service.get_tasks_by_column(column_id))


@tasks_bp.route('/my-tasks', methods=['GET'])
@jwt_required()
def get_my_tasks():
    """Every task for Admin and Editor, the executed ones for everybody else"""
    user_id, role = current_identity()
    if user_id is None or role is None:
        logger.warning("Token without user id or role claim on /my-tasks")
        return jsonify({
            'error': 'invalid_token',
            'message': 'User information not found in token'
        }), 401

    return _task_list(task_service.get_tasks_for_user(user_id, role))


@tasks_bp.route('/<int:task_id>', methods=['PUT'])
@jwt_required()
def update_task(task_id):
    data = get_json_body()

    is_valid, result = validate_request_data(UpdateTaskSchema, data)
    if not is_valid:
        return jsonify({'error': 'validation_failed', 'details': result}), 400

    task = task_service.update_task(task_id, result)

    return jsonify({
        'message': 'Task updated successfully',
        'task': serialize_task(task)
    }), 200


@tasks_bp.route('/<int:task_id>', methods=['DELETE'])
@jwt_required()
def delete_task(task_id):
    task_service.delete_task(task_id)
    return '', 204


@tasks_bp.route('/<int:task_id>/move', methods=['PUT'])
@jwt_required()
def move_task(task_id):
    new_column_id = _required_int_arg('newColumnId')
    task = task_service.move_task(task_id, new_column_id)

    return jsonify({
        'message': 'Task moved successfully',
        'task': serialize_task(task)
    }), 200


@tasks_bp.route('/<int:task_id>/assign', methods=['PUT'])
@jwt_required()
def assign_task(task_id):
    executor_id = _required_int_arg('executorId')
    task = task_service.assign_executor(task_id, executor_id)

    return jsonify({
        'message': 'Executor assigned successfully',
        'task': serialize_task(task)
    }), 200
