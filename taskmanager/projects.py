from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required
from marshmallow import Schema, fields, validate

from .models import ProjectStatus
from .services import projects as project_service
from .validation import Base64Bytes, encode_blob, get_json_body, validate_request_data

projects_bp = Blueprint('projects', __name__)

PROJECT_STATUSES = [status.value for status in ProjectStatus]

# ============================================
# Input Validation Schemas
# ============================================

class CreateProjectSchema(Schema):
    name = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=50),
        error_messages={'required': 'Project name is required'}
    )
    description = fields.Str(allow_none=True, validate=validate.Length(max=100))
    status = fields.Str(validate=validate.OneOf(PROJECT_STATUSES),
                        load_default=ProjectStatus.IN_PROGRESS.value)
    photo = Base64Bytes(allow_none=True)
    admin_id = fields.Int(allow_none=True)
    user_ids = fields.List(fields.Int(), load_default=list)


class UpdateProjectSchema(Schema):
    name = fields.Str(allow_none=True, validate=validate.Length(min=1, max=50))
    description = fields.Str(allow_none=True, validate=validate.Length(max=100))
    status = fields.Str(allow_none=True, validate=validate.OneOf(PROJECT_STATUSES))
    photo = Base64Bytes(allow_none=True)
    admin_id = fields.Int(allow_none=True)

# ============================================
# Serialization
# ============================================

def serialize_project(project):
    admin = None
    if project.admin is not None:
        admin = {
            'id': project.admin.id,
            'user_id': project.admin.user_id,
            'login': project.admin.user.login
        }

    return {
        'id': project.id,
        'name': project.name,
        'description': project.description,
        'status': project.status,
        'photo': encode_blob(project.photo),
        'created_at': project.created_at.isoformat() if project.created_at else None,
        'admin': admin,
        'users': [
            {'id': user.id, 'login': user.login, 'full_name': user.full_name}
            for user in project.users
        ],
        'desk_ids': [desk.id for desk in project.desks]
    }

# ============================================
# Routes
# ============================================

@projects_bp.route('/create', methods=['POST'])
@jwt_required()
def create_project():
    data = get_json_body()

    is_valid, result = validate_request_data(CreateProjectSchema, data)
    if not is_valid:
        return jsonify({'error': 'validation_failed', 'details': result}), 400

    project = project_service.create_project(result)

    return jsonify({
        'message': 'Project created successfully',
        'project': serialize_project(project)
    }), 201


@projects_bp.route('/<int:project_id>', methods=['GET'])
@jwt_required()
def get_project(project_id):
    return jsonify(serialize_project(project_service.get_project(project_id))), 200


@projects_bp.route('/all', methods=['GET'])
@jwt_required()
def get_all_projects():
    projects = project_service.get_all_projects()
    return jsonify({
        'projects': [serialize_project(project) for project in projects],
        'total': len(projects)
    }), 200


@projects_bp.route('/user/<int:user_id>', methods=['GET'])
@jwt_required()
def get_user_projects(user_id):
    projects = project_service.get_user_projects(user_id)
    return jsonify({
        'projects': [serialize_project(project) for project in projects],
        'total': len(projects)
    }), 200


@projects_bp.route('/<int:project_id>', methods=['PUT'])
@jwt_required()
def update_project(project_id):
    data = get_json_body()

    is_valid, result = validate_request_data(UpdateProjectSchema, data)
    if not is_valid:
        return jsonify({'error': 'validation_failed', 'details': result}), 400

    project = project_service.update_project(project_id, result)

    return jsonify({
        'message': 'Project updated successfully',
        'project': serialize_project(project)
    }), 200


@projects_bp.route('/<int:project_id>', methods=['DELETE'])
@jwt_required()
def delete_project(project_id):
    project_service.delete_project(project_id)
    return '', 204

# ============================================
# Membership
# ============================================

@projects_bp.route('/<int:project_id>/users/<int:user_id>', methods=['POST'])
@jwt_required()
def add_user(project_id, user_id):
    project = project_service.add_user_to_project(project_id, user_id)
    return jsonify({
        'message': 'User added to project',
        'project': serialize_project(project)
    }), 200


@projects_bp.route('/<int:project_id>/users/<int:user_id>', methods=['DELETE'])
@jwt_required()
def remove_user(project_id, user_id):
    project = project_service.remove_user_from_project(project_id, user_id)
    return jsonify({
        'message': 'User removed from project',
        'project': serialize_project(project)
    }), 200
