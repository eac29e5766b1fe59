import enum
import logging
from functools import wraps

from flask import jsonify, request
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request

from .models import Task, UserStatus

logger = logging.getLogger(__name__)


class Role(str, enum.Enum):
    ADMIN = 'Admin'
    EDITOR = 'Editor'
    USER = 'User'


ROLE_CLAIM = 'role'
USER_ID_CLAIM = 'uid'
EMAIL_CLAIM = 'email'

# Roles that see every task; everybody else only sees what they execute
TASK_SUPERVISOR_ROLES = (Role.ADMIN, Role.EDITOR)


def role_for_status(user_status):
    """Map a stored UserStatus to the role claim put in the token."""
    if user_status == UserStatus.ADMIN:
        return Role.ADMIN
    if user_status == UserStatus.EDITOR:
        return Role.EDITOR
    return Role.USER


def parse_role(value):
    """Role claim to Role; anything unknown falls back to plain User."""
    try:
        return Role(value)
    except ValueError:
        return Role.USER


def current_identity():
    """
    Read (user_id, role) from the verified token of the current request

    The role comes from the token, not from the database: a role change
    only applies once the user logs in again.
    """
    claims = get_jwt()
    user_id = claims.get(USER_ID_CLAIM)
    role = claims.get(ROLE_CLAIM)
    return (int(user_id) if user_id is not None else None,
            parse_role(role) if role is not None else None)


def current_login():
    return get_jwt_identity()


def can_see_all_tasks(role):
    return role in TASK_SUPERVISOR_ROLES


def visible_tasks_query(user_id, role):
    """Task query restricted to what the role is allowed to see."""
    query = Task.query
    if can_see_all_tasks(role):
        return query
    return query.filter(Task.executor_id == user_id)


def role_required(*roles):
    """
    Protect a view with a role requirement

    No token or a bad token is rejected by Flask-JWT-Extended with 401
    (see the loaders in app.py); a valid token whose role claim is missing
    or not accepted gets 403.
    """
    accepted = [Role(role).value for role in roles]

    def wrapper(fn):
        @wraps(fn)
        def decorator(*args, **kwargs):
            verify_jwt_in_request()
            role = get_jwt().get(ROLE_CLAIM)

            if role is None or role not in accepted:
                logger.warning(
                    f"Forbidden: {get_jwt_identity()} with role {role} "
                    f"on {request.method} {request.path}"
                )
                return jsonify({
                    'error': 'forbidden',
                    'message': 'You do not have permission to perform this action.'
                }), 403

            return fn(*args, **kwargs)
        return decorator
    return wrapper
