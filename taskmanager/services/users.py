import logging
from datetime import datetime

from ..errors import ConflictError, DeleteRestrictedError, NotFoundError
from ..models import db, Desk, Task, User, UserStatus
from ..security import hash_password
from . import apply_present_fields, commit, get_or_raise, require_payload

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ('first_name', 'last_name', 'login', 'email', 'phone', 'photo', 'user_status')


def _ensure_unique(login=None, email=None, exclude_id=None):
    """Login and email are unique across users."""
    if login is not None:
        query = User.query.filter(User.login == login)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first() is not None:
            raise ConflictError(f'Login {login} is already taken')

    if email is not None:
        query = User.query.filter(User.email == email)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first() is not None:
            raise ConflictError(f'Email {email} is already registered')


def _build_user(data):
    _ensure_unique(data['login'], data['email'])

    now = datetime.utcnow()
    user = User(
        first_name=data['first_name'],
        last_name=data['last_name'],
        login=data['login'],
        email=data['email'],
        phone=data.get('phone'),
        photo=data.get('photo'),
        user_status=data.get('user_status') or UserStatus.USER.value,
        registration_date=now,
        password_hash=hash_password(data['password']),
    )
    db.session.add(user)
    return user


def create_user(data):
    require_payload(data, 'User')
    user = _build_user(data)
    commit()

    logger.info(f"User created: {user.login} ({user.user_status})")
    return user


def create_users(items):
    """Create several users in one transaction; one failure creates none."""
    require_payload(items, 'User list')

    try:
        users = [_build_user(item) for item in items]
    except ConflictError:
        db.session.rollback()
        raise
    commit()

    logger.info(f"Bulk created {len(users)} users")
    return users


def get_user(user_id):
    return get_or_raise(User, user_id, 'User')


def get_user_by_login(login):
    user = User.query.filter_by(login=login).one_or_none()
    if user is None:
        logger.warning(f"User with login {login} not found")
        raise NotFoundError('User', login)
    return user


def get_all_users():
    return User.query.order_by(User.id).all()


def update_user(user_id, data):
    """
    Partial update: absent or null fields keep their current value

    The password is only re-hashed when a new one is given.
    """
    require_payload(data, 'User')
    user = get_user(user_id)
    return _apply_update(user, data)


def _apply_update(user, data):
    _ensure_unique(
        login=data.get('login') if data.get('login') != user.login else None,
        email=data.get('email') if data.get('email') != user.email else None,
        exclude_id=user.id,
    )

    changed = apply_present_fields(user, data, UPDATABLE_FIELDS)

    if data.get('password'):
        user.password_hash = hash_password(data['password'])
        changed.append('password')

    commit()
    logger.info(f"User {user.id} updated: {', '.join(changed) or 'no changes'}")
    return user


def update_user_by_login(login, data):
    require_payload(data, 'User')
    user = get_user_by_login(login)
    return _apply_update(user, data)


def delete_user(user_id):
    """
    Delete a user

    Rejected while tasks reference the user as creator or executor or
    desks reference them as admin.
    """
    user = get_user(user_id)

    task_reference = Task.query.filter(
        (Task.creator_id == user_id) | (Task.executor_id == user_id)
    ).first()
    if task_reference is not None:
        raise DeleteRestrictedError(f'User {user_id} is referenced by task {task_reference.id}')

    desk_reference = Desk.query.filter_by(admin_id=user_id).first()
    if desk_reference is not None:
        raise DeleteRestrictedError(f'User {user_id} administers desk {desk_reference.id}')

    login = user.login
    db.session.delete(user)
    commit()

    logger.info(f"User deleted: {login}")
