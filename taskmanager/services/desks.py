import logging
from datetime import datetime

from ..errors import DeleteRestrictedError
from ..models import db, Column, Desk, Project, Task, User
from . import apply_present_fields, commit, get_or_raise, require_payload

logger = logging.getLogger(__name__)

# (name, order, description) of the columns every new desk starts with
DEFAULT_COLUMNS = (
    ('To Do', 1, 'Tasks that need to be done'),
    ('In Progress', 2, 'Tasks currently being worked on'),
    ('Done', 3, 'Completed tasks'),
)

UPDATABLE_FIELDS = ('name', 'description', 'is_private', 'photo')


def create_desk(data):
    """Create a desk together with its default columns."""
    require_payload(data, 'Desk')

    if data.get('admin_id') is not None:
        get_or_raise(User, data['admin_id'], 'User')
    if data.get('project_id') is not None:
        get_or_raise(Project, data['project_id'], 'Project')

    desk = Desk(
        name=data['name'],
        description=data.get('description'),
        is_private=bool(data.get('is_private', False)),
        admin_id=data.get('admin_id'),
        project_id=data.get('project_id'),
        photo=data.get('photo'),
        created_at=datetime.utcnow(),
    )
    desk.columns = [
        Column(name=name, order=order, description=description)
        for name, order, description in DEFAULT_COLUMNS
    ]

    db.session.add(desk)
    commit()

    logger.info(f"Desk created: {desk.name} (ID {desk.id}) with default columns")
    return desk


def get_desk(desk_id):
    return get_or_raise(Desk, desk_id, 'Desk')


def get_all_desks():
    return Desk.query.order_by(Desk.id).all()


def update_desk(desk_id, data):
    require_payload(data, 'Desk')
    desk = get_desk(desk_id)

    changed = apply_present_fields(desk, data, UPDATABLE_FIELDS)

    if data.get('admin_id') is not None:
        get_or_raise(User, data['admin_id'], 'User')
        changed += apply_present_fields(desk, data, ('admin_id',))
    if data.get('project_id') is not None:
        get_or_raise(Project, data['project_id'], 'Project')
        changed += apply_present_fields(desk, data, ('project_id',))

    commit()
    logger.info(f"Desk {desk_id} updated: {', '.join(changed) or 'no changes'}")
    return desk


def delete_desk(desk_id):
    """
    Delete a desk and its columns

    Rejected while tasks still sit on the desk, since tasks are
    delete-restricted on their column.
    """
    desk = get_desk(desk_id)

    column_ids = [column.id for column in desk.columns]
    task_reference = Task.query.filter(
        (Task.desk_id == desk_id) | Task.column_id.in_(column_ids)
    ).first()
    if task_reference is not None:
        raise DeleteRestrictedError(f'Desk {desk_id} still holds task {task_reference.id}')

    name = desk.name
    db.session.delete(desk)
    commit()

    logger.info(f"Desk deleted: {name}")
