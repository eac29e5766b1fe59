import logging
from datetime import datetime

from ..errors import InvalidPayloadError
from ..models import db, Column, Desk, Task, User
from ..policy import visible_tasks_query
from . import apply_present_fields, commit, get_or_raise, require_payload

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ('name', 'description', 'start_date', 'end_date', 'file', 'photo')


def _check_column_on_desk(column, desk_id):
    """A task's column has to belong to the task's desk."""
    if column.desk_id != desk_id:
        raise InvalidPayloadError(
            f'Column {column.id} belongs to desk {column.desk_id}, not to desk {desk_id}'
        )


def create_task(data):
    require_payload(data, 'Task')

    desk = get_or_raise(Desk, data['desk_id'], 'Desk')
    column = get_or_raise(Column, data['column_id'], 'Column')
    _check_column_on_desk(column, desk.id)

    for key in ('creator_id', 'executor_id'):
        if data.get(key) is not None:
            get_or_raise(User, data[key], 'User')

    task = Task(
        name=data['name'],
        description=data.get('description'),
        start_date=data['start_date'],
        end_date=data['end_date'],
        file=data.get('file'),
        photo=data.get('photo'),
        desk_id=desk.id,
        column_id=column.id,
        creator_id=data.get('creator_id'),
        executor_id=data.get('executor_id'),
        created_at=datetime.utcnow(),
    )

    db.session.add(task)
    commit()

    logger.info(f"Task created: {task.name} (ID {task.id}) on desk {desk.id}")
    return task


def get_task(task_id):
    return get_or_raise(Task, task_id, 'Task')


def get_all_tasks():
    return Task.query.order_by(Task.id).all()


def get_tasks_by_desk(desk_id):
    return Task.query.filter_by(desk_id=desk_id).order_by(Task.id).all()


def get_tasks_by_column(column_id):
    return Task.query.filter_by(column_id=column_id).order_by(Task.id).all()


def update_task(task_id, data):
    """
    Partial update of a task

    Only present, non-null fields change. Changing the desk or the column
    must leave the task on a column of its own desk.
    """
    require_payload(data, 'Task')
    task = get_task(task_id)

    changed = apply_present_fields(task, data, UPDATABLE_FIELDS)

    if data.get('desk_id') is not None or data.get('column_id') is not None:
        desk_id = data.get('desk_id') if data.get('desk_id') is not None else task.desk_id
        column_id = data.get('column_id') if data.get('column_id') is not None else task.column_id
        get_or_raise(Desk, desk_id, 'Desk')
        column = get_or_raise(Column, column_id, 'Column')
        _check_column_on_desk(column, desk_id)
        changed += apply_present_fields(task, {'desk_id': desk_id, 'column_id': column_id},
                                        ('desk_id', 'column_id'))

    if data.get('executor_id') is not None:
        get_or_raise(User, data['executor_id'], 'User')
        changed += apply_present_fields(task, data, ('executor_id',))

    commit()
    logger.info(f"Task {task_id} updated: {', '.join(changed) or 'no changes'}")
    return task


def delete_task(task_id):
    task = get_task(task_id)
    db.session.delete(task)
    commit()

    logger.info(f"Task deleted: {task_id}")


def move_task(task_id, new_column_id):
    """Move a task to another column of the same desk."""
    task = get_task(task_id)
    column = get_or_raise(Column, new_column_id, 'Column')
    _check_column_on_desk(column, task.desk_id)

    task.column_id = column.id
    commit()

    logger.info(f"Moved task {task_id} to column {new_column_id}")
    return task


def assign_executor(task_id, executor_id):
    task = get_task(task_id)
    get_or_raise(User, executor_id, 'User')

    task.executor_id = executor_id
    commit()

    logger.info(f"Assigned executor {executor_id} to task {task_id}")
    return task


def get_tasks_for_user(user_id, role):
    """All tasks for Admin and Editor, only executed ones for a plain User."""
    logger.info(f"User {user_id} with role {role.value} requesting tasks")
    return visible_tasks_query(user_id, role).order_by(Task.id).all()
