import logging
from datetime import datetime

from ..models import db, Project, ProjectAdmin, ProjectStatus, User
from . import apply_present_fields, commit, get_or_raise, require_payload

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ('name', 'description', 'status', 'photo')


def _admin_wrapper_for(user_id):
    """Return the ProjectAdmin of a user, creating it on first use."""
    user = get_or_raise(User, user_id, 'User')
    if user.admin_role is None:
        wrapper = ProjectAdmin(user=user)
        db.session.add(wrapper)
        logger.info(f"User {user.login} granted project administration")
    return user.admin_role


def create_project(data):
    require_payload(data, 'Project')

    project = Project(
        name=data['name'],
        description=data.get('description'),
        status=data.get('status') or ProjectStatus.IN_PROGRESS.value,
        photo=data.get('photo'),
        created_at=datetime.utcnow(),
    )

    if data.get('admin_id') is not None:
        project.admin = _admin_wrapper_for(data['admin_id'])

    for user_id in data.get('user_ids') or []:
        user = get_or_raise(User, user_id, 'User')
        if user not in project.users:
            project.users.append(user)

    db.session.add(project)
    commit()

    logger.info(f"Project created: {project.name} (ID {project.id})")
    return project


def get_project(project_id):
    return get_or_raise(Project, project_id, 'Project')


def get_all_projects():
    return Project.query.order_by(Project.id).all()


def get_user_projects(user_id):
    """Projects the user is a member of."""
    get_or_raise(User, user_id, 'User')
    return Project.query.filter(Project.users.any(User.id == user_id)).order_by(Project.id).all()


def update_project(project_id, data):
    require_payload(data, 'Project')
    project = get_project(project_id)

    changed = apply_present_fields(project, data, UPDATABLE_FIELDS)

    if data.get('admin_id') is not None:
        wrapper = _admin_wrapper_for(data['admin_id'])
        if project.admin is not wrapper:
            project.admin = wrapper
            changed.append('admin_id')

    commit()
    logger.info(f"Project {project_id} updated: {', '.join(changed) or 'no changes'}")
    return project


def delete_project(project_id):
    """Delete a project; its desks stay, detached from it."""
    project = get_project(project_id)
    name = project.name

    db.session.delete(project)
    commit()

    logger.info(f"Project deleted: {name}")


def add_user_to_project(project_id, user_id):
    """Add a member; adding an existing member changes nothing."""
    project = get_project(project_id)
    user = get_or_raise(User, user_id, 'User')

    if user in project.users:
        logger.info(f"User {user_id} is already a member of project {project_id}")
        return project

    project.users.append(user)
    commit()

    logger.info(f"User {user_id} added to project {project_id}")
    return project


def remove_user_from_project(project_id, user_id):
    """Remove a member; removing a non-member changes nothing."""
    project = get_project(project_id)
    user = get_or_raise(User, user_id, 'User')

    if user not in project.users:
        logger.info(f"User {user_id} is not a member of project {project_id}")
        return project

    project.users.remove(user)
    commit()

    logger.info(f"User {user_id} removed from project {project_id}")
    return project
