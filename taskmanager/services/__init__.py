import logging

from sqlalchemy.exc import SQLAlchemyError

from ..errors import InvalidPayloadError, NotFoundError
from ..models import db

logger = logging.getLogger(__name__)


def get_or_raise(model, entity_id, entity_name=None):
    """Load `model` by primary key or raise NotFoundError."""
    instance = db.session.get(model, entity_id)
    if instance is None:
        name = entity_name or model.__name__
        logger.warning(f"{name} with ID {entity_id} not found")
        raise NotFoundError(name, entity_id)
    return instance


def require_payload(data, entity_name):
    if data is None:
        raise InvalidPayloadError(f'{entity_name} payload cannot be null')


def apply_present_fields(instance, data, field_names):
    """
    Copy the fields of `data` that are present and not None onto `instance`

    Returns the names of the fields that actually changed.
    """
    changed = []
    for field in field_names:
        value = data.get(field)
        if value is None:
            continue
        if getattr(instance, field) != value:
            setattr(instance, field, value)
            changed.append(field)
    return changed


def commit():
    """Commit the request's unit of work, rolling back on failure."""
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
