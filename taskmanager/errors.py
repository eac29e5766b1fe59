"""
Domain errors raised by the services and translated to HTTP responses by
the handlers registered in app.py.
"""


class TaskManagerError(Exception):
    """Base class for every error the API knows how to report."""
    status_code = 500
    error_code = 'internal_server_error'

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class InvalidPayloadError(TaskManagerError):
    """The request payload is missing or inconsistent."""
    status_code = 400
    error_code = 'bad_request'


class NotFoundError(TaskManagerError):
    """The requested resource does not exist."""
    status_code = 404
    error_code = 'not_found'

    def __init__(self, entity, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f'{entity} with ID {entity_id} not found')


class ConflictError(TaskManagerError):
    """The request conflicts with existing data."""
    status_code = 409
    error_code = 'conflict'


class DeleteRestrictedError(ConflictError):
    """The resource is still referenced and cannot be deleted."""
    error_code = 'delete_restricted'


class AuthenticationFailure(TaskManagerError):
    """
    Authentication could not be completed because of an internal error.

    Distinct from bad credentials, which the credential service reports by
    returning None.
    """


class TokenConfigurationError(TaskManagerError):
    """The token signing configuration is incomplete."""
