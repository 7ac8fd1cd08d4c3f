from fastapi import status


class ServiceError(Exception):
    """Base for failures that reach the client as ``{"detail": message}``."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class Forbidden(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not enough rights"


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InvalidArgument(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid argument"


class InvalidOperation(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Operation not allowed"


class Conflict(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Already exists"


class InvalidState(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Operation would violate an invariant"


class Gone(ServiceError):
    status_code = status.HTTP_410_GONE
    default_message = "No longer available"


class Internal(ServiceError):
    pass
