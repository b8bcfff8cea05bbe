"""
Error kinds raised by the services and mapped to HTTP responses by the API
"""
import uuid
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError

M = TypeVar("M", bound=BaseModel)


class ServiceError(Exception):
    """Base class for every failure a service action can surface"""
    kind = "Internal"
    status_code = 500
    default_message = "Server Error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(ServiceError):
    kind = "InvalidInput"
    status_code = 400
    default_message = "Invalid input"


class AuthFailure(ServiceError):
    kind = "AuthFailure"
    status_code = 401
    default_message = "Invalid credentials"


class Unauthenticated(ServiceError):
    kind = "Unauthenticated"
    status_code = 401
    default_message = "Not authorized to access this route"


class Forbidden(ServiceError):
    kind = "Forbidden"
    status_code = 403
    default_message = "Not authorized to perform this action"


class NotFound(ServiceError):
    kind = "NotFound"
    status_code = 404
    default_message = "Resource not found"


class Conflict(ServiceError):
    kind = "Conflict"
    status_code = 400
    default_message = "Conflicting state"


class Internal(ServiceError):
    pass


def parse_id(value, label: str = "Resource") -> uuid.UUID:
    """Path ids that are not UUIDs cannot resolve to anything"""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFound(f"{label} not found") from None


def validation_message(error) -> str:
    """First pydantic error rendered as 'field: message'"""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    if location:
        return f"{location}: {first['msg']}"
    return first["msg"]


def validate_as(model: Type[M], data) -> M:
    """Validate raw data into a model, raising InvalidInput instead of ValidationError"""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidInput(validation_message(e)) from None
