from __future__ import annotations

from typing import Any, Optional


class StoreError(Exception):
    """Raised by a record store when an operation cannot be completed."""


# PUBLIC_INTERFACE
class ServiceError(Exception):
    """
    Base class for errors that terminate a request with a JSON error payload.

    Rendered by the application exception handler as:
        {"error": <error>, "message": <message>[, "detail": <detail>]}
    """

    status_code = 500
    error = "Internal"

    def __init__(self, message: str, detail: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class BadRequestError(ServiceError):
    status_code = 400
    error = "BadRequest"


class UnauthorizedError(ServiceError):
    status_code = 401
    error = "Unauthorized"


class NotFoundError(ServiceError):
    status_code = 404
    error = "NotFound"


class InternalError(ServiceError):
    status_code = 500
    error = "Internal"
