"""Application exceptions rendered as JSON by the error handlers."""

from __future__ import annotations


class ServiceError(Exception):
    """Error with a stable machine-readable code."""

    status_code = 400
    code = "service_error"

    def __init__(self, message: str, *, code: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code


class UnauthorizedError(ServiceError):
    status_code = 401
    code = "unauthorized"


class ForbiddenError(ServiceError):
    status_code = 403
    code = "forbidden"


class UserNotFoundError(ServiceError):
    status_code = 404
    code = "user_not_found"
