from __future__ import annotations

from typing import Any


class CRMError(Exception):
    """Base class for errors surfaced verbatim to API callers."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, *, details: Any = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(CRMError):
    status_code = 400
    code = "validation_error"


class AuthenticationError(CRMError):
    status_code = 401
    code = "authentication_error"


class AuthorizationError(CRMError):
    status_code = 403
    code = "authorization_error"


class NotFoundError(CRMError):
    status_code = 404
    code = "not_found"


class ConflictError(CRMError):
    status_code = 409
    code = "conflict"


class InternalError(CRMError):
    status_code = 500
    code = "internal_error"
