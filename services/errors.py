"""
Error taxonomy for the auth core.

Every failure raised by the services carries a stable `code` and an HTTP
`status`; api/errors.py turns them into the uniform error envelope.
"""
from __future__ import annotations


class AuthError(Exception):
    code = "INTERNAL_ERROR"
    status = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthError):
    code = "VALIDATION_ERROR"
    status = 400
    default_message = "Invalid input"


class MissingInput(ValidationError):
    default_message = "Required field is missing"


class InvalidCredentials(AuthError):
    # same message for unknown user and wrong password
    code = "INVALID_CREDENTIALS"
    status = 400
    default_message = "Invalid credentials"


class Conflict(AuthError):
    code = "CONFLICT"
    status = 400
    default_message = "Resource already exists"


class Unauthorized(AuthError):
    code = "UNAUTHORIZED"
    status = 401
    default_message = "Unauthorized"


class Forbidden(AuthError):
    code = "FORBIDDEN"
    status = 403
    default_message = "Forbidden"


class InvalidToken(Forbidden):
    code = "INVALID_TOKEN"
    default_message = "Invalid or expired token"


class TokenExpired(InvalidToken):
    code = "TOKEN_EXPIRED"
    default_message = "Refresh token expired"


class NotFound(AuthError):
    code = "NOT_FOUND"
    status = 404
    default_message = "Resource not found"


class InternalError(AuthError):
    pass
