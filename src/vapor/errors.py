"""Domain exceptions raised by services and mapped to HTTP responses.

Routers do not need to translate these; ``setup_error_handlers`` registers a
handler that turns each into ``{"detail": message}`` with its status code.
"""

from __future__ import annotations


class VaporError(Exception):
    """Base class for all domain-level exceptions."""

    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationFailed(VaporError, ValueError):
    """Request was well-formed but violates a business rule."""


class NotFoundError(VaporError):
    status_code = 404


class ConflictError(VaporError):
    """Duplicate cart, wishlist, library or review entry."""

    status_code = 409


class ForbiddenError(VaporError, PermissionError):
    """Caller is authenticated but not allowed to act on the resource."""

    status_code = 403


class ExternalServiceError(VaporError):
    """Payment, email, video or catalog provider failed."""

    status_code = 502


class AuthenticationError(VaporError):
    """Credentials or token rejected."""

    status_code = 401


class TooManyRequestsError(VaporError):
    status_code = 429
