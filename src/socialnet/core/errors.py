"""Domain exceptions raised by services and translated to HTTP errors."""

from __future__ import annotations

from fastapi import status


class DomainError(RuntimeError):
    """Base exception for failures that map onto a client-visible status.

    Services raise subclasses of this error; the application installs a
    handler that renders them as ``{"error": message}`` with ``status_code``.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(DomainError):
    """Raised for malformed input or violated preconditions."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(DomainError):
    """Raised for duplicates and for acting on already-resolved state."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthenticatedError(DomainError):
    """Raised when the caller has no valid session."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(DomainError):
    """Raised when the caller is not permitted to act on a resource."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
