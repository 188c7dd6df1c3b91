"""Exception taxonomy shared by the stores, services and HTTP layer.

Domain errors (``ValidationError``, ``ConflictError``,
``InvalidCredentialError``, ``ExpiredCredentialError``) carry a message that
is safe to return to the client.  Infrastructure errors (``StorageError``,
``DeliveryError``) carry server-side detail only; the HTTP layer replaces it
with a generic message.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error raised by the authentication core."""

    status_code: int = 400
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthError):
    """A required field is missing from the request."""

    default_message = "Email and password OR OTP are required"


class ConflictError(AuthError):
    """An identity with this email already exists."""

    default_message = "User already exists"


class InvalidCredentialError(AuthError):
    """Unknown identity, wrong password or wrong OTP (deliberately merged)."""

    default_message = "Invalid credentials"


class ExpiredCredentialError(AuthError):
    """The OTP matched but is past its expiry."""

    default_message = "OTP expired"


class InfrastructureError(AuthError):
    """A collaborator (database, mail server) failed."""

    status_code = 500
    default_message = "Internal server error"


class StorageError(InfrastructureError):
    """The credential or OTP store could not complete an operation."""


class DeliveryError(InfrastructureError):
    """The notifier could not deliver a one-time code."""
