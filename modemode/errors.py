"""Error types raised by the account service and its collaborators."""

from __future__ import annotations


class AuthError(Exception):
    """Base class for failures that are reported to clients as ``{ok: false}``."""

    kind = "AuthError"
    message = "Request could not be completed"
    status_code = 400

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class MissingFields(AuthError):
    kind = "MissingFields"
    message = "Please fill in all required fields"
    status_code = 400


class PasswordTooLong(AuthError):
    kind = "PasswordTooLong"
    message = "Password must be at most 72 bytes long"
    status_code = 400


class EmailTaken(AuthError):
    kind = "EmailTaken"
    message = "EmailTaken"
    status_code = 409


class InvalidCredentials(AuthError):
    """Raised for unknown emails and wrong passwords alike."""

    kind = "InvalidCredentials"
    message = "Invalid email or password"
    status_code = 401


class InvalidToken(AuthError):
    kind = "InvalidToken"
    message = "Invalid or expired token"
    status_code = 401


class TokenExpired(InvalidToken):
    """Authentic token past its expiry. Reported to clients as :class:`InvalidToken`."""

    kind = "Expired"


class StorageUnavailable(AuthError):
    """Raised when the credential store cannot complete an operation."""

    kind = "StorageUnavailable"
    message = "Storage is temporarily unavailable"
    status_code = 503


class DuplicateEmail(AuthError):
    """Raised by a credential store when the email uniqueness constraint fails."""

    kind = "DuplicateEmail"
    message = "A user with that email already exists"
    status_code = 409


class MediaProviderError(RuntimeError):
    """Raised when an image or video provider fails to produce a result."""


class ConfigurationError(ValueError):
    """Raised when runtime settings are missing or malformed."""


__all__ = [
    "AuthError",
    "ConfigurationError",
    "DuplicateEmail",
    "EmailTaken",
    "InvalidCredentials",
    "InvalidToken",
    "MediaProviderError",
    "MissingFields",
    "PasswordTooLong",
    "StorageUnavailable",
    "TokenExpired",
]
