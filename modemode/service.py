"""Signup and login orchestration."""

from __future__ import annotations

import logging

from .database import CredentialStore
from .errors import DuplicateEmail, EmailTaken, InvalidCredentials, MissingFields, PasswordTooLong
from .models import AuthResult, TokenClaims
from .passwords import PasswordHasher, password_too_long
from .tokens import TokenIssuer

logger = logging.getLogger("modemode.service")


def _is_blank(value: object) -> bool:
    return not isinstance(value, str) or not value.strip()


class AuthService:
    """Coordinate the credential store, password hasher and token issuer.

    Both flows are single attempts: nothing is retried and a failing signup
    writes nothing. Methods block on hashing and storage I/O, so async
    callers should run them in a worker thread.
    """

    def __init__(self, store: CredentialStore, hasher: PasswordHasher, tokens: TokenIssuer) -> None:
        self._store = store
        self._hasher = hasher
        self._tokens = tokens

    @property
    def store(self) -> CredentialStore:
        return self._store

    def signup(self, name: str, email: str, password: str) -> AuthResult:
        if _is_blank(name) or _is_blank(email) or _is_blank(password):
            raise MissingFields()

        if password_too_long(password):
            raise PasswordTooLong()

        if self._store.find_by_email(email) is not None:
            logger.info("Signup rejected for %s: email already registered", email)
            raise EmailTaken()

        password_hash = self._hasher.hash(password)
        try:
            user = self._store.create_user(email, name, password_hash)
        except DuplicateEmail as exc:
            # Lost the race against a concurrent signup for the same email.
            logger.info("Signup rejected for %s: email registered concurrently", email)
            raise EmailTaken() from exc

        logger.info("Registered user %s (%s)", user.id, user.email)
        return AuthResult(user=user, token=self._tokens.issue(user))

    def login(self, email: str, password: str) -> AuthResult:
        if _is_blank(email) or _is_blank(password):
            raise MissingFields()

        user = self._store.find_by_email(email)
        if user is None:
            self._hasher.dummy_verify()
            logger.warning("Failed login attempt for %s", email)
            raise InvalidCredentials()
        if not self._hasher.verify(password, user.password_hash):
            logger.warning("Failed login attempt for %s", email)
            raise InvalidCredentials()

        if self._hasher.needs_rehash(user.password_hash):
            logger.info("Password hash for user %s uses outdated parameters", user.id)

        logger.info("User %s signed in", user.id)
        return AuthResult(user=user, token=self._tokens.issue(user))

    def authenticate(self, token: str) -> TokenClaims:
        """Verify a bearer token and return its claims."""

        return self._tokens.verify(token)


__all__ = ["AuthService"]
