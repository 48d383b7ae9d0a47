"""Password hashing for stored credentials."""

from __future__ import annotations

from passlib.context import CryptContext

DEFAULT_BCRYPT_ROUNDS = 12
BCRYPT_MAX_PASSWORD_BYTES = 72
_MIN_BCRYPT_ROUNDS = 4
_MAX_BCRYPT_ROUNDS = 31


def password_too_long(password: str) -> bool:
    """bcrypt only reads the first 72 bytes of a secret."""

    return len(password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES


class PasswordHasher:
    """Salted bcrypt hashing.

    Every call to :meth:`hash` draws a fresh salt, so hashing the same
    password twice yields two different strings which both verify.
    Passwords longer than :data:`BCRYPT_MAX_PASSWORD_BYTES` are refused
    rather than silently truncated.
    """

    def __init__(self, *, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        if not _MIN_BCRYPT_ROUNDS <= rounds <= _MAX_BCRYPT_ROUNDS:
            raise ValueError(
                f"bcrypt rounds must be between {_MIN_BCRYPT_ROUNDS} and {_MAX_BCRYPT_ROUNDS}"
            )
        self._rounds = rounds
        self._context = CryptContext(
            schemes=["bcrypt"],
            bcrypt__default_rounds=rounds,
            bcrypt__min_rounds=rounds,
            bcrypt__truncate_error=True,
        )

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, password: str) -> str:
        if not password:
            raise ValueError("Password must not be empty")
        if password_too_long(password):
            raise ValueError(f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes")
        return self._context.hash(password)

    def verify(self, password: str, hashed: str) -> bool:
        """Return ``True`` if ``password`` matches ``hashed``; never raises."""

        if not password or not hashed:
            return False
        if password_too_long(password):
            # Spend the same work as a real comparison before refusing.
            self.dummy_verify()
            return False
        try:
            return self._context.verify(password, hashed)
        except (ValueError, TypeError):
            return False

    def dummy_verify(self) -> None:
        """Run one verification against a throwaway hash at the configured cost.

        Used when there is no stored hash to check, so that a missing account
        takes as long to reject as a wrong password.
        """

        self._context.dummy_verify()

    def needs_rehash(self, hashed: str) -> bool:
        """Report hashes produced with a lower cost or an unknown scheme."""

        try:
            return self._context.needs_update(hashed)
        except (ValueError, TypeError):
            return True


__all__ = ["BCRYPT_MAX_PASSWORD_BYTES", "DEFAULT_BCRYPT_ROUNDS", "PasswordHasher", "password_too_long"]
