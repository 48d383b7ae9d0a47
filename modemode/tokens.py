"""Signed, time-limited bearer tokens for authenticated sessions."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import jwt

from .errors import InvalidToken, TokenExpired
from .models import TokenClaims, User

DEFAULT_TOKEN_LIFETIME = timedelta(days=7)
DEFAULT_ALGORITHM = "HS256"
_SUPPORTED_ALGORITHMS = {"HS256", "HS384", "HS512"}
_REQUIRED_CLAIMS = ["sub", "email", "name", "iat", "exp"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Issue and verify HMAC-signed JWTs (HS256 by default) carrying a user's identity.

    The signing secret is bound once at construction and never regenerated.
    Verification checks the signature before the expiry, so a tampered
    token is always rejected as :class:`InvalidToken` even when its
    ``exp`` claim is in the past. Both ``issue`` and ``verify`` read the
    time from ``clock``.
    """

    def __init__(
        self,
        secret: str,
        *,
        lifetime: timedelta = DEFAULT_TOKEN_LIFETIME,
        algorithm: str = DEFAULT_ALGORITHM,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        if lifetime <= timedelta(0):
            raise ValueError("Token lifetime must be positive")
        if algorithm not in _SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported token algorithm {algorithm!r}")
        self._secret = secret
        self._lifetime = lifetime
        self._algorithm = algorithm
        self._clock = clock or _utcnow

    @property
    def lifetime(self) -> timedelta:
        return self._lifetime

    def issue(self, user: User) -> str:
        issued_at = self._clock().replace(microsecond=0)
        payload: Dict[str, Any] = {
            "sub": str(user.id),
            "email": user.email,
            "name": user.name,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self._lifetime).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims:
        if not token:
            raise InvalidToken()
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": _REQUIRED_CLAIMS, "verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidTokenError as exc:
            raise InvalidToken() from exc

        try:
            user_id = int(payload["sub"])
            issued_at = int(payload["iat"])
            expires_at = int(payload["exp"])
        except (TypeError, ValueError) as exc:
            raise InvalidToken() from exc

        if expires_at <= self._clock().timestamp():
            raise TokenExpired()

        return TokenClaims(
            user_id=user_id,
            email=str(payload["email"]),
            display_name=str(payload["name"]),
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
        )


__all__ = ["DEFAULT_ALGORITHM", "DEFAULT_TOKEN_LIFETIME", "TokenIssuer"]
