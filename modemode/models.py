"""Domain models for the MODEMODE account service."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict


@dataclass(frozen=True)
class User:
    """Represents a user account stored in the credential store."""

    id: int
    email: str
    name: str
    password_hash: str
    created_at: datetime

    def __repr__(self) -> str:
        return f"User(id={self.id!r}, email={self.email!r}, name={self.name!r})"


@dataclass(frozen=True)
class TokenClaims:
    """Identity claims carried by a verified session token."""

    user_id: int
    email: str
    display_name: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class AuthResult:
    user: User
    token: str

    def summary(self) -> Dict[str, str]:
        return {"name": self.user.name, "email": self.user.email}


__all__ = ["AuthResult", "TokenClaims", "User"]
