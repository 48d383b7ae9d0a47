"""Core package for the MODEMODE account and media service."""

from __future__ import annotations

from typing import Any

from .database import (
    CredentialStore,
    InMemoryCredentialStore,
    SQLiteCredentialStore,
    resolve_database_path,
)


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP application built from settings."""

    from .application import create_application as _create_application

    return _create_application(*args, **kwargs)


__all__ = [
    "CredentialStore",
    "InMemoryCredentialStore",
    "SQLiteCredentialStore",
    "create_app",
    "resolve_database_path",
]
