"""Application factory that wires settings into the HTTP service."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from .api import create_app
from .config import Settings, load_settings
from .database import CredentialStore, InMemoryCredentialStore, SQLiteCredentialStore
from .media import MockVideoProvider, build_image_provider
from .passwords import PasswordHasher
from .service import AuthService
from .tokens import TokenIssuer

logger = logging.getLogger("modemode.application")


def build_store(settings: Settings) -> CredentialStore:
    """Return an initialised credential store for the configured backend."""

    if settings.store == "memory":
        logger.warning("Using the in-memory credential store; accounts are lost on restart")
        store: CredentialStore = InMemoryCredentialStore()
    else:
        store = SQLiteCredentialStore(settings.db_path)
    store.initialize()
    return store


def build_auth_service(settings: Settings, *, store: Optional[CredentialStore] = None) -> AuthService:
    if store is None:
        store = build_store(settings)
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    tokens = TokenIssuer(settings.require_token_secret(), lifetime=settings.token_lifetime)
    return AuthService(store, hasher, tokens)


def create_application(
    settings: Optional[Settings] = None,
    *,
    store: Optional[CredentialStore] = None,
) -> FastAPI:
    """Create the ASGI application from :class:`Settings` (loaded from the environment by default)."""

    if settings is None:
        settings = load_settings()

    service = build_auth_service(settings, store=store)
    image_provider = build_image_provider(
        settings.gemini_api_key,
        model=settings.gemini_model,
        allow_placeholder=settings.demo_images,
    )

    app = create_app(
        service=service,
        image_provider=image_provider,
        video_provider=MockVideoProvider(),
        public_dir=settings.public_dir,
        auth_workers=settings.auth_workers,
        trusted_proxies=settings.trusted_proxy_hosts(),
    )
    app.state.settings = settings
    return app


__all__ = ["build_auth_service", "build_store", "create_application"]
