"""Bearer token authentication for the HTTP API."""
from __future__ import annotations

import logging

from fastapi import Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .errors import InvalidToken
from .models import TokenClaims
from .service import AuthService

logger = logging.getLogger("modemode.security")


class BearerTokenAuth:
    """FastAPI dependency that resolves ``Authorization: Bearer`` to token claims.

    Missing, malformed, tampered and expired tokens all raise
    :class:`InvalidToken`, so clients cannot tell the causes apart.
    """

    def __init__(self, service: AuthService) -> None:
        self._service = service
        self._bearer = HTTPBearer(auto_error=False)

    async def __call__(self, request: Request) -> TokenClaims:
        credentials: HTTPAuthorizationCredentials | None = await self._bearer(request)  # type: ignore[assignment]
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise InvalidToken()

        try:
            return self._service.authenticate(credentials.credentials)
        except InvalidToken as exc:
            logger.info("Rejected bearer token (%s)", exc.kind)
            raise InvalidToken() from exc


__all__ = ["BearerTokenAuth"]
