"""FastAPI application exposing the account and media endpoints."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import anyio
from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .errors import AuthError, InvalidToken, MediaProviderError, MissingFields, StorageUnavailable
from .media import ImageProvider, MockVideoProvider, clamp_image_count
from .models import AuthResult, TokenClaims
from .security import BearerTokenAuth
from .service import AuthService

logger = logging.getLogger("modemode.api")

DEFAULT_AUTH_WORKERS = 8


class SignupRequest(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class ImageRequest(BaseModel):
    prompt: str = ""
    count: Optional[int] = None


class VideoRequest(BaseModel):
    images: List[str] = Field(default_factory=list)


def _failure(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "msg": message}, headers=headers)


def _auth_payload(result: AuthResult) -> Dict[str, Any]:
    return {"ok": True, **result.summary(), "token": result.token}


class _SPAStaticFiles(StaticFiles):
    """Serve the frontend bundle, falling back to ``index.html`` for client routes."""

    async def get_response(self, path: str, scope):  # type: ignore[override]
        try:
            response = await super().get_response(path, scope)
        except StarletteHTTPException as exc:
            if exc.status_code != status.HTTP_404_NOT_FOUND or path.startswith("api"):
                raise
            return await super().get_response("index.html", scope)
        if response.status_code == status.HTTP_404_NOT_FOUND and not path.startswith("api"):
            return await super().get_response("index.html", scope)
        return response


def create_app(
    *,
    service: AuthService,
    image_provider: Optional[ImageProvider] = None,
    video_provider: Optional[MockVideoProvider] = None,
    public_dir: Optional[Path] = None,
    auth_workers: int = DEFAULT_AUTH_WORKERS,
    trusted_proxies: list[str] | str = "127.0.0.1",
) -> FastAPI:
    """Create the HTTP application around an already configured :class:`AuthService`."""

    if auth_workers < 1:
        raise ValueError("auth_workers must be at least 1")

    if video_provider is None:
        video_provider = MockVideoProvider()

    app = FastAPI(
        title="MODEMODE",
        description="Account signup/login and media generation API",
        version="1.0.0",
    )
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=trusted_proxies)
    app.state.auth_service = service
    app.state.image_provider = image_provider
    app.state.video_provider = video_provider

    current_claims = BearerTokenAuth(service)

    def _limiter() -> anyio.CapacityLimiter:
        # Created lazily so the limiter binds to the running event loop.
        limiter = getattr(app.state, "auth_limiter", None)
        if limiter is None:
            limiter = anyio.CapacityLimiter(auth_workers)
            app.state.auth_limiter = limiter
        return limiter

    router = APIRouter(prefix="/api")

    @router.post("/auth/signup")
    async def signup(payload: SignupRequest) -> Dict[str, Any]:
        result = await anyio.to_thread.run_sync(
            service.signup,
            payload.name,
            payload.email,
            payload.password,
            limiter=_limiter(),
        )
        return _auth_payload(result)

    @router.post("/auth/login")
    async def login(payload: LoginRequest) -> Dict[str, Any]:
        result = await anyio.to_thread.run_sync(
            service.login,
            payload.email,
            payload.password,
            limiter=_limiter(),
        )
        return _auth_payload(result)

    @router.get("/auth/me")
    async def current_user(claims: TokenClaims = Depends(current_claims)) -> Dict[str, Any]:
        return {
            "ok": True,
            "id": claims.user_id,
            "name": claims.display_name,
            "email": claims.email,
            "expires_at": claims.expires_at.isoformat(),
        }

    @router.post("/gemini-image")
    async def generate_images(payload: ImageRequest) -> Dict[str, Any]:
        prompt = payload.prompt.strip()
        if not prompt:
            return _failure(status.HTTP_400_BAD_REQUEST, "Prompt is required")

        provider = app.state.image_provider
        if provider is None:
            return _failure(status.HTTP_503_SERVICE_UNAVAILABLE, "Image generation is not configured")

        images = await provider.generate(prompt, clamp_image_count(payload.count))
        response: Dict[str, Any] = {"ok": True, "images": images}
        if getattr(provider, "demo", False):
            response["demo"] = True
        return response

    @router.post("/video-from-images")
    async def video_from_images(payload: Optional[VideoRequest] = None) -> Dict[str, Any]:
        images = payload.images if payload is not None else []
        video_url = await app.state.video_provider.assemble(images)
        return {"ok": True, "videoUrl": video_url}

    app.include_router(router)

    @app.get("/healthz", include_in_schema=False)
    async def healthcheck() -> Dict[str, Any]:
        return {"ok": True}

    @app.exception_handler(StorageUnavailable)
    async def handle_storage_error(_: Request, exc: StorageUnavailable):
        logger.error("Credential store unavailable: %s", exc, exc_info=exc.__cause__)
        return _failure(exc.status_code, exc.message)

    @app.exception_handler(InvalidToken)
    async def handle_invalid_token(_: Request, exc: InvalidToken):
        return _failure(
            status.HTTP_401_UNAUTHORIZED,
            InvalidToken.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(AuthError)
    async def handle_auth_error(_: Request, exc: AuthError):
        logger.info("Request rejected: %s", exc.kind)
        return _failure(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        logger.info("Malformed request body for %s", request.url.path)
        return _failure(status.HTTP_400_BAD_REQUEST, MissingFields.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(_: Request, exc: StarletteHTTPException):
        return _failure(exc.status_code, str(exc.detail), headers=exc.headers)

    @app.exception_handler(MediaProviderError)
    async def handle_media_error(_: Request, exc: MediaProviderError):
        return _failure(status.HTTP_502_BAD_GATEWAY, str(exc))

    if public_dir is not None:
        if public_dir.is_dir():
            app.mount("/", _SPAStaticFiles(directory=str(public_dir), html=True), name="public")
        else:
            logger.warning("Frontend directory %s does not exist; static files are disabled", public_dir)

    return app


__all__ = ["create_app"]
