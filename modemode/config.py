"""Runtime configuration for the MODEMODE service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .database import resolve_database_path
from .errors import ConfigurationError
from .passwords import DEFAULT_BCRYPT_ROUNDS

ENV_PREFIX = "MODEMODE_"
DEFAULT_GEMINI_MODEL = "gemini-1.5-pro"
DEFAULT_AUTH_WORKERS = 8
DEFAULT_TOKEN_TTL_DAYS = 7
_STORE_BACKENDS = {"sqlite", "memory"}


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def _env_int(name: str, value: Optional[str], default: int) -> int:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid integer value {value!r} for {name}") from exc


def _env_path(value: Optional[str], default: Path) -> Path:
    if value is None or value.strip() == "":
        return default
    return Path(value).expanduser().resolve(strict=False)


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


@dataclass(frozen=True)
class Settings:
    """Settings resolved once at startup and shared by the whole process."""

    db_path: Path
    token_secret: Optional[str] = None
    token_ttl_days: int = DEFAULT_TOKEN_TTL_DAYS
    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS
    auth_workers: int = DEFAULT_AUTH_WORKERS
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    public_dir: Optional[Path] = None
    store: str = "sqlite"
    demo_images: bool = True
    trusted_proxies: str = "127.0.0.1"

    def trusted_proxy_hosts(self) -> list[str] | str:
        hosts = [item.strip() for item in self.trusted_proxies.split(",") if item.strip()]
        return hosts or "127.0.0.1"

    @property
    def token_lifetime(self) -> timedelta:
        return timedelta(days=self.token_ttl_days)

    def require_token_secret(self) -> str:
        if not self.token_secret:
            raise ConfigurationError(
                f"{ENV_PREFIX}TOKEN_SECRET must be configured to issue session tokens"
            )
        return self.token_secret


def load_config_file(config_path: Path) -> Dict[str, Any]:
    """Load optional settings from a YAML file."""
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Configuration file not found: {config_path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Configuration file {config_path} is not valid YAML: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration file must contain a mapping of settings")
    return {str(key).lower(): value for key, value in raw.items()}


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from environment variables.

    When ``MODEMODE_CONFIG`` names a YAML file its keys (``db_path``,
    ``token_secret`` and so on) provide defaults; environment variables
    always win.
    """

    env = os.environ if environ is None else environ

    file_values: Dict[str, Any] = {}
    config_env = env.get(f"{ENV_PREFIX}CONFIG")
    if config_env:
        file_values = load_config_file(Path(config_env).expanduser())

    def lookup(key: str) -> Optional[str]:
        value = env.get(f"{ENV_PREFIX}{key.upper()}")
        if value is not None:
            return value
        raw = file_values.get(key)
        return None if raw is None else str(raw)

    rounds = _env_int("bcrypt_rounds", lookup("bcrypt_rounds"), DEFAULT_BCRYPT_ROUNDS)
    if not 4 <= rounds <= 31:
        raise ConfigurationError("bcrypt_rounds must be between 4 and 31")

    ttl_days = _env_int("token_ttl_days", lookup("token_ttl_days"), DEFAULT_TOKEN_TTL_DAYS)
    if ttl_days < 1:
        raise ConfigurationError("token_ttl_days must be at least 1")

    workers = _env_int("auth_workers", lookup("auth_workers"), DEFAULT_AUTH_WORKERS)
    if workers < 1:
        raise ConfigurationError("auth_workers must be at least 1")

    store = (lookup("store") or "sqlite").strip().lower()
    if store not in _STORE_BACKENDS:
        raise ConfigurationError(
            f"Unknown store backend {store!r}; expected one of {', '.join(sorted(_STORE_BACKENDS))}"
        )

    token_secret = (lookup("token_secret") or "").strip() or None
    gemini_api_key = (lookup("gemini_api_key") or "").strip() or None
    gemini_model = (lookup("gemini_model") or "").strip() or DEFAULT_GEMINI_MODEL

    return Settings(
        db_path=resolve_database_path(lookup("db_path")),
        token_secret=token_secret,
        token_ttl_days=ttl_days,
        bcrypt_rounds=rounds,
        auth_workers=workers,
        gemini_api_key=gemini_api_key,
        gemini_model=gemini_model,
        public_dir=_env_path(lookup("public_dir"), _project_root() / "public"),
        store=store,
        demo_images=_env_bool(lookup("demo_images"), True),
        trusted_proxies=(lookup("trusted_proxies") or "127.0.0.1").strip() or "127.0.0.1",
    )


__all__ = ["ENV_PREFIX", "Settings", "load_config_file", "load_settings"]
