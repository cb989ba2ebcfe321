"""Configuration centralisée (core) lue depuis l'environnement, avec validation minimale."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

DATASET_MODES_DEFAULT = "movements=client,users=client,products=server,stocks=server"
VALID_MODES = ("client", "server")


def _bool_env(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} doit être un nombre, reçu {raw!r}") from exc


def parse_dataset_modes(raw: str | None) -> dict[str, str]:
    """Parse ``"movements=client,products=server"`` into a mapping."""

    modes: dict[str, str] = {}
    for entry in (raw or "").split(","):
        name, sep, mode = entry.partition("=")
        name = name.strip().lower()
        mode = mode.strip().lower()
        if not name:
            continue
        if not sep or mode not in VALID_MODES:
            raise ValueError(f"Mode de source invalide pour '{name}': {mode or '?'} (client|server)")
        modes[name] = mode
    return modes


@dataclass(frozen=True)
class AppSettings:
    app_env: str = "development"
    stock_api_base_url: str = "http://localhost:8080"
    stock_api_timeout: float = 10.0
    dataset_cache_ttl: float = 60.0
    dataset_modes: Mapping[str, str] = field(default_factory=dict)
    cors_allowed_origins: list[str] = None
    jwt_secret_keys: list[str] = None
    export_dir: str = "exports"
    session_file: str = ".console_session.json"

    def mode_for(self, dataset: str) -> str:
        return self.dataset_modes.get(dataset, "client")

    @property
    def is_production(self) -> bool:
        return self.app_env in {"prod", "production", "staging"}

    @staticmethod
    def load() -> "AppSettings":
        cors_raw = os.getenv("CORS_ALLOWED_ORIGINS")
        cors = [entry.strip() for entry in cors_raw.split(",") if entry.strip()] if cors_raw else []
        jwt_raw = os.getenv("JWT_SECRET_KEYS") or os.getenv("JWT_SECRET_KEY") or ""
        jwt_keys = [entry.strip() for entry in jwt_raw.split(",") if entry.strip()]
        modes = parse_dataset_modes(DATASET_MODES_DEFAULT)
        modes.update(parse_dataset_modes(os.getenv("DATASET_MODES")))
        return AppSettings(
            app_env=os.getenv("APP_ENV", os.getenv("ENV", "development")).lower(),
            stock_api_base_url=os.getenv("STOCK_API_BASE_URL", "http://localhost:8080").rstrip("/"),
            stock_api_timeout=_float_env("STOCK_API_TIMEOUT", 10.0),
            dataset_cache_ttl=_float_env("DATASET_CACHE_TTL", 60.0),
            dataset_modes=MappingProxyType(modes),
            cors_allowed_origins=cors,
            jwt_secret_keys=jwt_keys,
            export_dir=os.getenv("EXPORT_DIR", "exports"),
            session_file=os.getenv("CONSOLE_SESSION_FILE", ".console_session.json"),
        )
