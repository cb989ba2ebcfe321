"""Configuration applicative backend (API FastAPI) basée sur core.settings.AppSettings."""

from __future__ import annotations

import os

from core.settings import AppSettings as CoreSettings, _bool_env


class Settings(CoreSettings):
    allow_insecure_jwt_default: bool = False
    log_level: str = "INFO"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 120

    @staticmethod
    def load() -> "Settings":
        core = CoreSettings.load()
        allow_insecure = _bool_env("ALLOW_INSECURE_JWT_DEFAULT") or core.app_env in {"development", "dev", "test"}
        obj = Settings(
            app_env=core.app_env,
            stock_api_base_url=core.stock_api_base_url,
            stock_api_timeout=core.stock_api_timeout,
            dataset_cache_ttl=core.dataset_cache_ttl,
            dataset_modes=core.dataset_modes,
            cors_allowed_origins=core.cors_allowed_origins,
            jwt_secret_keys=core.jwt_secret_keys,
            export_dir=core.export_dir,
            session_file=core.session_file,
        )
        object.__setattr__(obj, "allow_insecure_jwt_default", allow_insecure)
        object.__setattr__(obj, "log_level", os.getenv("LOG_LEVEL", "INFO").upper())
        object.__setattr__(obj, "jwt_algorithm", os.getenv("JWT_ALGORITHM", "HS256"))
        object.__setattr__(
            obj, "access_token_expire_minutes", int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "120"))
        )
        return obj
