"""Jetons de session de la console (JWT signé) et dépendances d'authentification.

Le jeton porte l'utilisateur, ses rôles normalisés et le credential du service
de stock (claim ``upstream``). Plusieurs clés peuvent être configurées : la
première signe, toutes vérifient, ce qui permet une rotation sans coupure.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, Field

from core.roles import has_role, normalize_roles
from backend.settings import Settings


DEFAULT_SECRET = "change-me-in-prod-stock-console-default-secret"
MIN_SECRET_LENGTH = 32

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


class AuthenticatedUser(BaseModel):
    """User context extracted from a console access token."""

    username: str
    roles: list[str] = Field(default_factory=list)
    upstream_token: str = Field(repr=False)
    jti: str | None = None
    expires_at: float | None = None

    def has_role(self, role: str) -> bool:
        return has_role(self.roles, role)


def signing_keys(settings: Settings) -> list[str]:
    """Clés JWT configurées ; la clé par défaut n'est tolérée que hors production."""

    keys = list(settings.jwt_secret_keys or [])
    if not keys:
        if settings.is_production and not settings.allow_insecure_jwt_default:
            raise RuntimeError("JWT_SECRET_KEY manquant : refuse de démarrer en environnement sensible")
        logger.warning("Clé JWT par défaut utilisée ; définir JWT_SECRET_KEY(S) en production")
        keys = [DEFAULT_SECRET]
    if any(len(key) < MIN_SECRET_LENGTH for key in keys):
        raise RuntimeError("JWT secret trop court (<32 caractères). Générez une clé robuste.")
    return keys


_SETTINGS = Settings.load()
_KEYS = signing_keys(_SETTINGS)
ACCESS_TOKEN_EXPIRE_MINUTES = _SETTINGS.access_token_expire_minutes


class RevokedSessions:
    """jti révoqués, conservés jusqu'à l'expiration de leur jeton."""

    def __init__(self, clock=time.time):
        self._clock = clock
        self._entries: dict[str, float] = {}
        self._lock = threading.Lock()

    def add(self, jti: str, expires_at: float) -> None:
        with self._lock:
            self._entries[jti] = expires_at

    def __contains__(self, jti: str) -> bool:
        now = self._clock()
        with self._lock:
            for key in [key for key, cutoff in self._entries.items() if cutoff <= now]:
                del self._entries[key]
            return jti in self._entries

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


REVOKED = RevokedSessions()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_session_token(
    username: str, roles: Any, upstream_token: str, expires_delta: timedelta | None = None
) -> str:
    """Console token: the user, its normalized roles and the stock service credential."""

    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {
        "sub": username,
        "roles": sorted(normalize_roles(roles)),
        "upstream": upstream_token,
        "exp": expire,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, _KEYS[0], algorithm=_SETTINGS.jwt_algorithm)


def _decode_token(token: str) -> dict[str, Any]:
    last_error: Exception | None = None
    for key in _KEYS:
        try:
            payload = jwt.decode(token, key, algorithms=[_SETTINGS.jwt_algorithm])
        except jwt.ExpiredSignatureError as exc:
            raise _unauthorized("Token expiré") from exc
        except jwt.InvalidTokenError as exc:
            last_error = exc
            continue
        if str(payload.get("jti") or "") in REVOKED:
            raise _unauthorized("Token révoqué")
        return payload

    raise _unauthorized("Token invalide") from last_error


def get_current_user(token: str = Depends(oauth2_scheme)) -> AuthenticatedUser:
    payload = _decode_token(token)
    username = payload.get("sub")
    upstream_token = payload.get("upstream")
    if not username or not upstream_token:
        raise _unauthorized("Token manquant des informations nécessaires")

    exp = payload.get("exp")
    return AuthenticatedUser(
        username=str(username),
        roles=sorted(normalize_roles(payload.get("roles"))),
        upstream_token=str(upstream_token),
        jti=payload.get("jti"),
        expires_at=float(exp) if exp is not None else None,
    )


def revoke_session(user: AuthenticatedUser) -> None:
    """Révoque le token courant (logout ou credential amont rejeté)."""

    if not user.jti:
        return
    REVOKED.add(user.jti, user.expires_at or time.time() + ACCESS_TOKEN_EXPIRE_MINUTES * 60)
    logger.info("Session révoquée pour %s", user.username)
