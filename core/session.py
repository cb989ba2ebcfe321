"""
Session de la console : connexion au service de stock, stockage du jeton,
normalisation des rôles et signal « non autorisé ».

Un 401/403 renvoyé par le service invalide la session et prévient l'unique
propriétaire enregistré via ``on_unauthorized``. Toute requête suivante lève
``NotAuthenticated`` jusqu'à une nouvelle connexion.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol

import httpx

from core.remote.client import RemoteServiceError, StockServiceClient
from core.roles import format_roles, has_role, is_permitted, normalize_roles

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"


class NotAuthenticated(Exception):
    """No valid session: log in first."""


@dataclass(frozen=True)
class SessionState:
    token: str
    username: str
    roles: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(self, "roles", normalize_roles(self.roles))

    def to_dict(self) -> dict[str, Any]:
        return {"token": self.token, "username": self.username, "roles": format_roles(self.roles)}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SessionState | None":
        token = payload.get("token")
        if not token:
            return None
        return cls(
            token=str(token),
            username=str(payload.get("username") or ""),
            roles=normalize_roles(payload.get("roles")),
        )


class TokenStore(Protocol):
    def load(self) -> SessionState | None:
        ...

    def save(self, state: SessionState) -> None:
        ...

    def clear(self) -> None:
        ...


class MemoryTokenStore:
    def __init__(self, state: SessionState | None = None):
        self._state = state

    def load(self) -> SessionState | None:
        return self._state

    def save(self, state: SessionState) -> None:
        self._state = state

    def clear(self) -> None:
        self._state = None


class FileTokenStore:
    """Persist the session as JSON so that successive CLI invocations share it."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> SessionState | None:
        if not self.path.exists():
            return None
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Fichier de session illisible (%s): %s", self.path, exc)
            return None
        if not isinstance(payload, Mapping):
            return None
        return SessionState.from_dict(payload)

    def save(self, state: SessionState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(state.to_dict()), encoding="utf-8")

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class ConsoleSession:
    """Logged-in user of the console, shared by every remote call it makes."""

    def __init__(
        self,
        base_url: str,
        *,
        store: TokenStore | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self._store: TokenStore = store or MemoryTokenStore()
        self._listener: Callable[[], None] | None = None
        self._lock = threading.Lock()

    # --- state -----------------------------------------------------------------

    @property
    def state(self) -> SessionState | None:
        return self._store.load()

    @property
    def is_authenticated(self) -> bool:
        return self.state is not None

    @property
    def token(self) -> str | None:
        state = self.state
        return state.token if state else None

    @property
    def username(self) -> str | None:
        state = self.state
        return state.username if state else None

    @property
    def roles(self) -> frozenset[str]:
        state = self.state
        return state.roles if state else frozenset()

    def require(self) -> SessionState:
        state = self.state
        if state is None:
            raise NotAuthenticated("Session absente ou expirée, reconnectez-vous")
        return state

    def has_role(self, role: str) -> bool:
        return has_role(self.roles, role)

    def can_access(self, required_role: str | None = None) -> bool:
        return is_permitted(self.token, self.roles, required_role)

    # --- login / logout --------------------------------------------------------

    def login(self, username: str, password: str) -> SessionState:
        with StockServiceClient(self.base_url, timeout=self.timeout, transport=self._transport) as client:
            payload = client.post_json(LOGIN_PATH, {"username": username, "password": password})

        if not isinstance(payload, Mapping) or not payload.get("token"):
            raise RemoteServiceError("Réponse de connexion invalide: jeton manquant")

        state = SessionState(
            token=str(payload["token"]),
            username=str(payload.get("username") or username),
            roles=normalize_roles(payload.get("roles")),
        )
        self._store.save(state)
        logger.info("Connexion de %s (rôles: %s)", state.username, format_roles(state.roles) or "-")
        return state

    def logout(self) -> None:
        self._store.clear()

    def invalidate(self) -> None:
        """Drop the session after an unauthorized answer and notify the owner."""

        logger.warning("Session invalidée pour %s", self.username or "?")
        self._store.clear()
        listener = self._listener
        if listener is not None:
            listener()

    # --- unauthorized signal ---------------------------------------------------

    def on_unauthorized(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register the single owner of the unauthorized signal; returns an unsubscribe callable."""

        with self._lock:
            if self._listener is not None:
                raise RuntimeError("Un gestionnaire 'unauthorized' est déjà enregistré")
            self._listener = callback

        def _unsubscribe() -> None:
            with self._lock:
                if self._listener is callback:
                    self._listener = None

        return _unsubscribe

    # --- remote access ---------------------------------------------------------

    def _bearer(self) -> str:
        return self.require().token

    def client(self) -> StockServiceClient:
        """HTTP client bound to this session; raises NotAuthenticated without a login."""

        self.require()
        return StockServiceClient(
            self.base_url,
            token_provider=self._bearer,
            on_unauthorized=self.invalidate,
            timeout=self.timeout,
            transport=self._transport,
        )


__all__ = [
    "ConsoleSession",
    "FileTokenStore",
    "MemoryTokenStore",
    "NotAuthenticated",
    "SessionState",
    "TokenStore",
]
