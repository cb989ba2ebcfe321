"""Dependencies shared by the console routes: settings, cache, remote client, dataset."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Iterator

import httpx
from fastapi import Depends, HTTPException, status

from core.datasets import DatasetDefinition, UnknownDatasetError, get_dataset
from core.remote import DatasetCache, StockServiceClient
from core.roles import is_permitted
from backend.dependencies.security import AuthenticatedUser, get_current_user, revoke_session
from backend.settings import Settings

logger = logging.getLogger(__name__)


@lru_cache
def get_settings() -> Settings:
    return Settings.load()


_DATASET_CACHE: DatasetCache | None = None


def get_dataset_cache(settings: Settings = Depends(get_settings)) -> DatasetCache:
    """Process-wide snapshot cache, keyed by (username, dataset)."""

    global _DATASET_CACHE
    if _DATASET_CACHE is None:
        _DATASET_CACHE = DatasetCache(ttl_seconds=settings.dataset_cache_ttl)
    return _DATASET_CACHE


def get_stock_transport() -> httpx.BaseTransport | None:
    """Transport httpx utilisé vers le service de stock (None = réseau réel)."""

    return None


def get_stock_client(
    user: AuthenticatedUser = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    cache: DatasetCache = Depends(get_dataset_cache),
    transport: httpx.BaseTransport | None = Depends(get_stock_transport),
) -> Iterator[StockServiceClient]:
    """Client authentifié avec le credential amont de l'utilisateur courant.

    Un 401/403 amont révoque le token console et vide le cache de l'utilisateur.
    """

    def _on_unauthorized() -> None:
        revoke_session(user)
        cache.invalidate_scope(user.username)

    client = StockServiceClient(
        settings.stock_api_base_url,
        token_provider=lambda: user.upstream_token,
        on_unauthorized=_on_unauthorized,
        timeout=settings.stock_api_timeout,
        transport=transport,
    )
    try:
        yield client
    finally:
        client.close()


def resolve_dataset(dataset: str, user: AuthenticatedUser = Depends(get_current_user)) -> DatasetDefinition:
    try:
        definition = get_dataset(dataset)
    except UnknownDatasetError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    if not is_permitted(user.upstream_token, user.roles, definition.required_role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Rôle insuffisant pour accéder à cette ressource",
        )
    return definition
