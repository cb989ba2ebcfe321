"""Console endpoints: datasets, pages, exports and dashboard."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse

from core.datasets import DatasetDefinition
from core.query import InvalidQuerySpec
from core.remote import (
    DatasetCache,
    ExportError,
    RemoteServiceError,
    StockServiceClient,
    UnauthorizedError,
    UnsupportedExportFormat,
)
from backend.dependencies.console import get_dataset_cache, get_settings, get_stock_client, resolve_dataset
from backend.dependencies.security import AuthenticatedUser, get_current_user
from backend.schemas.console import DashboardResponse, DatasetListResponse, PageResponse
from backend.services import console as console_service
from backend.settings import Settings

router = APIRouter(prefix="/console", tags=["console"])


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Session expirée côté service de stock, reconnectez-vous",
        headers={"WWW-Authenticate": "Bearer"},
    )


@router.get("/datasets", response_model=DatasetListResponse)
def list_datasets(
    user: AuthenticatedUser = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
):
    items = console_service.list_datasets(token=user.upstream_token, roles=user.roles, settings=settings)
    return DatasetListResponse(items=items)


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(
    user: AuthenticatedUser = Depends(get_current_user),
    client: StockServiceClient = Depends(get_stock_client),
    settings: Settings = Depends(get_settings),
    cache: DatasetCache = Depends(get_dataset_cache),
):
    try:
        data = console_service.build_dashboard(client=client, settings=settings, cache=cache, scope=user.username)
    except UnauthorizedError as exc:
        raise _unauthorized() from exc
    return DashboardResponse(**data)


@router.get("/{dataset}", response_model=PageResponse)
def get_dataset_page(
    request: Request,
    definition: DatasetDefinition = Depends(resolve_dataset),
    user: AuthenticatedUser = Depends(get_current_user),
    client: StockServiceClient = Depends(get_stock_client),
    settings: Settings = Depends(get_settings),
    cache: DatasetCache = Depends(get_dataset_cache),
):
    """Page filtrée/triée d'un jeu de données (`q`, `page`, `size`, `sort`, `from`, `to`, filtres)."""

    try:
        spec = console_service.build_spec(definition, request.query_params)
        data = console_service.fetch_page(
            definition, spec, client=client, settings=settings, cache=cache, scope=user.username
        )
    except InvalidQuerySpec as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except UnauthorizedError as exc:
        raise _unauthorized() from exc
    except RemoteServiceError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return PageResponse(**data)


@router.get("/{dataset}/export")
def export_dataset(
    request: Request,
    export_format: str = Query(default="xlsx", alias="format", pattern="^(pdf|xlsx|csv)$"),
    definition: DatasetDefinition = Depends(resolve_dataset),
    user: AuthenticatedUser = Depends(get_current_user),
    client: StockServiceClient = Depends(get_stock_client),
    cache: DatasetCache = Depends(get_dataset_cache),
):
    """Stream the export for the current filters (sans pagination)."""

    try:
        spec = console_service.build_spec(definition, request.query_params)
        artifact = console_service.export_dataset(
            definition, export_format, spec, client=client, cache=cache, scope=user.username
        )
    except InvalidQuerySpec as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except UnauthorizedError as exc:
        raise _unauthorized() from exc
    except UnsupportedExportFormat as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ExportError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except RemoteServiceError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    return StreamingResponse(
        iter([artifact.content]),
        media_type=artifact.media_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
    )
