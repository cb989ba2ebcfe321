"""Console services: dataset pages, exports and dashboard over the stock service."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from core.datasets import DATASETS, MOVEMENTS, DatasetDefinition
from core.query import InvalidQuerySpec, QuerySpec, ResultPage, Row, SortSpec
from core.remote import (
    ClientSideDataSource,
    DatasetCache,
    ExportArtifact,
    ExportClient,
    RemoteServiceError,
    StockServiceClient,
    UnauthorizedError,
    UnsupportedExportFormat,
    build_data_source,
    export_csv,
)
from core.roles import is_permitted
from core.settings import AppSettings

logger = logging.getLogger(__name__)

RESERVED_PARAMS = {"q", "page", "size", "sort", "from", "to", "format"}
METRICS_PATH = "/api/dashboard/metrics"
RECENT_MOVEMENTS = 5


def describe_dataset(definition: DatasetDefinition, mode: str) -> dict[str, Any]:
    schema = definition.schema
    formats = list(definition.export_formats)
    if definition.bulk_path is not None:
        formats.append("csv")
    return {
        "name": definition.name,
        "mode": mode,
        "fields": {name: kind.value for name, kind in schema.fields.items()},
        "searchable": list(schema.searchable),
        "date_field": schema.date_field,
        "filters": list(definition.filter_fields),
        "default_sort": definition.default_sort.to_param(),
        "export_formats": formats,
    }


def list_datasets(*, token: str, roles: Any, settings: AppSettings) -> list[dict[str, Any]]:
    """Jeux de données visibles par l'utilisateur (les jeux réservés aux admins sont masqués)."""

    return [
        describe_dataset(definition, settings.mode_for(name))
        for name, definition in DATASETS.items()
        if is_permitted(token, roles, definition.required_role)
    ]


def _parse_int(name: str, raw: Any, default: int) -> int:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default
    try:
        return int(str(raw).strip())
    except ValueError as exc:
        raise InvalidQuerySpec(f"{name} doit être un entier, reçu {raw!r}") from exc


def build_spec(definition: DatasetDefinition, params: Mapping[str, Any]) -> QuerySpec:
    """Build a QuerySpec from raw query-string values; extra keys are dataset filters."""

    filters = {
        key: value
        for key, value in params.items()
        if key not in RESERVED_PARAMS and value is not None and str(value).strip() != ""
    }
    return definition.make_spec(
        search=params.get("q"),
        filters=filters,
        date_from=params.get("from"),
        date_to=params.get("to"),
        sort=params.get("sort"),
        page=_parse_int("page", params.get("page"), 0),
        size=_parse_int("size", params.get("size"), 10),
    )


def serialize_page(page: ResultPage[Row]) -> dict[str, Any]:
    return {
        "content": [row.as_dict() for row in page.content],
        "number": page.page_index,
        "size": page.size,
        "totalPages": page.page_count,
        "totalElements": page.total_count,
    }


def fetch_page(
    definition: DatasetDefinition,
    spec: QuerySpec,
    *,
    client: StockServiceClient,
    settings: AppSettings,
    cache: DatasetCache | None,
    scope: str,
) -> dict[str, Any]:
    source = build_data_source(
        definition,
        client,
        mode=settings.mode_for(definition.name),
        cache=cache,
        scope=scope,
    )
    page = source.query(spec)
    logger.debug(
        "%s (%s): page %d/%d, %d ligne(s)",
        definition.name,
        source.mode,
        page.page_index + 1,
        page.page_count,
        page.total_count,
    )
    return serialize_page(page)


def export_dataset(
    definition: DatasetDefinition,
    fmt: str,
    spec: QuerySpec,
    *,
    client: StockServiceClient,
    cache: DatasetCache | None,
    scope: str,
) -> ExportArtifact:
    """PDF/XLSX come from the stock service; CSV is rendered locally from every matching row."""

    fmt = (fmt or "").strip().lower()
    if fmt == "csv":
        if definition.bulk_path is None:
            raise UnsupportedExportFormat(f"Export CSV non disponible pour {definition.name}")
        source = ClientSideDataSource(definition, client, cache=cache, scope=scope)
        return export_csv(source.select(spec), definition)
    return ExportClient(client).fetch(definition, fmt, spec)


def build_dashboard(
    *,
    client: StockServiceClient,
    settings: AppSettings,
    cache: DatasetCache | None,
    scope: str,
) -> dict[str, Any]:
    """Métriques + derniers mouvements ; chaque bloc échoue indépendamment."""

    metrics: dict[str, Any] = {}
    recent: list[dict[str, Any]] = []
    errors: list[str] = []

    try:
        payload = client.get_json(METRICS_PATH)
        if isinstance(payload, Mapping):
            metrics = dict(payload)
    except UnauthorizedError:
        raise
    except RemoteServiceError as exc:
        logger.warning("Métriques indisponibles: %s", exc)
        errors.append(f"metrics: {exc}")

    spec = QuerySpec(sort=SortSpec("movementDate", "DESC"), page=0, size=RECENT_MOVEMENTS)
    try:
        page = build_data_source(
            MOVEMENTS,
            client,
            mode=settings.mode_for(MOVEMENTS.name),
            cache=cache,
            scope=scope,
        ).query(spec)
        recent = [row.as_dict() for row in page.content]
    except UnauthorizedError:
        raise
    except RemoteServiceError as exc:
        logger.warning("Mouvements récents indisponibles: %s", exc)
        errors.append(f"recent_movements: {exc}")

    return {"metrics": metrics, "recent_movements": recent, "errors": errors}
