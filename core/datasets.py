"""Registry of the datasets shown by the console (movements, products, stocks, users)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from core.projection import (
    Projector,
    project_movement,
    project_product,
    project_stock,
    project_user,
)
from core.query import DatasetSchema, DateRange, FieldKind, InvalidQuerySpec, QuerySpec, SortSpec


class UnknownDatasetError(ValueError):
    """Raised when a dataset name is not registered."""


@dataclass(frozen=True)
class DatasetDefinition:
    """Everything needed to fetch, project, query and export one dataset."""

    schema: DatasetSchema
    projector: Projector
    default_sort: SortSpec
    filter_fields: tuple[str, ...] = ()
    bulk_path: str | None = None
    bulk_params: Mapping[str, Any] = field(default_factory=dict)
    page_path: str | None = None
    export_basename: str = ""
    export_formats: tuple[str, ...] = ()
    required_role: str | None = None

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def report_path_template(self) -> str:
        return f"/reports/{self.name}.{{fmt}}"

    def make_spec(
        self,
        *,
        search: str | None = None,
        filters: Mapping[str, Any] | None = None,
        date_from: Any = None,
        date_to: Any = None,
        sort: str | SortSpec | None = None,
        page: int = 0,
        size: int = 10,
    ) -> QuerySpec:
        """Build a QuerySpec for this dataset, rejecting fields it does not know."""

        if sort is None or (isinstance(sort, str) and not sort.strip()):
            sort_spec = self.default_sort
        elif isinstance(sort, SortSpec):
            sort_spec = sort
        else:
            sort_spec = SortSpec.parse(sort)
        if not self.schema.has_field(sort_spec.field):
            raise InvalidQuerySpec(f"Tri impossible sur '{sort_spec.field}' pour {self.name}")

        unknown = sorted(set(filters or {}) - set(self.filter_fields))
        if unknown:
            raise InvalidQuerySpec(f"Filtres non supportés pour {self.name}: {', '.join(unknown)}")

        date_range = DateRange.parse(date_from, date_to)
        if date_range is not None and self.schema.date_field is None:
            raise InvalidQuerySpec(f"Le jeu '{self.name}' ne se filtre pas par date")

        return QuerySpec(
            sort=sort_spec,
            page=page,
            size=size,
            search=search,
            filters=dict(filters or {}),
            date_range=date_range,
        )


MOVEMENTS = DatasetDefinition(
    schema=DatasetSchema(
        name="movements",
        fields={
            "movementDate": FieldKind.DATE,
            "movementType": FieldKind.TEXT,
            "productId": FieldKind.IDENTIFIER,
            "productName": FieldKind.TEXT,
            "warehouseId": FieldKind.IDENTIFIER,
            "warehouseName": FieldKind.TEXT,
            "quantity": FieldKind.NUMBER,
            "unitPrice": FieldKind.NUMBER,
            "user": FieldKind.TEXT,
            "note": FieldKind.TEXT,
        },
        searchable=("productName", "warehouseName", "user", "note"),
        date_field="movementDate",
    ),
    projector=project_movement,
    default_sort=SortSpec("movementDate", "DESC"),
    filter_fields=("warehouseId", "productId", "movementType"),
    bulk_path="/api/movements",
    page_path="/api/stock-movements",
    export_basename="stock_movements",
    export_formats=("pdf", "xlsx"),
)

PRODUCTS = DatasetDefinition(
    schema=DatasetSchema(
        name="products",
        fields={
            "productCode": FieldKind.TEXT,
            "name": FieldKind.TEXT,
            "categoryId": FieldKind.IDENTIFIER,
            "categoryName": FieldKind.TEXT,
            "unit": FieldKind.TEXT,
            "createdAt": FieldKind.DATE,
        },
        searchable=("productCode", "name", "categoryName"),
        date_field="createdAt",
    ),
    projector=project_product,
    default_sort=SortSpec("id", "DESC"),
    filter_fields=("categoryId", "unit"),
    bulk_path="/api/products",
    bulk_params={"page": 0, "size": 10_000},
    page_path="/api/products",
    export_basename="products",
    export_formats=("pdf", "xlsx"),
)

STOCKS = DatasetDefinition(
    schema=DatasetSchema(
        name="stocks",
        fields={
            "productId": FieldKind.IDENTIFIER,
            "productName": FieldKind.TEXT,
            "warehouseId": FieldKind.IDENTIFIER,
            "warehouseName": FieldKind.TEXT,
            "quantity": FieldKind.NUMBER,
            "unit": FieldKind.TEXT,
        },
        searchable=("productName", "warehouseName"),
    ),
    projector=project_stock,
    default_sort=SortSpec("id", "ASC"),
    filter_fields=("warehouseId", "productId"),
    bulk_path="/api/stocks",
    bulk_params={"page": 0, "size": 10_000},
    page_path="/api/stocks",
    export_basename="stocks",
    export_formats=("pdf", "xlsx"),
)

USERS = DatasetDefinition(
    schema=DatasetSchema(
        name="users",
        fields={
            "username": FieldKind.TEXT,
            "roles": FieldKind.TEXT,
            "enabled": FieldKind.BOOLEAN,
            "createdAt": FieldKind.DATE,
        },
        searchable=("username", "roles"),
        date_field="createdAt",
    ),
    projector=project_user,
    default_sort=SortSpec("id", "ASC"),
    filter_fields=("enabled",),
    bulk_path="/api/users",
    export_basename="users",
    required_role="ADMIN",
)

DATASETS: Dict[str, DatasetDefinition] = {
    definition.name: definition for definition in (MOVEMENTS, PRODUCTS, STOCKS, USERS)
}


def get_dataset(name: str) -> DatasetDefinition:
    definition = DATASETS.get((name or "").strip().lower())
    if definition is None:
        raise UnknownDatasetError(f"Jeu de données inconnu: {name}")
    return definition


__all__ = [
    "DATASETS",
    "DatasetDefinition",
    "MOVEMENTS",
    "PRODUCTS",
    "STOCKS",
    "USERS",
    "UnknownDatasetError",
    "get_dataset",
]
