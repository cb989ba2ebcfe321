"""Schemas for the console datasets, pages and dashboard."""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, Field


class DatasetInfo(BaseModel):
    name: str
    mode: str = Field(description="client | server")
    fields: Dict[str, str]
    searchable: List[str]
    date_field: str | None = None
    filters: List[str]
    default_sort: str
    export_formats: List[str]


class DatasetListResponse(BaseModel):
    items: List[DatasetInfo]


class PageResponse(BaseModel):
    """Même forme qu'une page Spring, pour que le front consomme les deux modes à l'identique."""

    content: List[Dict[str, Any]]
    number: int
    size: int
    totalPages: int
    totalElements: int


class DashboardResponse(BaseModel):
    metrics: Dict[str, Any] = Field(default_factory=dict)
    recent_movements: List[Dict[str, Any]] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


__all__ = ["DashboardResponse", "DatasetInfo", "DatasetListResponse", "PageResponse"]
