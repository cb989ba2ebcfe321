"""
Client-resident query engine.

Turns a full in-memory row collection plus a QuerySpec into one ResultPage,
with the same semantics as a server-side paginated endpoint.
"""

from .engine import QueryEngine, evaluate, filter_token
from .models import (
    DateRange,
    InvalidQuerySpec,
    QuerySpec,
    ResultPage,
    Row,
    SortDirection,
    SortSpec,
    page_count_for,
    paginate,
)
from .schema import DatasetSchema, FieldKind

__all__ = [
    # Engine
    "QueryEngine",
    "evaluate",
    "filter_token",
    # Models
    "DateRange",
    "InvalidQuerySpec",
    "QuerySpec",
    "ResultPage",
    "Row",
    "SortDirection",
    "SortSpec",
    "page_count_for",
    "paginate",
    # Schema
    "DatasetSchema",
    "FieldKind",
]
