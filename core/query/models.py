"""Value objects of the query engine: rows, query specifications and result pages."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Generic, Iterator, Mapping, Sequence, TypeVar

from core.timestamps import parse_timestamp

T = TypeVar("T")
U = TypeVar("U")


class InvalidQuerySpec(ValueError):
    """Raised when a query specification is malformed (caller bug, never coerced)."""


@dataclass(frozen=True)
class Row:
    """Flat, read-only projection of one source record."""

    id: Any
    values: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def get(self, name: str, default: Any = None) -> Any:
        if name == "id":
            return self.id
        return self.values.get(name, default)

    def __getitem__(self, name: str) -> Any:
        if name == "id":
            return self.id
        return self.values[name]

    def __contains__(self, name: object) -> bool:
        return name == "id" or name in self.values

    def as_dict(self) -> dict[str, Any]:
        return {"id": self.id, **self.values}


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"

    @classmethod
    def parse(cls, raw: "str | SortDirection | None") -> "SortDirection":
        if isinstance(raw, SortDirection):
            return raw
        if raw is None or not str(raw).strip():
            return cls.ASC
        try:
            return cls(str(raw).strip().upper())
        except ValueError as exc:
            raise InvalidQuerySpec(f"Direction de tri inconnue: {raw!r}") from exc


@dataclass(frozen=True)
class SortSpec:
    field: str
    direction: SortDirection = SortDirection.ASC

    def __post_init__(self) -> None:
        name = str(self.field or "").strip()
        if not name:
            raise InvalidQuerySpec("Champ de tri manquant")
        object.__setattr__(self, "field", name)
        object.__setattr__(self, "direction", SortDirection.parse(self.direction))

    @classmethod
    def parse(cls, raw: str) -> "SortSpec":
        """Parse the transport form ``"field,direction"`` (direction optional, ASC by default)."""

        name, _, direction = str(raw or "").partition(",")
        return cls(field=name, direction=SortDirection.parse(direction))

    @property
    def descending(self) -> bool:
        return self.direction is SortDirection.DESC

    def to_param(self) -> str:
        return f"{self.field},{self.direction.value.lower()}"


@dataclass(frozen=True)
class DateRange:
    """Inclusive instant bounds; either side may be open."""

    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:
        for name in ("start", "end"):
            raw = getattr(self, name)
            if raw is None:
                continue
            parsed = parse_timestamp(raw)
            if parsed is None:
                raise InvalidQuerySpec(f"Date invalide pour '{name}': {raw!r}")
            object.__setattr__(self, name, parsed)

    @classmethod
    def parse(cls, start: Any = None, end: Any = None) -> "DateRange | None":
        """Build a range from raw bounds; blank bounds are open, two blank bounds mean no range."""

        def _blank(value: Any) -> bool:
            return value is None or (isinstance(value, str) and not value.strip())

        if _blank(start) and _blank(end):
            return None
        return cls(start=None if _blank(start) else start, end=None if _blank(end) else end)

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, instant: datetime) -> bool:
        if self.start is not None and instant < self.start:
            return False
        if self.end is not None and instant > self.end:
            return False
        return True


@dataclass(frozen=True)
class QuerySpec:
    """Declarative state of one filtered, sorted and paginated view."""

    sort: SortSpec
    page: int = 0
    size: int = 10
    search: str | None = None
    filters: Mapping[str, Any] = field(default_factory=dict)
    date_range: DateRange | None = None

    def __post_init__(self) -> None:
        if isinstance(self.sort, str):
            object.__setattr__(self, "sort", SortSpec.parse(self.sort))
        elif not isinstance(self.sort, SortSpec):
            raise InvalidQuerySpec("sort doit être un SortSpec ou 'champ,direction'")
        _check_paging(self.page, self.size)
        object.__setattr__(self, "filters", MappingProxyType(dict(self.filters or {})))
        if self.date_range is not None and self.date_range.is_open:
            object.__setattr__(self, "date_range", None)

    @property
    def search_term(self) -> str:
        """Lower-cased term, surrounding spaces included; "" when blank."""
        if not (self.search or "").strip():
            return ""
        return self.search.lower()

    def with_page(self, page: int) -> "QuerySpec":
        return replace(self, page=page)


@dataclass(frozen=True)
class ResultPage(Generic[T]):
    """One page of results plus the metadata needed by pager controls."""

    content: tuple[T, ...]
    page_index: int
    page_count: int
    total_count: int
    size: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "content", tuple(self.content))

    @classmethod
    def empty(cls, size: int) -> "ResultPage[T]":
        return cls(content=(), page_index=0, page_count=1, total_count=0, size=size)

    @property
    def has_next(self) -> bool:
        return self.page_index < self.page_count - 1

    @property
    def has_previous(self) -> bool:
        return self.page_index > 0

    def __iter__(self) -> Iterator[T]:
        return iter(self.content)

    def __len__(self) -> int:
        return len(self.content)

    def map(self, func: Callable[[T], U]) -> "ResultPage[U]":
        return ResultPage(
            content=tuple(func(item) for item in self.content),
            page_index=self.page_index,
            page_count=self.page_count,
            total_count=self.total_count,
            size=self.size,
        )


def _check_paging(page: Any, size: Any) -> None:
    for name, value in (("page", page), ("size", size)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidQuerySpec(f"{name} doit être un entier, reçu {value!r}")
    if size < 1:
        raise InvalidQuerySpec(f"size doit être >= 1, reçu {size}")
    if page < 0:
        raise InvalidQuerySpec(f"page doit être >= 0, reçu {page}")


def page_count_for(total_count: int, size: int) -> int:
    return max(1, math.ceil(total_count / size))


def paginate(items: Sequence[T], *, page: int, size: int) -> ResultPage[T]:
    """Slice an ordered sequence, clamping the requested page into the valid range."""

    _check_paging(page, size)
    total = len(items)
    pages = page_count_for(total, size)
    index = min(page, pages - 1)
    start = index * size
    return ResultPage(
        content=tuple(items[start : start + size]),
        page_index=index,
        page_count=pages,
        total_count=total,
        size=size,
    )


__all__ = [
    "DateRange",
    "InvalidQuerySpec",
    "QuerySpec",
    "ResultPage",
    "Row",
    "SortDirection",
    "SortSpec",
    "page_count_for",
    "paginate",
]
