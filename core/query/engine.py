"""
Query Engine - in-memory filter, search, sort and pagination over projected rows.

The stages always run in the same order:

    date range -> field filters -> free-text search -> sort -> paginate

so a page computed here matches the page a paginated server would return for
the same query. Rows with missing or malformed values drop out of the stage
that needs them; nothing in a single row can fail the whole evaluation.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Mapping, Sequence

from core.timestamps import parse_timestamp

from .models import DateRange, InvalidQuerySpec, QuerySpec, ResultPage, Row, SortSpec, paginate
from .schema import DatasetSchema, FieldKind

_TRUE_TOKENS = {"true", "1", "yes", "on"}
_FALSE_TOKENS = {"false", "0", "no", "off"}

_NULL_KEY: tuple = (0,)
_MAX_PLAIN_EXPONENT = 64


def _as_number(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, int):
        number = Decimal(value)
    else:
        # floats go through their shortest repr so 0.1 and "0.1" agree
        text = repr(value) if isinstance(value, float) else str(value).strip()
        if not text:
            return None
        try:
            number = Decimal(text)
        except (InvalidOperation, ValueError):
            return None
    if number.is_nan():
        return None
    return number


def _number_token(number: Decimal) -> str:
    # Exact decimal text, no float round-trip: ids above 2**53 stay distinct.
    if not number.is_finite() or abs(number.adjusted()) > _MAX_PLAIN_EXPONENT:
        return str(number)
    text = format(number, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def filter_token(value: Any, kind: FieldKind | None = None) -> str | None:
    """Canonical text used for exact-match filtering; None means "no value"."""

    if value is None:
        return None
    if kind is FieldKind.BOOLEAN or isinstance(value, bool):
        if isinstance(value, bool):
            return "true" if value else "false"
        text = str(value).strip().lower()
        if text in _TRUE_TOKENS:
            return "true"
        if text in _FALSE_TOKENS:
            return "false"
        return text or None
    if kind in (FieldKind.NUMBER, FieldKind.IDENTIFIER) or isinstance(value, (int, float, Decimal)):
        number = _as_number(value)
        if number is not None:
            return _number_token(number)
        if isinstance(value, (float, Decimal)):
            return None
    if kind is FieldKind.DATE or isinstance(value, datetime):
        instant = parse_timestamp(value)
        return instant.isoformat() if instant is not None else None
    text = str(value).strip()
    return text or None


def _sort_value(value: Any, kind: FieldKind | None) -> tuple | None:
    """Comparable key for one value, or None when the value sorts as null."""

    if value is None:
        return None
    if kind is FieldKind.NUMBER:
        number = _as_number(value)
        return None if number is None else (number,)
    if kind is FieldKind.DATE:
        instant = parse_timestamp(value)
        return None if instant is None else (instant,)
    if kind is FieldKind.BOOLEAN:
        token = filter_token(value, FieldKind.BOOLEAN)
        if token not in ("true", "false"):
            return None
        return (token == "true",)
    if kind is FieldKind.TEXT:
        return (str(value),)
    # Identifiers and undeclared fields: numbers first (numeric order), then text.
    if isinstance(value, datetime):
        instant = parse_timestamp(value)
        return None if instant is None else (2, instant.isoformat())
    number = _as_number(value)
    if number is not None:
        return (0, number)
    return (1, str(value))


class QueryEngine:
    """Evaluate query specifications against row snapshots of one dataset."""

    def __init__(self, schema: DatasetSchema):
        self.schema = schema

    def evaluate(self, rows: Iterable[Row], spec: QuerySpec) -> ResultPage[Row]:
        """Return the requested page of rows matching ``spec``."""

        return paginate(self.select(rows, spec), page=spec.page, size=spec.size)

    def select(self, rows: Iterable[Row], spec: QuerySpec) -> tuple[Row, ...]:
        """Every row matching ``spec``, in sorted order, without pagination."""

        snapshot: Sequence[Row] = tuple(rows)
        matched = self.filter_by_date(snapshot, spec.date_range)
        matched = self.filter_by_fields(matched, spec.filters)
        matched = self.filter_by_search(matched, spec.search_term)
        return self.sort(matched, spec.sort)

    def filter_by_date(self, rows: Sequence[Row], date_range: DateRange | None) -> Sequence[Row]:
        if date_range is None:
            return rows
        date_field = self.schema.date_field
        if date_field is None:
            raise InvalidQuerySpec(f"Le jeu '{self.schema.name}' n'a pas de champ date filtrable")

        kept = []
        for row in rows:
            instant = parse_timestamp(row.get(date_field))
            if instant is not None and date_range.contains(instant):
                kept.append(row)
        return kept

    def filter_by_fields(self, rows: Sequence[Row], filters: Mapping[str, Any]) -> Sequence[Row]:
        active: list[tuple[str, FieldKind | None, str]] = []
        for name, required in filters.items():
            kind = self.schema.kind_of(name)
            token = filter_token(required, kind)
            if token is not None:
                active.append((name, kind, token))
        if not active:
            return rows

        return [
            row
            for row in rows
            if all(filter_token(row.get(name), kind) == token for name, kind, token in active)
        ]

    def filter_by_search(self, rows: Sequence[Row], term: str) -> Sequence[Row]:
        if not term or not term.strip():
            return rows
        needle = term.lower()
        searchable = self.schema.searchable
        return [row for row in rows if self._row_matches(row, searchable, needle)]

    @staticmethod
    def _row_matches(row: Row, fields: Sequence[str], needle: str) -> bool:
        for name in fields:
            value = row.get(name)
            if value is None:
                continue
            text = str(value)
            if text and needle in text.lower():
                return True
        return False

    def sort(self, rows: Sequence[Row], sort: SortSpec) -> tuple[Row, ...]:
        # sorted() is stable, including with reverse=True, so ties keep their
        # input order in both directions. Nulls get the lowest key: first
        # ascending, last descending.
        return tuple(sorted(rows, key=self._key_for(sort.field), reverse=sort.descending))

    def _key_for(self, name: str) -> Callable[[Row], tuple]:
        kind = self.schema.kind_of(name)

        def _key(row: Row) -> tuple:
            value = _sort_value(row.get(name), kind)
            if value is None:
                return _NULL_KEY
            return (1, value)

        return _key


def evaluate(rows: Iterable[Row], spec: QuerySpec, schema: DatasetSchema) -> ResultPage[Row]:
    return QueryEngine(schema).evaluate(rows, spec)


__all__ = ["QueryEngine", "evaluate", "filter_token"]
