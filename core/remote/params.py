"""Translation of a QuerySpec into the stock service's query parameters."""

from __future__ import annotations

from typing import Any

from core.query import QuerySpec, filter_token
from core.timestamps import format_transport_timestamp


def spec_to_params(spec: QuerySpec, *, paged: bool = True) -> dict[str, Any]:
    """``page``/``size``/``sort`` (``"field,direction"``), ``q``, filter keys and ``from``/``to``."""

    params: dict[str, Any] = {}
    if paged:
        params["page"] = spec.page
        params["size"] = spec.size
        params["sort"] = spec.sort.to_param()

    if spec.search_term:
        params["q"] = spec.search

    for key, value in spec.filters.items():
        token = filter_token(value)
        if token is not None:
            params[key] = token

    if spec.date_range is not None:
        if spec.date_range.start is not None:
            params["from"] = format_transport_timestamp(spec.date_range.start)
        if spec.date_range.end is not None:
            params["to"] = format_transport_timestamp(spec.date_range.end)
    return params


__all__ = ["spec_to_params"]
