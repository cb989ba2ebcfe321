"""
Record Projector - flattens nested records of the stock service into Rows.

A movement arrives either nested (``{"product": {"id": 3, "name": ...}}``)
from the bulk endpoint or already flat (``{"productName": ...}``) from the
paginated one; both project to the same Row so that client-side and
server-side pages are interchangeable.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Mapping

from core.query import Row
from core.roles import format_roles, normalize_roles
from core.timestamps import parse_timestamp

logger = logging.getLogger(__name__)

Projector = Callable[[Mapping[str, Any]], Row]


def _nested(record: Mapping[str, Any], key: str, attr: str) -> Any:
    obj = record.get(key)
    if isinstance(obj, Mapping):
        return obj.get(attr)
    return None


def _pick(record: Mapping[str, Any], nested_key: str, attr: str, flat_key: str) -> Any:
    value = _nested(record, nested_key, attr)
    if value is None:
        value = record.get(flat_key)
    return value


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None


def _number(value: Any) -> int | float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return int(number) if number == number.to_integral_value() else float(number)


def _flag(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"true", "1", "yes", "on"}:
        return True
    if text in {"false", "0", "no", "off"}:
        return False
    return None


def _username(user: Any) -> Any:
    if isinstance(user, Mapping):
        return user.get("username")
    return user


def project_movement(record: Mapping[str, Any]) -> Row:
    return Row(
        id=record.get("id"),
        values={
            "movementDate": parse_timestamp(record.get("movementDate")),
            "movementType": _text(record.get("movementType")),
            "productId": _number(_pick(record, "product", "id", "productId")),
            "productName": _text(_pick(record, "product", "name", "productName")),
            "warehouseId": _number(_pick(record, "warehouse", "id", "warehouseId")),
            "warehouseName": _text(_pick(record, "warehouse", "name", "warehouseName")),
            "quantity": _number(record.get("quantity")),
            "unitPrice": _number(record.get("unitPrice")),
            "user": _optional_text(_username(record.get("user"))),
            "note": _optional_text(record.get("note")),
        },
    )


def project_product(record: Mapping[str, Any]) -> Row:
    return Row(
        id=record.get("id"),
        values={
            "productCode": _text(record.get("productCode")),
            "name": _text(record.get("name")),
            "categoryId": _number(_pick(record, "category", "id", "categoryId")),
            "categoryName": _text(_pick(record, "category", "name", "categoryName")),
            "unit": _text(record.get("unit")),
            "createdAt": parse_timestamp(record.get("createdAt")),
        },
    )


def project_stock(record: Mapping[str, Any]) -> Row:
    return Row(
        id=record.get("id"),
        values={
            "productId": _number(_pick(record, "product", "id", "productId")),
            "productName": _text(_pick(record, "product", "name", "productName")),
            "warehouseId": _number(_pick(record, "warehouse", "id", "warehouseId")),
            "warehouseName": _text(_pick(record, "warehouse", "name", "warehouseName")),
            "quantity": _number(record.get("quantity")),
            "unit": _text(record.get("unit")),
        },
    )


def project_user(record: Mapping[str, Any]) -> Row:
    return Row(
        id=record.get("id"),
        values={
            "username": _text(record.get("username")),
            "roles": format_roles(normalize_roles(record.get("roles"))),
            "enabled": _flag(record.get("enabled")),
            "createdAt": parse_timestamp(record.get("createdAt")),
        },
    )


def project_all(records: Iterable[Any], projector: Projector) -> tuple[Row, ...]:
    """Project a whole collection; entries that are not records are skipped."""

    rows = []
    skipped = 0
    for record in records or ():
        if not isinstance(record, Mapping):
            skipped += 1
            continue
        rows.append(projector(record))
    if skipped:
        logger.warning("%d entrée(s) ignorée(s) lors de la projection (format inattendu)", skipped)
    return tuple(rows)


__all__ = [
    "Projector",
    "project_all",
    "project_movement",
    "project_product",
    "project_stock",
    "project_user",
]
