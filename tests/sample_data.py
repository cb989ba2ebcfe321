"""Reusable sample records for console tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from core.datasets import MOVEMENTS
from core.projection import project_all

BASE_DATE = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
WAREHOUSE_7_INDEXES = (2, 9, 14, 20)
PRODUCTS = [
    (1, "Eau gazeuse 1L"),
    (2, "Pâtes complètes"),
    (3, "Huile d'olive"),
    (4, "Café moulu"),
    (5, "Riz basmati"),
]
WAREHOUSES = {1: "Entrepôt Nord", 2: "Entrepôt Sud", 7: "Dépôt Central"}


def movement_date(index: int) -> datetime:
    # 23 mouvements espacés de 10h : un peu plus de 9 jours, donc 10 jours calendaires.
    return BASE_DATE + timedelta(hours=10 * index)


def make_movement_records(count: int = 23) -> list[dict[str, Any]]:
    """Nested movement records as returned by the bulk endpoint; ids follow the dates."""

    records = []
    for index in range(count):
        product_id, product_name = PRODUCTS[index % len(PRODUCTS)]
        warehouse_id = 7 if index in WAREHOUSE_7_INDEXES else (index % 2) + 1
        records.append(
            {
                "id": index + 1,
                "movementDate": movement_date(index).strftime("%Y-%m-%dT%H:%M:%S"),
                "movementType": "IN" if index % 2 == 0 else "OUT",
                "product": {"id": product_id, "name": product_name},
                "warehouse": {"id": warehouse_id, "name": WAREHOUSES[warehouse_id]},
                "quantity": index + 1,
                "unitPrice": "2.50" if index % 3 == 0 else 4,
                "user": {"username": "alice" if index % 2 == 0 else "bob"},
                "note": "inventaire tournant" if index % 4 == 0 else None,
            }
        )
    return records


def make_flat_movement_records(count: int = 23) -> list[dict[str, Any]]:
    """Same movements in the flat shape of the paginated endpoint."""

    flat = []
    for record in make_movement_records(count):
        flat.append(
            {
                "id": record["id"],
                "movementDate": record["movementDate"],
                "movementType": record["movementType"],
                "productId": record["product"]["id"],
                "productName": record["product"]["name"],
                "warehouseId": record["warehouse"]["id"],
                "warehouseName": record["warehouse"]["name"],
                "quantity": record["quantity"],
                "unitPrice": record["unitPrice"],
                "user": record["user"]["username"],
                "note": record["note"],
            }
        )
    return flat


def make_movement_rows(count: int = 23):
    return project_all(make_movement_records(count), MOVEMENTS.projector)


def make_product_records() -> list[dict[str, Any]]:
    return [
        {
            "id": product_id,
            "productCode": f"P-{product_id:03d}",
            "name": name,
            "category": {"id": 10 + product_id % 2, "name": "Boissons" if product_id % 2 else "Epicerie"},
            "unit": "pcs",
            "createdAt": "2024-01-0%dT10:00:00" % product_id,
        }
        for product_id, name in PRODUCTS
    ]


def make_user_records() -> list[dict[str, Any]]:
    return [
        {"id": 1, "username": "alice", "roles": "ROLE_ADMIN,ROLE_USER", "enabled": True},
        {"id": 2, "username": "bob", "roles": ["ROLE_USER"], "enabled": False},
        {"id": 3, "username": "carol", "roles": "user", "enabled": "true"},
    ]
