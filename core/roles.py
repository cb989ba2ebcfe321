"""Normalisation des rôles et contrôle d'accès aux écrans de la console."""

from __future__ import annotations

from typing import Any, Iterable

ROLE_PREFIX = "ROLE_"


def normalize_role(value: Any) -> str | None:
    """``"role_admin"``, ``"ROLE_ADMIN"`` et ``"Admin"`` deviennent tous ``"ADMIN"``."""

    if value is None:
        return None
    text = str(value).strip().upper()
    if text.startswith(ROLE_PREFIX):
        text = text[len(ROLE_PREFIX):].strip()
    return text or None


def normalize_roles(raw: Any) -> frozenset[str]:
    """Accept a comma-joined string or a list of roles; anything else yields no role."""

    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        parts: Iterable[Any] = raw.split(",")
    elif isinstance(raw, (list, tuple, set, frozenset)):
        parts = raw
    else:
        return frozenset()

    roles = set()
    for part in parts:
        role = normalize_role(part)
        if role:
            roles.add(role)
    return frozenset(roles)


def has_role(roles: Any, required: str) -> bool:
    wanted = normalize_role(required)
    if wanted is None:
        return False
    return wanted in normalize_roles(roles)


def is_permitted(token: str | None, roles: Any, required_role: str | None = None) -> bool:
    """Route guard: a credential is always required, a role only when one is asked for."""

    if not token:
        return False
    if required_role is None:
        return True
    return has_role(roles, required_role)


def format_roles(roles: Iterable[str]) -> str:
    return ",".join(sorted(roles))


__all__ = [
    "ROLE_PREFIX",
    "format_roles",
    "has_role",
    "is_permitted",
    "normalize_role",
    "normalize_roles",
]
