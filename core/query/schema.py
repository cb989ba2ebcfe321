"""Field typing of a dataset, as seen by the query engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class FieldKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    IDENTIFIER = "identifier"


@dataclass(frozen=True)
class DatasetSchema:
    """Named fields of one dataset, its searchable text fields and its date field."""

    name: str
    fields: Mapping[str, FieldKind] = field(default_factory=dict)
    searchable: tuple[str, ...] = ()
    date_field: str | None = None

    def __post_init__(self) -> None:
        kinds = {"id": FieldKind.IDENTIFIER, **{key: FieldKind(value) for key, value in self.fields.items()}}
        unknown = [name for name in self.searchable if name not in kinds]
        if unknown:
            raise ValueError(f"Champs de recherche inconnus pour {self.name}: {unknown}")
        if self.date_field is not None and kinds.get(self.date_field) is not FieldKind.DATE:
            raise ValueError(f"{self.date_field} n'est pas un champ date de {self.name}")
        object.__setattr__(self, "fields", MappingProxyType(kinds))
        object.__setattr__(self, "searchable", tuple(self.searchable))

    def kind_of(self, name: str) -> FieldKind | None:
        return self.fields.get(name)

    def has_field(self, name: str) -> bool:
        return name in self.fields

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(self.fields)


__all__ = ["DatasetSchema", "FieldKind"]
