"""
Field/Relation Index

Immutable routing table from a field id to the relations that expose it.
Built once at startup and shared by every request without locking.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from ..errors import SchemaError
from ..schema import FieldSpec
from .protocols import Relation


class FieldRelationIndex:
    """
    Maps field ids to relations, in relation declaration order.

    Example:
        index = FieldRelationIndex(schema.fields, relations)
        for relation in index.relations_for("email") or ():
            rows = await relation.lookup("email", "a@x.com")
    """

    def __init__(self, fields: Iterable[FieldSpec], relations: Iterable[Relation]):
        self._fields: Mapping[str, FieldSpec] = MappingProxyType({f.id: f for f in fields})

        by_name: dict[str, Relation] = {}
        by_field: dict[str, list[Relation]] = {}
        for relation in relations:
            if relation.name in by_name:
                raise SchemaError(f"duplicate relation name `{relation.name}`")
            if not relation.field_ids:
                raise SchemaError(f"relation `{relation.name}` does not have any field")
            by_name[relation.name] = relation
            for field_id in relation.field_ids:
                if field_id not in self._fields:
                    raise SchemaError(
                        f"undeclared field `{field_id}` used in relation `{relation.name}`"
                    )
                by_field.setdefault(field_id, []).append(relation)

        self._relations: Mapping[str, Relation] = MappingProxyType(by_name)
        self._by_field: Mapping[str, tuple[Relation, ...]] = MappingProxyType(
            {k: tuple(v) for k, v in by_field.items()}
        )

    def relations_for(self, field_id: str) -> tuple[Relation, ...] | None:
        """Relations exposing `field_id`, or None if no relation does."""
        return self._by_field.get(field_id)

    def is_distinct(self, field_id: str) -> bool:
        f = self._fields.get(field_id)
        return f is not None and f.distinct

    def relation(self, name: str) -> Relation | None:
        return self._relations.get(name)

    @property
    def relations(self) -> tuple[Relation, ...]:
        return tuple(self._relations.values())

    @property
    def field_ids(self) -> tuple[str, ...]:
        return tuple(self._fields)

    @property
    def indexed_field_ids(self) -> tuple[str, ...]:
        """Declared fields that at least one relation exposes."""
        return tuple(self._by_field)

    def __len__(self) -> int:
        return len(self._relations)
