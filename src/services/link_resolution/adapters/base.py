"""
Shared logic for SQL-backed relations.

Builds the single parameterized SELECT a relation answers lookups with and
converts matched rows into field id to string mappings.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ..errors import RelationLookupError, UnknownFieldError
from ..schema import RelationSpec


class SqlRelation:
    """
    Base class for relations backed by a SQL table.

    Subclasses supply the placeholder style and the actual database access.
    """

    # Placeholder for the looked-up value, e.g. "?" or "$1"
    placeholder = "?"
    # Cast the compared expression to text (for strictly typed backends)
    compare_as_text = False

    def __init__(self, spec: RelationSpec):
        self._spec = spec
        self._queries: dict[str, str] = {}

    @property
    def spec(self) -> RelationSpec:
        return self._spec

    @property
    def name(self) -> str:
        return self._spec.name

    @property
    def field_ids(self) -> tuple[str, ...]:
        return self._spec.field_ids

    def build_query(self, field: str) -> str:
        """
        Build the lookup statement for `field`, cached per field.

        Raises:
            UnknownFieldError: If the relation does not declare `field`
        """
        sql = self._queries.get(field)
        if sql is not None:
            return sql

        condition = self._spec.expression(field)
        if condition is None:
            raise UnknownFieldError(field, relation=self.name)

        projection = ", ".join(f'({f.query}) AS "{f.id}"' for f in self._spec.fields)
        compared = f"({condition})::text" if self.compare_as_text else f"({condition})"
        sql = (
            f"SELECT {projection} FROM {self._spec.table_name} "
            f"WHERE {compared} = {self.placeholder}"
        )
        self._queries[field] = sql
        return sql

    def convert_rows(
        self,
        rows: Iterable[Iterable[tuple[str, Any]]],
        field: str,
        value: str,
    ) -> list[dict[str, str]]:
        """
        Convert matched rows to string mappings.

        NULL columns are left out of the row. Bytes must be UTF-8.

        Raises:
            RelationLookupError: If a column value cannot be converted
        """
        converted: list[dict[str, str]] = []
        for row in rows:
            out: dict[str, str] = {}
            for column, raw in row:
                if raw is None:
                    continue
                if isinstance(raw, (bytes, bytearray, memoryview)):
                    try:
                        out[column] = bytes(raw).decode("utf-8")
                    except UnicodeDecodeError as e:
                        raise RelationLookupError(
                            self.name,
                            field,
                            value,
                            f"failed to get field `{column}`: {e}",
                        ) from e
                else:
                    out[column] = str(raw)
            converted.append(out)
        return converted

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, table={self._spec.table_name!r})"
