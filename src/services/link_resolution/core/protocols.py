"""
Protocols the resolution core depends on.

Kept free of any database driver so the core can be exercised with
in-memory relations.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Relation(Protocol):
    """A data source answering single field/value lookups."""

    @property
    def name(self) -> str: ...

    @property
    def field_ids(self) -> tuple[str, ...]: ...

    async def lookup(self, field: str, value: str) -> list[dict[str, str]]:
        """
        Return one mapping of field id to value per matched row.

        Raises:
            UnknownFieldError: If the relation does not declare `field`
            RelationLookupError: If the read or a column conversion fails
        """
        ...

    async def health(self) -> dict[str, Any]: ...

    async def close(self) -> None: ...
