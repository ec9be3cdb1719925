"""
Shared fixtures for link resolution unit tests.

Provides in-memory relations so the traversal engine can be tested
without any database.
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from src.services.link_resolution.errors import RelationLookupError, UnknownFieldError
from src.services.link_resolution.schema import FieldSpec


class FakeRelation:
    """
    In-memory relation over a list of rows.

    Records every lookup so tests can assert on call counts.
    """

    def __init__(
        self,
        name: str,
        field_ids: tuple[str, ...],
        rows: list[dict[str, str]] | None = None,
        fail_on: set[tuple[str, str]] | None = None,
        delay: float = 0.0,
        generator: Callable[[str, str], list[dict[str, str]]] | None = None,
    ):
        self._name = name
        self._field_ids = field_ids
        self._rows = rows or []
        self._fail_on = fail_on or set()
        self._delay = delay
        self._generator = generator
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def field_ids(self) -> tuple[str, ...]:
        return self._field_ids

    async def lookup(self, field: str, value: str) -> list[dict[str, str]]:
        if field not in self._field_ids:
            raise UnknownFieldError(field, relation=self._name)
        self.calls.append((field, value))
        if self._delay:
            await asyncio.sleep(self._delay)
        if (field, value) in self._fail_on:
            raise RelationLookupError(self._name, field, value, "boom")
        if self._generator is not None:
            return self._generator(field, value)
        return [
            {k: v for k, v in row.items() if k in self._field_ids}
            for row in self._rows
            if row.get(field) == value
        ]

    async def health(self) -> dict[str, Any]:
        return {"connected": True}

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_relation() -> type[FakeRelation]:
    """The FakeRelation class, for tests building their own relations."""
    return FakeRelation


@pytest.fixture
def linked_fields() -> list[FieldSpec]:
    """user_id and email expand, country is terminal."""
    return [
        FieldSpec(id="user_id", distinct=True),
        FieldSpec(id="email", distinct=True),
        FieldSpec(id="country", distinct=False),
    ]


@pytest.fixture
def users_relation() -> FakeRelation:
    return FakeRelation(
        "r1",
        ("user_id", "email"),
        rows=[
            {"user_id": "42", "email": "a@x.com"},
            {"user_id": "43", "email": "b@x.com"},
        ],
    )


@pytest.fixture
def accounts_relation() -> FakeRelation:
    return FakeRelation(
        "r2",
        ("email", "country"),
        rows=[
            {"email": "a@x.com", "country": "US"},
            {"email": "b@x.com", "country": "US"},
        ],
    )


@pytest.fixture
def sqlite_db(tmp_path: Path) -> Callable[[str, str, list[tuple]], Path]:
    """Factory creating a SQLite database file with one populated table."""

    def _create(filename: str, ddl: str, rows: list[tuple]) -> Path:
        path = tmp_path / filename
        conn = sqlite3.connect(path)
        try:
            conn.execute(ddl)
            if rows:
                placeholders = ", ".join("?" for _ in rows[0])
                table = ddl.split()[2]
                conn.executemany(f"INSERT INTO {table} VALUES ({placeholders})", rows)
            conn.commit()
        finally:
            conn.close()
        return path

    return _create
