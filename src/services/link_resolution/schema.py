"""
Schema Loader

Parses and validates the TOML document that declares the fields and the
relations exposing them. A schema that loads without raising satisfies every
invariant the index and adapters rely on.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import SchemaError

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"


class FieldSpec(BaseModel):
    """A logical attribute with a process-wide identity."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., pattern=IDENTIFIER_PATTERN)
    distinct: bool = Field(
        default=False,
        description="Whether discovered values of this field seed further lookups",
    )


class RelationFieldSpec(BaseModel):
    """One field exposed by a relation and the SQL expression producing it."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., pattern=IDENTIFIER_PATTERN)
    query: str = Field(..., min_length=1)


class RelationSpec(BaseModel):
    """An external table queried by single field/value lookups."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    connect: str = Field(..., min_length=1, description="Connection descriptor")
    table_name: str = Field(..., min_length=1)
    fields: tuple[RelationFieldSpec, ...] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_unique_field_ids(self) -> RelationSpec:
        seen: set[str] = set()
        for f in self.fields:
            if f.id in seen:
                raise ValueError(f"duplicate field `{f.id}` in relation `{self.name}`")
            seen.add(f.id)
        return self

    @property
    def field_ids(self) -> tuple[str, ...]:
        return tuple(f.id for f in self.fields)

    def expression(self, field_id: str) -> str | None:
        """Return the extraction expression for a field, or None."""
        for f in self.fields:
            if f.id == field_id:
                return f.query
        return None


class LinkSchema(BaseModel):
    """Root of the schema file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    listen: str = Field(default="127.0.0.1:3000")
    fields: tuple[FieldSpec, ...] = ()
    relations: tuple[RelationSpec, ...] = ()

    @model_validator(mode="after")
    def check_references(self) -> LinkSchema:
        field_ids: set[str] = set()
        for f in self.fields:
            if f.id in field_ids:
                raise ValueError(f"duplicate field `{f.id}`")
            field_ids.add(f.id)

        relation_names: set[str] = set()
        for r in self.relations:
            if r.name in relation_names:
                raise ValueError(f"duplicate relation name `{r.name}`")
            relation_names.add(r.name)
            for rf in r.fields:
                if rf.id not in field_ids:
                    raise ValueError(
                        f"undeclared field `{rf.id}` used in relation `{r.name}`, "
                        "you have to declare it in `fields`"
                    )
        return self

    def field(self, field_id: str) -> FieldSpec | None:
        for f in self.fields:
            if f.id == field_id:
                return f
        return None


def parse_schema(data: dict[str, Any], source: str | None = None) -> LinkSchema:
    """
    Validate a decoded schema document.

    Raises:
        SchemaError: If the document violates any schema invariant
    """
    try:
        return LinkSchema.model_validate(data)
    except ValidationError as e:
        raise SchemaError(_format_validation_error(e), path=source) from e


def load_schema(path: str | Path) -> LinkSchema:
    """
    Read and validate a TOML schema file.

    Args:
        path: Path to the schema file

    Returns:
        Validated LinkSchema

    Raises:
        SchemaError: If the file cannot be read, decoded or validated
    """
    path = Path(path)
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise SchemaError(f"failed to read toml file: {e}", path=str(path)) from e
    except tomllib.TOMLDecodeError as e:
        raise SchemaError(f"failed to decode toml file: {e}", path=str(path)) from e

    schema = parse_schema(data, source=str(path))
    logger.info(
        f"Loaded schema from {path}: "
        f"{len(schema.fields)} fields, {len(schema.relations)} relations"
    )
    return schema


def parse_listen(listen: str) -> tuple[str, int]:
    """
    Split a `host:port` bind address.

    Raises:
        SchemaError: If the address has no valid port
    """
    host, sep, port = listen.rpartition(":")
    if not sep or not port.isdigit():
        raise SchemaError(f"invalid listen address `{listen}`, expected host:port")
    host = host.strip("[]") or "0.0.0.0"
    return host, int(port)


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"])
        msg = err["msg"].removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)
