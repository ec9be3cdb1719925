"""
Relation factory.

Opens one adapter per configured relation, choosing the backend from the
connection descriptor scheme.
"""

from __future__ import annotations

import logging

from ..config import LinkServiceConfig
from ..errors import RelationConnectionError
from ..schema import LinkSchema, RelationSpec
from .base import SqlRelation
from .database import PostgresRelation
from .sqlite import SqliteRelation

logger = logging.getLogger(__name__)

POSTGRES_SCHEMES = ("postgres://", "postgresql://")
SQLITE_SCHEME = "sqlite:"


async def open_relation(spec: RelationSpec, config: LinkServiceConfig) -> SqlRelation:
    """
    Open the adapter for one relation.

    Raises:
        RelationConnectionError: If the descriptor is unsupported or the
            data source is unreachable
    """
    if spec.connect.startswith(SQLITE_SCHEME):
        return await SqliteRelation.open(spec, timeout_seconds=config.sqlite_timeout_seconds)
    if spec.connect.startswith(POSTGRES_SCHEMES):
        return await PostgresRelation.open(
            spec,
            min_size=config.postgres_pool_min,
            max_size=config.postgres_pool_max,
        )
    raise RelationConnectionError(
        spec.name,
        spec.connect,
        "unsupported connection descriptor, expected sqlite: or postgresql://",
    )


async def open_relations(schema: LinkSchema, config: LinkServiceConfig) -> list[SqlRelation]:
    """
    Open every relation of the schema, in declaration order.

    Fails fast: on the first error the relations already opened are closed
    and the error is raised.
    """
    relations: list[SqlRelation] = []
    try:
        for spec in schema.relations:
            relations.append(await open_relation(spec, config))
    except Exception:
        await close_relations(relations)
        raise
    logger.info(f"Opened {len(relations)} relation(s)")
    return relations


async def close_relations(relations: list[SqlRelation]) -> None:
    for relation in relations:
        try:
            await relation.close()
        except Exception as e:
            logger.warning(f"Error closing relation {relation.name}: {e}")
