"""
PostgreSQL relation adapter.

Handles asyncpg connection pool management. One pool per relation, shared by
every concurrent request.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..errors import RelationConnectionError, RelationLookupError
from ..schema import RelationSpec
from .base import SqlRelation

if TYPE_CHECKING:
    import asyncpg

logger = logging.getLogger(__name__)


async def create_db_pool(
    postgres_url: str,
    min_size: int = 1,
    max_size: int = 10,
) -> asyncpg.Pool:
    """
    Create a PostgreSQL connection pool.

    Args:
        postgres_url: Connection URL
        min_size: Minimum connections
        max_size: Maximum connections

    Returns:
        asyncpg connection pool
    """
    import asyncpg

    logger.info(f"Creating database pool (min={min_size}, max={max_size})")
    pool = await asyncpg.create_pool(
        postgres_url,
        min_size=min_size,
        max_size=max_size,
    )
    logger.info("Database pool created")
    return pool


async def check_db_health(pool: asyncpg.Pool) -> dict:
    """
    Check database health.

    Returns:
        Health status dict
    """
    try:
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
        return {"connected": True, "backend": "postgres", "pool_size": pool.get_size()}
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {"connected": False, "backend": "postgres", "error": str(e)}


class PostgresRelation(SqlRelation):
    """Relation backed by a table reachable through an asyncpg pool."""

    placeholder = "$1"
    compare_as_text = True

    def __init__(self, spec: RelationSpec, pool: asyncpg.Pool):
        super().__init__(spec)
        self._pool = pool

    @classmethod
    async def open(
        cls,
        spec: RelationSpec,
        min_size: int = 1,
        max_size: int = 10,
    ) -> PostgresRelation:
        """
        Create the relation's pool and check the database is reachable.

        Raises:
            RelationConnectionError: If the pool cannot be created
        """
        if not spec.fields:
            raise RelationConnectionError(spec.name, spec.connect, "relation does not have any field")
        try:
            pool = await create_db_pool(spec.connect, min_size=min_size, max_size=max_size)
        except Exception as e:
            raise RelationConnectionError(spec.name, spec.connect, str(e)) from e

        relation = cls(spec, pool)
        health = await check_db_health(pool)
        if not health["connected"]:
            await pool.close()
            raise RelationConnectionError(spec.name, spec.connect, health["error"])

        logger.info(f"Opened postgres relation {spec.name}")
        return relation

    async def lookup(self, field: str, value: str) -> list[dict[str, str]]:
        sql = self.build_query(field)
        logger.debug(f"SQL: {sql}")
        try:
            async with self._pool.acquire() as conn:
                records = await conn.fetch(sql, value)
        except Exception as e:
            raise RelationLookupError(self.name, field, value, str(e)) from e
        return self.convert_rows((record.items() for record in records), field, value)

    async def health(self) -> dict[str, Any]:
        return await check_db_health(self._pool)

    async def close(self) -> None:
        await self._pool.close()
