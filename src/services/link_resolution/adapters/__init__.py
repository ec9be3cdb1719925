"""
Relation adapters for the link resolution service.

Supports:
- SQLite (`sqlite:` descriptors)
- PostgreSQL (`postgresql://` descriptors, asyncpg)
"""

from .base import SqlRelation
from .database import PostgresRelation
from .factory import close_relations, open_relation, open_relations
from .sqlite import SqliteRelation

__all__ = [
    "PostgresRelation",
    "SqlRelation",
    "SqliteRelation",
    "close_relations",
    "open_relation",
    "open_relations",
]
