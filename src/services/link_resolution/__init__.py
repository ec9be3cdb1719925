"""
Link Resolution Service

Standalone service resolving transitive links between identifiers held in
independent relational data sources. Given known field values, it returns
every other field value reachable through the configured relations.

Usage:
    # As a service
    python -m src.services.link_resolution --config config.toml

    # Programmatic
    from src.services.link_resolution import GraphResolver, FieldRelationIndex
"""

__version__ = "0.1.0"

from .config import LinkServiceConfig
from .core.index import FieldRelationIndex
from .core.models import LookupUnit, ResolutionResult
from .core.resolver import GraphResolver
from .schema import LinkSchema, load_schema

__all__ = [
    "FieldRelationIndex",
    "GraphResolver",
    "LinkSchema",
    "LinkServiceConfig",
    "LookupUnit",
    "ResolutionResult",
    "load_schema",
]
