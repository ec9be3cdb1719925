"""
Core link resolution logic.

This module contains the traversal engine and its routing index,
independent of any database driver, transport or framework.
"""

from .index import FieldRelationIndex
from .models import LookupUnit, ResolutionResult
from .protocols import Relation
from .resolver import GraphResolver

__all__ = [
    "FieldRelationIndex",
    "GraphResolver",
    "LookupUnit",
    "Relation",
    "ResolutionResult",
]
