"""
Graph Resolver Implementation

Discovers every field value reachable from a set of seed values by a bounded
breadth-first traversal over (relation, field, value) lookup units:

- Seeds are looked up in every relation exposing their field
- Values of distinct fields found by a lookup are looked up in turn
- Values of non-distinct fields are reported but never expanded
- Each unit is queried at most once per request
- Seed pairs are not reported back, only what was learned from them
- Lookups of one round run concurrently, their rows are merged in one place
  before the next round is assembled
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from ..errors import (
    LinkResolutionError,
    RelationLookupError,
    ResolutionTimeoutError,
    UnknownFieldError,
)
from .index import FieldRelationIndex
from .models import DEPTH_LIMIT_MESSAGE, LookupUnit, ResolutionResult

logger = logging.getLogger(__name__)

Seeds = Mapping[str, str] | Iterable[tuple[str, str]]


@dataclass
class _ResolutionState:
    """Per-request traversal state, never shared between requests."""

    pending: set[LookupUnit] = field(default_factory=set)
    visited: set[LookupUnit] = field(default_factory=set)
    found: dict[str, set[str]] = field(default_factory=dict)
    rounds: int = 0
    lookups: int = 0
    depth_limit_exceeded: bool = False


class GraphResolver:
    """
    Resolver driving lookups through a FieldRelationIndex.

    Example:
        resolver = GraphResolver(index, max_depth=10)
        result = await resolver.resolve({"user_id": "42"})
        result.data  # {"country": ["US"], "email": ["a@x.com"]}
    """

    def __init__(
        self,
        index: FieldRelationIndex,
        max_depth: int = 10,
        max_concurrent_lookups: int = 16,
        timeout_seconds: float | None = None,
    ):
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        if max_concurrent_lookups < 1:
            raise ValueError("max_concurrent_lookups must be at least 1")
        self._index = index
        self._max_depth = max_depth
        self._max_concurrent_lookups = max_concurrent_lookups
        self._timeout_seconds = timeout_seconds

    @property
    def index(self) -> FieldRelationIndex:
        return self._index

    @property
    def max_depth(self) -> int:
        return self._max_depth

    async def resolve(self, seeds: Seeds) -> ResolutionResult:
        """
        Resolve all field values reachable from the seeds.

        Args:
            seeds: Mapping of field id to value, or (field id, value) pairs

        Returns:
            ResolutionResult, request-scoped errors are reported in it
            rather than raised
        """
        pairs = _seed_pairs(seeds)
        state = _ResolutionState()
        logger.debug(f"Resolving {len(pairs)} seed value(s)")

        try:
            if self._timeout_seconds:
                await asyncio.wait_for(
                    self._traverse(pairs, state), timeout=self._timeout_seconds
                )
            else:
                await self._traverse(pairs, state)
        except asyncio.TimeoutError:
            error = ResolutionTimeoutError(self._timeout_seconds or 0.0)
            logger.warning(f"Resolution failed: {error}")
            return ResolutionResult.failed(error.message, state.rounds, state.lookups)
        except LinkResolutionError as e:
            logger.warning(f"Resolution failed: {e}")
            return ResolutionResult.failed(e.message, state.rounds, state.lookups)

        if state.depth_limit_exceeded:
            logger.warning(
                f"Depth limit of {self._max_depth} rounds exceeded, "
                f"{len(state.pending)} lookup(s) left pending"
            )

        data = _finalize(state.found, set(pairs))
        logger.debug(
            f"Resolved {sum(len(v) for v in data.values())} value(s) "
            f"in {state.rounds} round(s), {state.lookups} lookup(s)"
        )
        return ResolutionResult(
            success=True,
            message=DEPTH_LIMIT_MESSAGE if state.depth_limit_exceeded else "",
            data=data,
            rounds=state.rounds,
            lookups=state.lookups,
            depth_limit_exceeded=state.depth_limit_exceeded,
        )

    async def _traverse(self, pairs: list[tuple[str, str]], state: _ResolutionState) -> None:
        # Seeds are expanded even when their field is not distinct
        for field_id, value in pairs:
            relations = self._index.relations_for(field_id)
            if relations is None:
                raise UnknownFieldError(field_id)
            for relation in relations:
                state.pending.add(LookupUnit(relation.name, field_id, value))

        while state.pending:
            if state.rounds >= self._max_depth:
                state.depth_limit_exceeded = True
                return
            state.rounds += 1

            # Frozen worklist for this round, discoveries go to the next one
            worklist = sorted(state.pending)
            next_pending: set[LookupUnit] = set()

            todo = [unit for unit in worklist if unit not in state.visited]
            state.visited.update(todo)
            state.lookups += len(todo)
            results = await self._run_round(todo)

            for rows in results:
                self._merge(rows, state, next_pending)

            state.pending = next_pending

    async def _run_round(self, units: list[LookupUnit]) -> list[list[dict[str, str]]]:
        """Look up all units concurrently, cancelling the rest on the first failure."""
        semaphore = asyncio.Semaphore(self._max_concurrent_lookups)

        async def run(unit: LookupUnit) -> list[dict[str, str]]:
            async with semaphore:
                return await self._lookup(unit)

        tasks = [asyncio.create_task(run(unit)) for unit in units]
        try:
            return list(await asyncio.gather(*tasks))
        except Exception:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _lookup(self, unit: LookupUnit) -> list[dict[str, str]]:
        relation = self._index.relation(unit.relation)
        if relation is None:
            raise UnknownFieldError(unit.field, relation=unit.relation)

        logger.debug(f"visit: relation {unit.relation}, field {unit.field}, value {unit.value}")
        try:
            return await relation.lookup(unit.field, unit.value)
        except LinkResolutionError:
            raise
        except Exception as e:
            raise RelationLookupError(unit.relation, unit.field, unit.value, str(e)) from e

    def _merge(
        self,
        rows: list[dict[str, str]],
        state: _ResolutionState,
        next_pending: set[LookupUnit],
    ) -> None:
        # Every matched row contributes, later rows never overwrite earlier ones
        for row in rows:
            for field_id, value in row.items():
                state.found.setdefault(field_id, set()).add(value)

                if not self._index.is_distinct(field_id):
                    continue

                relations = self._index.relations_for(field_id)
                if relations is None:
                    raise UnknownFieldError(field_id)
                for relation in relations:
                    candidate = LookupUnit(relation.name, field_id, value)
                    if candidate not in state.visited:
                        next_pending.add(candidate)


def _seed_pairs(seeds: Seeds) -> list[tuple[str, str]]:
    items = seeds.items() if isinstance(seeds, Mapping) else seeds
    return [(str(field_id), str(value)) for field_id, value in items]


def _finalize(
    found: dict[str, set[str]],
    seeds: set[tuple[str, str]],
) -> dict[str, list[str]]:
    # Seed pairs are known to the caller, only what was learned is reported.
    # A rediscovered seed is dropped too: any relation holding the seed field
    # next to a distinct field maps straight back to it.
    data: dict[str, list[str]] = {}
    for field_id in sorted(found):
        values = sorted(v for v in found[field_id] if (field_id, v) not in seeds)
        if values:
            data[field_id] = values
    return data
