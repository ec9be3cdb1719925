"""
Link Resolution Models

Data classes for lookup units and resolution results.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEPTH_LIMIT_MESSAGE = "depth length limit exceeded"


@dataclass(frozen=True, order=True)
class LookupUnit:
    """
    One traversal step: look up `value` in column `field` of `relation`.

    Also the deduplication key, a unit is queried at most once per request.
    """

    relation: str
    field: str
    value: str


@dataclass(frozen=True)
class ResolutionResult:
    """
    Outcome of one resolution request.

    `data` maps each discovered field to its sorted, deduplicated values.
    Failures always carry empty data.
    """

    success: bool
    message: str = ""
    data: dict[str, list[str]] = field(default_factory=dict)
    # Diagnostics, not part of the wire format
    rounds: int = 0
    lookups: int = 0
    depth_limit_exceeded: bool = False

    @classmethod
    def failed(cls, message: str, rounds: int = 0, lookups: int = 0) -> ResolutionResult:
        return cls(success=False, message=message, rounds=rounds, lookups=lookups)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "message": self.message,
            "data": {k: list(v) for k, v in self.data.items()},
        }
