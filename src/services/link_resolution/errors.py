"""
Link Resolution Exception Hierarchy

All service-specific exceptions inherit from LinkResolutionError.

Startup errors (SchemaError, RelationConnectionError) abort the process before
it serves traffic. Request errors (UnknownFieldError, RelationLookupError,
ResolutionTimeoutError) fail only the current resolution and are converted
into a failed ResolutionResult by the resolver.
"""

from __future__ import annotations


class LinkResolutionError(Exception):
    """
    Base exception for all link resolution errors.

    Attributes:
        message: Human-readable error description
        code: Optional machine-readable error code
    """

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Startup Errors
# =============================================================================


class SchemaError(LinkResolutionError):
    """Schema file is missing, malformed or violates an invariant."""

    def __init__(self, message: str, path: str | None = None) -> None:
        if path:
            message = f"{path}: {message}"
        super().__init__(message, code="SCHEMA_INVALID")
        self.path = path


class RelationConnectionError(LinkResolutionError):
    """A relation's data source could not be opened at startup."""

    def __init__(self, relation: str, connect: str, reason: str) -> None:
        super().__init__(
            f"failed to connect to database `{connect}` for relation {relation}: {reason}",
            code="RELATION_CONNECTION",
        )
        self.relation = relation
        self.connect = connect
        self.reason = reason


# =============================================================================
# Request Errors
# =============================================================================


class UnknownFieldError(LinkResolutionError):
    """A field id is not exposed by any relation (or not by this one)."""

    def __init__(self, field: str, relation: str | None = None) -> None:
        if relation:
            message = f"relation `{relation}` has no field `{field}`"
        else:
            message = f"no relation has field `{field}`"
        super().__init__(message, code="UNKNOWN_FIELD")
        self.field = field
        self.relation = relation


class RelationLookupError(LinkResolutionError):
    """Reading from a relation failed during traversal."""

    def __init__(self, relation: str, field: str, value: str, reason: str) -> None:
        super().__init__(
            f"failed to query relation `{relation}` with field `{field}`, "
            f"value `{value}`: {reason}",
            code="RELATION_LOOKUP",
        )
        self.relation = relation
        self.field = field
        self.value = value
        self.reason = reason


class ResolutionTimeoutError(LinkResolutionError):
    """A resolution did not finish within the per-request timeout."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            f"resolution timed out after {timeout_seconds:g} seconds",
            code="RESOLUTION_TIMEOUT",
        )
        self.timeout_seconds = timeout_seconds
