"""
FastAPI HTTP Transport for Link Resolution Service

Provides REST endpoints for link resolution:
- /health - Liveness probe
- /ready - Readiness probe (checks every relation)
- /query - Resolve all values reachable from the query parameters

Every /query response uses HTTP 200, failures are reported through
`success=false` and a human-readable `message`.

NOTE: Do NOT add `from __future__ import annotations` to this file.
PEP 563 breaks FastAPI's runtime introspection for parameter sources.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from pydantic import BaseModel

from ...adapters.base import SqlRelation
from ...adapters.factory import close_relations, open_relations
from ...config import LinkServiceConfig
from ...core.index import FieldRelationIndex
from ...core.models import ResolutionResult
from ...core.resolver import GraphResolver
from ...schema import LinkSchema, load_schema, parse_listen

logger = logging.getLogger(__name__)

DISCONNECT_POLL_SECONDS = 0.5


class QueryResponse(BaseModel):
    """Response for link resolution."""

    success: bool
    message: str = ""
    data: dict[str, list[str]] = {}


# Global state
_resolver: GraphResolver | None = None
_relations: list[SqlRelation] = []
_schema: LinkSchema | None = None
_config: LinkServiceConfig | None = None


def get_resolver() -> GraphResolver:
    """Get the global resolver instance."""
    if _resolver is None:
        raise RuntimeError("Resolver not initialized")
    return _resolver


def create_app(
    config: LinkServiceConfig | None = None,
    schema: LinkSchema | None = None,
    relations: list[SqlRelation] | None = None,
) -> Any:
    """
    Create a FastAPI application for the link resolution service.

    The schema is loaded (and validated) here. Relations are opened when
    the application starts unless already opened ones are passed in, in
    which case the caller keeps ownership and closes them. Either failure
    prevents serving.

    Args:
        config: Service configuration
        schema: Already loaded schema, read from config.schema_path if omitted
        relations: Already opened relations, one per schema relation

    Returns:
        FastAPI application instance
    """
    try:
        from fastapi import FastAPI, Request
        from fastapi.responses import JSONResponse
    except ImportError as e:
        raise ImportError(
            "FastAPI is required. Install with: pip install fastapi uvicorn"
        ) from e

    global _config, _schema
    _config = config or LinkServiceConfig()
    _schema = schema or load_schema(_config.schema_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        global _resolver, _relations

        logger.info(f"Starting link resolution service: {_config.server_name}")

        owns_relations = relations is None
        if owns_relations:
            # Fails fast if any relation is unreachable
            _relations = await open_relations(_schema, _config)
        else:
            _relations = list(relations)
        index = FieldRelationIndex(_schema.fields, _relations)

        _resolver = GraphResolver(
            index,
            max_depth=_config.max_depth,
            max_concurrent_lookups=_config.max_concurrent_lookups,
            timeout_seconds=_config.request_timeout_seconds,
        )

        logger.info("Link resolution service initialized")
        yield

        # Shutdown
        logger.info("Shutting down link resolution service")
        if owns_relations:
            await close_relations(_relations)
        _relations = []
        _resolver = None
        logger.info("Link resolution service shut down")

    app = FastAPI(
        title="Link Resolution Service",
        description="Resolves transitive links between identifiers across relational sources",
        version=_config.server_version,
        lifespan=lifespan,
    )

    @app.get("/health")
    async def liveness_check() -> JSONResponse:
        """Liveness probe - just checks if process is alive."""
        return JSONResponse(
            content={"status": "alive"},
            status_code=200,
        )

    @app.get("/ready")
    async def readiness_check() -> JSONResponse:
        """Readiness probe - checks every relation."""
        checks: dict[str, Any] = {}
        all_ready = _resolver is not None

        for relation in _relations:
            health = await relation.health()
            checks[relation.name] = health
            if not health.get("connected"):
                all_ready = False

        status = "ready" if all_ready else "not_ready"
        return JSONResponse(
            content={"status": status, "checks": checks},
            status_code=200 if all_ready else 503,
        )

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint with service info."""
        return {
            "name": _config.server_name,
            "version": _config.server_version,
            "endpoints": {
                "health": "/health",
                "ready": "/ready",
                "query": "/query",
            },
            "fields": [f.model_dump() for f in _schema.fields],
            "relations": [r.name for r in _schema.relations],
        }

    @app.get("/query", response_model=QueryResponse)
    async def query_endpoint(request: Request) -> QueryResponse:
        """Resolve every field value reachable from the query parameters."""
        resolver = get_resolver()
        seeds = request.query_params.multi_items()

        try:
            result = await _resolve_until_disconnect(request, resolver, seeds)
        except Exception as e:
            logger.exception(f"Error resolving links: {e}")
            result = ResolutionResult.failed(f"internal error: {e}")

        return QueryResponse(**result.to_dict())

    return app


async def _resolve_until_disconnect(
    request: Any,
    resolver: GraphResolver,
    seeds: list[tuple[str, str]],
) -> ResolutionResult:
    """Run a resolution, cancelling it if the client goes away."""
    task = asyncio.create_task(resolver.resolve(seeds))
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info("Client disconnected, cancelling resolution")
                task.cancel()
                return ResolutionResult.failed("request cancelled by client")
    finally:
        if not task.done():
            task.cancel()


async def run_http_server(
    config: LinkServiceConfig | None = None,
    schema: LinkSchema | None = None,
) -> None:
    """
    Run the HTTP server.

    Binds to config.host/config.port when set, otherwise to the schema's
    `listen` address. Relations are opened before uvicorn starts so that a
    connection failure propagates to the caller as a RelationConnectionError.

    Args:
        config: Service configuration
        schema: Already loaded schema
    """
    try:
        import uvicorn
    except ImportError as e:
        raise ImportError(
            "Uvicorn is required. Install with: pip install uvicorn"
        ) from e

    _config = config or LinkServiceConfig()
    _schema = schema or load_schema(_config.schema_path)
    relations = await open_relations(_schema, _config)
    try:
        app = create_app(_config, _schema, relations)

        host, port = parse_listen(_schema.listen)
        host = _config.host or host
        port = _config.port or port

        logger.info(f"Starting HTTP server on {host}:{port}")

        server_config = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level=_config.log_level.lower(),
        )
        server = uvicorn.Server(server_config)
        await server.serve()
    finally:
        await close_relations(relations)
