"""
Link Resolution Service - CLI Entry Point

Usage:
    python -m src.services.link_resolution [--config config.toml] [options]

Examples:
    # Start HTTP server on the schema's listen address
    python -m src.services.link_resolution

    # Override the bind address and depth bound
    python -m src.services.link_resolution --host 0.0.0.0 --port 8085 --max-depth 5
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .config import LinkServiceConfig
from .errors import LinkResolutionError
from .schema import load_schema


def setup_logging(level: str) -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Link Resolution Service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Schema file declaring fields and relations (default: config.toml)",
    )

    # HTTP options
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind (default: from the schema's listen address)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind (default: from the schema's listen address)",
    )

    # Traversal options
    parser.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="Maximum traversal rounds per request (default: 10)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-request timeout in seconds (default: 30)",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default="info",
        help="Log level (default: info)",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> LinkServiceConfig:
    """Build configuration from args and environment."""
    overrides = {}

    if args.config:
        overrides["schema_path"] = args.config
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.max_depth:
        overrides["max_depth"] = args.max_depth
    if args.timeout:
        overrides["request_timeout_seconds"] = args.timeout
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()

    return LinkServiceConfig(**overrides)


async def run_http(config: LinkServiceConfig) -> None:
    """Run HTTP server."""
    from .transports.http import run_http_server

    schema = load_schema(config.schema_path)
    await run_http_server(config, schema)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    config = build_config(args)
    logger = logging.getLogger(__name__)

    logger.info(f"Starting Link Resolution Service (schema {config.schema_path})")

    try:
        asyncio.run(run_http(config))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except LinkResolutionError as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
