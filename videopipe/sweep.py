"""CLI utility to route video rows that never reached the pipeline.

Insert notifications are fire-and-forget; a row whose notification was lost stays
without a status forever. The sweep replays a synthetic insert notification for
every such row through the regular router, so all routing gates still apply.
"""

from __future__ import annotations

import argparse
import logging
import time
from typing import Sequence

from .config import load_config
from .router import RouteResult
from .runtime import PipelineRuntime, build_runtime
from .wake import CeleryWaker
from .worker import configure_logging

LOGGER = logging.getLogger(__name__)

DEFAULT_SWEEP_LIMIT = 100


def sweep(runtime: PipelineRuntime, *, limit: int = DEFAULT_SWEEP_LIMIT, include_failed: bool = False) -> list[RouteResult]:
    rows = runtime.store.select_unrouted(limit, include_failed=include_failed)
    if not rows:
        LOGGER.debug("No unrouted videos found")
        return []

    results = []
    for row in rows:
        result = runtime.router.handle({"type": "INSERT", "record": row})
        results.append(result)

    routed = sum(1 for result in results if result.routed)
    LOGGER.info("Sweep routed %d of %d candidate video(s)", routed, len(results))
    return results


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Route video rows whose insert notification never reached the pipeline"
    )
    parser.add_argument(
        "--db-url",
        default=None,
        help="SQLAlchemy database URL (defaults to VIDEOPIPE_DATABASE_URL)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_SWEEP_LIMIT,
        help=f"Maximum number of rows to route per pass (default: {DEFAULT_SWEEP_LIMIT})",
    )
    parser.add_argument(
        "--include-failed",
        action="store_true",
        help="Also re-route rows whose previous run ended in the failed status",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Repeat the sweep every N seconds instead of running a single pass",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.limit <= 0:
        parser.error("--limit must be positive")
    if args.interval is not None and args.interval <= 0:
        parser.error("--interval must be positive")

    config = load_config(args.db_url)
    if not config.db_url:
        parser.error("--db-url is required when VIDEOPIPE_DATABASE_URL is not set")

    from .celery_app import celery_app

    runtime = build_runtime(config, CeleryWaker(celery_app))

    if args.interval is None:
        sweep(runtime, limit=args.limit, include_failed=args.include_failed)
        return 0

    LOGGER.info("Sweeping every %.1fs", args.interval)
    try:
        while True:
            sweep(runtime, limit=args.limit, include_failed=args.include_failed)
            time.sleep(args.interval)
    except KeyboardInterrupt:
        LOGGER.info("Shutting down...")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
