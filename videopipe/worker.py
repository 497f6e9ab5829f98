"""CLI utility that drains the stage queues from a long-lived process."""

from __future__ import annotations

import argparse
import logging
import threading
from typing import Callable, Sequence

from .config import PipelineConfig, WorkerConfig, load_config
from .runtime import build_runtime
from .stage import StageResult, StageWorker
from .wake import STAGE_NAMES, LocalWaker, NullWaker
from .work_queue import QueueUnavailableError

LOGGER = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def drain(worker: StageWorker, *, max_messages: int | None = None) -> list[StageResult]:
    """Call ``run_once`` until the queue reports idle; the idle result is not included."""

    results: list[StageResult] = []
    while max_messages is None or len(results) < max_messages:
        result = worker.run_once()
        if result.idle:
            break
        results.append(result)
    return results


def next_backoff(current: float, config: WorkerConfig) -> float:
    if current <= 0:
        return config.idle_backoff_base
    return min(current * 2, config.idle_backoff_max)


def run_forever(
    worker: StageWorker,
    waker: LocalWaker,
    config: WorkerConfig,
    *,
    stop_event: threading.Event | None = None,
    on_result: Callable[[StageResult], None] | None = None,
) -> None:
    """Poll one stage until stopped, backing off exponentially while idle.

    A wake signal for the stage cuts the current backoff short.
    """

    stop_event = stop_event or threading.Event()
    backoff = 0.0
    while not stop_event.is_set():
        try:
            result = worker.run_once()
        except QueueUnavailableError as exc:
            LOGGER.error("[%s] Work queue unavailable: %s", worker.name, exc)
            backoff = next_backoff(backoff, config)
            stop_event.wait(backoff)
            continue

        if on_result is not None:
            on_result(result)

        if not result.idle:
            backoff = 0.0
            continue

        backoff = next_backoff(backoff, config)
        LOGGER.debug("[%s] Idle; sleeping up to %.1fs", worker.name, backoff)
        if waker.wait(worker.name, backoff):
            backoff = 0.0


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Drain the video pipeline stage queues")
    parser.add_argument(
        "--stage",
        choices=[*STAGE_NAMES, "all"],
        default="all",
        help="Stage whose queue should be drained (default: all stages, one thread each)",
    )
    parser.add_argument(
        "--db-url",
        default=None,
        help="SQLAlchemy database URL (defaults to VIDEOPIPE_DATABASE_URL)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Drain each selected queue until idle, then exit",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create the pipeline tables before starting",
    )
    parser.add_argument(
        "--idle-backoff-max",
        type=float,
        default=None,
        help="Maximum seconds to sleep between polls of an idle queue",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def _apply_args(config: PipelineConfig, args: argparse.Namespace) -> PipelineConfig:
    if args.idle_backoff_max is not None and args.idle_backoff_max > 0:
        config.worker.idle_backoff_max = args.idle_backoff_max
    return config


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    config = _apply_args(load_config(args.db_url), args)
    if not config.db_url:
        parser.error("--db-url is required when VIDEOPIPE_DATABASE_URL is not set")

    stage_names = list(STAGE_NAMES) if args.stage == "all" else [args.stage]
    waker = NullWaker() if args.once else LocalWaker(stage_names)
    runtime = build_runtime(config, waker, create_tables=args.create_tables)

    for name in stage_names:
        worker = runtime.worker(name)
        LOGGER.info(
            "Stage %s: %d live message(s) on %s",
            name,
            runtime.queue.depth(worker.definition.input_queue),
            worker.definition.input_queue,
        )

    if args.once:
        # Later stages run after earlier ones so a single pass carries hand-offs through
        for name in stage_names:
            results = drain(runtime.worker(name))
            LOGGER.info("Stage %s processed %d message(s)", name, len(results))
        return 0

    stop_event = threading.Event()
    threads = [
        threading.Thread(
            target=run_forever,
            args=(runtime.worker(name), waker, config.worker),
            kwargs={"stop_event": stop_event},
            name=f"videopipe-{name}",
            daemon=True,
        )
        for name in stage_names
    ]
    for thread in threads:
        thread.start()

    try:
        while any(thread.is_alive() for thread in threads):
            for thread in threads:
                thread.join(timeout=1.0)
    except KeyboardInterrupt:
        LOGGER.info("Shutting down...")
        stop_event.set()
        for thread in threads:
            thread.join(timeout=5.0)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
