"""Command-line entry point for running the pipeline without the HTTP API.

Usage:
    python -m funnel.cli run --tag general
    python -m funnel.cli run --tag competitor --poll-interval 5 --max-attempts 20

The run log is printed as it is produced. Ctrl+C (SIGINT) or SIGTERM asks
the run to stop; in-flight calls finish and the run ends in `stopped`.

Exit codes:
    0: run finished (done)
    1: run ended in error (message printed)
    130: run stopped by the operator
"""

import argparse
import asyncio
import signal
import sys

from funnel.config import get_log_json, get_log_level
from funnel.database import dispose_engine
from funnel.exceptions import ConfigurationError, RunAlreadyActiveError
from funnel.services.pipeline_orchestrator import (
    RunRegistry,
    RunStage,
    build_orchestrator,
    close_orchestrator,
)
from funnel.utils.logging import configure_logging, get_logger

log = get_logger(__name__)

EXIT_CODES = {RunStage.DONE: 0, RunStage.ERROR: 1, RunStage.STOPPED: 130}


async def run_pipeline(tag: str, poll_interval: float | None, max_attempts: int | None) -> int:
    """Run the pipeline for `tag` to completion, printing log lines.

    Returns:
        Process exit code
    """
    orchestrator = build_orchestrator()
    if poll_interval is not None:
        orchestrator.poll_interval = poll_interval
    if max_attempts is not None:
        orchestrator.poll_max_attempts = max_attempts

    registry = RunRegistry(orchestrator)
    try:
        try:
            handle = await registry.start_run(tag)
        except (ConfigurationError, RunAlreadyActiveError) as e:
            print(f"❌ Error: {e}", file=sys.stderr)
            return 1

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, handle.stop, f"Received {sig.name}")

        async for entry in handle.follow():
            print(f"[{entry.timestamp:%H:%M:%S}] {entry.stage:<18} {entry.message}", flush=True)

        run = await handle.wait()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
    finally:
        await close_orchestrator(orchestrator)
        await dispose_engine()

    if run.stage == RunStage.ERROR:
        print(f"❌ Error: {run.error}", file=sys.stderr)
    return EXIT_CODES.get(run.stage, 1)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Engagement funnel pipeline")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run the full pipeline for one tag")
    run_parser.add_argument(
        "--tag", default="general", help="Monitoring target group (default: general)"
    )
    run_parser.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between completion checks (default: POLL_INTERVAL_SECONDS or 30)",
    )
    run_parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Completion check budget per verify stage (default: POLL_MAX_ATTEMPTS or 120)",
    )

    args = parser.parse_args(argv)
    configure_logging(get_log_level(), get_log_json())

    if args.poll_interval is not None and args.poll_interval < 0:
        parser.error("--poll-interval must not be negative")
    if args.max_attempts is not None and args.max_attempts < 1:
        parser.error("--max-attempts must be at least 1")

    log.info("cli_run_requested", tag=args.tag)
    return asyncio.run(run_pipeline(args.tag, args.poll_interval, args.max_attempts))


if __name__ == "__main__":
    sys.exit(main())
