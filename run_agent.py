#!/usr/bin/env python3
"""Entry point: run one automation tick, or keep ticking with --loop."""
from __future__ import annotations

import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from autoapply.config import USERS_PATH
from autoapply.log import configure, get_logger

log = get_logger(__name__)


def _check_setup() -> bool:
    """Return True if first-run setup is needed."""
    if not USERS_PATH.exists():
        print()
        print("  No users configured. Copy the example and edit it first:")
        print("    cp config/users.example.yaml config/users.yaml")
        print()
        return True
    return False


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the AutoApply scheduler.")
    parser.add_argument("--loop", action="store_true", help="keep ticking every tick_minutes")
    parser.add_argument("--log-level", help="override LOG_LEVEL (DEBUG, INFO, ...)")
    args = parser.parse_args(argv)
    if args.log_level:
        configure(args.log_level)

    if _check_setup():
        return 1

    from autoapply.scheduler import build_runtime, run_forever, run_tick

    runtime = build_runtime()
    if args.loop:
        run_forever(runtime)
        return 0

    result = run_tick(datetime.now(timezone.utc), runtime)
    log.info("Tick complete.")
    log.info("  Enqueued: %d", len(runtime.enqueued))
    log.info("  Claimed: %d", result.claimed)
    log.info("  Completed: %d", result.completed)
    log.info("  Retrying: %d", result.retried)
    log.info("  Failed: %d", result.failed)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
