"""Clean up expired lockouts and timed-out attempt counters.

Run once (cron) or with --loop as a long-lived scheduled job. SIGINT/SIGTERM
stop the sweep at the next batch boundary.
"""

import argparse
import logging
import signal
import sys
import threading

from lockguard.core.config import get_settings
from lockguard.core.errors import StoreUnavailableError
from lockguard.services.lockout import build_lockout_engine


def main() -> None:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Clean up expired login lockouts")
    parser.add_argument("--loop", action="store_true", help="Keep sweeping on an interval")
    parser.add_argument(
        "--interval",
        type=int,
        default=settings.sweep_interval_seconds,
        help="Seconds between sweeps in --loop mode",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=settings.sweep_batch_size,
        help="Records read per batch",
    )
    parser.add_argument("--resume-after", default=None, help="Identity to resume a sweep after")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    settings = settings.model_copy(update={"sweep_batch_size": args.batch_size})
    sweeper = build_lockout_engine(settings).build_sweeper()

    stop_event = threading.Event()

    def _stop(signum, frame):
        print("Stopping after the current batch...")
        stop_event.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)

    if args.loop:
        sweeper.run_forever(args.interval, stop_event)
        return

    try:
        result = sweeper.sweep(stop_event=stop_event, start_after=args.resume_after)
    except StoreUnavailableError:
        print("Cleanup failed: attempt store unavailable", file=sys.stderr)
        sys.exit(1)

    print(
        f"Cleanup complete: {result.lockouts_cleared} lockouts cleared, "
        f"{result.attempts_reset} attempts reset ({result.batches} batches)"
    )
    if result.errors or result.sync_failures:
        print(f"{result.errors} store errors, {result.sync_failures} verifier sync failures")
    if not result.complete and result.resume_after:
        print(f"Sweep interrupted; resume with --resume-after {result.resume_after}")
    elif not result.complete:
        print("Sweep interrupted before the first batch")


if __name__ == "__main__":
    main()
