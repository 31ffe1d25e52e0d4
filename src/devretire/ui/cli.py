from __future__ import annotations

import argparse
import logging
import sys
import threading
from dataclasses import replace
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from devretire.adapters.local_device import StaticDeviceFacts
from devretire.app import retire_device
from devretire.common.logging import configure_logging
from devretire.config import ConfigurationError, get_reconciliation_config
from devretire.domain.errors import DeviceFactsError, ServiceAuthError, ServiceConnectionError
from devretire.domain.events import (
    ConvergenceReached,
    ConvergenceTimedOut,
    DeletionFinished,
    FindingsReported,
    MonitoringAborted,
    MonitoringCancelled,
    NothingFound,
    PollTick,
)
from devretire.domain.model import PRECEDENCE, DeviceIdentity, ServiceState

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

    from devretire.domain.events import ProgressEvent
    from devretire.domain.model import ReconciliationResult, Resolution

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_CANCELLED = 130


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Remove this device from Intune, Autopilot and Entra ID, then reset it"
    )
    parser.add_argument(
        "--name",
        type=str,
        help="Device name to retire (defaults to the local host name)",
    )
    parser.add_argument(
        "--serial",
        type=str,
        help="Serial number to match (requires --name; defaults to the firmware serial)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be deleted without changing any service",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Delete without asking for confirmation",
    )
    parser.add_argument(
        "--no-reset",
        action="store_true",
        help="Do not start the local reset after clean-up",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        help="Seconds between convergence checks (defaults to config)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds to wait for all services to converge (defaults to config)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log every service query",
    )
    args = parser.parse_args(list(argv))
    if args.serial is not None and args.name is None:
        raise ValueError("--serial requires --name")
    for flag in ("poll_interval", "timeout"):
        value = getattr(args, flag)
        if value is not None and value < 0:
            raise ValueError(f"--{flag.replace('_', '-')} must be non-negative")
    return args


def log_progress(event: ProgressEvent) -> None:
    """Render progress events as log lines."""

    match event:
        case FindingsReported(resolution=resolution):
            _log_findings(resolution)
        case NothingFound(identity=identity):
            log.info("%s is not registered in any service", identity.name)
        case DeletionFinished(service_kind=kind, outcome=outcome, dry_run=dry_run):
            prefix = "[dry-run] " if dry_run else ""
            if not outcome.attempted:
                log.info("%s%s: nothing deleted", prefix, kind)
            elif outcome.succeeded:
                log.info("%s%s: deletion succeeded", prefix, kind)
            else:
                log.error("%s%s: deletion failed: %s", prefix, kind, outcome.error_detail)
        case PollTick(elapsed=elapsed, states=states):
            summary = ", ".join(f"{kind}={state}" for kind, state in states.items())
            log.info("[%s] %s", _format_elapsed(elapsed.total_seconds()), summary)
        case ConvergenceReached(elapsed=elapsed):
            log.info("All services converged after %s", _format_elapsed(elapsed.total_seconds()))
        case ConvergenceTimedOut(states=states):
            timed_out = [
                str(kind) for kind, state in states.items() if state is ServiceState.TIMED_OUT
            ]
            log.warning("Timed out waiting for: %s", ", ".join(timed_out))
        case MonitoringCancelled():
            log.warning("Monitoring cancelled")
        case MonitoringAborted(detail=detail):
            log.error("Monitoring stopped before every service converged: %s", detail)
        case _:
            pass


def _log_findings(resolution: Resolution) -> None:
    identity = resolution.identity
    log.info("Findings for %s (serial %s):", identity.name, identity.serial or "<unknown>")
    for kind in PRECEDENCE:
        records = resolution.records_for(kind)
        if kind in resolution.failures:
            log.warning("  %s: lookup failed: %s", kind, resolution.failures[kind])
        elif not records:
            log.info("  %s: not found", kind)
        for record in records:
            log.info("  %s: %s (%s)", kind, record.record_id, record.display_name)
    for record in resolution.rejected:
        log.warning(
            "  %s: ignoring %s (%s), serial %s does not match",
            record.service_kind,
            record.record_id,
            record.display_name,
            record.raw_serial,
        )


def _format_elapsed(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes:02d}:{secs:02d}"


def _prompt_confirmation(
    resolution: Resolution,
    *,
    prompt: Callable[[str], str] = input,
) -> bool:
    count = sum(len(resolution.records_for(kind)) for kind in PRECEDENCE)
    try:
        answer = prompt(f"Delete {count} record(s) for {resolution.identity.name}? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def _exit_code(result: ReconciliationResult) -> int:
    if result.cancelled:
        return EXIT_CANCELLED
    if result.nothing_found or not result.confirmed or result.all_succeeded:
        return EXIT_OK
    return EXIT_FAILURE


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    facts: StaticDeviceFacts | None = None
    try:
        parsed_args = _parse_args(args_list)
        config = get_reconciliation_config()
        if parsed_args.name is not None:
            identity = DeviceIdentity(name=parsed_args.name, serial_number=parsed_args.serial)
            facts = StaticDeviceFacts(identity)
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(EXIT_USAGE)

    if parsed_args.verbose:
        configure_logging(level=logging.DEBUG, force=True)
    if parsed_args.poll_interval is not None:
        config = replace(config, poll_interval_seconds=parsed_args.poll_interval)
    if parsed_args.timeout is not None:
        config = replace(config, timeout_seconds=parsed_args.timeout)

    cancel = threading.Event()

    def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
        """Handle SIGINT (Ctrl+C) by cancelling the session at the next check."""
        log.info("Cancelling (Ctrl+C)")
        cancel.set()

    previous_handler = signal(SIGINT, sigint_handler)
    try:
        result = retire_device(
            facts=facts,
            config=config,
            dry_run=parsed_args.dry_run,
            confirm=None if parsed_args.yes or parsed_args.dry_run else _prompt_confirmation,
            trigger_reset=not parsed_args.no_reset,
            sink=log_progress,
            cancel=cancel,
        )
    except (ConfigurationError, DeviceFactsError, ServiceAuthError, ServiceConnectionError):
        log.exception("Could not retire device")
        sys.exit(EXIT_FAILURE)
    except Exception:
        log.exception("Fatal error during retirement")
        sys.exit(EXIT_FAILURE)
    finally:
        signal(SIGINT, previous_handler)

    sys.exit(_exit_code(result))


def run() -> None:
    load_dotenv()
    main()


if __name__ == "__main__":
    run()
