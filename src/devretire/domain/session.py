"""Top-level controller for retiring one device."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from .errors import DeviceFactsError, DevRetireError
from .events import FindingsReported, NothingFound, SessionFinished, discard_event
from .model import (
    PRECEDENCE,
    DeletionOutcome,
    ReconciliationResult,
    ResetReport,
    ServiceConvergence,
    ServiceState,
)

if TYPE_CHECKING:
    from .events import ProgressSink
    from .model import DeviceIdentity, Resolution, ServiceKind
    from .monitor import ConvergenceMonitor
    from .orchestrator import DeletionOrchestrator
    from .ports import CancellationSignal, ConfirmFindings, DeviceFactsProvider, ResetTrigger
    from .resolver import IdentityResolver

log = getLogger(__name__)


@dataclass(slots=True)
class ReconciliationSession:
    """Resolve, delete, wait for convergence, then hand over to the reset trigger.

    Only credential/connectivity failures that prevent every service call, and a
    failure to read the local device facts, raise. Absence of the device,
    partial failures and a credential rejected while polling are reported in
    the returned result.
    """

    facts: DeviceFactsProvider
    resolver: IdentityResolver
    orchestrator: DeletionOrchestrator
    monitor: ConvergenceMonitor
    confirm: ConfirmFindings | None = None
    reset_trigger: ResetTrigger | None = None
    reset_when_nothing_found: bool = False
    sink: ProgressSink = discard_event
    clock: Callable[[], float] = field(default=time.monotonic)

    def run(self, *, cancel: CancellationSignal | None = None) -> ReconciliationResult:
        identity = self._read_facts()
        start = self.clock()
        dry_run = self.orchestrator.dry_run
        log.info(
            "Retiring device %s (serial %s, %s %s)%s",
            identity.name,
            identity.serial or "<unknown>",
            identity.manufacturer or "?",
            identity.model or "?",
            " [dry-run]" if dry_run else "",
        )

        resolution = self.resolver.resolve(identity)
        self.sink(FindingsReported(resolution=resolution))

        if not resolution.found_any:
            log.info("Device %s was not found in any service, nothing to clean up", identity.name)
            self.sink(NothingFound(identity=identity))
            result = self._idle_result(identity, resolution, start, dry_run=dry_run)
            return self._finish(result, reset=self.reset_when_nothing_found)

        if self.confirm is not None and not self.confirm(resolution):
            log.info("Deletion declined, leaving every service untouched")
            result = self._idle_result(identity, resolution, start, dry_run=dry_run)
            return self._finish(replace(result, confirmed=False), reset=False)

        outcomes = self.orchestrator.delete(resolution, cancel=cancel)
        report = self.monitor.watch(resolution, outcomes, dry_run=dry_run, cancel=cancel)

        result = ReconciliationResult(
            identity=identity,
            resolution=resolution,
            outcomes=outcomes,
            convergence=report.convergence,
            elapsed=self._elapsed(start),
            timed_out=report.timed_out,
            cancelled=report.cancelled or (cancel is not None and cancel.is_set()),
            dry_run=dry_run,
            monitor_error=report.error,
        )
        return self._finish(result, reset=not result.cancelled)

    def _read_facts(self) -> DeviceIdentity:
        try:
            return self.facts()
        except DeviceFactsError:
            raise
        except (OSError, ValueError) as exc:
            raise DeviceFactsError(f"Could not read local device facts: {exc}") from exc

    def _idle_result(
        self,
        identity: DeviceIdentity,
        resolution: Resolution,
        start: float,
        *,
        dry_run: bool,
    ) -> ReconciliationResult:
        outcomes: dict[ServiceKind, DeletionOutcome] = {
            kind: DeletionOutcome.not_attempted(kind) for kind in PRECEDENCE
        }
        convergence = {
            kind: ServiceConvergence(
                service_kind=kind, state=ServiceState.CONVERGED, monitored=False
            )
            for kind in PRECEDENCE
        }
        return ReconciliationResult(
            identity=identity,
            resolution=resolution,
            outcomes=outcomes,
            convergence=convergence,
            elapsed=self._elapsed(start),
            dry_run=dry_run,
        )

    def _finish(self, result: ReconciliationResult, *, reset: bool) -> ReconciliationResult:
        _log_summary(result)
        if reset and self.reset_trigger is not None:
            result = replace(result, reset=_trigger_reset(self.reset_trigger, result))
        self.sink(SessionFinished(result=result))
        return result

    def _elapsed(self, start: float) -> timedelta:
        return timedelta(seconds=max(0.0, self.clock() - start))


def _log_summary(result: ReconciliationResult) -> None:
    for kind in PRECEDENCE:
        outcome = result.outcome(kind)
        state = result.state(kind)
        if not outcome.attempted:
            status = "not attempted" if outcome.error_detail is None else outcome.error_detail
        elif outcome.succeeded:
            status = "already absent" if outcome.already_absent else "deleted"
        else:
            status = f"failed ({outcome.error_detail})"
        log.info("%s: %s, convergence %s", kind, status, state)
    log.info(
        "Session finished in %s (timed_out=%s, cancelled=%s, monitor_error=%s)",
        result.elapsed,
        result.timed_out,
        result.cancelled,
        result.monitor_error,
    )


def _trigger_reset(trigger: ResetTrigger, result: ReconciliationResult) -> ResetReport:
    try:
        report = trigger(result)
    except (DevRetireError, OSError) as exc:
        log.exception("Local reset failed")
        return ResetReport(triggered=True, succeeded=False, detail=str(exc))
    if report.succeeded:
        log.info("Local reset triggered: %s", report.detail or "ok")
    else:
        log.error("Local reset did not start: %s", report.detail or "unknown error")
    return report
