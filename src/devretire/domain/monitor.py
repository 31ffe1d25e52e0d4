"""Poll the services until deletions have propagated, or give up.

Each service moves ``PENDING -> CONVERGED`` or ``PENDING -> TIMED_OUT`` (or
``CANCELLED`` when the caller signals cancellation, ``ABORTED`` when a status
check is refused for lack of valid credentials). Services where nothing was
deleted start out converged, unless deletion was skipped by cancellation.
Checks follow the deletion precedence: a service is only queried once every
service before it has converged.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from devretire.config.reconciliation import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
)

from .errors import ServiceAuthError, ServiceQueryError
from .events import (
    ConvergenceReached,
    ConvergenceTimedOut,
    MonitoringAborted,
    MonitoringCancelled,
    PollTick,
    discard_event,
)
from .model import PRECEDENCE, ServiceConvergence, ServiceKind, ServiceState, predecessors

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .events import ProgressSink
    from .model import DeletionOutcome, Resolution
    from .ports import CancellationSignal
    from .resolver import IdentityResolver

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MonitorReport:
    convergence: Mapping[ServiceKind, ServiceConvergence]
    elapsed: timedelta
    timed_out: bool = False
    cancelled: bool = False
    error: str | None = None


def needs_monitoring(
    kind: ServiceKind,
    resolution: Resolution,
    outcome: DeletionOutcome | None,
    *,
    dry_run: bool,
) -> bool:
    """Only services where a real deletion succeeded are worth waiting for."""

    if dry_run or outcome is None:
        return False
    return outcome.attempted and outcome.succeeded and bool(resolution.records_for(kind))


@dataclass(slots=True)
class ConvergenceMonitor:
    resolver: IdentityResolver
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    sink: ProgressSink = discard_event
    clock: Callable[[], float] = field(default=time.monotonic)

    def watch(
        self,
        resolution: Resolution,
        outcomes: Mapping[ServiceKind, DeletionOutcome],
        *,
        dry_run: bool = False,
        cancel: CancellationSignal | None = None,
    ) -> MonitorReport:
        signal: CancellationSignal = cancel if cancel is not None else threading.Event()
        monitored = {
            kind: needs_monitoring(kind, resolution, outcomes.get(kind), dry_run=dry_run)
            for kind in PRECEDENCE
        }
        states = {
            kind: ServiceState.PENDING if monitored[kind] else ServiceState.CONVERGED
            for kind in PRECEDENCE
        }
        checks = dict.fromkeys(PRECEDENCE, 0)
        start = self.clock()

        def report(
            *,
            timed_out: bool = False,
            cancelled: bool = False,
            error: str | None = None,
        ) -> MonitorReport:
            return MonitorReport(
                convergence={
                    kind: ServiceConvergence(
                        service_kind=kind,
                        state=states[kind],
                        monitored=monitored[kind],
                        checks=checks[kind],
                    )
                    for kind in PRECEDENCE
                },
                elapsed=self._elapsed(start),
                timed_out=timed_out,
                cancelled=cancelled,
                error=error,
            )

        if signal.is_set():
            # Cancelled before or during deletion: skipped services are not converged.
            for kind in PRECEDENCE:
                outcome = outcomes.get(kind)
                if resolution.records_for(kind) and (outcome is None or not outcome.attempted):
                    states[kind] = ServiceState.CANCELLED
            return self._cancel(states, report)

        if _pending(states):
            log.info(
                "Waiting for %s to converge (interval %.0fs, timeout %.0fs)",
                ", ".join(str(kind) for kind in _pending(states)),
                self.poll_interval,
                self.timeout,
            )

        while _pending(states):
            if signal.wait(self.poll_interval):
                return self._cancel(states, report)

            for kind in PRECEDENCE:
                if states[kind] is not ServiceState.PENDING:
                    continue
                if not _unblocked(kind, states):
                    continue
                if signal.is_set():
                    break
                checks[kind] += 1
                try:
                    converged = self._check(kind, resolution)
                except ServiceAuthError as exc:
                    return self._abort(states, report, exc)
                if converged:
                    states[kind] = ServiceState.CONVERGED

            elapsed = self._elapsed(start)
            self.sink(PollTick(elapsed=elapsed, states=dict(states)))
            if signal.is_set():
                return self._cancel(states, report)
            if _pending(states) and elapsed.total_seconds() >= self.timeout:
                for kind in _pending(states):
                    log.warning("%s did not converge within %.0fs", kind, self.timeout)
                    states[kind] = ServiceState.TIMED_OUT
                final = report(timed_out=True)
                self.sink(ConvergenceTimedOut(elapsed=final.elapsed, states=dict(states)))
                return final

        final = report()
        self.sink(ConvergenceReached(elapsed=final.elapsed, states=dict(states)))
        return final

    def _check(self, kind: ServiceKind, resolution: Resolution) -> bool:
        try:
            remaining = self.resolver.lookup(kind, resolution.identity, quiet=True)
        except ServiceQueryError as exc:
            log.warning("%s: status check failed, will retry: %s", kind, exc)
            return False
        if remaining:
            log.debug("%s: %d record(s) still present", kind, len(remaining))
            return False
        log.info("%s: device no longer present", kind)
        return True

    def _cancel(
        self,
        states: dict[ServiceKind, ServiceState],
        report: Callable[..., MonitorReport],
    ) -> MonitorReport:
        for kind in _pending(states):
            states[kind] = ServiceState.CANCELLED
        log.warning("Convergence monitoring cancelled")
        final = report(cancelled=True)
        self.sink(MonitoringCancelled(elapsed=final.elapsed, states=dict(states)))
        return final

    def _abort(
        self,
        states: dict[ServiceKind, ServiceState],
        report: Callable[..., MonitorReport],
        exc: ServiceAuthError,
    ) -> MonitorReport:
        detail = str(exc)
        for kind in _pending(states):
            states[kind] = ServiceState.ABORTED
        log.error("Convergence monitoring stopped, credential rejected: %s", detail)
        final = report(error=detail)
        self.sink(MonitoringAborted(elapsed=final.elapsed, states=dict(states), detail=detail))
        return final

    def _elapsed(self, start: float) -> timedelta:
        return timedelta(seconds=max(0.0, self.clock() - start))


def _unblocked(kind: ServiceKind, states: Mapping[ServiceKind, ServiceState]) -> bool:
    return all(states[before] is ServiceState.CONVERGED for before in predecessors(kind))


def _pending(states: Mapping[ServiceKind, ServiceState]) -> tuple[ServiceKind, ...]:
    return tuple(kind for kind in PRECEDENCE if states[kind] is ServiceState.PENDING)
