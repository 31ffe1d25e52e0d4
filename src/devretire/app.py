"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from devretire.adapters.graph import GraphDirectory
from devretire.adapters.local_device import SystemDeviceFacts
from devretire.adapters.reset import SystemResetTrigger
from devretire.config import get_graph_config, get_reconciliation_config
from devretire.domain.events import discard_event
from devretire.domain.monitor import ConvergenceMonitor
from devretire.domain.orchestrator import DeletionOrchestrator
from devretire.domain.resolver import IdentityResolver
from devretire.domain.session import ReconciliationSession

if TYPE_CHECKING:
    from devretire.config import ReconciliationConfig
    from devretire.domain.events import ProgressSink
    from devretire.domain.model import ReconciliationResult
    from devretire.domain.ports import (
        CancellationSignal,
        ConfirmFindings,
        DeviceFactsProvider,
        ResetTrigger,
        ServiceDirectory,
    )


log = getLogger(__name__)


def build_session(
    *,
    directory: ServiceDirectory,
    facts: DeviceFactsProvider,
    config: ReconciliationConfig,
    dry_run: bool = False,
    confirm: ConfirmFindings | None = None,
    reset_trigger: ResetTrigger | None = None,
    sink: ProgressSink = discard_event,
) -> ReconciliationSession:
    """Wire resolver, orchestrator and monitor around one directory."""

    resolver = IdentityResolver(
        directory=directory,
        serial_marker=config.serial_marker,
        trust_missing_serial=config.trust_missing_serial,
    )
    return ReconciliationSession(
        facts=facts,
        resolver=resolver,
        orchestrator=DeletionOrchestrator(directory=directory, dry_run=dry_run, sink=sink),
        monitor=ConvergenceMonitor(
            resolver=resolver,
            poll_interval=config.poll_interval_seconds,
            timeout=config.timeout_seconds,
            sink=sink,
        ),
        confirm=confirm,
        reset_trigger=reset_trigger,
        sink=sink,
    )


def retire_device(
    *,
    directory: ServiceDirectory | None = None,
    facts: DeviceFactsProvider | None = None,
    config: ReconciliationConfig | None = None,
    dry_run: bool = False,
    confirm: ConfirmFindings | None = None,
    trigger_reset: bool = True,
    reset_trigger: ResetTrigger | None = None,
    sink: ProgressSink = discard_event,
    cancel: CancellationSignal | None = None,
) -> ReconciliationResult:
    """Retire the local device from every service using the configured adapters."""

    effective_config = config or get_reconciliation_config()
    effective_directory = directory or GraphDirectory(config=get_graph_config())
    effective_reset: ResetTrigger | None = None
    if trigger_reset:
        effective_reset = reset_trigger or SystemResetTrigger(dry_run=dry_run)

    session = build_session(
        directory=effective_directory,
        facts=facts or SystemDeviceFacts(),
        config=effective_config,
        dry_run=dry_run,
        confirm=confirm,
        reset_trigger=effective_reset,
        sink=sink,
    )
    log.debug(
        "Starting retirement: dry_run=%s, poll_interval=%s, timeout=%s, reset=%s",
        dry_run,
        effective_config.poll_interval_seconds,
        effective_config.timeout_seconds,
        trigger_reset,
    )
    return session.run(cancel=cancel)
