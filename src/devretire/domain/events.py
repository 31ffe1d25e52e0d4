"""Structured progress events emitted by the reconciliation core."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import timedelta

    from .model import (
        DeletionOutcome,
        DeviceIdentity,
        ReconciliationResult,
        Resolution,
        ServiceKind,
        ServiceState,
    )


@dataclass(frozen=True, slots=True)
class FindingsReported:
    resolution: Resolution


@dataclass(frozen=True, slots=True)
class NothingFound:
    identity: DeviceIdentity


@dataclass(frozen=True, slots=True)
class DeletionFinished:
    service_kind: ServiceKind
    outcome: DeletionOutcome
    dry_run: bool = False


@dataclass(frozen=True, slots=True)
class PollTick:
    elapsed: timedelta
    states: Mapping[ServiceKind, ServiceState]


@dataclass(frozen=True, slots=True)
class ConvergenceReached:
    elapsed: timedelta
    states: Mapping[ServiceKind, ServiceState]


@dataclass(frozen=True, slots=True)
class ConvergenceTimedOut:
    elapsed: timedelta
    states: Mapping[ServiceKind, ServiceState]


@dataclass(frozen=True, slots=True)
class MonitoringCancelled:
    elapsed: timedelta
    states: Mapping[ServiceKind, ServiceState]


@dataclass(frozen=True, slots=True)
class MonitoringAborted:
    elapsed: timedelta
    states: Mapping[ServiceKind, ServiceState]
    detail: str


@dataclass(frozen=True, slots=True)
class SessionFinished:
    result: ReconciliationResult


type ProgressEvent = (
    FindingsReported
    | NothingFound
    | DeletionFinished
    | PollTick
    | ConvergenceReached
    | ConvergenceTimedOut
    | MonitoringCancelled
    | MonitoringAborted
    | SessionFinished
)

ProgressSink = Callable[[ProgressEvent], None]


def discard_event(_event: ProgressEvent) -> None:
    """Default sink for callers that do not render progress."""


__all__ = [
    "ConvergenceReached",
    "ConvergenceTimedOut",
    "DeletionFinished",
    "FindingsReported",
    "MonitoringAborted",
    "MonitoringCancelled",
    "NothingFound",
    "PollTick",
    "ProgressEvent",
    "ProgressSink",
    "SessionFinished",
    "discard_event",
]
