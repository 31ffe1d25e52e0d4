"""Ports for the collaborators around the reconciliation core."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .errors import DeleteResult
    from .model import (
        DeviceIdentity,
        RawRecord,
        RecordQuery,
        ReconciliationResult,
        ResetReport,
        Resolution,
        ServiceKind,
    )


@runtime_checkable
class ServiceDirectory(Protocol):
    """Query/delete access to the three backend services.

    ``find`` returns an empty list when nothing matches and raises
    ``ServiceQueryError`` (or ``ServiceAuthError``) when the query itself fails.
    ``delete`` never raises for remote errors; it classifies them instead.
    """

    def find(
        self,
        kind: ServiceKind,
        query: RecordQuery,
        *,
        quiet: bool = False,
    ) -> list[RawRecord]: ...

    def delete(self, kind: ServiceKind, record_id: str) -> DeleteResult: ...


@runtime_checkable
class DeviceFactsProvider(Protocol):
    def __call__(self) -> DeviceIdentity: ...


@runtime_checkable
class ResetTrigger(Protocol):
    def __call__(self, result: ReconciliationResult) -> ResetReport: ...


class CancellationSignal(Protocol):
    """Subset of ``threading.Event`` used to stop a session early."""

    def is_set(self) -> bool: ...

    def wait(self, timeout: float | None = None) -> bool: ...


ConfirmFindings = Callable[["Resolution"], bool]


__all__ = [
    "CancellationSignal",
    "ConfirmFindings",
    "DeviceFactsProvider",
    "ResetTrigger",
    "ServiceDirectory",
]
