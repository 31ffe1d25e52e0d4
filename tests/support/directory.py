"""Reusable fakes for the service directory and the session collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from devretire.domain.errors import DeleteResult, DeleteStatus
from devretire.domain.model import RawRecord, ResetReport, ServiceKind

if TYPE_CHECKING:
    from devretire.domain.events import ProgressEvent
    from devretire.domain.model import ReconciliationResult, RecordQuery


def identity_record(
    record_id: str,
    name: str,
    *,
    serial: str | None = None,
    marker: str = "[SerialNumber]",
) -> RawRecord:
    attributes = ("[USER-GID]:abc",)
    if serial is not None:
        attributes = (*attributes, f"{marker}:{serial}")
    return RawRecord(
        service_kind=ServiceKind.IDENTITY,
        record_id=record_id,
        display_name=name,
        attributes=attributes,
    )


def managed_record(record_id: str, name: str, *, serial: str | None = None) -> RawRecord:
    return RawRecord(
        service_kind=ServiceKind.DEVICE_MANAGEMENT,
        record_id=record_id,
        display_name=name,
        raw_serial=serial,
    )


def autopilot_record(record_id: str, *, serial: str, name: str | None = None) -> RawRecord:
    return RawRecord(
        service_kind=ServiceKind.PROVISIONING,
        record_id=record_id,
        display_name=name,
        raw_serial=serial,
    )


@dataclass
class FakeDirectory:
    """In-memory directory that mimics the matching rules of the Graph adapter.

    ``lingering`` keeps a deleted record visible for that many further lookups of
    its service, to simulate eventual consistency.
    """

    records: list[RawRecord] = field(default_factory=list)
    delete_statuses: dict[str, DeleteStatus] = field(default_factory=dict)
    find_errors: dict[ServiceKind, Exception] = field(default_factory=dict)
    lingering: dict[str, int] = field(default_factory=dict)
    deleted: set[str] = field(default_factory=set)
    calls: list[tuple[str, ServiceKind, str]] = field(default_factory=list)
    find_results: list[tuple[ServiceKind, int]] = field(default_factory=list)

    def find(
        self,
        kind: ServiceKind,
        query: RecordQuery,
        *,
        quiet: bool = False,
    ) -> list[RawRecord]:
        del quiet
        self.calls.append(("find", kind, query.name or query.serial or ""))
        error = self.find_errors.get(kind)
        if error is not None:
            raise error
        matches = [
            record
            for record in self.records
            if record.service_kind is kind and _matches(record, query) and self._visible(record)
        ]
        self.find_results.append((kind, len(matches)))
        return matches

    def delete(self, kind: ServiceKind, record_id: str) -> DeleteResult:
        self.calls.append(("delete", kind, record_id))
        forced = self.delete_statuses.get(record_id)
        if forced is not None and not forced.is_success:
            return DeleteResult(forced, detail=f"forced {forced}")
        known = any(r.record_id == record_id and r.service_kind is kind for r in self.records)
        if not known or record_id in self.deleted:
            return DeleteResult(DeleteStatus.NOT_FOUND, detail="HTTP 404")
        self.deleted.add(record_id)
        return DeleteResult(forced or DeleteStatus.DELETED)

    def delete_calls(self) -> list[tuple[ServiceKind, str]]:
        return [(kind, value) for action, kind, value in self.calls if action == "delete"]

    def _visible(self, record: RawRecord) -> bool:
        if record.record_id not in self.deleted:
            return True
        remaining = self.lingering.get(record.record_id, 0)
        if remaining <= 0:
            return False
        self.lingering[record.record_id] = remaining - 1
        return True


def _matches(record: RawRecord, query: RecordQuery) -> bool:
    if query.name is not None:
        if record.display_name is None:
            return False
        if record.service_kind is ServiceKind.PROVISIONING:
            return query.name.casefold() in record.display_name.casefold()
        return record.display_name == query.name
    if record.service_kind is ServiceKind.IDENTITY or record.raw_serial is None:
        return False
    serial = query.serial or ""
    if record.service_kind is ServiceKind.PROVISIONING:
        return serial.casefold() in record.raw_serial.casefold()
    return record.raw_serial == serial


@dataclass
class TickingClock:
    """Monotonic clock that advances by ``step`` seconds on every read."""

    step: float = 1.0
    now: float = 0.0

    def __call__(self) -> float:
        self.now += self.step
        return self.now


@dataclass
class RecordingSink:
    events: list[ProgressEvent] = field(default_factory=list)

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def of_type[T](self, event_type: type[T]) -> list[T]:
        return [event for event in self.events if isinstance(event, event_type)]


@dataclass
class RecordingResetTrigger:
    succeeded: bool = True
    results: list[ReconciliationResult] = field(default_factory=list)

    def __call__(self, result: ReconciliationResult) -> ResetReport:
        self.results.append(result)
        return ResetReport(triggered=True, succeeded=self.succeeded, detail="fake reset")
