"""Domain model for device retirement (pure, dependency-light)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .errors import DeleteStatus


class ServiceKind(StrEnum):
    IDENTITY = "identity"
    DEVICE_MANAGEMENT = "device_management"
    PROVISIONING = "provisioning"


# Management must release the device before provisioning and identity records go.
PRECEDENCE: Final[tuple[ServiceKind, ...]] = (
    ServiceKind.DEVICE_MANAGEMENT,
    ServiceKind.PROVISIONING,
    ServiceKind.IDENTITY,
)


def predecessors(kind: ServiceKind) -> tuple[ServiceKind, ...]:
    """Return the services that precede ``kind`` in the deletion order."""

    return PRECEDENCE[: PRECEDENCE.index(kind)]


class MatchConfidence(StrEnum):
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class ServiceState(StrEnum):
    PENDING = "pending"
    CONVERGED = "converged"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    # Polling stopped early because the credential was rejected.
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self is not ServiceState.PENDING


@dataclass(frozen=True, slots=True)
class DeviceIdentity:
    """Facts about the physical device gathered once per session."""

    name: str
    serial_number: str | None = None
    manufacturer: str | None = None
    model: str | None = None

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Device name must not be blank")

    @property
    def serial(self) -> str | None:
        if self.serial_number is None:
            return None
        return self.serial_number.strip() or None

    @property
    def has_serial(self) -> bool:
        return self.serial is not None


@dataclass(frozen=True, slots=True)
class RecordQuery:
    """Lookup criterion for one directory query; exactly one field is set."""

    name: str | None = None
    serial: str | None = None

    def __post_init__(self) -> None:
        if (self.name is None) == (self.serial is None):
            raise ValueError("RecordQuery needs exactly one of name or serial")

    @classmethod
    def by_name(cls, name: str) -> RecordQuery:
        return cls(name=name)

    @classmethod
    def by_serial(cls, serial: str) -> RecordQuery:
        return cls(serial=serial)


@dataclass(frozen=True, slots=True)
class RawRecord:
    """A backend record normalised at the adapter boundary, before validation."""

    service_kind: ServiceKind
    record_id: str
    display_name: str | None = None
    raw_serial: str | None = None
    attributes: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ServiceRecord:
    """A record matched to the local device, with its serial cross-check verdict."""

    service_kind: ServiceKind
    record_id: str
    display_name: str | None
    raw_serial: str | None
    match_confidence: MatchConfidence

    @property
    def is_confirmed(self) -> bool:
        return self.match_confidence is MatchConfidence.CONFIRMED


@dataclass(frozen=True, slots=True)
class Resolution:
    """Snapshot of where the device was found, per service."""

    identity: DeviceIdentity
    identity_records: tuple[ServiceRecord, ...] = ()
    management: ServiceRecord | None = None
    provisioning: ServiceRecord | None = None
    rejected: tuple[ServiceRecord, ...] = ()
    failures: Mapping[ServiceKind, str] = field(default_factory=dict)

    def records_for(self, kind: ServiceKind) -> tuple[ServiceRecord, ...]:
        """Confirmed records targeted for deletion in ``kind``."""

        if kind is ServiceKind.IDENTITY:
            return self.identity_records
        record = self.management if kind is ServiceKind.DEVICE_MANAGEMENT else self.provisioning
        return (record,) if record is not None else ()

    @property
    def found_any(self) -> bool:
        return any(self.records_for(kind) for kind in PRECEDENCE)


@dataclass(frozen=True, slots=True, kw_only=True)
class DeletionOutcome:
    service_kind: ServiceKind
    attempted: bool = False
    succeeded: bool = False
    already_absent: bool = False
    error_detail: str | None = None
    error_kind: DeleteStatus | None = None
    annotation: str | None = None

    @classmethod
    def not_attempted(cls, kind: ServiceKind, *, reason: str | None = None) -> DeletionOutcome:
        if kind is ServiceKind.IDENTITY:
            return IdentityDeletionOutcome(service_kind=kind, error_detail=reason)
        return cls(service_kind=kind, error_detail=reason)


@dataclass(frozen=True, slots=True, kw_only=True)
class IdentityDeletionOutcome(DeletionOutcome):
    """Aggregate over every confirmed identity record (duplicates included)."""

    deleted_count: int = 0
    failed_count: int = 0
    errors: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ServiceConvergence:
    service_kind: ServiceKind
    state: ServiceState
    monitored: bool = True
    checks: int = 0

    @property
    def converged(self) -> bool:
        return self.state is ServiceState.CONVERGED


@dataclass(frozen=True, slots=True)
class ResetReport:
    triggered: bool
    succeeded: bool
    detail: str | None = None


@dataclass(frozen=True, slots=True)
class ReconciliationResult:
    """Final, per-service account of one retirement session."""

    identity: DeviceIdentity
    resolution: Resolution
    outcomes: Mapping[ServiceKind, DeletionOutcome]
    convergence: Mapping[ServiceKind, ServiceConvergence]
    elapsed: timedelta = timedelta(0)
    timed_out: bool = False
    cancelled: bool = False
    dry_run: bool = False
    confirmed: bool = True
    monitor_error: str | None = None
    reset: ResetReport | None = None

    def outcome(self, kind: ServiceKind) -> DeletionOutcome:
        return self.outcomes[kind]

    def converged(self, kind: ServiceKind) -> bool:
        entry = self.convergence.get(kind)
        return entry is not None and entry.converged

    def state(self, kind: ServiceKind) -> ServiceState | None:
        entry = self.convergence.get(kind)
        return entry.state if entry is not None else None

    @property
    def nothing_found(self) -> bool:
        return not self.resolution.found_any

    @property
    def fully_converged(self) -> bool:
        return all(self.converged(kind) for kind in PRECEDENCE)

    @property
    def all_succeeded(self) -> bool:
        """Every attempted deletion succeeded and every service converged."""

        deletions_ok = all(
            outcome.succeeded for outcome in self.outcomes.values() if outcome.attempted
        )
        return self.confirmed and deletions_ok and self.fully_converged
