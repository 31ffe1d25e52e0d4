"""Device identity resolution across the three backend services.

Matching policy:
- device management and provisioning: query by name (exact names ahead of
  partial hits), then by serial when no name match survives the serial
  cross-check; the first confirmed record wins (these services hold one record
  per device)
- identity directory: query by name and keep every duplicate, cross-checking the
  serial embedded in each record's attribute list against the local serial

A query that fails during ``resolve`` is recorded as a resolution failure and
treated as "not found" so one flaky lookup does not block the session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from devretire.config.reconciliation import DEFAULT_SERIAL_MARKER

from .errors import ServiceConnectionError, ServiceQueryError
from .model import (
    PRECEDENCE,
    MatchConfidence,
    RecordQuery,
    Resolution,
    ServiceKind,
    ServiceRecord,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .model import DeviceIdentity, RawRecord
    from .ports import ServiceDirectory

log = getLogger(__name__)


def extract_serial(attributes: Iterable[str], *, marker: str = DEFAULT_SERIAL_MARKER) -> str | None:
    """Return the value of the first ``<marker>:<value>`` attribute, stripped.

    The marker match is case-sensitive. Blank values count as absent.
    """

    prefix = f"{marker}:"
    for attribute in attributes:
        if attribute.startswith(prefix):
            value = attribute[len(prefix) :].strip()
            return value or None
    return None


def classify_serial(
    local_serial: str | None,
    remote_serial: str | None,
    *,
    trust_missing_serial: bool = True,
) -> MatchConfidence:
    if local_serial is None:
        return MatchConfidence.CONFIRMED
    if remote_serial is None:
        return MatchConfidence.CONFIRMED if trust_missing_serial else MatchConfidence.REJECTED
    if remote_serial == local_serial:
        return MatchConfidence.CONFIRMED
    return MatchConfidence.REJECTED


@dataclass(slots=True)
class IdentityResolver:
    """Find the records that belong to one device in every service."""

    directory: ServiceDirectory
    serial_marker: str = DEFAULT_SERIAL_MARKER
    trust_missing_serial: bool = True

    def resolve(self, identity: DeviceIdentity, *, quiet: bool = False) -> Resolution:
        """Snapshot the device's records across all services."""

        found: dict[ServiceKind, tuple[ServiceRecord, ...]] = {}
        rejected: list[ServiceRecord] = []
        failures: dict[ServiceKind, str] = {}
        connection_errors: list[ServiceConnectionError] = []

        for kind in PRECEDENCE:
            try:
                records = self._lookup_all(kind, identity, quiet=quiet)
            except ServiceQueryError as exc:
                log.warning("Lookup in %s failed, treating as not found: %s", kind, exc)
                failures[kind] = str(exc)
                if isinstance(exc, ServiceConnectionError):
                    connection_errors.append(exc)
                found[kind] = ()
                continue
            found[kind] = tuple(record for record in records if record.is_confirmed)
            rejected.extend(record for record in records if not record.is_confirmed)

        if len(connection_errors) == len(PRECEDENCE):
            raise connection_errors[-1]

        management = found[ServiceKind.DEVICE_MANAGEMENT]
        provisioning = found[ServiceKind.PROVISIONING]
        return Resolution(
            identity=identity,
            identity_records=found[ServiceKind.IDENTITY],
            management=management[0] if management else None,
            provisioning=provisioning[0] if provisioning else None,
            rejected=tuple(rejected),
            failures=failures,
        )

    def lookup(
        self,
        kind: ServiceKind,
        identity: DeviceIdentity,
        *,
        quiet: bool = False,
    ) -> tuple[ServiceRecord, ...]:
        """Return the confirmed records for ``identity`` in one service.

        Raises ``ServiceQueryError`` when the query fails, so callers can tell a
        failed lookup from an absent device.
        """

        records = self._lookup_all(kind, identity, quiet=quiet)
        return tuple(record for record in records if record.is_confirmed)

    def _lookup_all(
        self,
        kind: ServiceKind,
        identity: DeviceIdentity,
        *,
        quiet: bool,
    ) -> tuple[ServiceRecord, ...]:
        if kind is ServiceKind.IDENTITY:
            return self._lookup_identity(identity, quiet=quiet)
        return self._lookup_unique(kind, identity, quiet=quiet)

    def _lookup_unique(
        self,
        kind: ServiceKind,
        identity: DeviceIdentity,
        *,
        quiet: bool,
    ) -> tuple[ServiceRecord, ...]:
        level = logging.DEBUG if quiet else logging.INFO
        serial = identity.serial
        raw = self.directory.find(kind, RecordQuery.by_name(identity.name), quiet=quiet)
        records = self._classify(kind, _exact_names_first(raw, identity.name), serial, level=level)
        if not any(record.is_confirmed for record in records) and serial is not None:
            log.log(
                level,
                "%s: no confirmed record named %s, trying serial %s",
                kind,
                identity.name,
                serial,
            )
            raw = self.directory.find(kind, RecordQuery.by_serial(serial), quiet=quiet)
            seen = {record.record_id for record in records}
            extra = [candidate for candidate in raw if candidate.record_id not in seen]
            records = (*records, *self._classify(kind, extra, serial, level=level))

        confirmed = [record for record in records if record.is_confirmed]
        if not confirmed:
            log.log(level, "%s: device %s not found", kind, identity.name)
            return records
        if len(confirmed) > 1:
            log.log(level, "%s: %d records match, using the first", kind, len(confirmed))
        first = confirmed[0]
        log.log(level, "%s: found record %s (%s)", kind, first.record_id, first.display_name)
        # The first confirmed record leads; the rest are only reported.
        return (first, *(record for record in records if not record.is_confirmed))

    def _classify(
        self,
        kind: ServiceKind,
        candidates: Iterable[RawRecord],
        local_serial: str | None,
        *,
        level: int,
    ) -> tuple[ServiceRecord, ...]:
        records: dict[str, ServiceRecord] = {}
        for candidate in candidates:
            if candidate.record_id in records:
                continue
            confidence = classify_serial(
                local_serial,
                candidate.raw_serial,
                trust_missing_serial=self.trust_missing_serial,
            )
            if confidence is MatchConfidence.REJECTED:
                log.log(
                    level,
                    "%s: record %s (%s) rejected, serial %s does not match local %s",
                    kind,
                    candidate.record_id,
                    candidate.display_name,
                    candidate.raw_serial or "<none>",
                    local_serial,
                )
            records[candidate.record_id] = _to_service_record(candidate, confidence)
        return tuple(records.values())

    def _lookup_identity(
        self,
        identity: DeviceIdentity,
        *,
        quiet: bool,
    ) -> tuple[ServiceRecord, ...]:
        level = logging.DEBUG if quiet else logging.INFO
        kind = ServiceKind.IDENTITY
        raw = self.directory.find(kind, RecordQuery.by_name(identity.name), quiet=quiet)
        local_serial = identity.serial

        records: dict[str, ServiceRecord] = {}
        for candidate in raw:
            if candidate.record_id in records:
                continue
            remote_serial = extract_serial(candidate.attributes, marker=self.serial_marker)
            confidence = classify_serial(
                local_serial,
                remote_serial,
                trust_missing_serial=self.trust_missing_serial,
            )
            if confidence is MatchConfidence.REJECTED:
                log.log(
                    level,
                    "%s: record %s rejected, serial %s does not match local %s",
                    kind,
                    candidate.record_id,
                    remote_serial or "<none>",
                    local_serial,
                )
            records[candidate.record_id] = ServiceRecord(
                service_kind=kind,
                record_id=candidate.record_id,
                display_name=candidate.display_name,
                raw_serial=remote_serial,
                match_confidence=confidence,
            )

        confirmed = sum(1 for record in records.values() if record.is_confirmed)
        log.log(level, "%s: %d confirmed record(s) for %s", kind, confirmed, identity.name)
        return tuple(records.values())


def _to_service_record(raw: RawRecord, confidence: MatchConfidence) -> ServiceRecord:
    return ServiceRecord(
        service_kind=raw.service_kind,
        record_id=raw.record_id,
        display_name=raw.display_name,
        raw_serial=raw.raw_serial,
        match_confidence=confidence,
    )


def _exact_names_first(candidates: Iterable[RawRecord], name: str) -> list[RawRecord]:
    """Order exact (case-insensitive) name matches ahead of partial ones."""

    wanted = name.casefold()
    return sorted(
        candidates,
        key=lambda record: (record.display_name or "").casefold() != wanted,
    )
