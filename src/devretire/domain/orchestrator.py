"""Ordered, idempotent deletion across the three services."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from .errors import DeleteResult, DeleteStatus
from .events import DeletionFinished, discard_event
from .model import (
    PRECEDENCE,
    DeletionOutcome,
    IdentityDeletionOutcome,
    ServiceKind,
)

if TYPE_CHECKING:
    from .events import ProgressSink
    from .model import Resolution, ServiceRecord
    from .ports import CancellationSignal, ServiceDirectory

log = getLogger(__name__)

CANCELLED_DETAIL = "cancelled before deletion"
_IN_PROGRESS_NOTE = "deletion already in progress on the service"


@dataclass(slots=True)
class DeletionOrchestrator:
    """Delete resolved records in precedence order, one service at a time.

    A failure in one service never stops the others. In dry-run mode no delete
    call reaches the directory and every targeted record counts as deleted.
    """

    directory: ServiceDirectory
    dry_run: bool = False
    sink: ProgressSink = discard_event

    def delete(
        self,
        resolution: Resolution,
        *,
        cancel: CancellationSignal | None = None,
    ) -> dict[ServiceKind, DeletionOutcome]:
        outcomes: dict[ServiceKind, DeletionOutcome] = {}
        for kind in PRECEDENCE:
            records = resolution.records_for(kind)
            if cancel is not None and cancel.is_set():
                outcome = DeletionOutcome.not_attempted(
                    kind, reason=CANCELLED_DETAIL if records else None
                )
            elif kind is ServiceKind.IDENTITY:
                outcome = self._delete_identity(records, cancel=cancel)
            else:
                outcome = self._delete_single(kind, records[0] if records else None)
            outcomes[kind] = outcome
            self.sink(DeletionFinished(service_kind=kind, outcome=outcome, dry_run=self.dry_run))
        return outcomes

    def _delete_single(self, kind: ServiceKind, record: ServiceRecord | None) -> DeletionOutcome:
        if record is None:
            log.info("%s: nothing to delete", kind)
            return DeletionOutcome.not_attempted(kind)

        result = self._issue(kind, record)
        if result.is_success:
            return DeletionOutcome(
                service_kind=kind,
                attempted=True,
                succeeded=True,
                already_absent=result.status is DeleteStatus.NOT_FOUND,
                annotation=_annotation_for(result),
            )
        return DeletionOutcome(
            service_kind=kind,
            attempted=True,
            succeeded=False,
            error_detail=result.detail or str(result.status),
            error_kind=result.status,
        )

    def _delete_identity(
        self,
        records: tuple[ServiceRecord, ...],
        *,
        cancel: CancellationSignal | None,
    ) -> IdentityDeletionOutcome:
        kind = ServiceKind.IDENTITY
        if not records:
            log.info("%s: nothing to delete", kind)
            return IdentityDeletionOutcome(service_kind=kind)

        deleted = 0
        absent = 0
        errors: list[str] = []
        annotations: list[str] = []
        error_kind: DeleteStatus | None = None
        for record in records:
            if cancel is not None and cancel.is_set():
                errors.append(f"{record.record_id}: {CANCELLED_DETAIL}")
                continue
            result = self._issue(kind, record)
            if result.is_success:
                deleted += 1
                if result.status is DeleteStatus.NOT_FOUND:
                    absent += 1
                note = _annotation_for(result)
                if note is not None:
                    annotations.append(f"{record.record_id}: {note}")
                continue
            errors.append(f"{record.record_id}: {result.detail or result.status}")
            # Fatal wins over transient when both occur.
            if error_kind is not DeleteStatus.FATAL:
                error_kind = result.status

        failed = len(errors)
        return IdentityDeletionOutcome(
            service_kind=kind,
            attempted=True,
            succeeded=deleted > 0 and failed == 0,
            already_absent=deleted > 0 and absent == deleted,
            error_detail="; ".join(errors) or None,
            error_kind=error_kind,
            annotation="; ".join(annotations) or None,
            deleted_count=deleted,
            failed_count=failed,
            errors=tuple(errors),
        )

    def _issue(self, kind: ServiceKind, record: ServiceRecord) -> DeleteResult:
        if self.dry_run:
            log.info(
                "[dry-run] would delete %s record %s (%s)",
                kind,
                record.record_id,
                record.display_name,
            )
            return DeleteResult(DeleteStatus.DELETED, detail="dry-run")

        log.info("Deleting %s record %s (%s)", kind, record.record_id, record.display_name)
        result = self.directory.delete(kind, record.record_id)
        match result.status:
            case DeleteStatus.DELETED:
                log.info("%s: deleted %s", kind, record.record_id)
            case DeleteStatus.NOT_FOUND:
                log.info("%s: %s was already absent", kind, record.record_id)
            case DeleteStatus.ALREADY_IN_PROGRESS:
                log.warning("%s: deletion of %s already in progress", kind, record.record_id)
            case DeleteStatus.TRANSIENT:
                log.warning(
                    "%s: transient failure deleting %s: %s", kind, record.record_id, result.detail
                )
            case DeleteStatus.FATAL:
                log.error("%s: could not delete %s: %s", kind, record.record_id, result.detail)
        return result


def _annotation_for(result: DeleteResult) -> str | None:
    if result.status is DeleteStatus.ALREADY_IN_PROGRESS:
        return _IN_PROGRESS_NOTE
    return None
