"""Error taxonomy shared by the adapters and the reconciliation core."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .model import ServiceKind


class DeleteStatus(StrEnum):
    """Classification of a delete call, from the caller's point of view."""

    DELETED = "deleted"
    NOT_FOUND = "not_found"
    ALREADY_IN_PROGRESS = "already_in_progress"
    TRANSIENT = "transient"
    FATAL = "fatal"

    @property
    def is_success(self) -> bool:
        return self in _SUCCESS_STATUSES


_SUCCESS_STATUSES = frozenset(
    {DeleteStatus.DELETED, DeleteStatus.NOT_FOUND, DeleteStatus.ALREADY_IN_PROGRESS}
)


@dataclass(frozen=True, slots=True)
class DeleteResult:
    status: DeleteStatus
    detail: str | None = None
    status_code: int | None = None

    @property
    def is_success(self) -> bool:
        return self.status.is_success


class DevRetireError(RuntimeError):
    """Base class for errors raised by devretire."""


class DeviceFactsError(DevRetireError):
    """Raised when the local device facts cannot be determined."""


class ServiceError(DevRetireError):
    """Raised when a backend service call fails."""

    def __init__(
        self,
        message: str,
        *,
        service_kind: ServiceKind | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.service_kind = service_kind
        self.status_code = status_code


class ServiceQueryError(ServiceError):
    """A lookup failed; callers treat the service as not found for this attempt."""


class ServiceConnectionError(ServiceQueryError):
    """The backend could not be reached after transport retries."""


class ServiceAuthError(ServiceError):
    """The credential was rejected; no further call can succeed."""
