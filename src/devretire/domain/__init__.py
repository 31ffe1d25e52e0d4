"""Reconciliation core for retiring a device from the backend services.

Flow for one device:
1) read the local device facts
2) resolve matching records in every service (serial cross-check)
3) delete in precedence order: management, provisioning, identity
4) poll until each service no longer reports the device, or time out
5) hand the result to the local reset trigger
"""

from __future__ import annotations

from .errors import (
    DeleteResult,
    DeleteStatus,
    DeviceFactsError,
    DevRetireError,
    ServiceAuthError,
    ServiceConnectionError,
    ServiceError,
    ServiceQueryError,
)
from .model import (
    PRECEDENCE,
    DeletionOutcome,
    DeviceIdentity,
    IdentityDeletionOutcome,
    MatchConfidence,
    RawRecord,
    ReconciliationResult,
    RecordQuery,
    ResetReport,
    Resolution,
    ServiceConvergence,
    ServiceKind,
    ServiceRecord,
    ServiceState,
)
from .monitor import ConvergenceMonitor, MonitorReport
from .orchestrator import DeletionOrchestrator
from .resolver import IdentityResolver, classify_serial, extract_serial
from .session import ReconciliationSession

__all__ = [
    "PRECEDENCE",
    "ConvergenceMonitor",
    "DeleteResult",
    "DeleteStatus",
    "DeletionOrchestrator",
    "DeletionOutcome",
    "DevRetireError",
    "DeviceFactsError",
    "DeviceIdentity",
    "IdentityDeletionOutcome",
    "IdentityResolver",
    "MatchConfidence",
    "MonitorReport",
    "RawRecord",
    "ReconciliationResult",
    "ReconciliationSession",
    "RecordQuery",
    "ResetReport",
    "Resolution",
    "ServiceAuthError",
    "ServiceConnectionError",
    "ServiceConvergence",
    "ServiceError",
    "ServiceKind",
    "ServiceQueryError",
    "ServiceRecord",
    "ServiceState",
    "classify_serial",
    "extract_serial",
]
