from __future__ import annotations

import pytest

from devretire.config import ReconciliationConfig
from devretire.domain.model import DeviceIdentity
from devretire.domain.monitor import ConvergenceMonitor
from devretire.domain.orchestrator import DeletionOrchestrator
from devretire.domain.resolver import IdentityResolver
from tests.support.directory import (
    FakeDirectory,
    RecordingSink,
    TickingClock,
    autopilot_record,
    identity_record,
    managed_record,
)


@pytest.fixture
def laptop() -> DeviceIdentity:
    return DeviceIdentity(
        name="LAPTOP-01",
        serial_number="SN123",
        manufacturer="Contoso",
        model="Book 13",
    )


@pytest.fixture
def registered_directory() -> FakeDirectory:
    """LAPTOP-01 registered once in every service, serials matching."""

    return FakeDirectory(
        records=[
            managed_record("md-1", "LAPTOP-01", serial="SN123"),
            autopilot_record("ap-1", serial="SN123", name="LAPTOP-01"),
            identity_record("dev-1", "LAPTOP-01", serial="SN123"),
        ]
    )


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def fast_config() -> ReconciliationConfig:
    return ReconciliationConfig(poll_interval_seconds=0.0, timeout_seconds=60.0)


@pytest.fixture
def resolver(registered_directory: FakeDirectory) -> IdentityResolver:
    return IdentityResolver(directory=registered_directory)


@pytest.fixture
def orchestrator(registered_directory: FakeDirectory, sink: RecordingSink) -> DeletionOrchestrator:
    return DeletionOrchestrator(directory=registered_directory, sink=sink)


@pytest.fixture
def monitor(resolver: IdentityResolver, sink: RecordingSink) -> ConvergenceMonitor:
    return ConvergenceMonitor(
        resolver=resolver,
        poll_interval=0.0,
        timeout=60.0,
        sink=sink,
        clock=TickingClock(step=1.0),
    )
