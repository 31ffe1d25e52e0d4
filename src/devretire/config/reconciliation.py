"""Reconciliation defaults for the resolver, orchestrator and monitor."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_bool, env_float, optional_env_var

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_TIMEOUT_SECONDS = 30 * 60.0
DEFAULT_SERIAL_MARKER = "[SerialNumber]"


@dataclass(frozen=True, slots=True)
class ReconciliationConfig:
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    serial_marker: str = DEFAULT_SERIAL_MARKER
    # When the directory record carries no serial, trust the name match.
    trust_missing_serial: bool = True


def get_reconciliation_config() -> ReconciliationConfig:
    return ReconciliationConfig(
        poll_interval_seconds=env_float(
            "DEVRETIRE_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_SECONDS
        ),
        timeout_seconds=env_float("DEVRETIRE_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
        serial_marker=optional_env_var("DEVRETIRE_SERIAL_MARKER") or DEFAULT_SERIAL_MARKER,
        trust_missing_serial=env_bool("DEVRETIRE_TRUST_MISSING_SERIAL", True),
    )
