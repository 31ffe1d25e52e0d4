from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from devretire.adapters.local_device import StaticDeviceFacts
from devretire.domain.errors import ServiceAuthError
from devretire.domain.events import MonitoringAborted
from devretire.domain.model import (
    PRECEDENCE,
    DeletionOutcome,
    DeviceIdentity,
    MatchConfidence,
    ReconciliationResult,
    Resolution,
    ServiceConvergence,
    ServiceKind,
    ServiceRecord,
    ServiceState,
)
from devretire.ui import cli as cli_module

if TYPE_CHECKING:
    from devretire.config import ReconciliationConfig

LAPTOP = DeviceIdentity(name="LAPTOP-01", serial_number="SN123")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "DEVRETIRE_POLL_INTERVAL_SECONDS",
        "DEVRETIRE_TIMEOUT_SECONDS",
        "DEVRETIRE_SERIAL_MARKER",
        "DEVRETIRE_TRUST_MISSING_SERIAL",
    ):
        monkeypatch.delenv(name, raising=False)


def _managed_resolution() -> Resolution:
    return Resolution(
        identity=LAPTOP,
        management=ServiceRecord(
            service_kind=ServiceKind.DEVICE_MANAGEMENT,
            record_id="md-1",
            display_name="LAPTOP-01",
            raw_serial="SN123",
            match_confidence=MatchConfidence.CONFIRMED,
        ),
    )


def _result(
    *,
    found: bool = True,
    succeeded: bool = True,
    cancelled: bool = False,
    confirmed: bool = True,
    monitor_error: str | None = None,
) -> ReconciliationResult:
    resolution = _managed_resolution() if found else Resolution(identity=LAPTOP)
    outcomes = {kind: DeletionOutcome.not_attempted(kind) for kind in PRECEDENCE}
    if found:
        outcomes[ServiceKind.DEVICE_MANAGEMENT] = DeletionOutcome(
            service_kind=ServiceKind.DEVICE_MANAGEMENT,
            attempted=True,
            succeeded=succeeded,
            error_detail=None if succeeded else "HTTP 403",
        )
    state = ServiceState.CONVERGED if monitor_error is None else ServiceState.ABORTED
    convergence = {kind: ServiceConvergence(service_kind=kind, state=state) for kind in PRECEDENCE}
    return ReconciliationResult(
        identity=LAPTOP,
        resolution=resolution,
        outcomes=outcomes,
        convergence=convergence,
        cancelled=cancelled,
        confirmed=confirmed,
        monitor_error=monitor_error,
    )


def _patch_retire(
    monkeypatch: pytest.MonkeyPatch,
    result: ReconciliationResult | None = None,
    error: Exception | None = None,
) -> dict[str, object]:
    captured: dict[str, object] = {}

    def fake_retire(**kwargs: object) -> ReconciliationResult:
        captured.update(kwargs)
        if error is not None:
            raise error
        return result or _result()

    monkeypatch.setattr(cli_module, "retire_device", fake_retire)
    return captured


def _exit_code(argv: list[str]) -> int | str | None:
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(argv)
    return excinfo.value.code


def test_main_cli_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _patch_retire(monkeypatch)

    assert _exit_code([]) == 0

    assert captured["facts"] is None
    assert captured["dry_run"] is False
    assert captured["trigger_reset"] is True
    assert captured["confirm"] is cli_module._prompt_confirmation  # noqa: SLF001
    config: ReconciliationConfig = captured["config"]  # type: ignore[assignment]
    assert config.poll_interval_seconds == 5.0
    assert config.timeout_seconds == 1800.0
    assert captured["cancel"] is not None


def test_main_cli_with_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _patch_retire(monkeypatch)

    code = _exit_code(
        [
            "--name",
            "LAPTOP-01",
            "--serial",
            "SN123",
            "--dry-run",
            "--no-reset",
            "--poll-interval",
            "1",
            "--timeout",
            "90",
        ]
    )

    assert code == 0
    facts = captured["facts"]
    assert isinstance(facts, StaticDeviceFacts)
    assert facts() == LAPTOP
    assert captured["dry_run"] is True
    assert captured["confirm"] is None
    assert captured["trigger_reset"] is False
    config: ReconciliationConfig = captured["config"]  # type: ignore[assignment]
    assert config.poll_interval_seconds == 1.0
    assert config.timeout_seconds == 90.0


def test_main_cli_yes_skips_confirmation(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _patch_retire(monkeypatch)

    _exit_code(["--yes"])

    assert captured["confirm"] is None


@pytest.mark.parametrize(
    "argv",
    [
        ["--serial", "SN123"],
        ["--timeout", "-5"],
        ["--name", "   "],
    ],
)
def test_main_cli_invalid_arguments(monkeypatch: pytest.MonkeyPatch, argv: list[str]) -> None:
    captured = _patch_retire(monkeypatch)

    assert _exit_code(argv) == 2
    assert captured == {}


def test_main_cli_invalid_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _patch_retire(monkeypatch)
    monkeypatch.setenv("DEVRETIRE_TIMEOUT_SECONDS", "never")

    assert _exit_code([]) == 2
    assert captured == {}


@pytest.mark.parametrize(
    ("result", "expected"),
    [
        (_result(), 0),
        (_result(found=False), 0),
        (_result(confirmed=False), 0),
        (_result(succeeded=False), 1),
        (_result(cancelled=True), 130),
        (_result(monitor_error="token expired"), 1),
    ],
)
def test_main_cli_exit_codes(
    monkeypatch: pytest.MonkeyPatch, result: ReconciliationResult, expected: int
) -> None:
    _patch_retire(monkeypatch, result=result)

    assert _exit_code(["--yes"]) == expected


def test_main_cli_service_errors_exit_nonzero(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_retire(monkeypatch, error=ServiceAuthError("token expired"))

    assert _exit_code(["--yes"]) == 1


@pytest.mark.parametrize(("answer", "expected"), [("y", True), (" YES ", True), ("", False)])
def test_prompt_confirmation(answer: str, expected: bool) -> None:
    prompts: list[str] = []

    def prompt(text: str) -> str:
        prompts.append(text)
        return answer

    confirmed = cli_module._prompt_confirmation(  # noqa: SLF001
        _managed_resolution(), prompt=prompt
    )

    assert confirmed is expected
    assert prompts == ["Delete 1 record(s) for LAPTOP-01? [y/N] "]


def test_prompt_confirmation_declines_on_eof() -> None:
    def prompt(_: str) -> str:
        raise EOFError

    assert not cli_module._prompt_confirmation(  # noqa: SLF001
        _managed_resolution(), prompt=prompt
    )


def test_log_progress_reports_aborted_monitoring(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level("ERROR")
    event = MonitoringAborted(
        elapsed=timedelta(seconds=12),
        states=dict.fromkeys(PRECEDENCE, ServiceState.ABORTED),
        detail="token expired",
    )

    cli_module.log_progress(event)

    assert "Monitoring stopped before every service converged: token expired" in caplog.text
