from __future__ import annotations

import json
import subprocess
from collections.abc import Sequence  # noqa: TC003
from typing import TYPE_CHECKING

import pytest

from devretire.adapters.local_device import StaticDeviceFacts, SystemDeviceFacts, clean_serial
from devretire.domain.errors import DeviceFactsError
from devretire.domain.model import DeviceIdentity

if TYPE_CHECKING:
    from pathlib import Path


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, None),
        ("  SN123 ", "SN123"),
        ("To be filled by O.E.M.", None),
        ("Default string", None),
        ("0", None),
        ("", None),
    ],
)
def test_clean_serial(raw: str | None, expected: str | None) -> None:
    assert clean_serial(raw) == expected


def test_static_facts_return_identity() -> None:
    identity = DeviceIdentity(name="LAPTOP-01", serial_number="SN123")

    assert StaticDeviceFacts(identity)() is identity


def test_windows_facts_from_cim() -> None:
    def runner(args: Sequence[str]) -> str:
        assert args[0] == "powershell.exe"
        return json.dumps(
            {
                "Name": "LAPTOP-01",
                "SerialNumber": " SN123 ",
                "Manufacturer": "Contoso",
                "Model": "Book 13",
            }
        )

    identity = SystemDeviceFacts(platform="win32", runner=runner)()

    assert identity == DeviceIdentity(
        name="LAPTOP-01", serial_number="SN123", manufacturer="Contoso", model="Book 13"
    )


def test_windows_facts_fall_back_to_hostname() -> None:
    facts = SystemDeviceFacts(
        platform="win32",
        runner=lambda _: json.dumps({"Name": None, "SerialNumber": "System Serial Number"}),
        hostname=lambda: "laptop-01.corp.example.com",
    )

    identity = facts()

    assert identity.name == "laptop-01"
    assert identity.serial_number is None


def test_windows_command_failure_raises() -> None:
    def runner(args: Sequence[str]) -> str:
        raise subprocess.CalledProcessError(1, list(args))

    with pytest.raises(DeviceFactsError):
        SystemDeviceFacts(platform="win32", runner=runner)()


def test_windows_garbage_output_raises() -> None:
    with pytest.raises(DeviceFactsError):
        SystemDeviceFacts(platform="win32", runner=lambda _: "not json")()


def test_linux_facts_from_dmi(tmp_path: Path) -> None:
    (tmp_path / "product_serial").write_text("SN123\n", encoding="utf-8")
    (tmp_path / "sys_vendor").write_text("Contoso\n", encoding="utf-8")
    (tmp_path / "product_name").write_text("Book 13\n", encoding="utf-8")

    identity = SystemDeviceFacts(
        platform="linux", dmi_root=tmp_path, hostname=lambda: "laptop-01"
    )()

    assert identity == DeviceIdentity(
        name="laptop-01", serial_number="SN123", manufacturer="Contoso", model="Book 13"
    )


def test_linux_unreadable_serial_is_absent(tmp_path: Path) -> None:
    identity = SystemDeviceFacts(
        platform="linux", dmi_root=tmp_path, hostname=lambda: "laptop-01"
    )()

    assert identity.name == "laptop-01"
    assert identity.serial_number is None
    assert identity.manufacturer is None


def test_blank_hostname_raises() -> None:
    with pytest.raises(DeviceFactsError):
        SystemDeviceFacts(platform="darwin", hostname=lambda: "  ")()
