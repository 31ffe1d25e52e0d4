"""Local device facts: host name, firmware serial number, make and model."""

from __future__ import annotations

import json
import socket
import subprocess
import sys
from dataclasses import dataclass, field
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from devretire.domain.errors import DeviceFactsError
from devretire.domain.model import DeviceIdentity

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

log = getLogger(__name__)

_POWERSHELL_FACTS: Final[str] = (
    "$bios = Get-CimInstance -ClassName Win32_BIOS; "
    "$cs = Get-CimInstance -ClassName Win32_ComputerSystem; "
    "[pscustomobject]@{Name=$cs.Name; SerialNumber=$bios.SerialNumber; "
    "Manufacturer=$cs.Manufacturer; Model=$cs.Model} | ConvertTo-Json -Compress"
)
_COMMAND_TIMEOUT_SECONDS: Final[float] = 30.0

# Firmware fillers that vendors ship instead of a real serial number.
PLACEHOLDER_SERIALS: Final[frozenset[str]] = frozenset(
    {
        "",
        "0",
        "none",
        "default string",
        "to be filled by o.e.m.",
        "system serial number",
        "not specified",
        "not applicable",
    }
)


def clean_serial(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    if stripped.casefold() in PLACEHOLDER_SERIALS:
        return None
    return stripped


class _WindowsFacts(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str | None = Field(default=None, alias="Name")
    serial_number: str | None = Field(default=None, alias="SerialNumber")
    manufacturer: str | None = Field(default=None, alias="Manufacturer")
    model: str | None = Field(default=None, alias="Model")


def _run_command(args: Sequence[str]) -> str:
    completed = subprocess.run(  # noqa: S603
        list(args),
        capture_output=True,
        text=True,
        check=True,
        timeout=_COMMAND_TIMEOUT_SECONDS,
    )
    return completed.stdout


@dataclass(frozen=True, slots=True)
class StaticDeviceFacts:
    """Facts supplied up front, e.g. from CLI overrides."""

    identity: DeviceIdentity

    def __call__(self) -> DeviceIdentity:
        return self.identity


@dataclass(slots=True)
class SystemDeviceFacts:
    """Read facts from the running system (CIM on Windows, DMI on Linux)."""

    platform: str = field(default=sys.platform)
    runner: Callable[[Sequence[str]], str] = field(default=_run_command)
    dmi_root: Path = field(default_factory=lambda: Path("/sys/class/dmi/id"))
    hostname: Callable[[], str] = field(default=socket.gethostname)

    def __call__(self) -> DeviceIdentity:
        if self.platform.startswith("win"):
            identity = self._windows_facts()
        elif self.platform.startswith("linux"):
            identity = self._linux_facts()
        else:
            identity = DeviceIdentity(name=self._short_hostname())
        log.debug("Local device facts: %s", identity)
        return identity

    def _short_hostname(self) -> str:
        name = self.hostname().split(".", 1)[0].strip()
        if not name:
            raise DeviceFactsError("Could not determine the device name")
        return name

    def _windows_facts(self) -> DeviceIdentity:
        args = ("powershell.exe", "-NoProfile", "-NonInteractive", "-Command", _POWERSHELL_FACTS)
        try:
            output = self.runner(args)
        except (OSError, subprocess.SubprocessError) as exc:
            raise DeviceFactsError(f"Could not query CIM for device facts: {exc}") from exc
        try:
            facts = _WindowsFacts.model_validate(json.loads(output))
        except (ValueError, ValidationError) as exc:
            raise DeviceFactsError(f"Unexpected CIM output: {output!r}") from exc
        return DeviceIdentity(
            name=(facts.name or "").strip() or self._short_hostname(),
            serial_number=clean_serial(facts.serial_number),
            manufacturer=facts.manufacturer,
            model=facts.model,
        )

    def _linux_facts(self) -> DeviceIdentity:
        return DeviceIdentity(
            name=self._short_hostname(),
            serial_number=clean_serial(self._read_dmi("product_serial")),
            manufacturer=self._read_dmi("sys_vendor"),
            model=self._read_dmi("product_name"),
        )

    def _read_dmi(self, entry: str) -> str | None:
        path = self.dmi_root / entry
        try:
            value = path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            # product_serial is root-only on most distributions.
            log.debug("Could not read %s: %s", path, exc)
            return None
        return value or None
