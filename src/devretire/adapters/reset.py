"""Local reset trigger, invoked once after reconciliation."""

from __future__ import annotations

import subprocess
import sys
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

from devretire.domain.model import ResetReport

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from devretire.domain.model import ReconciliationResult

log = getLogger(__name__)

DEFAULT_RESET_COMMAND: Final[tuple[str, ...]] = (
    r"C:\Windows\System32\systemreset.exe",
    "-factoryreset",
)


def _launch(args: Sequence[str]) -> None:
    # systemreset hands over to its own UI; do not wait for it.
    subprocess.Popen(list(args))  # noqa: S603


@dataclass(slots=True)
class SystemResetTrigger:
    """Start the Windows factory reset once the services are cleaned up."""

    dry_run: bool = False
    command: tuple[str, ...] = DEFAULT_RESET_COMMAND
    platform: str = field(default=sys.platform)
    launcher: Callable[[Sequence[str]], None] = field(default=_launch)

    def __call__(self, result: ReconciliationResult) -> ResetReport:
        command_line = " ".join(self.command)
        if self.dry_run or result.dry_run:
            log.info("[dry-run] would start local reset: %s", command_line)
            return ResetReport(triggered=False, succeeded=True, detail="dry-run")
        if not self.platform.startswith("win"):
            return ResetReport(
                triggered=False,
                succeeded=False,
                detail=f"local reset is not supported on {self.platform}",
            )
        log.warning("Starting local reset for %s: %s", result.identity.name, command_line)
        try:
            self.launcher(self.command)
        except OSError as exc:
            return ResetReport(triggered=True, succeeded=False, detail=str(exc))
        return ResetReport(triggered=True, succeeded=True, detail=command_line)
