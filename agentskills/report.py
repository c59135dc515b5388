from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Callable, Sequence

from agentskills.placement import InstallResult, InstallStatus

ICONS = {
    InstallStatus.COPIED: "✅",
    InstallStatus.OVERWRITTEN: "🔁",
    InstallStatus.SKIPPED: "⏭️ ",
    InstallStatus.FAILED: "❌",
}


@dataclass(slots=True)
class Summary:
    copied: int = 0
    skipped: int = 0
    overwritten: int = 0
    failed: int = 0

    @classmethod
    def from_results(cls, results: Sequence[InstallResult]) -> "Summary":
        counts = Counter(result.status for result in results)
        return cls(
            copied=counts[InstallStatus.COPIED],
            skipped=counts[InstallStatus.SKIPPED],
            overwritten=counts[InstallStatus.OVERWRITTEN],
            failed=counts[InstallStatus.FAILED],
        )

    @property
    def total(self) -> int:
        return self.copied + self.skipped + self.overwritten + self.failed

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def line(self) -> str:
        return (
            f"copied: {self.copied} | skipped: {self.skipped} | "
            f"overwritten: {self.overwritten} | failed: {self.failed}"
        )


def format_result(result: InstallResult) -> str:
    icon = ICONS[result.status]
    cmd = " (cmd)" if result.command_path is not None and result.ok else ""
    kept = f" [kept {result.preserved} user file(s)]" if result.preserved else ""
    error = f" - {result.reason}" if result.reason else ""
    return f"  {icon} {result.skill} → {result.runtime.target.display_name}: {result.status.value}{cmd}{kept}{error}"


def report(results: Sequence[InstallResult], out: Callable[[str], None] = print) -> int:
    """Print per-pair details and totals; return the process exit status."""
    summary = Summary.from_results(results)
    if not results:
        out("\nNothing to install.")
        return 0

    out("\n📊 Installation Details:")
    for result in results:
        out(format_result(result))

    out(f"\n{summary.line()}")
    if summary.failed:
        out(f"\n⚠️  {summary.total - summary.failed} of {summary.total} installation(s) succeeded, {summary.failed} failed")
    else:
        out(f"\n🎉 Installed {summary.total} skill placement(s) successfully")
    return summary.exit_code
