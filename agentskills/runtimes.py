from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path

from agentskills.errors import ConfigurationError


class Scope(str, enum.Enum):
    LOCAL = "local"
    GLOBAL = "global"

    @classmethod
    def parse(cls, value: str) -> "Scope":
        text = value.strip().lower()
        for member in cls:
            if member.value == text:
                return member
        raise ConfigurationError(f"unknown scope: {value!r}. expected 'local' or 'global'", value=value)


@dataclass(frozen=True, slots=True)
class InstallTarget:
    runtime_id: str
    display_name: str
    global_path: str
    local_path: str
    global_command_path: str | None = None
    local_command_path: str | None = None
    command_ext: str = ".md"

    @property
    def supports_commands(self) -> bool:
        return self.global_command_path is not None and self.local_command_path is not None

    def scope_dir(self, scope: Scope, *, home: Path | None = None, cwd: Path | None = None) -> Path:
        raw = self.global_path if scope is Scope.GLOBAL else self.local_path
        return _resolve(raw, home=home, cwd=cwd)

    def command_dir(self, scope: Scope, *, home: Path | None = None, cwd: Path | None = None) -> Path | None:
        if not self.supports_commands:
            return None
        raw = self.global_command_path if scope is Scope.GLOBAL else self.local_command_path
        return _resolve(str(raw), home=home, cwd=cwd)


def _resolve(raw: str, *, home: Path | None, cwd: Path | None) -> Path:
    if raw.startswith("~/"):
        base = home if home is not None else Path.home()
        return (base / raw[2:]).resolve()
    base = cwd if cwd is not None else Path.cwd()
    return (base / raw).resolve()


class Runtime(enum.Enum):
    OPENCODE = InstallTarget(
        runtime_id="opencode",
        display_name="OpenCode",
        global_path="~/.config/opencode/skills",
        local_path=".opencode/skills",
        global_command_path="~/.config/opencode/commands",
        local_command_path=".opencode/commands",
        command_ext=".md",
    )
    GEMINI = InstallTarget(
        runtime_id="gemini",
        display_name="Gemini CLI",
        global_path="~/.gemini/skills",
        local_path=".gemini/skills",
        global_command_path="~/.gemini/commands",
        local_command_path=".gemini/commands",
        command_ext=".toml",
    )
    CLAUDE = InstallTarget(
        runtime_id="claude",
        display_name="Claude",
        global_path="~/.claude/skills",
        local_path=".claude/skills",
    )
    DROID = InstallTarget(
        runtime_id="droid",
        display_name="FactoryAI Droid",
        global_path="~/.factory/skills",
        local_path=".factory/skills",
        global_command_path="~/.factory/commands",
        local_command_path=".factory/commands",
        command_ext=".md",
    )
    AGENTS = InstallTarget(
        runtime_id="agents",
        display_name="Agents",
        global_path="~/.config/agents/skills",
        local_path=".agents/skills",
    )
    ANTIGRAVITY = InstallTarget(
        runtime_id="antigravity",
        display_name="Antigravity",
        global_path="~/.antigravity/skills",
        local_path=".antigravity/skills",
    )

    @property
    def id(self) -> str:
        return self.value.runtime_id

    @property
    def target(self) -> InstallTarget:
        return self.value

    @classmethod
    def ids(cls) -> list[str]:
        return [member.id for member in cls]

    @classmethod
    def get(cls, name: str) -> "Runtime":
        key = name.strip().lower().lstrip("-")
        for member in cls:
            if member.id == key:
                return member
        known = ", ".join(cls.ids())
        raise ConfigurationError(f"unknown runtime: {name}. known runtimes: {known}", value=name)


DEFAULT_RUNTIME = Runtime.AGENTS
