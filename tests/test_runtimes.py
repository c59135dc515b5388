from pathlib import Path

import pytest

from agentskills.errors import ConfigurationError
from agentskills.runtimes import DEFAULT_RUNTIME, Runtime, Scope


def test_scope_dir_is_keyed_by_runtime_and_scope(tmp_path: Path) -> None:
    home = tmp_path / "home"
    project = tmp_path / "project"

    target = Runtime.GEMINI.target
    assert target.scope_dir(Scope.GLOBAL, home=home, cwd=project) == (home / ".gemini" / "skills").resolve()
    assert target.scope_dir(Scope.LOCAL, home=home, cwd=project) == (project / ".gemini" / "skills").resolve()
    assert Runtime.OPENCODE.target.scope_dir(Scope.GLOBAL, home=home) == (home / ".config" / "opencode" / "skills").resolve()


def test_command_dir_only_for_runtimes_with_commands(tmp_path: Path) -> None:
    assert Runtime.DROID.target.supports_commands is True
    assert Runtime.DROID.target.command_dir(Scope.LOCAL, cwd=tmp_path) == (tmp_path / ".factory" / "commands").resolve()
    assert Runtime.CLAUDE.target.supports_commands is False
    assert Runtime.CLAUDE.target.command_dir(Scope.GLOBAL, home=tmp_path) is None


def test_runtime_lookup_accepts_flag_spelling() -> None:
    assert Runtime.get("droid") is Runtime.DROID
    assert Runtime.get("--Gemini") is Runtime.GEMINI
    assert DEFAULT_RUNTIME is Runtime.AGENTS
    assert Runtime.ids() == ["opencode", "gemini", "claude", "droid", "agents", "antigravity"]


def test_unknown_runtime_names_offending_value() -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        Runtime.get("foo")
    assert exc_info.value.value == "foo"
    assert "unknown runtime: foo" in str(exc_info.value)


def test_scope_parse() -> None:
    assert Scope.parse(" Local ") is Scope.LOCAL
    with pytest.raises(ConfigurationError):
        Scope.parse("everywhere")
