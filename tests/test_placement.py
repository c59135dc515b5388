import asyncio
from pathlib import Path

import pytest

from agentskills.config import InstallRequest
from agentskills.placement import InstallStatus, PlacementEngine, check_target, render_template, update_gitignore
from agentskills.errors import UnsafePath
from agentskills.runtimes import Runtime, Scope
from agentskills.skills import SkillBundle, discover_skills


def _make_source(root: Path, *, gemini_template: str | None = None) -> list[SkillBundle]:
    skill_dir = root / "commit"
    (skill_dir / "references").mkdir(parents=True)
    commands = f"\ncommands:\n  gemini: {gemini_template}" if gemini_template else ""
    (skill_dir / "SKILL.md").write_text(f"---\nname: commit\ndescription: commits{commands}\n---\n\n# commit\n", encoding="utf-8")
    (skill_dir / "references" / "types.md").write_text("feat, fix\n", encoding="utf-8")
    (skill_dir / "commands" / "droid").mkdir(parents=True)
    (skill_dir / "commands" / "droid" / "commit.md").write_text("Read {{SKILL_PATH}}/SKILL.md\n", encoding="utf-8")
    return discover_skills(root)


def _snapshot(directory: Path) -> dict[str, bytes]:
    return {str(p.relative_to(directory)): p.read_bytes() for p in sorted(directory.rglob("*")) if p.is_file()}


def _engine(tmp_path: Path, *runtimes: Runtime, **kwargs) -> PlacementEngine:
    request = InstallRequest(scope=Scope.LOCAL, runtimes=runtimes, **kwargs)
    return PlacementEngine(request, home=tmp_path / "home", cwd=tmp_path / "project")


@pytest.mark.asyncio
async def test_fresh_install_copies_bundle(tmp_path: Path) -> None:
    bundles = _make_source(tmp_path / "src")
    engine = _engine(tmp_path, Runtime.CLAUDE)

    [result] = await engine.run(bundles)

    target = tmp_path / "project" / ".claude" / "skills" / "commit"
    assert result.status is InstallStatus.COPIED
    assert result.target_dir == target.resolve()
    assert (target / "SKILL.md").is_file()
    assert (target / "references" / "types.md").read_text(encoding="utf-8") == "feat, fix\n"
    assert (target / "commands" / "droid" / "commit.md").is_file()
    assert result.command_path is None


@pytest.mark.asyncio
async def test_reinstall_is_idempotent(tmp_path: Path) -> None:
    bundles = _make_source(tmp_path / "src")
    engine = _engine(tmp_path, Runtime.DROID, Runtime.AGENTS)

    first = await engine.run(bundles)
    tree_after_first = _snapshot(tmp_path / "project")
    second = await engine.run(bundles)

    assert [r.status for r in first] == [InstallStatus.COPIED, InstallStatus.COPIED]
    assert [r.status for r in second] == [InstallStatus.SKIPPED, InstallStatus.SKIPPED]
    assert all(r.files_written == 0 for r in second)
    assert _snapshot(tmp_path / "project") == tree_after_first


@pytest.mark.asyncio
async def test_user_files_survive_reinstall(tmp_path: Path) -> None:
    bundles = _make_source(tmp_path / "src")
    engine = _engine(tmp_path, Runtime.CLAUDE)
    target = tmp_path / "project" / ".claude" / "skills" / "commit"
    target.mkdir(parents=True)
    (target / "notes.txt").write_text("my notes", encoding="utf-8")

    [result] = await engine.run(bundles)

    assert result.status is InstallStatus.OVERWRITTEN
    assert result.preserved == 1
    assert (target / "notes.txt").read_text(encoding="utf-8") == "my notes"
    assert (target / "SKILL.md").is_file()


@pytest.mark.asyncio
async def test_changed_bundle_file_is_overwritten(tmp_path: Path) -> None:
    bundles = _make_source(tmp_path / "src")
    engine = _engine(tmp_path, Runtime.CLAUDE)
    await engine.run(bundles)
    target = tmp_path / "project" / ".claude" / "skills" / "commit"
    (target / "references" / "types.md").write_text("edited", encoding="utf-8")

    [result] = await engine.run(bundles)

    assert result.status is InstallStatus.OVERWRITTEN
    assert result.files_written == 1
    assert (target / "references" / "types.md").read_text(encoding="utf-8") == "feat, fix\n"


@pytest.mark.asyncio
async def test_command_template_rendered_with_skill_path(tmp_path: Path) -> None:
    bundles = _make_source(tmp_path / "src")
    engine = _engine(tmp_path, Runtime.DROID)

    [result] = await engine.run(bundles)

    command = tmp_path / "project" / ".factory" / "commands" / "commit.md"
    target = (tmp_path / "project" / ".factory" / "skills" / "commit").resolve()
    assert result.command_path == command.resolve()
    assert command.read_text(encoding="utf-8") == f"Read {target}/SKILL.md\n"


@pytest.mark.asyncio
async def test_commands_can_be_disabled(tmp_path: Path) -> None:
    bundles = _make_source(tmp_path / "src")
    engine = _engine(tmp_path, Runtime.DROID, install_commands=False)

    [result] = await engine.run(bundles)

    assert result.status is InstallStatus.COPIED
    assert result.command_path is None
    assert not (tmp_path / "project" / ".factory" / "commands").exists()


@pytest.mark.asyncio
async def test_missing_template_fails_only_its_pair(tmp_path: Path) -> None:
    bundles = _make_source(tmp_path / "src", gemini_template="commands/gemini/missing.toml")
    engine = _engine(tmp_path, Runtime.GEMINI, Runtime.DROID)

    gemini, droid = await engine.run(bundles)

    assert gemini.runtime is Runtime.GEMINI
    assert gemini.status is InstallStatus.FAILED
    assert gemini.reason is not None and gemini.reason.startswith("TemplateMissing")
    assert not (tmp_path / "project" / ".gemini").exists()
    assert droid.status is InstallStatus.COPIED
    assert (tmp_path / "project" / ".factory" / "skills" / "commit" / "SKILL.md").is_file()
    assert (tmp_path / "project" / ".factory" / "commands" / "commit.md").is_file()


def test_legacy_manifest_installed_as_skill_md(tmp_path: Path) -> None:
    skill_dir = tmp_path / "src" / "legacy"
    skill_dir.mkdir(parents=True)
    (skill_dir / "Skill.md").write_text("---\nname: legacy\n---\n", encoding="utf-8")
    engine = _engine(tmp_path, Runtime.AGENTS)

    [result] = asyncio.run(engine.run(discover_skills(tmp_path / "src")))

    target = tmp_path / "project" / ".agents" / "skills" / "legacy"
    assert result.status is InstallStatus.COPIED
    assert [p.name for p in target.iterdir()] == ["SKILL.md"]


def test_stale_legacy_manifest_does_not_replace_skill_md(tmp_path: Path) -> None:
    skill_dir = tmp_path / "src" / "dual"
    skill_dir.mkdir(parents=True)
    (skill_dir / "SKILL.md").write_text("---\nname: dual\n---\n\nREAL\n", encoding="utf-8")
    (skill_dir / "Skill.md").write_text("---\nname: old\n---\n\nLEGACY\n", encoding="utf-8")
    bundles = discover_skills(tmp_path / "src")
    engine = _engine(tmp_path, Runtime.CLAUDE)

    [first] = asyncio.run(engine.run(bundles))
    [second] = asyncio.run(engine.run(bundles))

    target = tmp_path / "project" / ".claude" / "skills" / "dual"
    assert first.status is InstallStatus.COPIED
    assert "REAL" in (target / "SKILL.md").read_text(encoding="utf-8")
    assert sorted(p.name for p in target.iterdir()) == ["SKILL.md"]
    assert second.status is InstallStatus.SKIPPED
    assert second.files_written == 0


@pytest.mark.asyncio
async def test_template_outside_bundle_is_unsafe(tmp_path: Path) -> None:
    (tmp_path / "secret.toml").write_text("token = 1\n", encoding="utf-8")
    bundles = _make_source(tmp_path / "src", gemini_template="../../secret.toml")
    engine = _engine(tmp_path, Runtime.GEMINI, Runtime.DROID)

    gemini, droid = await engine.run(bundles)

    assert gemini.status is InstallStatus.FAILED
    assert gemini.reason is not None and gemini.reason.startswith("UnsafePath")
    assert not (tmp_path / "project" / ".gemini").exists()
    assert droid.status is InstallStatus.COPIED


def test_global_scope_uses_home(tmp_path: Path) -> None:
    bundles = _make_source(tmp_path / "src")
    request = InstallRequest(scope=Scope.GLOBAL, runtimes=(Runtime.GEMINI,))
    engine = PlacementEngine(request, home=tmp_path / "home", cwd=tmp_path / "project")

    [result] = asyncio.run(engine.run(bundles))

    assert result.status is InstallStatus.COPIED
    assert (tmp_path / "home" / ".gemini" / "skills" / "commit" / "SKILL.md").is_file()
    assert not (tmp_path / "project").exists()


def test_unsafe_skill_names_are_rejected(tmp_path: Path) -> None:
    root = tmp_path / ".claude" / "skills"
    with pytest.raises(UnsafePath):
        check_target("../escape", root, root / "../escape")
    with pytest.raises(UnsafePath):
        check_target("", root, root)
    check_target("fine-name", root, root / "fine-name")


def test_unsafe_bundle_is_recorded_not_raised(tmp_path: Path) -> None:
    bundle = SkillBundle(name="..", path=tmp_path, manifest_path=tmp_path / "SKILL.md")
    engine = _engine(tmp_path, Runtime.CLAUDE)

    result = engine.place(bundle, Runtime.CLAUDE)

    assert result.status is InstallStatus.FAILED
    assert result.reason is not None and result.reason.startswith("UnsafePath")


def test_render_template_replaces_every_placeholder(tmp_path: Path) -> None:
    text = render_template("{{SKILL_PATH}} and {{SKILL_PATH}}/refs", tmp_path)
    assert text == f"{tmp_path} and {tmp_path}/refs"


def test_update_gitignore_appends_missing_entries(tmp_path: Path) -> None:
    gitignore = tmp_path / ".gitignore"
    gitignore.write_text("node_modules/\n.claude/skills/\n", encoding="utf-8")

    added = update_gitignore(gitignore, [Runtime.CLAUDE.target, Runtime.GEMINI.target])
    again = update_gitignore(gitignore, [Runtime.CLAUDE.target, Runtime.GEMINI.target])

    assert added == [".gemini/skills/"]
    assert again == []
    assert gitignore.read_text(encoding="utf-8").count(".gemini/skills/") == 1


def test_update_gitignore_never_creates_file(tmp_path: Path) -> None:
    assert update_gitignore(tmp_path / ".gitignore", [Runtime.CLAUDE.target]) == []
    assert not (tmp_path / ".gitignore").exists()


def test_engine_gitignore_only_for_local_scope(tmp_path: Path) -> None:
    project = tmp_path / "project"
    project.mkdir()
    (project / ".gitignore").write_text("", encoding="utf-8")

    global_engine = PlacementEngine(
        InstallRequest(scope=Scope.GLOBAL, runtimes=(Runtime.DROID,), update_gitignore=True), cwd=project
    )
    assert global_engine.update_gitignore() == []

    local_engine = _engine(tmp_path, Runtime.DROID, update_gitignore=True)
    assert local_engine.update_gitignore() == [".factory/skills/"]
