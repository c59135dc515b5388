from __future__ import annotations

import asyncio
import enum
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from loguru import logger

from agentskills.config import InstallRequest
from agentskills.errors import PlacementError, TemplateMissing, UnsafePath, WriteFailure
from agentskills.runtimes import InstallTarget, Runtime, Scope
from agentskills.skills import SkillBundle

SKILL_PATH_PLACEHOLDER = "{{SKILL_PATH}}"
LEGACY_MANIFEST = "Skill.md"
MANIFEST = "SKILL.md"
GITIGNORE_MARKER = "# Added by agent-skills installer"


class InstallStatus(str, enum.Enum):
    COPIED = "copied"
    SKIPPED = "skipped"
    OVERWRITTEN = "overwritten"
    FAILED = "failed"


@dataclass(slots=True)
class InstallResult:
    runtime: Runtime
    skill: str
    status: InstallStatus
    target_dir: Path | None = None
    files_written: int = 0
    files_unchanged: int = 0
    preserved: int = 0
    command_path: Path | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not InstallStatus.FAILED


def render_template(content: str, skill_path: Path) -> str:
    return content.replace(SKILL_PATH_PLACEHOLDER, str(skill_path))


def _write_if_changed(dest: Path, data: bytes) -> bool:
    if dest.is_file() and dest.read_bytes() == data:
        return False
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(data)
    return True


def check_target(skill_name: str, root: Path, target_dir: Path) -> None:
    if not skill_name or skill_name in {".", ".."} or "/" in skill_name or "\\" in skill_name or ".." in skill_name:
        raise UnsafePath(f"invalid skill name: {skill_name!r}")
    if target_dir.parent != root:
        raise UnsafePath(f"target path is not within the runtime skills directory: {target_dir}")
    if root == Path(root.anchor) or root == Path.home().resolve():
        raise UnsafePath(f"refusing to install into {root}")


class PlacementEngine:
    """Copy bundles into runtime skill directories without clobbering user files.

    Bundle files overwrite same-named destination files only when their bytes
    differ; anything else already in the destination is left alone, so a
    repeated run with the same inputs writes nothing.
    """

    def __init__(self, request: InstallRequest, *, home: Path | None = None, cwd: Path | None = None) -> None:
        self.request = request
        self.home = home
        self.cwd = cwd

    def skills_root(self, runtime: Runtime) -> Path:
        return runtime.target.scope_dir(self.request.scope, home=self.home, cwd=self.cwd)

    def command_dir(self, runtime: Runtime) -> Path | None:
        return runtime.target.command_dir(self.request.scope, home=self.home, cwd=self.cwd)

    def place(self, bundle: SkillBundle, runtime: Runtime) -> InstallResult:
        result = InstallResult(runtime=runtime, skill=bundle.name, status=InstallStatus.FAILED)
        try:
            root = self.skills_root(runtime)
            target_dir = root / bundle.name
            result.target_dir = target_dir
            check_target(bundle.name, root, target_dir)

            rendered = self._render_command(bundle, runtime, target_dir)
            existed = target_dir.is_dir()
            before = _listing(target_dir) if existed else set()

            written, unchanged, owned = self._merge(bundle, target_dir)
            result.files_written = written
            result.files_unchanged = unchanged
            result.preserved = len(before - owned)

            command_written = False
            if rendered is not None:
                command_path, content = rendered
                command_written = _write_if_changed(command_path, content.encode("utf-8"))
                result.command_path = command_path

            if not existed:
                result.status = InstallStatus.COPIED
            elif written or command_written:
                result.status = InstallStatus.OVERWRITTEN
            else:
                result.status = InstallStatus.SKIPPED
        except PlacementError as exc:
            result.reason = f"{exc.kind}: {exc}"
        except OSError as exc:
            result.reason = f"{WriteFailure.kind}: {exc}"

        if result.ok:
            logger.debug("{} -> {}: {}", bundle.name, runtime.id, result.status.value)
        else:
            logger.warning("{} -> {} failed: {}", bundle.name, runtime.id, result.reason)
        return result

    def _render_command(self, bundle: SkillBundle, runtime: Runtime, target_dir: Path) -> tuple[Path, str] | None:
        if not self.request.install_commands:
            return None
        template = bundle.template_for(runtime)
        if template is None:
            return None
        command_dir = self.command_dir(runtime)
        if command_dir is None:
            logger.debug("{} does not support commands; ignoring template for {}", runtime.id, bundle.name)
            return None
        if not template.resolve().is_relative_to(bundle.path.resolve()):
            raise UnsafePath(f"command template is outside the skill bundle: {template}")
        if not template.is_file():
            raise TemplateMissing(f"command template not found: {template}")
        try:
            content = template.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise TemplateMissing(f"cannot read command template {template}: {exc}") from exc
        path = command_dir / f"{bundle.name}{runtime.target.command_ext}"
        return path, render_template(content, target_dir.resolve())

    def _merge(self, bundle: SkillBundle, target_dir: Path) -> tuple[int, int, set[Path]]:
        written = unchanged = 0
        owned: set[Path] = set()
        legacy_only = bundle.manifest_path.name == LEGACY_MANIFEST
        for rel in bundle.files():
            dest_rel = rel
            if rel == Path(LEGACY_MANIFEST):
                if not legacy_only:
                    # SKILL.md is the manifest; the stale spelling is not installed.
                    continue
                dest_rel = Path(MANIFEST)
            owned.add(dest_rel)
            source = bundle.path / rel
            dest = target_dir / dest_rel
            if dest.is_file() and _same_bytes(source, dest):
                unchanged += 1
                continue
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, dest)
            written += 1
        return written, unchanged, owned

    async def run(self, bundles: Sequence[SkillBundle]) -> list[InstallResult]:
        """Place every (runtime, skill) pair, runtimes in request order."""
        semaphore = asyncio.Semaphore(self.request.workers)

        async def _one(bundle: SkillBundle, runtime: Runtime) -> InstallResult:
            async with semaphore:
                return await asyncio.to_thread(self.place, bundle, runtime)

        pairs = [(bundle, runtime) for runtime in self.request.runtimes for bundle in bundles]
        return list(await asyncio.gather(*(_one(bundle, runtime) for bundle, runtime in pairs)))

    def update_gitignore(self) -> list[str]:
        if self.request.scope is not Scope.LOCAL or not self.request.update_gitignore:
            return []
        base = self.cwd if self.cwd is not None else Path.cwd()
        return update_gitignore(base / ".gitignore", [runtime.target for runtime in self.request.runtimes])


def _same_bytes(a: Path, b: Path) -> bool:
    if a.stat().st_size != b.stat().st_size:
        return False
    return a.read_bytes() == b.read_bytes()


def _listing(directory: Path) -> set[Path]:
    return {path.relative_to(directory) for path in directory.rglob("*") if path.is_file()}


def update_gitignore(path: Path, targets: Sequence[InstallTarget]) -> list[str]:
    """Append local skill directories to an existing .gitignore.

    Returns the entries that were added. A missing file is left missing.
    """
    if not path.is_file():
        return []
    content = path.read_text(encoding="utf-8")
    existing = {line.strip() for line in content.splitlines()}
    added: list[str] = []
    for target in targets:
        entry = f"{target.local_path}/"
        if entry in existing or entry in added:
            continue
        added.append(entry)
    if added:
        if content and not content.endswith("\n"):
            content += "\n"
        content += f"\n{GITIGNORE_MARKER}\n" + "\n".join(added) + "\n"
        path.write_text(content, encoding="utf-8")
        logger.info("Added {} to {}", ", ".join(added), path)
    return added
