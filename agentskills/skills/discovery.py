from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from agentskills.errors import ConfigurationError, DiscoveryError
from agentskills.runtimes import Runtime
from agentskills.skills.manifest import ManifestError, declared_commands, find_manifest, parse_manifest

IGNORED_NAMES = {"__pycache__", ".DS_Store", ".git"}
SKILL_NAME_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


@dataclass(frozen=True, slots=True)
class SkillBundle:
    name: str
    path: Path
    manifest_path: Path
    description: str = ""
    reference_paths: tuple[Path, ...] = ()
    command_templates: dict[Runtime, Path] = field(default_factory=dict)

    @property
    def has_commands(self) -> bool:
        return bool(self.command_templates)

    def files(self) -> list[Path]:
        """All payload files of the bundle, relative to its directory."""
        return sorted(
            path.relative_to(self.path)
            for path in self.path.rglob("*")
            if path.is_file() and not _ignored(path.relative_to(self.path))
        )

    def template_for(self, runtime: Runtime) -> Path | None:
        rel = self.command_templates.get(runtime)
        return self.path / rel if rel is not None else None


def _ignored(rel: Path) -> bool:
    return any(part in IGNORED_NAMES for part in rel.parts)


class SkillLibrary:
    """Bundles found under a ``skills/`` source directory."""

    def __init__(self, skills_dir: str | Path) -> None:
        self.skills_dir = Path(skills_dir).expanduser()

    def list_skills(self) -> list[SkillBundle]:
        if not self.skills_dir.is_dir():
            raise DiscoveryError(f"skills directory does not exist: {self.skills_dir}")

        bundles: dict[str, SkillBundle] = {}
        for entry in sorted(self.skills_dir.iterdir()):
            if not entry.is_dir() or entry.name in IGNORED_NAMES or entry.name.startswith("."):
                continue
            try:
                bundle = load_bundle(entry)
            except ManifestError as exc:
                logger.warning("Skipping {}: {}", entry.name, exc)
                continue
            if bundle is None:
                continue
            if bundle.name in bundles:
                logger.warning("Skipping {}: skill name {!r} already provided by {}", entry, bundle.name, bundles[bundle.name].path)
                continue
            bundles[bundle.name] = bundle

        if not bundles:
            raise DiscoveryError(f"no valid skill bundles found in {self.skills_dir}")
        return [bundles[name] for name in sorted(bundles)]

    def names(self) -> list[str]:
        return [bundle.name for bundle in self.list_skills()]


def load_bundle(skill_dir: Path) -> SkillBundle | None:
    manifest = find_manifest(skill_dir)
    if manifest is None:
        return None

    data = parse_manifest(manifest)
    name = data["name"]
    if not SKILL_NAME_RE.match(name):
        raise ManifestError(f"skill name must be kebab-case, got {name!r}")

    templates: dict[Runtime, Path] = {}
    for runtime in Runtime:
        if not runtime.target.supports_commands:
            continue
        conventional = Path("commands") / runtime.id / f"{name}{runtime.target.command_ext}"
        if (skill_dir / conventional).is_file():
            templates[runtime] = conventional
    for runtime_id, rel in declared_commands(data).items():
        try:
            runtime = Runtime.get(runtime_id)
        except ConfigurationError:
            logger.warning("{}: ignoring command template for unknown runtime {!r}", manifest, runtime_id)
            continue
        templates[runtime] = Path(rel)

    references = tuple(
        sorted(
            path.relative_to(skill_dir)
            for path in skill_dir.rglob("*")
            if path.is_file()
            and path != manifest
            and not _ignored(path.relative_to(skill_dir))
            and path.relative_to(skill_dir).parts[0] != "commands"
        )
    )
    description = str(data.get("description") or "").strip()
    return SkillBundle(
        name=name,
        path=skill_dir,
        manifest_path=manifest,
        description=description,
        reference_paths=references,
        command_templates=templates,
    )


def discover_skills(skills_dir: str | Path) -> list[SkillBundle]:
    bundles = SkillLibrary(skills_dir).list_skills()
    logger.debug("Discovered {} skill(s) in {}", len(bundles), skills_dir)
    return bundles
