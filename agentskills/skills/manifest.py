from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

MANIFEST_NAMES = ("SKILL.md", "Skill.md")


class ManifestError(ValueError):
    pass


def find_manifest(skill_dir: Path) -> Path | None:
    """Return the manifest file of a bundle directory, preferring ``SKILL.md``."""
    try:
        entries = {entry.name: entry for entry in skill_dir.iterdir() if entry.is_file()}
    except OSError:
        return None
    for name in MANIFEST_NAMES:
        if name in entries:
            return entries[name]
    return None


def split_frontmatter(content: str) -> tuple[str | None, str]:
    lines = content.splitlines()
    if not lines or lines[0].strip() != "---":
        return None, content
    for i in range(1, len(lines)):
        if lines[i].strip() == "---":
            return "\n".join(lines[1:i]), "\n".join(lines[i + 1 :])
    return None, content


def parse_manifest(path: Path) -> dict[str, Any]:
    """Load the YAML frontmatter of a manifest.

    Raises ManifestError when the file has no frontmatter, the YAML does not
    parse to a mapping, or ``name`` is missing or blank.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestError(f"cannot read {path}: {exc}") from exc

    raw, _ = split_frontmatter(content)
    if raw is None:
        raise ManifestError(f"{path}: missing frontmatter block")
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        raise ManifestError(f"{path}: invalid frontmatter: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError(f"{path}: frontmatter must be a mapping")

    name = str(data.get("name") or "").strip()
    if not name:
        raise ManifestError(f"{path}: frontmatter does not declare a name")
    data["name"] = name
    return data


def declared_commands(data: dict[str, Any]) -> dict[str, str]:
    commands = data.get("commands")
    if commands is None:
        return {}
    if not isinstance(commands, dict):
        raise ManifestError("'commands' must map runtime ids to template paths")
    return {str(k).strip().lower(): str(v).strip() for k, v in commands.items() if str(v).strip()}
