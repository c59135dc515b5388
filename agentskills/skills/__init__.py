"""Skill bundle discovery: manifests, bundle scanning and source lookup."""

from .discovery import SkillBundle, SkillLibrary, discover_skills, load_bundle
from .manifest import ManifestError, parse_manifest
from .source import DEFAULT_REPO_URL, skills_source

__all__ = [
    "DEFAULT_REPO_URL",
    "ManifestError",
    "SkillBundle",
    "SkillLibrary",
    "discover_skills",
    "load_bundle",
    "parse_manifest",
    "skills_source",
]
