from __future__ import annotations

import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from loguru import logger

from agentskills.errors import DiscoveryError

DEFAULT_REPO_URL = "https://github.com/Alcyone-Labs/agent-skills.git"
PACKAGE_DIR = Path(__file__).resolve().parent.parent


def candidate_dirs(cwd: Path | None = None) -> list[Path]:
    base = cwd if cwd is not None else Path.cwd()
    return [
        PACKAGE_DIR.parent / "skills",
        PACKAGE_DIR.parent.parent / "skills",
        base / "skills",
    ]


def find_local_source(cwd: Path | None = None) -> Path | None:
    for path in candidate_dirs(cwd):
        if path.is_dir():
            return path.resolve()
    return None


def clone_repo(repo_url: str, dest: Path) -> None:
    if shutil.which("git") is None:
        raise DiscoveryError("no local skills directory found and git is not installed")
    logger.info("Fetching skills from {}", repo_url)
    try:
        subprocess.run(
            ["git", "clone", "--depth", "1", "--quiet", repo_url, str(dest)],
            check=True,
            capture_output=True,
            text=True,
        )
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
        raise DiscoveryError(f"failed to fetch skills from {repo_url}: {detail}") from exc


@contextmanager
def skills_source(explicit: str | Path | None = None, *, cwd: Path | None = None, repo_url: str = DEFAULT_REPO_URL) -> Iterator[Path]:
    """Yield the ``skills/`` directory to install from.

    An explicit path wins and must exist. Otherwise the first local candidate
    is used, falling back to a shallow clone into a temporary directory that
    is removed when the context exits.
    """
    if explicit is not None:
        path = Path(explicit).expanduser().resolve()
        if (path / "skills").is_dir():
            path = path / "skills"
        if not path.is_dir():
            raise DiscoveryError(f"source directory does not exist: {path}")
        yield path
        return

    local = find_local_source(cwd)
    if local is not None:
        logger.debug("Using local skills source {}", local)
        yield local
        return

    with tempfile.TemporaryDirectory(prefix="agent-skills-") as tmp:
        checkout = Path(tmp) / "agent-skills"
        clone_repo(repo_url, checkout)
        yield checkout / "skills"
