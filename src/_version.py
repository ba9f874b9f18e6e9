"""Version information for tro.

The version is statically defined here and should match pyproject.toml.
When running from a git checkout the short commit hash is appended.
"""

import subprocess
from functools import lru_cache
from pathlib import Path

__version__ = "0.1.0"


@lru_cache(maxsize=1)
def get_git_info() -> dict[str, str | None]:
    """Get git information for version display.

    Returns:
        Dict with 'sha' (short commit hash) and 'dirty' ("true"/"false"),
        both None outside a git checkout
    """
    repo_dir = Path(__file__).resolve().parent.parent
    try:
        sha = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
            cwd=repo_dir,
        )
        if sha.returncode != 0:
            return {"sha": None, "dirty": None}
        dirty = subprocess.run(
            ["git", "status", "--porcelain"],
            capture_output=True,
            text=True,
            timeout=5,
            cwd=repo_dir,
        )
        return {
            "sha": sha.stdout.strip(),
            "dirty": "true" if dirty.stdout.strip() else "false",
        }
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        return {"sha": None, "dirty": None}


def get_version() -> str:
    """Get the version string, e.g. "0.1.0"."""
    return __version__


def get_version_info() -> dict[str, str | None]:
    """Get detailed version information including build info."""
    git_info = get_git_info()
    return {
        "version": __version__,
        "git_sha": git_info["sha"],
        "git_dirty": git_info["dirty"],
    }


def get_full_version_string() -> str:
    """Get a human-readable version string like "tro 0.1.0 (abc1234, dirty)"."""
    info = get_version_info()
    parts = [f"tro {info['version']}"]

    details = []
    if info["git_sha"]:
        details.append(info["git_sha"])
    if info["git_dirty"] == "true":
        details.append("dirty")

    if details:
        parts.append(f"({', '.join(details)})")

    return " ".join(parts)
