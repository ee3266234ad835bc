"""Git metadata for session directories.

Resolves a short repository name from the ``origin`` remote URL.
"""

import logging
import re
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

# git@github.com:owner/repo.git, https://github.com/owner/repo(.git)
_OWNER_REPO_WITH_GIT = re.compile(r"[:/]([^/]+/[^/]+)\.git\s*$")
_OWNER_REPO = re.compile(r"[:/]([^/]+/[^/]+)\s*$")


def parse_repo_name(url: str) -> str | None:
    """Extract the repository name from a remote URL.

    Args:
        url: Remote URL in SSH or HTTPS form.

    Returns:
        The repository name without owner or ".git", or None.
    """
    url = url.strip()
    if not url:
        return None

    match = _OWNER_REPO_WITH_GIT.search(url) or _OWNER_REPO.search(url)
    if not match:
        return None

    parts = match.group(1).split("/")
    return parts[1] or None


def _run_git(repo_path: str, args: list[str], timeout: int = 10) -> str | None:
    """Run a git command in the specified directory.

    Args:
        repo_path: Path to run git in.
        args: Git command arguments.
        timeout: Command timeout in seconds.

    Returns:
        Command output, or None on error.
    """
    path = Path(repo_path)
    if not path.exists():
        return None

    try:
        result = subprocess.run(
            ["git", "-C", str(path), *args],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        if result.returncode != 0:
            return None
        return result.stdout
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as e:
        logger.debug(f"Git command failed: {e}")
        return None


def get_repo_name(path: str) -> str | None:
    """Get the repository name for a working directory.

    Args:
        path: Directory inside a git checkout.

    Returns:
        Short repository name, or None if not a repo or no origin remote.
    """
    if not path:
        return None

    output = _run_git(path, ["remote", "get-url", "origin"])
    if output is None:
        return None

    return parse_repo_name(output)
