"""tmux terminal backend.

Lists sessions and captures pane text through the tmux CLI.
"""

import logging
import shutil
import subprocess

from claude_tracker.backends.base import TerminalBackend
from claude_tracker.models.session import TerminalSession

logger = logging.getLogger(__name__)

# Field separator for list-sessions output; session paths may contain "|"
FIELD_SEPARATOR = "|||"


def _run_tmux(*args: str, tmux_path: str = "tmux", timeout: int = 10) -> tuple[int, str, str]:
    """Run a tmux command.

    Args:
        *args: Command arguments to pass to tmux.
        tmux_path: tmux executable.
        timeout: Command timeout in seconds.

    Returns:
        Tuple of (return_code, stdout, stderr).
    """
    cmd = [tmux_path, *args]
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return (result.returncode, result.stdout or "", result.stderr or "")
    except subprocess.TimeoutExpired:
        return (1, "", "Command timed out")
    except FileNotFoundError:
        return (1, "", "tmux not found")


class TmuxBackend(TerminalBackend):
    """tmux-based terminal backend."""

    def __init__(self, tmux_path: str = "tmux"):
        """Initialize the tmux backend.

        Args:
            tmux_path: tmux executable name or absolute path.
        """
        self.tmux_path = tmux_path

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "tmux"

    def _run(self, *args: str) -> tuple[int, str, str]:
        return _run_tmux(*args, tmux_path=self.tmux_path)

    def is_available(self) -> bool:
        """Check if tmux is installed and a server is running.

        Returns:
            True if tmux is available, False otherwise.
        """
        if shutil.which(self.tmux_path) is None:
            return False

        returncode, _, _ = self._run("list-sessions")
        return returncode == 0

    def list_sessions(self) -> list[TerminalSession]:
        """List all tmux sessions.

        Returns:
            List of TerminalSession, empty if tmux is missing or no server runs.
        """
        fmt = FIELD_SEPARATOR.join(
            ["#{session_name}", "#{session_path}", "#{session_attached}"]
        )
        returncode, stdout, stderr = self._run("list-sessions", "-F", fmt)

        if returncode != 0 or not stdout.strip():
            logger.debug(f"tmux list-sessions returned nothing: {stderr.strip()}")
            return []

        sessions = []
        for line in stdout.strip().split("\n"):
            parts = line.split(FIELD_SEPARATOR)
            if len(parts) < 3:
                continue

            name, path, attached_str = parts[:3]
            if not name or not path:
                continue

            try:
                attached_count = int(attached_str or "0")
            except ValueError:
                attached_count = 0

            sessions.append(TerminalSession(name=name, path=path, attached=attached_count > 0))

        return sessions

    def capture_pane(self, name: str, lines: int = 50) -> str | None:
        """Capture the visible content of a session's active pane.

        Args:
            name: The session name.
            lines: Number of lines to capture.

        Returns:
            Captured text, or None on failure.
        """
        returncode, stdout, stderr = self._run(
            "capture-pane", "-t", name, "-p", "-S", str(-lines)
        )

        if returncode != 0:
            logger.debug(f"tmux capture-pane failed for {name}: {stderr.strip()}")
            return None

        return stdout


# Singleton instance
_backend_instance: TmuxBackend | None = None


def get_tmux_backend(tmux_path: str = "tmux") -> TmuxBackend:
    """Get the singleton tmux backend instance.

    Args:
        tmux_path: tmux executable (only used on first call).
    """
    global _backend_instance
    if _backend_instance is None:
        _backend_instance = TmuxBackend(tmux_path=tmux_path)
    return _backend_instance


def reset_tmux_backend() -> None:
    """Reset the singleton instance (for testing)."""
    global _backend_instance
    _backend_instance = None
