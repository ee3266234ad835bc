"""Abstract base class for terminal backend implementations.

Defines the interface for terminal multiplexer integrations.
"""

from abc import ABC, abstractmethod

from claude_tracker.models.session import TerminalSession


class TerminalBackend(ABC):
    """Abstract interface for terminal backends.

    Terminal backends provide the ability to:
    - Discover running sessions
    - Capture visible pane content

    Failures are never raised: listing returns an empty list and capture
    returns None, so a dead multiplexer degrades to "no data".
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier (e.g., 'tmux')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the backend is installed and running.

        Returns:
            True if the backend can be used, False otherwise.
        """

    @abstractmethod
    def list_sessions(self) -> list[TerminalSession]:
        """List all active sessions.

        Returns:
            List of TerminalSession, empty on failure.
        """

    @abstractmethod
    def capture_pane(self, name: str, lines: int = 50) -> str | None:
        """Capture the last lines of a session's active pane.

        Args:
            name: The session name.
            lines: Number of lines to capture.

        Returns:
            Pane text, or None on failure.
        """
