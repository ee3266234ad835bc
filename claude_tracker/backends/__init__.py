"""Terminal backend implementations."""

from claude_tracker.backends.base import TerminalBackend
from claude_tracker.backends.tmux import TmuxBackend, get_tmux_backend, reset_tmux_backend

__all__ = [
    "TerminalBackend",
    "TmuxBackend",
    "get_tmux_backend",
    "reset_tmux_backend",
]
