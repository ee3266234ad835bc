"""Claude Tracker - live status of Claude Code sessions running in tmux."""

__version__ = "0.3.0"
