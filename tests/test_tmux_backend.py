"""Tests for the tmux backend."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from claude_tracker.backends.tmux import (
    FIELD_SEPARATOR,
    TmuxBackend,
    _run_tmux,
    get_tmux_backend,
)


@pytest.fixture
def backend():
    """A tmux backend with _run_tmux patched."""
    with patch("claude_tracker.backends.tmux._run_tmux") as mock_run:
        yield TmuxBackend(), mock_run


def _line(name, path, attached):
    return FIELD_SEPARATOR.join([name, path, attached])


class TestRunTmux:
    """Tests for the subprocess wrapper."""

    def test_success(self):
        """Return code and output are passed through."""
        result = MagicMock(returncode=0, stdout="out", stderr="")
        with patch("claude_tracker.backends.tmux.subprocess.run", return_value=result) as mock_run:
            assert _run_tmux("list-sessions") == (0, "out", "")

        args, kwargs = mock_run.call_args
        assert args[0] == ["tmux", "list-sessions"]
        assert kwargs["timeout"] == 10

    def test_timeout(self):
        """A hung tmux reports failure instead of raising."""
        with patch(
            "claude_tracker.backends.tmux.subprocess.run",
            side_effect=subprocess.TimeoutExpired("tmux", 10),
        ):
            returncode, _, stderr = _run_tmux("list-sessions")

        assert returncode == 1
        assert "timed out" in stderr

    def test_missing_binary(self):
        """A missing tmux reports failure instead of raising."""
        with patch("claude_tracker.backends.tmux.subprocess.run", side_effect=FileNotFoundError):
            returncode, _, stderr = _run_tmux("list-sessions")

        assert returncode == 1
        assert stderr == "tmux not found"

    def test_custom_path(self):
        """The configured executable is used."""
        result = MagicMock(returncode=0, stdout="", stderr="")
        with patch("claude_tracker.backends.tmux.subprocess.run", return_value=result) as mock_run:
            _run_tmux("ls", tmux_path="/opt/bin/tmux")

        assert mock_run.call_args[0][0][0] == "/opt/bin/tmux"


class TestListSessions:
    """Tests for list_sessions."""

    def test_parses_sessions(self, backend):
        """Each output line becomes a TerminalSession."""
        tmux, mock_run = backend
        mock_run.return_value = (
            0,
            "\n".join([_line("api", "/home/me/api", "1"), _line("3", "/home/me/web", "0")]),
            "",
        )

        sessions = tmux.list_sessions()

        assert [s.name for s in sessions] == ["api", "3"]
        assert sessions[0].path == "/home/me/api"
        assert sessions[0].attached is True
        assert sessions[1].attached is False

    def test_attached_count_above_one(self, backend):
        """Any attached client count above zero means attached."""
        tmux, mock_run = backend
        mock_run.return_value = (0, _line("api", "/p", "2"), "")

        assert tmux.list_sessions()[0].attached is True

    def test_path_with_pipe(self, backend):
        """A single '|' in the path does not break parsing."""
        tmux, mock_run = backend
        mock_run.return_value = (0, _line("api", "/home/a|b", "0"), "")

        assert tmux.list_sessions()[0].path == "/home/a|b"

    def test_skips_malformed_lines(self, backend):
        """Lines without all fields are ignored."""
        tmux, mock_run = backend
        mock_run.return_value = (0, "garbage\n" + _line("api", "/p", "0"), "")

        assert [s.name for s in tmux.list_sessions()] == ["api"]

    def test_no_server(self, backend):
        """A non-zero exit yields an empty list."""
        tmux, mock_run = backend
        mock_run.return_value = (1, "", "no server running on /tmp/tmux-501/default")

        assert tmux.list_sessions() == []

    def test_uses_format_string(self, backend):
        """list-sessions is called with the separator-joined format."""
        tmux, mock_run = backend
        mock_run.return_value = (0, "", "")

        tmux.list_sessions()

        args = mock_run.call_args[0]
        assert args[0] == "list-sessions"
        assert args[2] == "#{session_name}|||#{session_path}|||#{session_attached}"


class TestCapturePane:
    """Tests for capture_pane."""

    def test_returns_text(self, backend):
        """Captured text is returned as-is."""
        tmux, mock_run = backend
        mock_run.return_value = (0, "line 1\nline 2\n", "")

        assert tmux.capture_pane("api") == "line 1\nline 2\n"
        assert mock_run.call_args[0] == ("capture-pane", "-t", "api", "-p", "-S", "-50")

    def test_failure_returns_none(self, backend):
        """A failed capture returns None."""
        tmux, mock_run = backend
        mock_run.return_value = (1, "", "can't find session")

        assert tmux.capture_pane("gone") is None


class TestAvailability:
    """Tests for is_available."""

    def test_not_installed(self):
        """Missing executable means unavailable."""
        with patch("claude_tracker.backends.tmux.shutil.which", return_value=None):
            assert TmuxBackend().is_available() is False

    def test_installed_and_running(self):
        """Installed with a running server means available."""
        with (
            patch("claude_tracker.backends.tmux.shutil.which", return_value="/usr/bin/tmux"),
            patch("claude_tracker.backends.tmux._run_tmux", return_value=(0, "", "")),
        ):
            assert TmuxBackend().is_available() is True


class TestSingleton:
    """Tests for the singleton accessor."""

    def test_same_instance(self):
        """get_tmux_backend returns one shared instance."""
        assert get_tmux_backend() is get_tmux_backend()

    def test_backend_name(self):
        """Backend name is 'tmux'."""
        assert get_tmux_backend().backend_name == "tmux"
