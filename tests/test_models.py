"""Tests for Pydantic models."""

import pytest
from pydantic import ValidationError

from claude_tracker.models.analysis import AnalysisResult, LlmConfig, LlmProvider
from claude_tracker.models.config import AppConfig
from claude_tracker.models.conversation import ConversationAggregate
from claude_tracker.models.session import (
    PaneActivity,
    PaneToolCall,
    SessionState,
    TerminalSession,
    TrackedSession,
)


@pytest.fixture
def terminal():
    return TerminalSession(name="cc-api", path="/home/me/api", attached=True)


class TestTrackedSession:
    """Tests for TrackedSession."""

    def test_defaults(self, terminal):
        """A bare row is idle with the placeholder summary."""
        session = TrackedSession(terminal=terminal, display_name="api")

        assert session.status == SessionState.IDLE
        assert session.summary == "No recent activity"
        assert session.context_percent == 0
        assert session.last_activity == "—"

    def test_context_percent_bounds(self, terminal):
        """context_percent must lie in [0, 100]."""
        with pytest.raises(ValidationError):
            TrackedSession(terminal=terminal, display_name="api", context_percent=101)

    def test_to_row_minimal(self, terminal):
        """Missing conversation and activity flatten to empty values."""
        row = TrackedSession(terminal=terminal, display_name="api").to_row()

        assert row["name"] == "cc-api"
        assert row["display_name"] == "api"
        assert row["attached"] is True
        assert row["status"] == "idle"
        assert row["model"] is None
        assert row["git_branch"] is None
        assert row["recent_commands"] == []
        assert row["current_todo"] is None

    def test_to_row_full(self, terminal):
        """Conversation and pane activity fields are flattened."""
        session = TrackedSession(
            terminal=terminal,
            conversation=ConversationAggregate(
                last_timestamp=100,
                model="claude-opus-4-5-20251101",
                git_branch="main",
                slug="brave-otter",
            ),
            display_name="api",
            repo="api",
            status=SessionState.PERMISSION,
            status_detail="approve: bash",
            context_percent=42,
            pane_activity=PaneActivity(
                recent_commands=[PaneToolCall(display_name="Bash", target="npm test")],
                current_todo="Write tests",
                next_todo="Ship it",
            ),
        )

        row = session.to_row()

        assert row["status"] == "permission"
        assert row["status_detail"] == "approve: bash"
        assert row["model"] == "claude-opus-4-5-20251101"
        assert row["git_branch"] == "main"
        assert row["session_slug"] == "brave-otter"
        assert row["recent_commands"] == [{"display_name": "Bash", "target": "npm test"}]
        assert row["current_todo"] == "Write tests"
        assert row["next_todo"] == "Ship it"


class TestAppConfig:
    """Tests for AppConfig validation."""

    def test_invalid_pattern(self):
        """session_pattern must compile."""
        with pytest.raises(ValidationError):
            AppConfig(session_pattern="([")

    @pytest.mark.parametrize("interval", [999, 3_600_001])
    def test_poll_interval_bounds(self, interval):
        """poll_interval_ms is bounded."""
        with pytest.raises(ValidationError):
            AppConfig(poll_interval_ms=interval)

    def test_max_age_bounds(self):
        """max_session_age_hours must be at least one."""
        with pytest.raises(ValidationError):
            AppConfig(max_session_age_hours=0)


class TestLlmModels:
    """Tests for LLM models."""

    def test_local_providers(self):
        """Only ollama and lmstudio are local."""
        assert LlmProvider.OLLAMA.is_local
        assert LlmProvider.LMSTUDIO.is_local
        assert not LlmProvider.ANTHROPIC.is_local

    def test_timeout_positive(self):
        """timeout_seconds must be positive."""
        with pytest.raises(ValidationError):
            LlmConfig(timeout_seconds=0)

    def test_analysis_state(self):
        """Analysis states are restricted."""
        with pytest.raises(ValidationError):
            AnalysisResult(state="busy")
