"""Tests for log-based status, context and summary calculation."""

import pytest

from claude_tracker.models.conversation import ConversationAggregate
from claude_tracker.models.session import SessionState, SessionStatus
from claude_tracker.services.status_calculator import (
    NO_RECENT_ACTIVITY,
    calculate_context_percent,
    determine_status,
    generate_summary,
    status_detail,
    time_ago,
    truncate,
)


def make_aggregate(**kwargs) -> ConversationAggregate:
    kwargs.setdefault("last_timestamp", 1_768_510_000)
    return ConversationAggregate(**kwargs)


class TestContextPercent:
    """Tests for calculate_context_percent."""

    def test_default_window(self):
        """Unknown models use the 200k window."""
        assert calculate_context_percent(make_aggregate(context_tokens=50_000)) == 25

    def test_model_window(self):
        """Known models use their own window."""
        aggregate = make_aggregate(context_tokens=100_000, model="claude-sonnet-4-20250514")
        assert calculate_context_percent(aggregate) == 10

    def test_explicit_model_overrides_aggregate(self):
        """An explicit model name wins over the aggregate's."""
        aggregate = make_aggregate(context_tokens=100_000, model="claude-sonnet-4-20250514")
        assert calculate_context_percent(aggregate, model="claude-opus-4-5-20251101") == 50

    def test_overflow_selects_extended_window(self):
        """Usage past the base window means the extended window is in use."""
        assert calculate_context_percent(make_aggregate(context_tokens=200_001)) == 20

    def test_exact_base_window(self):
        """Usage equal to the base window is 100%."""
        assert calculate_context_percent(make_aggregate(context_tokens=200_000)) == 100

    def test_zero(self):
        """No usage is 0%."""
        assert calculate_context_percent(make_aggregate()) == 0

    def test_clamped(self):
        """Usage past the extended window is clamped to 100."""
        assert calculate_context_percent(make_aggregate(context_tokens=5_000_000)) == 100

    def test_monotonic(self):
        """More tokens never give a lower percentage within a window."""
        values = [
            calculate_context_percent(make_aggregate(context_tokens=tokens))
            for tokens in range(0, 200_001, 10_000)
        ]
        assert values == sorted(values)
        assert all(0 <= value <= 100 for value in values)


class TestDetermineStatus:
    """Tests for determine_status."""

    def test_pending_tool_is_permission(self):
        """A recent unresolved tool is a permission request."""
        status = determine_status(make_aggregate(pending_tool="Bash"), False, 30)
        assert status == SessionStatus(state=SessionState.PERMISSION, detail="bash")

    def test_file_tools_label(self):
        """Edit and Write are reported as file edits."""
        status = determine_status(make_aggregate(pending_tool="Edit"), False, 30)
        assert status.detail == "file edit"

    def test_stale_pending_tool(self):
        """A pending tool older than ten minutes is not a permission request."""
        aggregate = make_aggregate(pending_tool="Bash", last_role="assistant")
        assert determine_status(aggregate, False, 600).state == SessionState.IDLE

    def test_pending_tool_just_inside_window(self):
        """The permission window is exclusive at ten minutes."""
        aggregate = make_aggregate(pending_tool="Bash")
        assert determine_status(aggregate, False, 599).state == SessionState.PERMISSION

    def test_active_tool_is_working(self):
        """A recent active tool means working."""
        status = determine_status(make_aggregate(active_tool="Read"), False, 10)
        assert status == SessionStatus(state=SessionState.WORKING, detail="read")

    def test_assistant_last_is_waiting(self):
        """A finished assistant turn means waiting for input."""
        status = determine_status(make_aggregate(last_role="assistant"), False, 300)
        assert status == SessionStatus(state=SessionState.WAITING, detail="awaiting input")

    def test_attached_recent_is_active(self):
        """An attached session with recent activity is active."""
        status = determine_status(make_aggregate(last_role="user"), True, 60)
        assert status.state == SessionState.ACTIVE

    def test_detached_recent_is_idle(self):
        """Without attachment or evidence the session is idle."""
        status = determine_status(make_aggregate(last_role="user"), False, 60)
        assert status.state == SessionState.IDLE


class TestStatusDetail:
    """Tests for status_detail."""

    @pytest.mark.parametrize(
        "state", [SessionState.WORKING, SessionState.WAITING, SessionState.PERMISSION, SessionState.ERROR]
    )
    def test_detail_states(self, state):
        """Detail-bearing states keep their detail."""
        assert status_detail(SessionStatus(state=state, detail="x")) == "x"

    @pytest.mark.parametrize("state", [SessionState.ACTIVE, SessionState.IDLE, SessionState.UNKNOWN])
    def test_other_states(self, state):
        """Other states never show a detail."""
        assert status_detail(SessionStatus(state=state, detail="x")) is None


class TestSummary:
    """Tests for generate_summary and truncate."""

    def test_latest_user_message(self):
        """The latest real user message is used."""
        assert generate_summary(["first", "second"], ["reply"]) == "second"

    def test_skips_system_artifacts(self):
        """Slash commands, tags and reminders are skipped."""
        messages = [
            "fix the login bug",
            "/clear",
            "<command-name>/model</command-name>",
            "note: system-reminder attached",
            "   ",
        ]
        assert generate_summary(messages, []) == "fix the login bug"

    def test_falls_back_to_assistant(self):
        """Without real user messages the latest assistant text is used."""
        assert generate_summary(["/clear"], ["Looking at it", "  "]) == "Looking at it"

    def test_all_artifacts(self):
        """Only artifacts and no assistant text gives the placeholder."""
        assert generate_summary(["/clear", "<local-command-stdout>"], []) == NO_RECENT_ACTIVITY

    def test_whitespace_collapsed(self):
        """Whitespace runs collapse to single spaces."""
        assert generate_summary(["fix\n\n  the   bug"], []) == "fix the bug"

    def test_truncated_length(self):
        """Truncated summaries are exactly max_length and end with an ellipsis."""
        summary = generate_summary(["word " * 100], [], max_length=40)

        assert len(summary) == 40
        assert summary.endswith("...")

    def test_truncate_short(self):
        """Short text is unchanged."""
        assert truncate("short", 10) == "short"

    def test_truncate_exact(self):
        """Text exactly max_length long is not cut."""
        assert truncate("a" * 10, 10) == "a" * 10

    @pytest.mark.parametrize("max_length", [0, 1, 2, 3])
    def test_tiny_max_length(self, max_length):
        """Limits too small for the ellipsis still bound the length."""
        summary = generate_summary(["hello world"], [], max_length=max_length)
        assert summary == "hello world"[:max_length]


class TestTimeAgo:
    """Tests for time_ago."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [
            (-1, "unknown"),
            (0, "now"),
            (59, "now"),
            (60, "1m ago"),
            (3599, "59m ago"),
            (3600, "1h ago"),
            (86399, "23h ago"),
            (86400, "1d ago"),
            (3 * 86400 + 5, "3d ago"),
        ],
    )
    def test_buckets(self, seconds, expected):
        """Seconds map to the coarsest unit."""
        assert time_ago(seconds) == expected
