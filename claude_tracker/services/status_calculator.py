"""Status, context usage and summary derived from a conversation aggregate."""

import math

from claude_tracker.models.conversation import ConversationAggregate
from claude_tracker.models.session import SessionState, SessionStatus

DEFAULT_CONTEXT_WINDOW = 200_000
EXTENDED_CONTEXT_WINDOW = 1_000_000

# Base context window per model
CONTEXT_WINDOWS: dict[str, int] = {
    "claude-opus-4-5-20251101": 200_000,
    "claude-sonnet-4-20250514": 1_000_000,
    "claude-sonnet-4-5-20250514": 1_000_000,
    "claude-sonnet-4-5-20250929": 1_000_000,
}

# Activity windows (seconds)
PERMISSION_WINDOW = 600
WORKING_WINDOW = 120
WAITING_WINDOW = 600
ACTIVE_WINDOW = 120

NO_RECENT_ACTIVITY = "No recent activity"
SUMMARY_ELLIPSIS = "..."

DETAIL_STATES = {
    SessionState.WORKING,
    SessionState.WAITING,
    SessionState.PERMISSION,
    SessionState.ERROR,
}


def calculate_context_percent(
    aggregate: ConversationAggregate, model: str | None = None
) -> int:
    """Calculate context window utilization.

    A usage above the model's base window means the session runs with the
    extended (1M) context, so that window is used instead.

    Args:
        aggregate: Parsed conversation.
        model: Model name; defaults to the aggregate's model.

    Returns:
        Integer percentage in [0, 100].
    """
    used = max(aggregate.context_tokens, 0)
    model_name = model if model is not None else aggregate.model
    base_window = CONTEXT_WINDOWS.get(model_name or "", DEFAULT_CONTEXT_WINDOW)

    window = EXTENDED_CONTEXT_WINDOW if used > base_window else base_window
    percent = math.floor(used / window * 100)
    return max(0, min(percent, 100))


def _tool_label(tool: str) -> str:
    if tool == "Bash":
        return "bash"
    if tool in ("Edit", "Write"):
        return "file edit"
    if tool == "TodoWrite":
        return "todo"
    return tool.lower()


def determine_status(
    aggregate: ConversationAggregate,
    is_attached: bool,
    last_activity_seconds: float,
) -> SessionStatus:
    """Determine session status from log evidence alone.

    Args:
        aggregate: Parsed conversation.
        is_attached: Whether a tmux client is attached.
        last_activity_seconds: Seconds since the last logged event.

    Returns:
        SessionStatus; a pending tool only counts as a permission request
        while it is recent.
    """
    if aggregate.pending_tool and last_activity_seconds < PERMISSION_WINDOW:
        return SessionStatus(
            state=SessionState.PERMISSION, detail=_tool_label(aggregate.pending_tool)
        )

    if aggregate.active_tool and last_activity_seconds < WORKING_WINDOW:
        return SessionStatus(state=SessionState.WORKING, detail=aggregate.active_tool.lower())

    if aggregate.last_role == "assistant" and last_activity_seconds < WAITING_WINDOW:
        return SessionStatus(state=SessionState.WAITING, detail="awaiting input")

    if is_attached and last_activity_seconds < ACTIVE_WINDOW:
        return SessionStatus(state=SessionState.ACTIVE)

    return SessionStatus(state=SessionState.IDLE)


def status_detail(status: SessionStatus) -> str | None:
    """Return the detail of states that carry one, else None."""
    if status.state in DETAIL_STATES:
        return status.detail
    return None


def _is_system_artifact(message: str) -> bool:
    """Slash commands, injected XML and reminders are not user intent."""
    if not message or not message.strip():
        return True
    if message.startswith("<") or message.startswith("/"):
        return True
    return "command-name" in message or "system-reminder" in message


def truncate(text: str, max_length: int) -> str:
    """Collapse whitespace and cut to max_length, ellipsis included."""
    cleaned = " ".join(text.split())
    if len(cleaned) <= max_length:
        return cleaned
    if max_length <= len(SUMMARY_ELLIPSIS):
        return cleaned[: max(max_length, 0)]
    return cleaned[: max_length - len(SUMMARY_ELLIPSIS)] + SUMMARY_ELLIPSIS


def generate_summary(
    messages: list[str],
    assistant_messages: list[str],
    max_length: int = 120,
) -> str:
    """Generate a one-line summary of the conversation.

    Prefers the latest real user message, then the latest non-blank
    assistant message.

    Args:
        messages: User message texts in log order.
        assistant_messages: Assistant text blocks in log order.
        max_length: Maximum summary length.

    Returns:
        The summary, or "No recent activity".
    """
    candidate = next(
        (msg for msg in reversed(messages) if not _is_system_artifact(msg)), None
    )
    if candidate is None:
        candidate = next(
            (msg for msg in reversed(assistant_messages) if msg and msg.strip()), None
        )

    if candidate is None:
        return NO_RECENT_ACTIVITY

    return truncate(candidate, max_length)


def time_ago(seconds: float) -> str:
    """Convert seconds to a short "time ago" string."""
    if seconds < 0:
        return "unknown"
    if seconds < 60:
        return "now"
    if seconds < 3600:
        return f"{int(seconds // 60)}m ago"
    if seconds < 86400:
        return f"{int(seconds // 3600)}h ago"
    return f"{int(seconds // 86400)}d ago"
