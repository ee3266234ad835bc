"""Session models - terminal sessions and the tracked rows built from them."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from claude_tracker.models.conversation import ConversationAggregate


class TerminalSession(BaseModel):
    """A tmux session as reported by the multiplexer.

    Re-queried every poll cycle; the name is its only identity.
    """

    name: str = Field(..., description="tmux session name")
    path: str = Field(..., description="Working directory of the session")
    attached: bool = Field(default=False, description="Whether any client is attached")


class SessionState(str, Enum):
    """Activity states shown on the dashboard."""

    ACTIVE = "active"
    """Attached and recently used, nothing specific happening."""

    WORKING = "working"
    """Claude is generating or running a tool."""

    WAITING = "waiting"
    """Claude finished and is waiting for the user."""

    PERMISSION = "permission"
    """A tool call needs the user's approval."""

    ERROR = "error"
    """The pane shows an error."""

    IDLE = "idle"
    """No recent activity."""

    UNKNOWN = "unknown"
    """No evidence (empty pane capture); callers fall back to other sources."""


class SessionStatus(BaseModel):
    """A state plus an optional short human detail."""

    state: SessionState
    detail: str | None = None


class PaneToolCall(BaseModel):
    """A tool invocation seen on screen, e.g. ``Bash(npm test)``."""

    display_name: str
    target: str | None = None


class PaneActivity(BaseModel):
    """Structured cues pulled from pane text alongside the status."""

    recent_commands: list[PaneToolCall] = Field(default_factory=list)
    current_todo: str | None = None
    next_todo: str | None = None


class TrackedSession(BaseModel):
    """One dashboard row, rebuilt wholesale every poll cycle.

    Identity across cycles only exists through the dedup key (the Claude
    project directory derived from ``terminal.path``).
    """

    terminal: TerminalSession
    conversation: ConversationAggregate | None = None
    display_name: str
    repo: str | None = None
    status: SessionState = SessionState.IDLE
    status_detail: str | None = None
    summary: str = "No recent activity"
    context_percent: int = Field(default=0, ge=0, le=100)
    last_activity: str = "—"
    last_timestamp: int = Field(default=0, description="Unix seconds, used for sorting")
    pane_activity: PaneActivity | None = None

    def to_row(self) -> dict[str, Any]:
        """Flatten for the presentation layer (optional fields become None)."""
        conversation = self.conversation
        activity = self.pane_activity
        return {
            "name": self.terminal.name,
            "display_name": self.display_name,
            "attached": self.terminal.attached,
            "path": self.terminal.path,
            "repo": self.repo,
            "status": self.status.value,
            "status_detail": self.status_detail,
            "summary": self.summary,
            "context_percent": self.context_percent,
            "last_activity": self.last_activity,
            "last_timestamp": self.last_timestamp,
            "model": conversation.model if conversation else None,
            "git_branch": conversation.git_branch if conversation else None,
            "session_slug": conversation.slug if conversation else None,
            "recent_commands": [cmd.model_dump() for cmd in activity.recent_commands]
            if activity
            else [],
            "current_todo": activity.current_todo if activity else None,
            "next_todo": activity.next_todo if activity else None,
        }
