"""Conversation models derived from Claude Code JSONL session logs."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class TokenUsage(BaseModel):
    """Token counts from the most recent assistant message."""

    input: int = 0
    output: int = 0
    cache_read: int = 0
    total: int = 0


class ToolInfo(BaseModel):
    """A ``tool_use`` block from an assistant message."""

    id: str
    name: str
    input: Any = None
    timestamp: str | None = None


class SessionFile(BaseModel):
    """A JSONL log file on disk."""

    path: str
    mtime: int = Field(..., description="Modification time, unix seconds")
    age: int = Field(..., description="Seconds since last modification")
    session_id: str = Field(..., description="File stem (Claude session UUID)")


class ConversationAggregate(BaseModel):
    """State of one conversation, recomputed from the raw log every poll.

    The log is append-only history, so nothing here is carried between
    polls. An aggregate only exists if at least one event timestamp was seen.
    """

    tokens: TokenUsage = Field(default_factory=TokenUsage)
    messages: list[str] = Field(default_factory=list, description="User message texts")
    assistant_messages: list[str] = Field(default_factory=list)
    model: str | None = None
    slug: str | None = None
    git_branch: str | None = None
    session_id: str | None = None
    last_timestamp: int = Field(..., description="Latest event time, unix seconds")
    active_tool: str | None = None
    pending_tool: str | None = None
    pending_tools: dict[str, ToolInfo] = Field(
        default_factory=dict,
        description="Unresolved tool_use id -> info",
    )
    tool_uses: list[ToolInfo] = Field(
        default_factory=list,
        description="Every tool_use seen in the scanned tail, in log order",
    )
    context_tokens: int = Field(
        default=0,
        description="input + cache_read tokens of the last assistant message",
    )
    last_role: Literal["user", "assistant"] | None = None
