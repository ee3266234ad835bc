"""Application configuration models with Pydantic validation."""

import re
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from claude_tracker.models.analysis import LlmConfig


class StatusSource(str, Enum):
    """Where session status comes from.

    - TMUX: pane text only. Fastest, no log parsing.
    - JSONL: conversation log plus optional LLM analysis.
    - HYBRID: status from the pane, summary and context from the log.
    """

    TMUX = "tmux"
    JSONL = "jsonl"
    HYBRID = "hybrid"


class CaptureConfig(BaseModel):
    """Permission prompt capture configuration.

    When enabled, every tool call seen in a session log is appended to a
    JSONL file together with suggested settings.json allow-rules.
    """

    enabled: bool = Field(
        default=False,
        description="Whether tool calls are captured",
    )
    capture_file: str = Field(
        default="~/.claude/captured-prompts.jsonl",
        description="JSONL file captured prompts are appended to",
    )


class AppConfig(BaseModel):
    """Root application configuration.

    Loaded from config.yaml and validated with Pydantic. A poll cycle works
    on one immutable instance; changes go through ConfigService and restart
    the monitor.
    """

    llm: LlmConfig = Field(
        default_factory=LlmConfig,
        description="Optional LLM classifier settings",
    )
    session_pattern: str = Field(
        default=".*",
        description="Regex matched against tmux session names",
    )
    strip_name_prefix: str = Field(
        default="",
        description="Prefix removed from session names when no repo name is known",
    )
    max_session_age_hours: int = Field(
        default=48,
        ge=1,
        le=720,
        description="Ignore Claude session logs older than this",
    )
    poll_interval_ms: int = Field(
        default=30000,
        ge=1000,
        le=3_600_000,
        description="Milliseconds between poll cycles",
    )
    status_source: StatusSource = Field(
        default=StatusSource.HYBRID,
        description="Status detection mode",
    )
    claude_projects_dir: str = Field(
        default="~/.claude/projects",
        description="Directory holding Claude Code's per-project session logs",
    )
    tmux_path: str = Field(
        default="tmux",
        description="tmux executable (name on PATH or absolute path)",
    )
    capture: CaptureConfig = Field(
        default_factory=CaptureConfig,
        description="Permission prompt capture settings",
    )
    port: int = Field(
        default=5050,
        ge=1024,
        le=65535,
        description="Port for the Flask server",
    )
    debug: bool = Field(
        default=False,
        description="Enable Flask debug mode",
    )

    @field_validator("session_pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid session_pattern: {e}") from e
        return value
