"""Domain models for Claude Tracker."""

from claude_tracker.models.analysis import AnalysisResult, LlmConfig, LlmProvider
from claude_tracker.models.config import AppConfig, CaptureConfig, StatusSource
from claude_tracker.models.conversation import (
    ConversationAggregate,
    SessionFile,
    TokenUsage,
    ToolInfo,
)
from claude_tracker.models.session import (
    PaneActivity,
    PaneToolCall,
    SessionState,
    SessionStatus,
    TerminalSession,
    TrackedSession,
)

__all__ = [
    # Analysis
    "AnalysisResult",
    "LlmConfig",
    "LlmProvider",
    # Config
    "AppConfig",
    "CaptureConfig",
    "StatusSource",
    # Conversation
    "ConversationAggregate",
    "SessionFile",
    "TokenUsage",
    "ToolInfo",
    # Session
    "PaneActivity",
    "PaneToolCall",
    "SessionState",
    "SessionStatus",
    "TerminalSession",
    "TrackedSession",
]
