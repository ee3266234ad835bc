"""Services for Claude Tracker."""

from claude_tracker.services.cache import CacheEntry, TTLCache
from claude_tracker.services.config_service import (
    ConfigService,
    get_config_service,
    reset_config_service,
)
from claude_tracker.services.event_bus import Event, EventBus, get_event_bus, reset_event_bus
from claude_tracker.services.llm_classifier import (
    LlmClassifier,
    get_llm_classifier,
    reset_llm_classifier,
)
from claude_tracker.services.pane_classifier import (
    PaneClassifier,
    PaneRule,
    classify_pane,
    extract_pane_activity,
)
from claude_tracker.services.prompt_capture import PromptCaptureService
from claude_tracker.services.session_monitor import SessionMonitor

__all__ = [
    # Cache
    "CacheEntry",
    "TTLCache",
    # Config
    "ConfigService",
    "get_config_service",
    "reset_config_service",
    # Event bus
    "Event",
    "EventBus",
    "get_event_bus",
    "reset_event_bus",
    # LLM classifier
    "LlmClassifier",
    "get_llm_classifier",
    "reset_llm_classifier",
    # Pane classifier
    "PaneClassifier",
    "PaneRule",
    "classify_pane",
    "extract_pane_activity",
    # Prompt capture
    "PromptCaptureService",
    # Orchestrator
    "SessionMonitor",
]
