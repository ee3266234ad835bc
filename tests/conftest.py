"""Pytest configuration and shared fixtures for Claude Tracker tests."""

import json
from pathlib import Path

import pytest

from claude_tracker.backends.tmux import reset_tmux_backend
from claude_tracker.services.config_service import reset_config_service
from claude_tracker.services.event_bus import reset_event_bus
from claude_tracker.services.llm_classifier import reset_llm_classifier


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset every module-level singleton around each test."""
    reset_tmux_backend()
    reset_config_service()
    reset_event_bus()
    reset_llm_classifier()
    yield
    reset_tmux_backend()
    reset_config_service()
    reset_event_bus()
    reset_llm_classifier()


@pytest.fixture(autouse=True)
def no_api_key_env(monkeypatch):
    """Keep a developer's API key out of config tests."""
    monkeypatch.delenv("CLAUDE_TRACKER_API_KEY", raising=False)


def write_jsonl(path: Path, entries: list) -> Path:
    """Write entries (dicts or raw strings) as a JSONL file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [entry if isinstance(entry, str) else json.dumps(entry) for entry in entries]
    path.write_text("\n".join(lines) + "\n")
    return path


def user_entry(text, timestamp="2026-01-15T20:00:00.000Z", **extra) -> dict:
    """A user log entry with string or block content."""
    return {"type": "user", "timestamp": timestamp, "message": {"role": "user", "content": text}, **extra}


def assistant_entry(content, timestamp="2026-01-15T20:00:05.000Z", usage=None, model=None) -> dict:
    """An assistant log entry with the given content blocks."""
    message = {"role": "assistant", "content": content}
    if usage is not None:
        message["usage"] = usage
    if model is not None:
        message["model"] = model
    return {"type": "assistant", "timestamp": timestamp, "message": message}
