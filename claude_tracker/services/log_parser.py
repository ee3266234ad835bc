"""Claude Code JSONL session log parsing.

This module handles:
- Mapping a working directory to its Claude project directory
- Finding recent session log files
- Aggregating conversation state from the head and tail of a log
"""

import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any

from claude_tracker.models.conversation import (
    ConversationAggregate,
    SessionFile,
    TokenUsage,
    ToolInfo,
)

logger = logging.getLogger(__name__)

CLAUDE_PROJECTS_DIR = Path.home() / ".claude" / "projects"

# Metadata (slug, branch, session id) is written at the start of a log
HEAD_LINES = 10
# Live state only needs the recent tail
TAIL_LINES = 100

# Log field -> aggregate field
METADATA_FIELDS = {
    "slug": "slug",
    "gitBranch": "git_branch",
    "sessionId": "session_id",
}


# =============================================================================
# Paths and discovery
# =============================================================================


def path_to_project_dir(path: str) -> str:
    """Convert a filesystem path to its Claude project directory name.

    e.g. "/Users/foo/bar/" -> "-Users-foo-bar"
    """
    return path.rstrip("/").replace("/", "-")


def find_session_files(
    project_dir: str,
    max_sessions: int = 5,
    max_age_hours: float = 24,
    projects_dir: str | Path | None = None,
) -> list[SessionFile]:
    """Find recent JSONL session files for a project directory.

    Args:
        project_dir: Claude project directory name (see path_to_project_dir).
        max_sessions: Maximum number of files to return.
        max_age_hours: Files modified longer ago than this are skipped.
        projects_dir: Root of the Claude projects tree.

    Returns:
        SessionFile list, most recently modified first.
    """
    if not project_dir:
        return []

    root = Path(projects_dir).expanduser() if projects_dir else CLAUDE_PROJECTS_DIR
    full_path = root / project_dir
    if not full_path.is_dir():
        return []

    now = int(time.time())
    max_age_seconds = max_age_hours * 3600
    files: list[SessionFile] = []

    # Stat everything before sorting; directory order is arbitrary
    for log_file in full_path.glob("*.jsonl"):
        try:
            mtime = int(log_file.stat().st_mtime)
        except OSError:
            continue

        age = now - mtime
        if age <= max_age_seconds:
            files.append(
                SessionFile(path=str(log_file), mtime=mtime, age=age, session_id=log_file.stem)
            )

    files.sort(key=lambda f: f.mtime, reverse=True)
    return files[:max_sessions]


# =============================================================================
# JSONL Parsing
# =============================================================================


def parse_timestamp(iso_str: str) -> int:
    """Parse an ISO 8601 timestamp to unix seconds.

    Returns:
        Unix seconds, or 0 if the string is not a valid timestamp.
    """
    if not iso_str or not isinstance(iso_str, str):
        return 0

    try:
        return int(datetime.fromisoformat(iso_str.replace("Z", "+00:00")).timestamp())
    except ValueError:
        return 0


def parse_jsonl_line(line: str) -> dict | None:
    """Parse a single line of JSONL data.

    Returns:
        Parsed dict, or None if the line is blank, malformed or not an object.
    """
    line = line.strip()
    if not line:
        return None

    try:
        entry = json.loads(line)
    except json.JSONDecodeError:
        return None

    return entry if isinstance(entry, dict) else None


def _read_lines(log_file: str | Path) -> list[str] | None:
    try:
        content = Path(log_file).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug(f"Could not read session log {log_file}: {e}")
        return None

    content = content.strip()
    if not content:
        return None
    return content.split("\n")


class _Aggregator:
    """Accumulates conversation state while scanning log entries."""

    def __init__(self):
        self.tokens = TokenUsage()
        self.messages: list[str] = []
        self.assistant_messages: list[str] = []
        self.metadata: dict[str, str] = {}
        self.model: str | None = None
        self.last_timestamp = 0
        self.active_tool: str | None = None
        self.pending_tool: str | None = None
        self.pending_tools: dict[str, ToolInfo] = {}
        self.tool_uses: list[ToolInfo] = []
        self.context_tokens = 0
        self.last_role: str | None = None

    def add_metadata(self, entry: dict) -> None:
        for log_key, field_name in METADATA_FIELDS.items():
            value = entry.get(log_key)
            if value and isinstance(value, str) and field_name not in self.metadata:
                self.metadata[field_name] = value

    def add_entry(self, entry: dict) -> None:
        timestamp = entry.get("timestamp")
        if isinstance(timestamp, str):
            self.last_timestamp = max(self.last_timestamp, parse_timestamp(timestamp))

        message = entry.get("message")
        if not isinstance(message, dict):
            return

        if entry.get("type") == "assistant":
            self._add_assistant(message, timestamp)
        elif entry.get("type") == "user":
            self._add_user(message)

    def _add_assistant(self, message: dict, timestamp: Any) -> None:
        self.last_role = "assistant"

        if message.get("model"):
            self.model = message["model"]

        usage = message.get("usage")
        if isinstance(usage, dict):
            input_tokens = usage.get("input_tokens") or 0
            output_tokens = usage.get("output_tokens") or 0
            cache_read = usage.get("cache_read_input_tokens") or 0
            self.context_tokens = input_tokens + cache_read
            self.tokens = TokenUsage(
                input=input_tokens,
                output=output_tokens,
                cache_read=cache_read,
                total=input_tokens + output_tokens + cache_read,
            )

        content = message.get("content")
        if not isinstance(content, list):
            return

        self.active_tool = None
        for block in content:
            if not isinstance(block, dict):
                continue

            if block.get("type") == "tool_use" and "id" in block and "name" in block:
                tool = ToolInfo(
                    id=str(block["id"]),
                    name=str(block["name"]),
                    input=block.get("input"),
                    timestamp=timestamp if isinstance(timestamp, str) else None,
                )
                self.active_tool = tool.name
                self.pending_tools[tool.id] = tool
                self.tool_uses.append(tool)
                self.pending_tool = tool.name
            elif block.get("type") == "text" and isinstance(block.get("text"), str):
                self.assistant_messages.append(block["text"])

    def _add_user(self, message: dict) -> None:
        self.last_role = "user"
        content = message.get("content")

        if isinstance(content, str):
            self.messages.append(content)
        elif isinstance(content, list):
            for block in content:
                if not isinstance(block, dict):
                    continue
                if block.get("type") == "text" and isinstance(block.get("text"), str):
                    self.messages.append(block["text"])
                elif block.get("type") == "tool_result" and "tool_use_id" in block:
                    self.pending_tools.pop(str(block["tool_use_id"]), None)

        # Oldest unresolved tool, if any
        self.pending_tool = next(
            (tool.name for tool in self.pending_tools.values()), None
        )

    def build(self) -> ConversationAggregate | None:
        if self.last_timestamp == 0:
            return None

        return ConversationAggregate(
            tokens=self.tokens,
            messages=self.messages,
            assistant_messages=self.assistant_messages,
            model=self.model,
            last_timestamp=self.last_timestamp,
            active_tool=self.active_tool,
            pending_tool=self.pending_tool,
            pending_tools=self.pending_tools,
            tool_uses=self.tool_uses,
            context_tokens=self.context_tokens,
            last_role=self.last_role,
            **self.metadata,
        )


def parse_session_log(log_file: str | Path) -> ConversationAggregate | None:
    """Parse a JSONL session log into a conversation aggregate.

    Metadata comes from the first 10 lines; live state (tokens, tools,
    messages, roles) from the last 100. Malformed lines are skipped.

    Args:
        log_file: Path to the JSONL file.

    Returns:
        ConversationAggregate, or None if the file is unreadable, empty or
        carries no timestamps.
    """
    lines = _read_lines(log_file)
    if lines is None:
        return None

    aggregator = _Aggregator()

    for line in lines[:HEAD_LINES]:
        entry = parse_jsonl_line(line)
        if entry is not None:
            aggregator.add_metadata(entry)

    for line in lines[-TAIL_LINES:]:
        entry = parse_jsonl_line(line)
        if entry is not None:
            aggregator.add_entry(entry)

    return aggregator.build()


def read_recent_entries(log_file: str | Path, limit: int = 50) -> list[dict]:
    """Read the last ``limit`` parseable entries of a session log.

    Returns:
        List of entry dicts in log order, empty on read failure.
    """
    lines = _read_lines(log_file)
    if lines is None:
        return []

    entries = [entry for entry in map(parse_jsonl_line, lines) if entry is not None]
    return entries[-limit:] if limit > 0 else []
