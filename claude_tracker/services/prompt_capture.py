"""Permission prompt capture.

Records every tool call seen in session logs to a JSONL file, together with
candidate ``settings.json`` allow-rules, so frequently approved actions can
be pre-authorized later.
"""

import json
import logging
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from claude_tracker.models.conversation import ToolInfo

logger = logging.getLogger(__name__)

BASH_RULE_LIMIT = 80
TASK_DESCRIPTION_LIMIT = 40
FILE_TOOLS = ("Edit", "Write", "Read")
PATTERN_TOOLS = ("Grep", "Glob")

_PROGRAM = re.compile(r"^([\w.\-]+)")


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _input_str(tool: ToolInfo, key: str, default: str = "") -> str:
    tool_input = tool.input if isinstance(tool.input, dict) else {}
    value = tool_input.get(key)
    return value if isinstance(value, str) else default


def generate_settings_rule(tool: ToolInfo) -> str:
    """Generate a settings rule string for a tool call.

    e.g. "Bash(npm test)", "Edit(/path/file.py)", "Task(explore: find usages)"
    """
    name = tool.name

    if name == "Bash":
        command = " ".join(_input_str(tool, "command").split())
        return f"Bash({_truncate(command, BASH_RULE_LIMIT)})"

    if name in FILE_TOOLS:
        return f"{name}({_input_str(tool, 'file_path')})"

    if name == "Task":
        agent = _input_str(tool, "subagent_type", "unknown") or "unknown"
        description = _truncate(_input_str(tool, "description"), TASK_DESCRIPTION_LIMIT)
        return f"Task({agent}: {description})"

    if name == "WebFetch":
        return f"WebFetch({_input_str(tool, 'url')})"

    if name in PATTERN_TOOLS:
        return f"{name}({_input_str(tool, 'pattern')})"

    return f"{name}(*)"


def generate_patterns(tool: ToolInfo) -> list[str]:
    """Generate allow-rule patterns for a tool call, most specific first."""
    name = tool.name

    if name == "Bash":
        command = _input_str(tool, "command")
        patterns = [f"Bash({command})"]
        program = _PROGRAM.match(command)
        if program:
            patterns.append(f"Bash({program.group(1)} *)")
        patterns.append("Bash(*)")
        return patterns

    if name in FILE_TOOLS:
        path = _input_str(tool, "file_path")
        patterns = [f"{name}({path})"]
        if "/" in path:
            directory = path[: path.rindex("/") + 1]
            patterns.append(f"{name}({directory}*)")
        patterns.append(f"{name}(*)")
        return patterns

    if name == "Task":
        return [f"Task({_input_str(tool, 'subagent_type')}:*)", "Task(*)"]

    return [f"{name}(*)"]


class PromptCaptureService:
    """Appends unseen tool calls to the capture file.

    Already-captured tool_use ids are loaded from the file on first use, so
    restarts do not write duplicates.
    """

    def __init__(self, capture_file: str | Path):
        """Initialize the capture service.

        Args:
            capture_file: JSONL file entries are appended to.
        """
        self.capture_file = Path(capture_file).expanduser()
        self._captured_ids: set[str] | None = None
        self._lock = threading.Lock()

    def _read_entries(self) -> list[dict]:
        if not self.capture_file.exists():
            return []

        entries = []
        try:
            with open(self.capture_file, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entry = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    if isinstance(entry, dict):
                        entries.append(entry)
        except OSError as e:
            logger.warning(f"Could not read capture file {self.capture_file}: {e}")
        return entries

    def _ensure_loaded(self) -> set[str]:
        if self._captured_ids is None:
            self._captured_ids = {
                str(entry["tool_use_id"])
                for entry in self._read_entries()
                if entry.get("tool_use_id")
            }
        return self._captured_ids

    def is_captured(self, tool_use_id: str) -> bool:
        """Check if a tool_use has already been captured."""
        with self._lock:
            return tool_use_id in self._ensure_loaded()

    @staticmethod
    def build_entry(tool: ToolInfo, context: dict[str, Any]) -> dict[str, Any]:
        """Build a capture entry for one tool call.

        Args:
            tool: The tool call.
            context: Session context (project path, session id, slug, branch,
                repo, tmux session).
        """
        return {
            "captured_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "tool_use_id": tool.id,
            "tool_name": tool.name,
            "tool_input": tool.input,
            "tool_timestamp": tool.timestamp,
            "settings_rule": generate_settings_rule(tool),
            "settings_patterns": generate_patterns(tool),
            "context": context,
            "status": "pending",
        }

    def capture_tools(self, tools: list[ToolInfo], context: dict[str, Any]) -> int:
        """Capture every tool call not captured before.

        Args:
            tools: Tool calls from a session log.
            context: Session context stored with each entry.

        Returns:
            Number of new entries written.
        """
        with self._lock:
            captured = self._ensure_loaded()
            new_entries = []
            batch_ids: set[str] = set()
            for tool in tools:
                if not tool.id or tool.id in captured or tool.id in batch_ids:
                    continue
                batch_ids.add(tool.id)
                new_entries.append(self.build_entry(tool, context))

            if not new_entries:
                return 0

            try:
                self.capture_file.parent.mkdir(parents=True, exist_ok=True)
                with open(self.capture_file, "a", encoding="utf-8") as f:
                    for entry in new_entries:
                        f.write(json.dumps(entry, default=str) + "\n")
            except OSError as e:
                logger.warning(f"Could not write capture file {self.capture_file}: {e}")
                return 0

            captured.update(entry["tool_use_id"] for entry in new_entries)

        logger.debug(f"Captured {len(new_entries)} tool calls to {self.capture_file}")
        return len(new_entries)

    def get_captured(self, limit: int = 50) -> list[dict]:
        """Get the most recent captured entries, oldest first."""
        if limit <= 0:
            return []
        with self._lock:
            return self._read_entries()[-limit:]
