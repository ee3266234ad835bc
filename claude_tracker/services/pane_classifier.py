"""PaneClassifier for detecting Claude Code session state from pane text.

Status comes from an ordered list of rules evaluated with early exit. The
order encodes precedence: a prompt waiting for approval must never be read
as "done", and active work beats leftover completion markers.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass

from claude_tracker.models.session import (
    PaneActivity,
    PaneToolCall,
    SessionState,
    SessionStatus,
)


@dataclass(frozen=True)
class PaneText:
    """Captured pane text split into the windows the rules look at."""

    lines: tuple[str, ...]

    @classmethod
    def from_text(cls, text: str) -> "PaneText":
        lines = text.split("\n")
        # tmux pads the capture with blank rows below the cursor
        while lines and not lines[-1].strip():
            lines.pop()
        return cls(lines=tuple(lines))

    @property
    def last_line(self) -> str:
        return self.lines[-1] if self.lines else ""

    @property
    def last_few(self) -> str:
        """Last 5 lines: where spinners and completion summaries sit."""
        return "\n".join(self.lines[-5:])

    @property
    def recent(self) -> str:
        """Last 20 lines: enough to hold a permission dialog."""
        return "\n".join(self.lines[-20:])


@dataclass(frozen=True)
class PaneRule:
    """One classification rule.

    ``match`` returns the status detail when the rule applies, else None.
    """

    name: str
    state: SessionState
    match: Callable[[PaneText], str | None]


# =============================================================================
# Permission
# =============================================================================

PERMISSION_CUES = ("Do you want to", "Esc to cancel")

# Permission rule pattern shown in the dialog, e.g. "Bash(git commit:*)"
BASH_RULE_PATTERN = re.compile(r"Bash\(([^:)]+)")
GIT_VERB_PATTERN = re.compile(
    r"(?:&&\s*)?git\s+(commit|push|pull|merge|rebase|reset|checkout|branch|stash)",
    re.IGNORECASE,
)
STRIPPED_PROGRAMS = ("git", "npm", "pnpm", "yarn")


def shell_action_label(command: str) -> str:
    """Short label for a shell command: "git commit -m x" -> "bash (commit -m x)"."""
    command = command.strip()
    program, _, rest = command.partition(" ")
    if program in STRIPPED_PROGRAMS and rest.strip():
        return f"bash ({rest.strip()})"
    return f"bash ({command})"


def permission_action(recent: str) -> str:
    """Work out what the permission dialog is asking to approve."""
    if "Bash" in recent:
        rule_match = BASH_RULE_PATTERN.search(recent)
        if rule_match and rule_match.group(1).strip():
            return shell_action_label(rule_match.group(1))

        verb_match = GIT_VERB_PATTERN.search(recent)
        if verb_match:
            return f"bash ({verb_match.group(1).lower()})"
        return "bash"

    if "Edit" in recent or "edit" in recent:
        return "file edit"
    if "Write" in recent or "write" in recent:
        return "file write"
    if "Task" in recent:
        return "task"
    return "action"


def _match_permission(pane: PaneText) -> str | None:
    recent = pane.recent
    if not any(cue in recent for cue in PERMISSION_CUES):
        return None
    return f"approve: {permission_action(recent)}"


# =============================================================================
# Working
# =============================================================================

SPINNER_GLYPHS = "✢✳✶✷✸✹✺✻✼✽"

WORKING_PATTERNS = [
    # Interrupt hint shown while generating
    re.compile(r"(?:esc|ctrl\+c) to interrupt", re.IGNORECASE),
    # Token counter, e.g. "(12s · ↑ 1.2k tokens)"
    re.compile(r"tokens\)"),
    # Elapsed-time annotation, e.g. "(12s ·" or "(1m 3s ·"
    re.compile(r"\((?:\d+m\s*)?\d+s\s*·"),
    # Spinner glyph in front of a gerund, e.g. "✻ Thinking…"
    re.compile(rf"^\s*[{SPINNER_GLYPHS}]\s+\w+(?:…|\.\.\.)", re.MULTILINE),
    # Extended thinking marker
    re.compile(r"thinking\)|· thinking"),
]

RUNNING_PATTERN = re.compile(r"Running|⏳")
TOOL_CALL_PATTERN = re.compile(r"(\w+)\(")


def _match_working(pane: PaneText) -> str | None:
    last_few = pane.last_few
    running = RUNNING_PATTERN.search(last_few) is not None
    if not running and not any(p.search(last_few) for p in WORKING_PATTERNS):
        return None

    if running:
        tools = TOOL_CALL_PATTERN.findall(pane.recent)
        if tools:
            return f"running: {tools[-1].lower()}"
    return "processing"


# =============================================================================
# Waiting
# =============================================================================

# "Worked for 2m 3s" style summaries printed when a response finishes
COMPLETION_SUMMARY_PATTERN = re.compile(
    r"\b(?:Worked|Cooked|Sautéd|Sauté'd|Baked|Brewed|Churned|Crunched|Cogitated)\s+for\s+\d"
)
COST_PATTERN = re.compile(r"Cost:\s*\$")
INPUT_PROMPT_PATTERN = re.compile(r"^\s*(?:❯|>)\s*$")
PULL_REQUEST_PATTERN = re.compile(r"https://github\.com/\S+/pull/\d+")
COMMIT_HASH_PATTERN = re.compile(r"\b[0-9a-f]{7,40}\b")


def _match_completion_summary(pane: PaneText) -> str | None:
    last_few = pane.last_few
    if COMPLETION_SUMMARY_PATTERN.search(last_few) or COST_PATTERN.search(last_few):
        return "awaiting input"
    return None


def _match_input_prompt(pane: PaneText) -> str | None:
    if INPUT_PROMPT_PATTERN.match(pane.last_line):
        return "awaiting input"
    return None


def _match_pull_request(pane: PaneText) -> str | None:
    recent = pane.recent
    if "PR created:" in recent or PULL_REQUEST_PATTERN.search(recent):
        return "PR created"
    return None


def _match_commit(pane: PaneText) -> str | None:
    recent = pane.recent
    if "commit" in recent and COMMIT_HASH_PATTERN.search(recent):
        return "committed"
    return None


# =============================================================================
# Error
# =============================================================================

ERROR_MARKERS = ("Error:", "error:", "failed")


def _match_error(pane: PaneText) -> str | None:
    recent = pane.recent
    if any(marker in recent for marker in ERROR_MARKERS):
        return "error occurred"
    return None


DEFAULT_RULES: tuple[PaneRule, ...] = (
    PaneRule("permission_prompt", SessionState.PERMISSION, _match_permission),
    PaneRule("active_processing", SessionState.WORKING, _match_working),
    PaneRule("completion_summary", SessionState.WAITING, _match_completion_summary),
    PaneRule("input_prompt", SessionState.WAITING, _match_input_prompt),
    PaneRule("pull_request", SessionState.WAITING, _match_pull_request),
    PaneRule("commit", SessionState.WAITING, _match_commit),
    PaneRule("error_marker", SessionState.ERROR, _match_error),
)


# =============================================================================
# Activity extraction
# =============================================================================

# "⏺ Bash(npm test)" / "● Read(src/app.py)" / "⏺ TodoWrite"
TOOL_LINE_PATTERN = re.compile(r"^\s*[⏺●]\s*([A-Z][\w-]*)(?:\((.*?)\)?)?\s*$")
# Tools shown without an argument list; any other bare word is prose
BARE_TOOL_NAMES = ("TodoWrite", "TodoRead", "ExitPlanMode")
TODO_IN_PROGRESS_PATTERN = re.compile(
    r"^\s*(?:⎿\s*)?(?:[◼◐▶]\s+(.+?)|☐\s+(.+?)\s*\(in progress\))\s*$",
    re.IGNORECASE,
)
TODO_PENDING_PATTERN = re.compile(r"^\s*(?:⎿\s*)?[☐◻□]\s+(.+?)\s*$")

MAX_RECENT_COMMANDS = 5


class PaneClassifier:
    """Interprets pane text to determine Claude Code session state.

    Rules run in order and the first match wins. Empty input is reported as
    UNKNOWN rather than IDLE so callers can fall back to other evidence.
    """

    def __init__(self, rules: tuple[PaneRule, ...] = DEFAULT_RULES):
        """Initialize the classifier.

        Args:
            rules: Ordered rules, highest precedence first.
        """
        self.rules = rules

    def match_rule(self, text: str | None) -> tuple[PaneRule | None, str | None]:
        """Find the first matching rule.

        Returns:
            Tuple of (rule, detail), or (None, None) when nothing matched.
        """
        if not text or not text.strip():
            return None, None

        pane = PaneText.from_text(text)
        for rule in self.rules:
            detail = rule.match(pane)
            if detail is not None:
                return rule, detail
        return None, None

    def classify(self, text: str | None) -> SessionStatus:
        """Classify pane text.

        Args:
            text: Captured pane text, or None if the capture failed.

        Returns:
            SessionStatus. UNKNOWN for missing or blank text, IDLE when no
            rule matched.
        """
        if not text or not text.strip():
            return SessionStatus(state=SessionState.UNKNOWN)

        rule, detail = self.match_rule(text)
        if rule is None:
            return SessionStatus(state=SessionState.IDLE)
        return SessionStatus(state=rule.state, detail=detail)

    def extract_activity(self, text: str | None) -> PaneActivity:
        """Pull recent tool calls and checklist position out of pane text.

        Returns:
            PaneActivity with up to 5 distinct tool calls (newest first), the
            first in-progress todo and the first pending todo.
        """
        if not text or not text.strip():
            return PaneActivity()

        calls: list[PaneToolCall] = []
        current_todo = None
        next_todo = None

        for line in text.split("\n"):
            tool_match = TOOL_LINE_PATTERN.match(line)
            if tool_match and (
                tool_match.group(2) is not None or tool_match.group(1) in BARE_TOOL_NAMES
            ):
                target = (tool_match.group(2) or "").strip() or None
                calls.append(PaneToolCall(display_name=tool_match.group(1), target=target))
                continue

            if current_todo is None:
                progress_match = TODO_IN_PROGRESS_PATTERN.match(line)
                if progress_match:
                    current_todo = progress_match.group(1) or progress_match.group(2)
                    continue

            if next_todo is None:
                pending_match = TODO_PENDING_PATTERN.match(line)
                if pending_match:
                    next_todo = pending_match.group(1)

        recent: list[PaneToolCall] = []
        seen: set[tuple[str, str | None]] = set()
        for call in reversed(calls):
            key = (call.display_name, call.target)
            if key in seen:
                continue
            seen.add(key)
            recent.append(call)
            if len(recent) == MAX_RECENT_COMMANDS:
                break

        return PaneActivity(
            recent_commands=recent,
            current_todo=current_todo,
            next_todo=next_todo,
        )


_default_classifier = PaneClassifier()


def classify_pane(text: str | None) -> SessionStatus:
    """Classify pane text with the default rules."""
    return _default_classifier.classify(text)


def extract_pane_activity(text: str | None) -> PaneActivity:
    """Extract tool calls and todos with the default classifier."""
    return _default_classifier.extract_activity(text)
