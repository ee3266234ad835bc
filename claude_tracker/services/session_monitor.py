"""SessionMonitor - polling orchestrator for Claude Tracker.

Each cycle lists tmux sessions, works out the status of every matching
session from pane text, the conversation log and (optionally) an LLM,
deduplicates sessions sharing a project, and publishes an immutable
snapshot.
"""

import logging
import re
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

from claude_tracker.backends.base import TerminalBackend
from claude_tracker.backends.tmux import TmuxBackend, get_tmux_backend
from claude_tracker.models.analysis import AnalysisResult
from claude_tracker.models.config import AppConfig, StatusSource
from claude_tracker.models.conversation import ConversationAggregate, SessionFile
from claude_tracker.models.session import (
    SessionState,
    SessionStatus,
    TerminalSession,
    TrackedSession,
)
from claude_tracker.services.event_bus import SESSIONS_UPDATED, EventBus, get_event_bus
from claude_tracker.services.git_metadata import get_repo_name
from claude_tracker.services.llm_classifier import LlmClassifier, get_llm_classifier
from claude_tracker.services.log_parser import (
    find_session_files,
    parse_session_log,
    path_to_project_dir,
    read_recent_entries,
)
from claude_tracker.services.pane_classifier import classify_pane, extract_pane_activity
from claude_tracker.services.prompt_capture import PromptCaptureService
from claude_tracker.services.status_calculator import (
    NO_RECENT_ACTIVITY,
    calculate_context_percent,
    determine_status,
    generate_summary,
    status_detail,
    time_ago,
)

logger = logging.getLogger(__name__)

MAX_WORKERS = 5
SUMMARY_LENGTH = 150
# Logs idle longer than this are not sent to the LLM
LLM_ACTIVITY_WINDOW = 600
# Time-based upgrades of an idle pane
RECENT_WORKING_WINDOW = 60
RECENT_ATTACHED_WINDOW = 300

_NUMERIC_NAME = re.compile(r"^\d+$")

# LLM states that override the log-derived status
_LLM_OVERRIDES: dict[str, tuple[SessionState, str]] = {
    "working": (SessionState.WORKING, "processing"),
    "permission": (SessionState.PERMISSION, "action"),
    "waiting": (SessionState.WAITING, "awaiting input"),
}


def merge_analysis(
    base: SessionStatus, analysis: AnalysisResult | None
) -> tuple[SessionStatus, str | None, str | None]:
    """Merge an LLM analysis over a log-derived status.

    Returns:
        Tuple of (status, detail, summary). Summary is None when the
        analysis carries none.
    """
    if analysis is None:
        return base, status_detail(base), None

    override = _LLM_OVERRIDES.get(analysis.state)
    if override is None:
        status = base
    else:
        state, default_detail = override
        status = SessionStatus(state=state, detail=analysis.detail or default_detail)

    return status, analysis.detail, analysis.summary


def display_name_for(name: str, repo: str | None, strip_prefix: str = "") -> str:
    """Repo name if known, else the session name without the configured prefix.

    A separator ("-" or "_") right after the prefix is removed too.
    """
    if repo:
        return repo
    if strip_prefix and name.startswith(strip_prefix):
        stripped = name[len(strip_prefix) :]
        if stripped[:1] in ("-", "_"):
            stripped = stripped[1:]
        return stripped or name
    return name


class SessionMonitor:
    """Central orchestrator for session tracking.

    Responsibilities:
    1. Poll tmux sessions on a fixed-rate background thread
    2. Build a TrackedSession per session (fan-out over a worker pool)
    3. Deduplicate sessions that share a Claude project
    4. Publish snapshots atomically and emit them via EventBus

    Concurrency: one cycle runs at a time (cycle lock). Every cycle records
    the config generation it started under and only publishes if that
    generation is still current, so work superseded by a config change
    never overwrites the snapshot.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        backend: TerminalBackend | None = None,
        llm_classifier: LlmClassifier | None = None,
        event_bus: EventBus | None = None,
        prompt_capture: PromptCaptureService | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the SessionMonitor.

        Args:
            config: Application configuration. Uses defaults if not provided.
            backend: Terminal backend. Uses the tmux singleton if not provided.
            llm_classifier: LLM classifier. Uses singleton if not provided.
            event_bus: Event bus for SSE. Uses singleton if not provided.
            prompt_capture: Capture service. Built from config if capture is
                enabled and none is provided.
            clock: Wall-clock time source, unix seconds.
        """
        self._config = config or AppConfig()
        self._backend = backend or get_tmux_backend(self._config.tmux_path)
        self._llm = llm_classifier or get_llm_classifier()
        self._event_bus = event_bus or get_event_bus()
        self._capture = prompt_capture
        if self._capture is None and self._config.capture.enabled:
            self._capture = PromptCaptureService(self._config.capture.capture_file)
        self._clock = clock

        # Published state
        self._snapshot: tuple[TrackedSession, ...] = ()
        self._generation = 0
        self._state_lock = threading.Lock()

        # One cycle at a time
        self._cycle_lock = threading.Lock()

        # Threading
        self._thread_lock = threading.Lock()
        self._poll_thread: threading.Thread | None = None
        self._stop_event: threading.Event | None = None

    @property
    def config(self) -> AppConfig:
        """The configuration the next cycle will use."""
        with self._state_lock:
            return self._config

    @property
    def generation(self) -> int:
        """Config generation; bumped by every update_config()."""
        with self._state_lock:
            return self._generation

    # =========================================================================
    # Polling cycle
    # =========================================================================

    def refresh(self) -> list[TrackedSession]:
        """Run one poll cycle now, waiting for any running cycle to finish.

        Returns:
            The sessions built by this cycle.
        """
        with self._cycle_lock:
            return self._run_cycle()

    def _tick(self) -> None:
        """Run a scheduled cycle unless one is already in progress."""
        if not self._cycle_lock.acquire(blocking=False):
            logger.debug("Poll cycle still running, skipping tick")
            return
        try:
            self._run_cycle()
        finally:
            self._cycle_lock.release()

    def _run_cycle(self) -> list[TrackedSession]:
        with self._state_lock:
            generation = self._generation
            config = self._config

        pattern = re.compile(config.session_pattern)
        terminals = [t for t in self._backend.list_sessions() if pattern.search(t.name)]

        sessions: list[TrackedSession] = []
        if terminals:
            llm_available = self._llm.is_available(config.llm)
            with ThreadPoolExecutor(max_workers=MAX_WORKERS) as executor:
                sessions = list(
                    executor.map(
                        lambda terminal: self._process_safely(terminal, llm_available, config),
                        terminals,
                    )
                )

        sessions = self.deduplicate(sessions)

        with self._state_lock:
            if generation != self._generation:
                logger.debug(
                    f"Discarding poll cycle from generation {generation} "
                    f"(current {self._generation})"
                )
                return sessions
            self._snapshot = tuple(sessions)

        logger.debug(f"Poll cycle tracked {len(sessions)} sessions")
        rows = [session.to_row() for session in sessions]
        self._event_bus.emit(SESSIONS_UPDATED, {"sessions": rows, "count": len(rows)})
        return sessions

    def _process_safely(
        self, terminal: TerminalSession, llm_available: bool, config: AppConfig
    ) -> TrackedSession:
        try:
            return self.process_session(terminal, llm_available, config)
        except Exception:
            logger.exception(f"Error processing session {terminal.name}")
            return TrackedSession(
                terminal=terminal,
                display_name=terminal.name,
                status=SessionState.IDLE,
            )

    def process_session(
        self,
        terminal: TerminalSession,
        llm_available: bool,
        config: AppConfig | None = None,
    ) -> TrackedSession:
        """Build the TrackedSession for one tmux session.

        Args:
            terminal: The tmux session.
            llm_available: Whether the LLM classifier may be called.
            config: Config snapshot for this cycle. Uses the current config
                if not provided.

        Returns:
            The TrackedSession.
        """
        config = config or self.config
        source = config.status_source
        uses_pane = source in (StatusSource.TMUX, StatusSource.HYBRID)
        now = int(self._clock())

        repo = get_repo_name(terminal.path)

        conversation: ConversationAggregate | None = None
        status = SessionStatus(state=SessionState.IDLE)
        detail: str | None = None
        summary = NO_RECENT_ACTIVITY
        context_percent = 0
        last_timestamp = 0
        pane_activity = None

        # Pane text: status and on-screen activity
        if uses_pane:
            pane_text = self._backend.capture_pane(terminal.name)
            pane_status = classify_pane(pane_text)
            if pane_status.state != SessionState.UNKNOWN:
                status = pane_status
                detail = pane_status.detail
            pane_activity = extract_pane_activity(pane_text)

        # Conversation log
        session_files = find_session_files(
            path_to_project_dir(terminal.path),
            max_sessions=1,
            max_age_hours=config.max_session_age_hours,
            projects_dir=config.claude_projects_dir,
        )
        session_file = session_files[0] if session_files else None

        if session_file is not None:
            if source == StatusSource.TMUX:
                last_timestamp = session_file.mtime
            else:
                conversation = parse_session_log(session_file.path)

            if conversation is not None:
                context_percent = calculate_context_percent(conversation, conversation.model)
                summary = generate_summary(
                    conversation.messages, conversation.assistant_messages, SUMMARY_LENGTH
                )
                last_timestamp = conversation.last_timestamp
                seconds = now - last_timestamp
                use_llm = llm_available and seconds < LLM_ACTIVITY_WINDOW

                if source == StatusSource.JSONL:
                    status = determine_status(conversation, terminal.attached, seconds)
                    detail = status_detail(status)
                    if use_llm:
                        analysis = self._analyze(session_file, config)
                        status, detail, llm_summary = merge_analysis(status, analysis)
                        if llm_summary:
                            summary = llm_summary
                elif use_llm:
                    # Hybrid: the pane owns the status, the LLM may only improve the summary
                    analysis = self._analyze(session_file, config)
                    if analysis is not None and analysis.summary:
                        summary = analysis.summary
            elif source == StatusSource.HYBRID:
                last_timestamp = session_file.mtime

        # Time-based upgrade of an idle pane
        if uses_pane and status.state == SessionState.IDLE and last_timestamp > 0:
            seconds = now - last_timestamp
            if seconds < RECENT_WORKING_WINDOW:
                status = SessionStatus(state=SessionState.WORKING, detail="active")
                detail = "active"
            elif terminal.attached and seconds < RECENT_ATTACHED_WINDOW:
                status = SessionStatus(state=SessionState.ACTIVE)
                detail = None

        if source == StatusSource.TMUX and summary == NO_RECENT_ACTIVITY:
            if detail:
                summary = detail
            elif status.state != SessionState.IDLE:
                summary = status.state.value
            else:
                summary = "Session active"

        if conversation is not None and self._capture is not None:
            self._capture_tools(terminal, conversation, session_file, repo)

        return TrackedSession(
            terminal=terminal,
            conversation=conversation,
            display_name=display_name_for(terminal.name, repo, config.strip_name_prefix),
            repo=repo,
            status=status.state,
            status_detail=detail,
            summary=summary,
            context_percent=context_percent,
            last_activity=time_ago(now - last_timestamp) if last_timestamp else "—",
            last_timestamp=last_timestamp,
            pane_activity=pane_activity,
        )

    def _analyze(self, session_file: SessionFile, config: AppConfig) -> AnalysisResult | None:
        """Get the analysis for one version of a session file.

        The cache key changes whenever the file is written, so each version
        is sent to the LLM at most once.
        """
        key = f"{session_file.session_id}-{session_file.mtime}"
        cached = self._llm.get_cached(key)
        if cached is not None:
            return cached

        entries = read_recent_entries(session_file.path)
        return self._llm.analyze_and_cache(key, entries, config.llm)

    def _capture_tools(
        self,
        terminal: TerminalSession,
        conversation: ConversationAggregate,
        session_file: SessionFile,
        repo: str | None,
    ) -> None:
        context = {
            "project_path": terminal.path,
            "claude_project_dir": path_to_project_dir(terminal.path),
            "session_id": conversation.session_id or session_file.session_id,
            "slug": conversation.slug,
            "git_branch": conversation.git_branch,
            "github_repo": repo,
            "tmux_session": terminal.name,
        }
        self._capture.capture_tools(conversation.tool_uses, context)

    @staticmethod
    def deduplicate(sessions: list[TrackedSession]) -> list[TrackedSession]:
        """Keep the best session per Claude project directory.

        Named sessions beat numeric ones ("api" over "3"); between sessions
        of the same kind the most recent activity wins.

        Returns:
            Surviving sessions, most recent activity first.
        """
        best: dict[str, TrackedSession] = {}

        for session in sessions:
            key = path_to_project_dir(session.terminal.path)
            existing = best.get(key)
            if existing is None:
                best[key] = session
                continue

            is_numeric = bool(_NUMERIC_NAME.match(session.terminal.name))
            existing_numeric = bool(_NUMERIC_NAME.match(existing.terminal.name))

            if existing_numeric != is_numeric:
                replace = existing_numeric
            else:
                replace = session.last_timestamp > existing.last_timestamp

            if replace:
                best[key] = session

        return sorted(best.values(), key=lambda s: s.last_timestamp, reverse=True)

    # =========================================================================
    # Background loop
    # =========================================================================

    def start(self) -> None:
        """Start the polling loop."""
        with self._thread_lock:
            if self._poll_thread is not None:
                return

            self._stop_event = threading.Event()
            self._poll_thread = threading.Thread(
                target=self._poll_loop,
                args=(self._stop_event,),
                name="session-monitor",
                daemon=True,
            )
            self._poll_thread.start()
            logger.info(
                f"SessionMonitor started (every {self.config.poll_interval_ms} ms, "
                f"source {self.config.status_source.value})"
            )

    def stop(self) -> None:
        """Stop the polling loop."""
        with self._thread_lock:
            if self._poll_thread is None:
                return

            self._stop_event.set()
            if self._poll_thread is not threading.current_thread():
                self._poll_thread.join(timeout=5.0)
            self._poll_thread = None
            self._stop_event = None
            logger.info("SessionMonitor stopped")

    @property
    def is_running(self) -> bool:
        """Check if the polling loop is running."""
        with self._thread_lock:
            return self._poll_thread is not None

    def _poll_loop(self, stop_event: threading.Event) -> None:
        """Background polling loop on a fixed-rate schedule."""
        interval = self.config.poll_interval_ms / 1000
        next_run = time.monotonic()

        while not stop_event.is_set():
            try:
                self._tick()
            except Exception:
                logger.exception("Error in poll loop")

            next_run += interval
            delay = next_run - time.monotonic()
            if delay < 0:
                # Fell behind; restart the schedule from now
                next_run = time.monotonic()
                delay = 0
            stop_event.wait(delay)

    # =========================================================================
    # Configuration and read access
    # =========================================================================

    def update_config(self, config: AppConfig) -> None:
        """Apply a new configuration.

        In-flight cycles are superseded, the LLM availability answer is
        dropped, and a running loop is restarted with the new interval.
        """
        with self._state_lock:
            self._generation += 1
            previous = self._config
            self._config = config

        self._llm.reset_availability()

        if isinstance(self._backend, TmuxBackend):
            self._backend.tmux_path = config.tmux_path

        if not config.capture.enabled:
            self._capture = None
        elif self._capture is None or config.capture != previous.capture:
            self._capture = PromptCaptureService(config.capture.capture_file)

        if self.is_running:
            self.stop()
            self.start()

        logger.info(f"SessionMonitor config updated (generation {self.generation})")

    def get_snapshot(self) -> tuple[TrackedSession, ...]:
        """Get the last published sessions."""
        with self._state_lock:
            return self._snapshot

    def get_rows(self) -> list[dict]:
        """Get the last published sessions flattened for JSON."""
        return [session.to_row() for session in self.get_snapshot()]
