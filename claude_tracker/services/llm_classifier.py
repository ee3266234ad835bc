"""LlmClassifier for optional LLM-based session analysis.

Sends a condensed tail of the conversation log to an Anthropic or
OpenAI-compatible endpoint and parses a small JSON verdict. Every failure
is logged and reported as None; the heuristic status path never depends on
this module succeeding.
"""

import json
import logging
import re
from typing import Any

import requests
from pydantic import ValidationError

from claude_tracker.models.analysis import AnalysisResult, LlmConfig, LlmProvider
from claude_tracker.services.cache import TTLCache

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You analyze Claude Code session data to determine status and summarize activity.

Respond with ONLY a JSON object (no markdown, no thinking, no explanation):
{"state": "STATE", "detail": "DETAIL", "summary": "SUMMARY"}

STATE must be one of:
- "working" - Last entry shows Claude using tools or generating response (assistant with tool_use, no tool_result yet)
- "permission" - Claude used a tool that needs approval (Bash, Edit, Write, Task) and there's no tool_result following
- "waiting" - Claude's last message was text response (no pending tools), waiting for user input
- "idle" - No recent meaningful activity

DETAIL: Brief context (e.g., "processing", "approve: bash", "awaiting input")

SUMMARY: 1-2 sentence summary of what's happening or was last discussed. Focus on the actual task/topic."""

USER_PROMPT_PREFIX = "Analyze these recent session entries (oldest to newest):\n\n"

# Default API base per provider
DEFAULT_BASE_URLS: dict[LlmProvider, str] = {
    LlmProvider.ANTHROPIC: "https://api.anthropic.com",
    LlmProvider.OPENAI: "https://api.openai.com/v1",
    LlmProvider.OLLAMA: "http://localhost:11434/v1",
    LlmProvider.LMSTUDIO: "http://localhost:1234/v1",
}

# Health-check base for local providers (ollama's tags API is not under /v1)
LOCAL_BASE_URLS: dict[LlmProvider, str] = {
    LlmProvider.OLLAMA: "http://localhost:11434",
    LlmProvider.LMSTUDIO: "http://localhost:1234/v1",
}

ANTHROPIC_VERSION = "2023-06-01"
MAX_RESPONSE_TOKENS = 200
TEMPERATURE = 0.1
AVAILABILITY_TIMEOUT_SECONDS = 5
AVAILABILITY_TTL_SECONDS = 60
RESULT_CACHE_SIZE = 256

USER_TEXT_LIMIT = 200
ASSISTANT_TEXT_LIMIT = 300
COMMAND_LIMIT = 50

_FENCE_JSON = re.compile(r"```json\s*")
_FENCE = re.compile(r"```\s*")
_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL)
_JSON_OBJECT = re.compile(r"\{[^}]+\}")


def condense_entries(entries: list[Any]) -> list[dict[str, str]]:
    """Reduce raw log entries to the fields the classifier needs.

    Args:
        entries: Raw JSONL entries, oldest first.

    Returns:
        One small dict per entry (non-dict entries are dropped).
    """
    condensed = []

    for entry in entries:
        if not isinstance(entry, dict):
            continue

        result = {"type": str(entry.get("type") or "unknown")}
        if entry.get("timestamp"):
            result["timestamp"] = str(entry["timestamp"])

        message = entry.get("message")
        content = message.get("content") if isinstance(message, dict) else None

        if entry.get("type") == "user" and isinstance(message, dict):
            if isinstance(content, str):
                result["content"] = content[:USER_TEXT_LIMIT]
            elif isinstance(content, list):
                for block in content:
                    if not isinstance(block, dict):
                        continue
                    if block.get("type") == "text" and isinstance(block.get("text"), str):
                        result["content"] = block["text"][:USER_TEXT_LIMIT]
                        break
                    if block.get("type") == "tool_result" and isinstance(
                        block.get("tool_use_id"), str
                    ):
                        result["tool_result"] = block["tool_use_id"]

        elif entry.get("type") == "assistant" and isinstance(content, list):
            for block in content:
                if not isinstance(block, dict):
                    continue
                if block.get("type") == "text" and isinstance(block.get("text"), str):
                    result["content"] = block["text"][:ASSISTANT_TEXT_LIMIT]
                elif block.get("type") == "tool_use" and isinstance(block.get("name"), str):
                    result["tool"] = block["name"]
                    tool_input = block.get("input")
                    if not isinstance(tool_input, dict):
                        continue
                    if isinstance(tool_input.get("command"), str) and tool_input["command"]:
                        result["tool_input"] = tool_input["command"][:COMMAND_LIMIT]
                    elif isinstance(tool_input.get("file_path"), str) and tool_input["file_path"]:
                        result["tool_input"] = tool_input["file_path"]

        condensed.append(result)

    return condensed


def parse_analysis_response(text: str) -> AnalysisResult | None:
    """Parse the model's reply into an AnalysisResult.

    Markdown fences and ``<think>`` blocks are stripped and the first JSON
    object is validated.

    Returns:
        AnalysisResult, or None if no valid object was found.
    """
    if not isinstance(text, str) or not text:
        return None

    cleaned = _FENCE_JSON.sub("", text)
    cleaned = _FENCE.sub("", cleaned)
    cleaned = _THINK_BLOCK.sub("", cleaned).strip()

    match = _JSON_OBJECT.search(cleaned)
    if match:
        cleaned = match.group(0)

    try:
        return AnalysisResult.model_validate(json.loads(cleaned))
    except (json.JSONDecodeError, ValidationError):
        return None


class LlmClassifier:
    """Service for classifying sessions with an external LLM.

    Features:
    - Anthropic and OpenAI-compatible (OpenAI, Ollama, LM Studio) endpoints
    - Result cache keyed by session file version, bounded in size
    - Availability check cached for 60 seconds per configuration
    """

    def __init__(
        self,
        result_cache: TTLCache | None = None,
        availability_cache: TTLCache | None = None,
    ):
        """Initialize the classifier.

        Args:
            result_cache: Cache for analysis results (no expiry by default).
            availability_cache: Cache for availability checks.
        """
        self._results = result_cache or TTLCache(max_entries=RESULT_CACHE_SIZE)
        # One entry: a different config is a different key and evicts the old one
        self._availability = availability_cache or TTLCache(
            ttl_seconds=AVAILABILITY_TTL_SECONDS, max_entries=1
        )

    # -------------------------------------------------------------------------
    # Request building
    # -------------------------------------------------------------------------

    @staticmethod
    def base_url(config: LlmConfig) -> str:
        """Get the configured or default API base URL."""
        if config.base_url:
            return config.base_url.rstrip("/")
        return DEFAULT_BASE_URLS.get(config.provider, DEFAULT_BASE_URLS[LlmProvider.OPENAI])

    def build_request(
        self, entries: list[Any], config: LlmConfig
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        """Build the HTTP request for an analysis call.

        Returns:
            Tuple of (endpoint, headers, body).
        """
        user_prompt = USER_PROMPT_PREFIX + json.dumps(condense_entries(entries))
        base_url = self.base_url(config)
        headers = {"Content-Type": "application/json"}

        if config.provider == LlmProvider.ANTHROPIC:
            endpoint = f"{base_url}/v1/messages"
            body: dict[str, Any] = {
                "model": config.model,
                "max_tokens": MAX_RESPONSE_TOKENS,
                "system": SYSTEM_PROMPT,
                "messages": [{"role": "user", "content": user_prompt}],
            }
            if config.api_key:
                headers["x-api-key"] = config.api_key
                headers["anthropic-version"] = ANTHROPIC_VERSION
        else:
            endpoint = f"{base_url}/chat/completions"
            body = {
                "model": config.model,
                "max_tokens": MAX_RESPONSE_TOKENS,
                "temperature": TEMPERATURE,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": user_prompt},
                ],
            }
            if config.api_key:
                headers["Authorization"] = f"Bearer {config.api_key}"

        return endpoint, headers, body

    @staticmethod
    def extract_text(provider: LlmProvider, data: Any) -> str:
        """Pull the reply text out of a provider response body.

        Content given as a list of parts has its text parts joined. Anything
        other than text gives an empty string.
        """
        if not isinstance(data, dict):
            return ""

        try:
            if provider == LlmProvider.ANTHROPIC:
                content = data["content"]
            else:
                content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return ""

        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return "".join(
                part["text"]
                for part in content
                if isinstance(part, dict)
                and part.get("type") == "text"
                and isinstance(part.get("text"), str)
            )
        return ""

    # -------------------------------------------------------------------------
    # Analysis
    # -------------------------------------------------------------------------

    def analyze(self, entries: list[Any], config: LlmConfig) -> AnalysisResult | None:
        """Analyze recent log entries.

        Args:
            entries: Raw JSONL entries, oldest first.
            config: Provider configuration.

        Returns:
            AnalysisResult, or None on any failure.
        """
        if not entries:
            return AnalysisResult(state="idle", summary="No recent activity")

        if config.provider == LlmProvider.NONE:
            return None

        endpoint, headers, body = self.build_request(entries, config)

        try:
            response = requests.post(
                endpoint,
                headers=headers,
                json=body,
                timeout=config.timeout_seconds,
            )
        except requests.RequestException as e:
            logger.warning(f"LLM request to {config.provider.value} failed: {e}")
            return None

        if response.status_code != 200:
            logger.warning(
                f"LLM request to {config.provider.value} returned "
                f"HTTP {response.status_code}: {response.text[:200]}"
            )
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"LLM response from {config.provider.value} was not JSON")
            return None

        text = self.extract_text(config.provider, data)
        result = parse_analysis_response(text)
        if result is None:
            logger.warning(f"Could not parse LLM analysis: {text[:200]!r}")
        return result

    def get_cached(self, key: str) -> AnalysisResult | None:
        """Get a cached analysis for a session file version."""
        return self._results.get(key)

    def analyze_and_cache(
        self, key: str, entries: list[Any], config: LlmConfig
    ) -> AnalysisResult | None:
        """Return the cached analysis for ``key``, or analyze and cache it.

        Only successful results are cached, so a failed call is retried on
        the next poll.
        """
        cached = self.get_cached(key)
        if cached is not None:
            return cached

        result = self.analyze(entries, config)
        if result is not None:
            self._results.set(key, result)
        return result

    def clear_cache(self) -> None:
        """Clear all cached analysis results."""
        self._results.clear()

    @property
    def cache_size(self) -> int:
        """Get the number of cached results."""
        return len(self._results)

    # -------------------------------------------------------------------------
    # Availability
    # -------------------------------------------------------------------------

    def _ping(self, config: LlmConfig) -> bool:
        base = (config.base_url or LOCAL_BASE_URLS[config.provider]).rstrip("/")
        url = f"{base}/api/tags" if config.provider == LlmProvider.OLLAMA else f"{base}/models"

        try:
            response = requests.get(url, timeout=AVAILABILITY_TIMEOUT_SECONDS)
        except requests.RequestException as e:
            logger.debug(f"LLM availability check {url} failed: {e}")
            return False
        return response.ok

    def is_available(self, config: LlmConfig) -> bool:
        """Check whether the configured provider can be used.

        Local providers are checked over HTTP; cloud providers only need an
        API key. The answer is cached for 60 seconds per configuration.
        """
        if config.provider == LlmProvider.NONE:
            return False

        key = config.model_dump_json()
        cached = self._availability.get(key)
        if cached is not None:
            return cached

        if config.provider.is_local:
            available = self._ping(config)
        else:
            available = bool(config.api_key)

        self._availability.set(key, available)
        return available

    def reset_availability(self) -> None:
        """Forget the cached availability answer."""
        self._availability.clear()


# Singleton instance
_classifier_instance: LlmClassifier | None = None


def get_llm_classifier() -> LlmClassifier:
    """Get the singleton LlmClassifier instance."""
    global _classifier_instance
    if _classifier_instance is None:
        _classifier_instance = LlmClassifier()
    return _classifier_instance


def reset_llm_classifier() -> None:
    """Reset the singleton instance (for testing)."""
    global _classifier_instance
    _classifier_instance = None
