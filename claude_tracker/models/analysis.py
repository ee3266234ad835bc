"""LLM classifier models: provider configuration and analysis results."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class LlmProvider(str, Enum):
    """Supported inference providers."""

    NONE = "none"
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    OLLAMA = "ollama"
    LMSTUDIO = "lmstudio"

    @property
    def is_local(self) -> bool:
        """Local providers are checked over HTTP instead of trusting an API key."""
        return self in (LlmProvider.OLLAMA, LlmProvider.LMSTUDIO)


class LlmConfig(BaseModel):
    """Provider configuration for the optional LLM classifier."""

    provider: LlmProvider = Field(
        default=LlmProvider.NONE,
        description="Inference provider ('none' disables LLM analysis)",
    )
    model: str = Field(
        default="qwen/qwen3-30b-a3b-2507",
        description="Model identifier passed to the provider",
    )
    api_key: str | None = Field(default=None, description="API key for cloud providers")
    base_url: str | None = Field(
        default=None,
        description="Override the provider's default endpoint",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Hard wall-clock timeout for one analysis request",
    )


class AnalysisResult(BaseModel):
    """Structured reply from the LLM classifier."""

    state: Literal["working", "permission", "waiting", "idle", "unknown"]
    detail: str | None = None
    summary: str | None = None
