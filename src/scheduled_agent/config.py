"""Configuration models for the scheduled agent."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_PROVIDER_URLS = (
    "http://localhost:3005/mcp",
    "http://localhost:3006/mcp",
)

DEFAULT_JUDGE_MODEL = "openai/gpt-oss-120b:nitro"


class FallbackPolicy(str, Enum):
    """What a model turn sees when the oracle gives no usable ranking."""

    ALL_TOOLS = "all_tools"
    NO_TOOLS = "no_tools"


class ProviderConfig(BaseModel):
    """One MCP tool-provider endpoint."""

    url: str = Field(min_length=1)
    required: bool = True


class SchedulerConfig(BaseModel):
    """Configures the ranking oracle client and the selection fallback."""

    base_url: str = "http://localhost:4000"
    timeout_seconds: float = Field(default=10.0, gt=0.0)
    search_limit: int | None = Field(default=None, ge=1)
    score_threshold: float | None = None
    fallback: FallbackPolicy = FallbackPolicy.ALL_TOOLS


class LLMConfig(BaseModel):
    """Configures the chat model backing the agent and the judge."""

    provider: str = Field(default="ollama", pattern="^(ollama|openrouter|openai)$")
    openrouter_api_key: str | None = None
    openrouter_model: str = "google/gemini-2.0-flash-001"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    ollama_model: str = "gpt-oss:latest"
    ollama_base_url: str = "http://localhost:11434/v1"
    judge_provider: str = Field(default="openrouter", pattern="^(ollama|openrouter|openai)$")
    judge_model: str | None = None
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)

    def for_judge(self) -> "LLMConfig":
        """Settings for the answer judge, which runs on its own provider.

        Without `judge_model` the judge uses the provider's configured model,
        except on OpenRouter where it defaults to `DEFAULT_JUDGE_MODEL`.
        """
        model = self.judge_model
        if model is None and self.judge_provider == "openrouter":
            model = DEFAULT_JUDGE_MODEL
        update: dict[str, object] = {"provider": self.judge_provider}
        if model is not None:
            update[f"{self.judge_provider}_model"] = model
        return self.model_copy(update=update)


class AgentConfig(BaseModel):
    """Configures agent execution."""

    max_steps: int = Field(default=50, ge=1)
    providers: list[ProviderConfig] = Field(
        default_factory=lambda: [ProviderConfig(url=url) for url in DEFAULT_PROVIDER_URLS]
    )

    def provider_urls(self) -> list[str]:
        return [provider.url for provider in self.providers]

    def is_required(self, url: str) -> bool:
        """Providers that are not configured explicitly are treated as required."""
        for provider in self.providers:
            if provider.url == url:
                return provider.required
        return True


class BenchmarkConfig(BaseModel):
    """Configures the A/B benchmark harness."""

    concurrency: int = Field(default=12, ge=1)
    progress_every: int = Field(default=5, ge=1)
    output_dir: Path = Path("benchmark-results")
    deadline_seconds: float | None = Field(default=None, gt=0.0)
    randomize_order: bool = False


class Settings(BaseModel):
    """Top-level settings, usually loaded from the environment."""

    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    benchmark: BenchmarkConfig = Field(default_factory=BenchmarkConfig)

    @classmethod
    def from_env(cls) -> "Settings":
        required_urls = _split_urls(os.getenv("MCP_SERVER_URLS")) or list(DEFAULT_PROVIDER_URLS)
        optional_urls = _split_urls(os.getenv("MCP_OPTIONAL_URLS"))
        providers = [ProviderConfig(url=url) for url in required_urls]
        providers.extend(
            ProviderConfig(url=url, required=False)
            for url in optional_urls
            if url not in required_urls
        )

        agent_kwargs: dict[str, object] = {"providers": providers}
        if os.getenv("AGENT_MAX_STEPS"):
            agent_kwargs["max_steps"] = int(os.environ["AGENT_MAX_STEPS"])

        llm_defaults = LLMConfig()
        return cls(
            scheduler=SchedulerConfig(
                base_url=os.getenv("SCHEDULER_URL", SchedulerConfig().base_url),
            ),
            llm=LLMConfig(
                provider=os.getenv("LLM_PROVIDER") or llm_defaults.provider,
                openrouter_api_key=os.getenv("OPENROUTER_API_KEY"),
                openrouter_model=os.getenv("OPENROUTER_MODEL", llm_defaults.openrouter_model),
                openai_api_key=os.getenv("OPENAI_API_KEY"),
                openai_model=os.getenv("OPENAI_MODEL", llm_defaults.openai_model),
                ollama_model=os.getenv("OLLAMA_MODEL", llm_defaults.ollama_model),
                ollama_base_url=os.getenv("OLLAMA_BASE_URL", llm_defaults.ollama_base_url),
                judge_provider=os.getenv("JUDGE_PROVIDER") or llm_defaults.judge_provider,
                judge_model=os.getenv("JUDGE_MODEL") or None,
            ),
            agent=AgentConfig(**agent_kwargs),
        )


def _split_urls(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]
