import pytest
from pydantic import ValidationError

from scheduled_agent.agent.runtime import create_llm
from scheduled_agent.config import (
    DEFAULT_JUDGE_MODEL,
    DEFAULT_PROVIDER_URLS,
    AgentConfig,
    BenchmarkConfig,
    LLMConfig,
    ProviderConfig,
    Settings,
)


def test_defaults_point_at_local_services(monkeypatch) -> None:
    for var in ("MCP_SERVER_URLS", "MCP_OPTIONAL_URLS", "SCHEDULER_URL", "AGENT_MAX_STEPS"):
        monkeypatch.delenv(var, raising=False)

    settings = Settings.from_env()

    assert settings.scheduler.base_url == "http://localhost:4000"
    assert settings.agent.provider_urls() == list(DEFAULT_PROVIDER_URLS)
    assert settings.agent.max_steps == 50
    assert settings.benchmark.concurrency == 12


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("MCP_SERVER_URLS", "http://a/mcp, http://b/mcp")
    monkeypatch.setenv("MCP_OPTIONAL_URLS", "http://c/mcp,http://a/mcp")
    monkeypatch.setenv("SCHEDULER_URL", "http://oracle:9000")
    monkeypatch.setenv("AGENT_MAX_STEPS", "7")
    monkeypatch.setenv("LLM_PROVIDER", "openai")

    settings = Settings.from_env()

    assert settings.agent.provider_urls() == ["http://a/mcp", "http://b/mcp", "http://c/mcp"]
    assert settings.agent.is_required("http://a/mcp")
    assert not settings.agent.is_required("http://c/mcp")
    assert settings.agent.is_required("http://never-configured/mcp")
    assert settings.agent.max_steps == 7
    assert settings.scheduler.base_url == "http://oracle:9000"
    assert settings.llm.provider == "openai"


def test_invalid_values_rejected() -> None:
    with pytest.raises(ValidationError):
        AgentConfig(max_steps=0)
    with pytest.raises(ValidationError):
        BenchmarkConfig(concurrency=0)
    with pytest.raises(ValidationError):
        LLMConfig(provider="anthropic")
    with pytest.raises(ValidationError):
        ProviderConfig(url="")


def test_hosted_llm_without_key_is_unconfigured() -> None:
    assert create_llm(LLMConfig(provider="openrouter")) is None
    assert create_llm(LLMConfig(provider="openai")) is None


def test_ollama_llm_uses_local_endpoint() -> None:
    llm = create_llm(LLMConfig(provider="ollama", ollama_model="llama3"))

    assert llm is not None
    assert llm.model_name == "llama3"


def test_judge_defaults_to_openrouter_regardless_of_agent_provider() -> None:
    config = LLMConfig(provider="ollama", openrouter_api_key="key")

    judge = create_llm(config.for_judge())

    assert judge is not None
    assert judge.model_name == DEFAULT_JUDGE_MODEL
    assert judge.openai_api_base == "https://openrouter.ai/api/v1"
    assert config.provider == "ollama"


def test_judge_on_local_provider_keeps_its_model() -> None:
    config = LLMConfig(provider="openrouter", judge_provider="ollama", ollama_model="llama3")

    judge = create_llm(config.for_judge())

    assert judge.model_name == "llama3"
    assert judge.openai_api_base == "http://localhost:11434/v1"


def test_judge_settings_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("JUDGE_PROVIDER", "openai")
    monkeypatch.setenv("JUDGE_MODEL", "gpt-4o")
    monkeypatch.setenv("OPENAI_API_KEY", "key")

    judge_config = Settings.from_env().llm.for_judge()
    judge = create_llm(judge_config)

    assert judge_config.provider == "openai"
    assert judge.model_name == "gpt-4o"
