"""LangChain-backed model runtime used by the orchestrator."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

from langchain.agents import create_agent
from langchain.agents.middleware import AgentMiddleware
from langchain_core.messages import HumanMessage
from langchain_core.tools import BaseTool
from langgraph.errors import GraphRecursionError

from scheduled_agent.config import LLMConfig
from scheduled_agent.errors import ReasoningBudgetExceeded

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
You are the Trivia Champion, an agent that answers trivia questions with
complete factual accuracy. You do not guess; you verify.

Rules:
1) Use the tools you are given to check every date, name, spelling and
   statistic, even when you are confident.
2) When you add, subtract or compare numbers, write the arithmetic next to the
   result, e.g. "Leeds (536,280) < Philadelphia (1,573,916)".
3) Bold your final answer and ONLY your final answer, e.g. "**Jane Ballou**".
""".strip()


class ModelRuntime(Protocol):
    """Black-box agent loop: takes tools and a question, returns the final text."""

    async def run(
        self,
        question: str,
        tools: Sequence[BaseTool],
        *,
        middleware: Sequence[AgentMiddleware],
        max_steps: int,
    ) -> str: ...


class LangChainRuntime:
    """Runs a LangChain tool-calling agent graph for one request."""

    def __init__(self, llm: Any, *, system_prompt: str = SYSTEM_PROMPT) -> None:
        self.llm = llm
        self.system_prompt = system_prompt

    async def run(
        self,
        question: str,
        tools: Sequence[BaseTool],
        *,
        middleware: Sequence[AgentMiddleware],
        max_steps: int,
    ) -> str:
        executor = create_agent(
            model=self.llm,
            tools=list(tools),
            system_prompt=self.system_prompt,
            middleware=list(middleware),
        )

        last_state: Any = None
        try:
            async for state in executor.astream(
                {"messages": [HumanMessage(question)]},
                {"recursion_limit": max_steps},
                stream_mode="values",
            ):
                last_state = state
        except GraphRecursionError as exc:
            partial = _extract_partial_answer(last_state)
            raise ReasoningBudgetExceeded(max_steps, partial) from exc

        return _extract_graph_answer(last_state)


def create_llm(config: LLMConfig) -> Any:
    """Build a chat model for the configured provider, or None if unconfigured."""

    from langchain_openai import ChatOpenAI

    if config.provider == "openrouter":
        if not config.openrouter_api_key:
            logger.warning(
                'LLM_PROVIDER is set to "openrouter" but OPENROUTER_API_KEY is not set.'
            )
            return None
        return ChatOpenAI(
            model=config.openrouter_model,
            api_key=config.openrouter_api_key,
            base_url="https://openrouter.ai/api/v1",
            default_headers={"X-Title": "MCP Agent"},
            temperature=config.temperature,
        )
    if config.provider == "openai":
        if not config.openai_api_key:
            logger.warning('LLM_PROVIDER is set to "openai" but OPENAI_API_KEY is not set.')
            return None
        return ChatOpenAI(
            model=config.openai_model,
            api_key=config.openai_api_key,
            temperature=config.temperature,
        )
    # Ollama serves an OpenAI-compatible API; the key is ignored but required.
    return ChatOpenAI(
        model=config.ollama_model,
        api_key="ollama",
        base_url=config.ollama_base_url,
        temperature=config.temperature,
    )


def _extract_graph_answer(result: Any) -> str:
    if not isinstance(result, dict):
        return "" if result is None else str(result)
    messages = result.get("messages", [])
    if not isinstance(messages, list) or not messages:
        return str(result.get("output", ""))
    return _message_text(messages[-1])


def _extract_partial_answer(state: Any) -> str | None:
    if not isinstance(state, dict):
        return None
    for message in reversed(state.get("messages", [])):
        if str(getattr(message, "type", "")) != "ai":
            continue
        text = _message_text(message).strip()
        if text:
            return text
    return None


def _message_text(message: Any) -> str:
    if isinstance(message, dict):
        content = message.get("content", "")
    else:
        content = getattr(message, "content", "")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            elif isinstance(item, str):
                parts.append(item)
        return " ".join(parts).strip()
    return "" if content is None else str(content)
