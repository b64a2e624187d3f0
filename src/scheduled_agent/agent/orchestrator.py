"""Per-request agent orchestration: register, connect, run, answer."""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AsyncExitStack
from dataclasses import dataclass
from enum import Enum
from typing import Any

from fastmcp import Client

from scheduled_agent.agent.middleware import ToolSelectionMiddleware
from scheduled_agent.agent.registry import ToolRegistry
from scheduled_agent.agent.runtime import ModelRuntime
from scheduled_agent.config import AgentConfig, SchedulerConfig
from scheduled_agent.errors import ProviderUnreachable, ReasoningBudgetExceeded
from scheduled_agent.obs.tracing import Timer
from scheduled_agent.providers.connection import connect_providers
from scheduled_agent.scheduler.client import RankingClient

logger = logging.getLogger(__name__)

REGISTRATION_ERROR_ANSWER = "Error"
NO_RESPONSE_ANSWER = "No response generated"


class AgentState(str, Enum):
    IDLE = "idle"
    REGISTERING = "registering"
    PROVIDERS_CONNECTING = "providers_connecting"
    TOOLS_REGISTERED = "tools_registered"
    MODEL_RUNNING = "model_running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class AgentAnswer:
    answer: str
    state: AgentState
    session_id: str | None = None
    latency_ms: float = 0.0
    tool_count: int = 0


class AgentOrchestrator:
    """Wires registration, provider connections, tool selection and the model.

    `answer()` never raises: every failure ends in `AgentState.FAILED` with a
    plain-text error answer.
    """

    def __init__(
        self,
        *,
        runtime: ModelRuntime,
        ranking_client: RankingClient,
        config: AgentConfig | None = None,
        scheduler_config: SchedulerConfig | None = None,
        client_factory: Callable[[str], Any] = Client,
    ) -> None:
        self.runtime = runtime
        self.ranking_client = ranking_client
        self.config = config or AgentConfig()
        self.scheduler_config = scheduler_config or ranking_client.config
        self._client_factory = client_factory

    async def answer(
        self,
        question: str,
        *,
        scheduler: bool = True,
        max_steps: int | None = None,
    ) -> AgentAnswer:
        result = AgentAnswer(answer=NO_RESPONSE_ANSWER, state=AgentState.IDLE)
        mode = "scheduler" if scheduler else "no scheduler"
        logger.info("Running agent (%s) for %r", mode, question[:80])
        with Timer() as timer:
            try:
                await self._run(result, question, scheduler, max_steps or self.config.max_steps)
            except Exception as exc:
                logger.exception("Error during agent execution")
                result.answer = f"Error: {exc}"
                result.state = AgentState.FAILED
        result.latency_ms = timer.elapsed_ms
        return result

    async def _run(
        self,
        result: AgentAnswer,
        question: str,
        scheduler: bool,
        max_steps: int,
    ) -> None:
        result.state = AgentState.REGISTERING
        urls = self.config.provider_urls()
        logger.info("Registering %d MCP server(s) with scheduler...", len(urls))
        registered = await self.ranking_client.register(urls)
        if not registered.ok or registered.registration is None:
            result.answer = REGISTRATION_ERROR_ANSWER
            result.state = AgentState.FAILED
            return
        session = registered.registration
        result.session_id = session.session_id

        async with AsyncExitStack() as stack:
            result.state = AgentState.PROVIDERS_CONNECTING
            try:
                connections = await connect_providers(
                    session.provider_endpoints,
                    stack=stack,
                    is_required=self.config.is_required,
                    client_factory=self._client_factory,
                )
            except ProviderUnreachable as exc:
                logger.error("%s", exc)
                result.answer = f"Error: {exc}"
                result.state = AgentState.FAILED
                return

            registry = ToolRegistry.from_connections(connections)
            result.tool_count = len(registry)
            result.state = AgentState.TOOLS_REGISTERED

            middleware = []
            if scheduler:
                middleware.append(
                    ToolSelectionMiddleware(
                        registry=registry,
                        ranking_client=self.ranking_client,
                        session_id=session.session_id,
                        config=self.scheduler_config,
                    )
                )

            result.state = AgentState.MODEL_RUNNING
            try:
                answer = await self.runtime.run(
                    question,
                    registry.all(),
                    middleware=middleware,
                    max_steps=max_steps,
                )
            except ReasoningBudgetExceeded as exc:
                logger.warning("%s", exc)
                answer = exc.partial_answer or ""

        if not answer.strip():
            logger.warning("No response generated from agent")
            answer = NO_RESPONSE_ANSWER
        result.answer = answer
        result.state = AgentState.COMPLETED
