"""Agent middleware that narrows each model turn to the oracle's ranked tools."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from time import perf_counter
from typing import Any

from langchain.agents.middleware import AgentMiddleware
from langchain_core.messages import ToolMessage
from langchain_core.tools import BaseTool

from scheduled_agent.agent.registry import ToolRegistry
from scheduled_agent.config import FallbackPolicy, SchedulerConfig
from scheduled_agent.scheduler.client import RankingClient
from scheduled_agent.types import ToolCallOutcome

logger = logging.getLogger(__name__)


class ToolSelectionMiddleware(AgentMiddleware):
    """Filters the visible tool set per turn and reports every tool call.

    Before each model call the oracle is searched again for `session_id` and
    the request's tools are replaced with the resolved subset. Around each
    tool call the elapsed time and error status are reported to the oracle in
    the background; the call's own result or exception is passed through
    unchanged.
    """

    def __init__(
        self,
        *,
        registry: ToolRegistry,
        ranking_client: RankingClient,
        session_id: str,
        config: SchedulerConfig | None = None,
    ) -> None:
        super().__init__()
        self.registry = registry
        self.ranking_client = ranking_client
        self.session_id = session_id
        self.config = config or ranking_client.config
        self.turn_history: list[list[str]] = []

    async def select_tools(self) -> list[BaseTool]:
        result = await self.ranking_client.search(
            self.session_id,
            limit=self.config.search_limit,
            score_threshold=self.config.score_threshold,
        )
        selected = self.registry.resolve_refs(result.refs) if result.ok else []
        if selected:
            dropped = len(result.refs) - len(selected)
            if dropped:
                logger.debug("Dropped %d ranked tool(s) unknown to the registry", dropped)
            return selected

        if self.config.fallback is FallbackPolicy.NO_TOOLS:
            logger.info("No usable ranking (%s); exposing no tools", result.status.value)
            return []
        logger.info("No usable ranking (%s); exposing all tools", result.status.value)
        return self.registry.all()

    async def awrap_model_call(
        self,
        request: Any,
        handler: Callable[[Any], Awaitable[Any]],
    ) -> Any:
        tools = await self.select_tools()
        self.turn_history.append([tool.name for tool in tools])
        return await handler(request.override(tools=tools))

    async def awrap_tool_call(
        self,
        request: Any,
        handler: Callable[[Any], Awaitable[Any]],
    ) -> Any:
        name = str(request.tool_call.get("name", ""))
        descriptor = self.registry.descriptor(name)
        if descriptor is None:
            return await handler(request)

        start = perf_counter()
        try:
            result = await handler(request)
        except Exception:
            logger.info("Tool failed: %s", name)
            self._report(name, start, is_error=True)
            raise

        is_error = isinstance(result, ToolMessage) and result.status == "error"
        self._report(name, start, is_error=is_error)
        return result

    def _report(self, name: str, start: float, *, is_error: bool) -> None:
        descriptor = self.registry.descriptor(name)
        if descriptor is None:
            return
        outcome = ToolCallOutcome(
            tool_id=descriptor.tool_id,
            provider_endpoint=descriptor.provider_endpoint,
            local_name=descriptor.local_name,
            duration_ms=max(0, int((perf_counter() - start) * 1000.0)),
            is_error=is_error,
        )
        try:
            self.ranking_client.report(outcome)
        except Exception as exc:
            self.ranking_client.diagnostics.record("oracle.report", repr(exc))
