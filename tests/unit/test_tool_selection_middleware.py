from dataclasses import dataclass, field, replace
from typing import Any

import pytest
from langchain_core.messages import ToolMessage

from scheduled_agent.agent.middleware import ToolSelectionMiddleware
from scheduled_agent.agent.registry import ToolRegistry
from scheduled_agent.config import FallbackPolicy, SchedulerConfig
from scheduled_agent.scheduler.client import CallStatus, SearchResult
from scheduled_agent.types import RankedToolRef, ToolDescriptor


@dataclass
class FakeModelRequest:
    tools: list[Any] = field(default_factory=list)

    def override(self, **overrides: Any) -> "FakeModelRequest":
        return replace(self, **overrides)


@dataclass
class FakeToolRequest:
    tool_call: dict[str, Any]


class FakeRankingClient:
    def __init__(self, results: list[SearchResult]) -> None:
        self.config = SchedulerConfig()
        self.results = list(results)
        self.searches: list[str] = []
        self.reports = []
        self.diagnostics = None

    async def search(self, session_id: str, **_: Any) -> SearchResult:
        self.searches.append(session_id)
        return self.results.pop(0) if len(self.results) > 1 else self.results[0]

    def report(self, outcome) -> None:
        self.reports.append(outcome)


async def _noop(arguments: dict) -> str:
    return "ok"


def _registry() -> ToolRegistry:
    registry = ToolRegistry()
    for endpoint, prefix in (("http://providerA", "providerA"), ("http://providerB", "providerB")):
        for name in ("add-f", "scrape-f"):
            registry.register(
                ToolDescriptor(
                    tool_id=f"{prefix}__{name}",
                    provider_endpoint=endpoint,
                    local_name=name,
                    description=name,
                ),
                _noop,
            )
    registry.freeze()
    return registry


def _ranked(*pairs: tuple[str, str]) -> SearchResult:
    refs = tuple(RankedToolRef(provider_endpoint=e, local_name=n) for e, n in pairs)
    return SearchResult(status=CallStatus.OK if refs else CallStatus.EMPTY, refs=refs)


def _middleware(results, **config) -> tuple[ToolSelectionMiddleware, FakeRankingClient]:
    client = FakeRankingClient(results)
    middleware = ToolSelectionMiddleware(
        registry=_registry(),
        ranking_client=client,
        session_id="batch-1",
        config=SchedulerConfig(**config),
    )
    return middleware, client


async def _capture(request: FakeModelRequest) -> list[str]:
    return [tool.name for tool in request.tools]


@pytest.mark.asyncio
async def test_each_turn_sees_only_ranked_tools() -> None:
    middleware, client = _middleware(
        [
            _ranked(("http://providerA", "add-f")),
            _ranked(("http://providerB", "scrape-f"), ("http://providerA", "add-f")),
        ]
    )

    first = await middleware.awrap_model_call(FakeModelRequest(), _capture)
    second = await middleware.awrap_model_call(FakeModelRequest(), _capture)

    assert first == ["providerA__add-f"]
    assert second == ["providerA__add-f", "providerB__scrape-f"]
    assert client.searches == ["batch-1", "batch-1"]
    assert middleware.turn_history == [first, second]


@pytest.mark.asyncio
async def test_phantom_tools_are_never_exposed() -> None:
    middleware, _ = _middleware(
        [_ranked(("http://providerA", "add-f"), ("http://unknown", "rm-rf"))]
    )

    names = await middleware.awrap_model_call(FakeModelRequest(), _capture)

    assert names == ["providerA__add-f"]


@pytest.mark.asyncio
async def test_same_ranking_gives_same_tool_set() -> None:
    ranking = _ranked(("http://providerB", "add-f"), ("http://providerA", "scrape-f"))
    middleware, _ = _middleware([ranking])

    first = await middleware.awrap_model_call(FakeModelRequest(), _capture)
    second = await middleware.awrap_model_call(FakeModelRequest(), _capture)

    assert first == second


@pytest.mark.asyncio
async def test_failed_or_empty_search_falls_back_to_all_tools() -> None:
    middleware, _ = _middleware(
        [
            SearchResult(status=CallStatus.ERROR),
            _ranked(),
            _ranked(("http://unknown", "rm-rf")),
        ]
    )

    for _ in range(3):
        assert len(await middleware.awrap_model_call(FakeModelRequest(), _capture)) == 4


@pytest.mark.asyncio
async def test_no_tools_fallback_policy() -> None:
    middleware, _ = _middleware(
        [SearchResult(status=CallStatus.ERROR)], fallback=FallbackPolicy.NO_TOOLS
    )

    assert await middleware.awrap_model_call(FakeModelRequest(), _capture) == []


@pytest.mark.asyncio
async def test_tool_call_reported_once_with_local_name() -> None:
    middleware, client = _middleware([_ranked()])

    async def _handler(request: FakeToolRequest) -> ToolMessage:
        return ToolMessage(content="3", tool_call_id="call-1")

    result = await middleware.awrap_tool_call(
        FakeToolRequest(tool_call={"name": "providerA__add-f", "args": {}, "id": "call-1"}),
        _handler,
    )

    assert result.content == "3"
    (outcome,) = client.reports
    assert outcome.provider_endpoint == "http://providerA"
    assert outcome.local_name == "add-f"
    assert outcome.duration_ms >= 0
    assert outcome.is_error is False


@pytest.mark.asyncio
async def test_tool_errors_pass_through_and_are_reported() -> None:
    middleware, client = _middleware([_ranked()])

    async def _handler(request: FakeToolRequest) -> ToolMessage:
        raise RuntimeError("provider exploded")

    with pytest.raises(RuntimeError, match="provider exploded"):
        await middleware.awrap_tool_call(
            FakeToolRequest(tool_call={"name": "providerB__scrape-f", "args": {}, "id": "c"}),
            _handler,
        )

    (outcome,) = client.reports
    assert outcome.local_name == "scrape-f"
    assert outcome.is_error is True


@pytest.mark.asyncio
async def test_error_tool_message_counts_as_failure() -> None:
    middleware, client = _middleware([_ranked()])

    async def _handler(request: FakeToolRequest) -> ToolMessage:
        return ToolMessage(content="Error: bad", tool_call_id="c", status="error")

    await middleware.awrap_tool_call(
        FakeToolRequest(tool_call={"name": "providerA__add-f", "args": {}, "id": "c"}),
        _handler,
    )

    assert client.reports[0].is_error is True


@pytest.mark.asyncio
async def test_unknown_tool_call_is_not_reported() -> None:
    middleware, client = _middleware([_ranked()])

    async def _handler(request: FakeToolRequest) -> str:
        return "handled"

    result = await middleware.awrap_tool_call(
        FakeToolRequest(tool_call={"name": "phantom", "args": {}, "id": "c"}), _handler
    )

    assert result == "handled"
    assert client.reports == []
