from contextlib import AsyncExitStack
from types import SimpleNamespace

import pytest

from scheduled_agent.errors import ProviderUnreachable, ToolInvocationFailed
from scheduled_agent.providers.connection import (
    ProviderConnection,
    connect_providers,
    namespace,
    tool_id,
)


class FakeTool:
    def __init__(self, name: str, description: str | None = None) -> None:
        self.name = name
        self.description = description

    def model_dump(self, *, by_alias: bool = False, exclude_none: bool = False) -> dict:
        payload = {
            "name": self.name,
            "description": self.description,
            "inputSchema": {"type": "object", "properties": {"a": {"type": "number"}}},
        }
        if exclude_none:
            payload = {k: v for k, v in payload.items() if v is not None}
        return payload


class FakeClient:
    def __init__(self, tools: list[FakeTool], results: dict | None = None) -> None:
        self.tools = tools
        self.results = results or {}
        self.closed = False
        self.calls: list[tuple[str, dict]] = []

    async def __aenter__(self) -> "FakeClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.closed = True

    async def list_tools(self) -> list[FakeTool]:
        return self.tools

    async def call_tool(self, name: str, arguments: dict, raise_on_error: bool = True):
        self.calls.append((name, arguments))
        result = self.results[name]
        if isinstance(result, Exception):
            raise result
        return result


class DownClient:
    async def __aenter__(self) -> "DownClient":
        raise ConnectionError("connection refused")

    async def __aexit__(self, *exc_info: object) -> None:
        return None


def test_namespace_strips_scheme_and_punctuation() -> None:
    assert namespace("http://localhost:3005/mcp") == "localhost_3005_mcp"
    assert namespace("https://tools.example.com/v1/mcp/") == "tools_example_com_v1_mcp"
    assert namespace("http://providerA") == "providerA"
    assert tool_id("providerA", "add-f") == "providerA__add-f"


def test_namespace_rejects_empty_url() -> None:
    with pytest.raises(ValueError):
        namespace("http://")


@pytest.mark.asyncio
async def test_connect_builds_namespaced_descriptors() -> None:
    client = FakeClient([FakeTool("add-f", "Add numbers"), FakeTool("scrape-f")])
    connection = ProviderConnection("http://providerA", client_factory=lambda url: client)

    descriptors = await connection.connect()

    assert [d.tool_id for d in descriptors] == ["providerA__add-f", "providerA__scrape-f"]
    assert descriptors[0].description == "Add numbers"
    assert descriptors[1].description == "scrape-f"
    assert descriptors[0].input_schema["properties"] == {"a": {"type": "number"}}
    assert all(d.provider_endpoint == "http://providerA" for d in descriptors)

    await connection.close()
    assert client.closed


@pytest.mark.asyncio
async def test_call_renders_structured_and_text_content() -> None:
    client = FakeClient(
        [FakeTool("add-f"), FakeTool("echo")],
        results={
            "add-f": SimpleNamespace(structured_content={"output": 3}, content=[], is_error=False),
            "echo": SimpleNamespace(
                structured_content=None,
                content=[SimpleNamespace(text="hello"), SimpleNamespace(text="world")],
                is_error=False,
            ),
        },
    )
    connection = ProviderConnection("http://providerA", client_factory=lambda url: client)
    await connection.connect()

    assert await connection.call("add-f", {"a": 1, "b": 2}) == '{"output": 3}'
    assert await connection.call("echo", {}) == "hello\nworld"
    assert client.calls[0] == ("add-f", {"a": 1, "b": 2})


@pytest.mark.asyncio
async def test_call_raises_on_provider_error() -> None:
    client = FakeClient(
        [FakeTool("add-f"), FakeTool("scrape-f")],
        results={
            "add-f": SimpleNamespace(
                structured_content=None,
                content=[SimpleNamespace(text="bad input")],
                is_error=True,
            ),
            "scrape-f": RuntimeError("session lost"),
        },
    )
    connection = ProviderConnection("http://providerA", client_factory=lambda url: client)
    await connection.connect()

    with pytest.raises(ToolInvocationFailed, match="bad input"):
        await connection.call("add-f", {})
    with pytest.raises(ToolInvocationFailed, match="session lost"):
        await connection.call("scrape-f", {"url": "http://x"})


@pytest.mark.asyncio
async def test_unreachable_provider_raises() -> None:
    connection = ProviderConnection("http://down", client_factory=lambda url: DownClient())

    with pytest.raises(ProviderUnreachable, match="http://down"):
        await connection.connect()


@pytest.mark.asyncio
async def test_required_provider_failure_aborts_connect() -> None:
    clients = {"http://up": FakeClient([FakeTool("add-f")]), "http://down": DownClient()}

    async with AsyncExitStack() as stack:
        with pytest.raises(ProviderUnreachable):
            await connect_providers(
                ["http://up", "http://down"],
                stack=stack,
                client_factory=clients.__getitem__,
            )


@pytest.mark.asyncio
async def test_optional_provider_failure_is_skipped() -> None:
    up = FakeClient([FakeTool("add-f")])
    clients = {"http://up": up, "http://down": DownClient()}

    async with AsyncExitStack() as stack:
        live = await connect_providers(
            ["http://up", "http://down"],
            stack=stack,
            is_required=lambda url: url != "http://down",
            client_factory=clients.__getitem__,
        )
        assert [c.endpoint for c in live] == ["http://up"]
        assert not up.closed

    assert up.closed
