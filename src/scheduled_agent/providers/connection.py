"""Connections to remote MCP tool providers."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Callable, Sequence
from contextlib import AsyncExitStack
from typing import Any

from fastmcp import Client

from scheduled_agent.errors import ProviderUnreachable, ToolInvocationFailed
from scheduled_agent.types import ToolDescriptor

logger = logging.getLogger(__name__)

TOOL_ID_SEPARATOR = "__"

_SCHEME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_NON_ALNUM_PATTERN = re.compile(r"[^0-9a-zA-Z]+")

ClientFactory = Callable[[str], Any]


def namespace(url: str) -> str:
    """Derive a stable tool-id prefix from a provider URL.

    `http://localhost:3005/mcp` becomes `localhost_3005_mcp`.
    """

    stripped = _SCHEME_PATTERN.sub("", url.strip())
    cleaned = _NON_ALNUM_PATTERN.sub("_", stripped).strip("_")
    if not cleaned:
        raise ValueError(f"Cannot derive a namespace from URL: {url!r}")
    return cleaned


def tool_id(prefix: str, local_name: str) -> str:
    return f"{prefix}{TOOL_ID_SEPARATOR}{local_name}"


class ProviderConnection:
    """One live MCP session with a tool provider.

    The connection owns its client; `close()` tears the session down. Tool
    descriptors are built once at connect time and never change afterwards.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        required: bool = True,
        client_factory: ClientFactory = Client,
        namespace_override: str | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.required = required
        self.namespace = namespace_override or namespace(endpoint)
        self._client_factory = client_factory
        self._client: Any | None = None
        self._stack = AsyncExitStack()
        self._descriptors: list[ToolDescriptor] = []

    @property
    def descriptors(self) -> list[ToolDescriptor]:
        return list(self._descriptors)

    async def connect(self) -> list[ToolDescriptor]:
        try:
            client = self._client_factory(self.endpoint)
            self._client = await self._stack.enter_async_context(client)
            tools = await self._client.list_tools()
        except Exception as exc:
            await self._stack.aclose()
            self._client = None
            raise ProviderUnreachable(self.endpoint, str(exc) or type(exc).__name__) from exc

        self._descriptors = [self._describe(tool) for tool in tools]
        logger.info(
            "Connected to %s with %d tool(s)", self.endpoint, len(self._descriptors)
        )
        return self.descriptors

    async def call(self, local_name: str, arguments: dict[str, Any]) -> str:
        if self._client is None:
            raise RuntimeError(f"Provider {self.endpoint} is not connected")

        full_id = tool_id(self.namespace, local_name)
        try:
            result = await self._client.call_tool(
                local_name, arguments, raise_on_error=False
            )
        except Exception as exc:
            raise ToolInvocationFailed(full_id, str(exc) or type(exc).__name__) from exc

        output = _render_result(result)
        if getattr(result, "is_error", False):
            raise ToolInvocationFailed(full_id, output or "provider reported an error")
        return output

    async def close(self) -> None:
        self._client = None
        await self._stack.aclose()

    def _describe(self, tool: Any) -> ToolDescriptor:
        payload = tool.model_dump(by_alias=True, exclude_none=True)
        return ToolDescriptor(
            tool_id=tool_id(self.namespace, payload["name"]),
            provider_endpoint=self.endpoint,
            local_name=payload["name"],
            description=payload.get("description") or payload["name"],
            input_schema=payload.get("inputSchema") or {"type": "object", "properties": {}},
        )


async def connect_providers(
    endpoints: Sequence[str],
    *,
    stack: AsyncExitStack,
    is_required: Callable[[str], bool] = lambda _url: True,
    client_factory: ClientFactory = Client,
) -> list[ProviderConnection]:
    """Connect every provider concurrently.

    A failing required provider aborts the whole session with
    `ProviderUnreachable`; a failing optional one is logged and skipped.
    Live connections are pushed onto `stack` so the caller's request scope
    closes them.
    """

    connections = [
        ProviderConnection(url, required=is_required(url), client_factory=client_factory)
        for url in endpoints
    ]
    results = await asyncio.gather(
        *(connection.connect() for connection in connections),
        return_exceptions=True,
    )

    live: list[ProviderConnection] = []
    fatal: ProviderUnreachable | None = None
    for connection, result in zip(connections, results, strict=True):
        if isinstance(result, BaseException):
            if not isinstance(result, ProviderUnreachable):
                result = ProviderUnreachable(connection.endpoint, repr(result))
            if connection.required:
                fatal = fatal or result
            else:
                logger.warning("Skipping optional provider: %s", result)
            continue
        stack.push_async_callback(connection.close)
        live.append(connection)

    if fatal is not None:
        raise fatal
    return live


def _render_result(result: Any) -> str:
    parts: list[str] = []
    for block in getattr(result, "content", None) or []:
        text = getattr(block, "text", None)
        if text is not None:
            parts.append(str(text))
    if parts:
        return "\n".join(parts)

    structured = getattr(result, "structured_content", None)
    if structured is not None:
        return json.dumps(structured, ensure_ascii=False)
    return ""
