"""Session-scoped registry of provider tools."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from langchain_core.tools import BaseTool, StructuredTool

from scheduled_agent.errors import RegistryFrozen, ToolIdCollision
from scheduled_agent.providers.connection import ProviderConnection
from scheduled_agent.types import RankedToolRef, ToolDescriptor

ToolInvoker = Callable[[dict[str, Any]], Awaitable[str]]


class ToolRegistry:
    """Maps tool ids to descriptors and LangChain-compatible tool objects.

    Every entry is indexed both by its namespaced id and by its
    `(provider_endpoint, local_name)` pair, so oracle references resolve and
    telemetry decomposes by lookup rather than by string surgery.
    """

    def __init__(self) -> None:
        self._descriptors: dict[str, ToolDescriptor] = {}
        self._tools: dict[str, BaseTool] = {}
        self._ids_by_origin: dict[tuple[str, str], str] = {}
        self._frozen = False

    @classmethod
    def from_connections(cls, connections: Iterable[ProviderConnection]) -> "ToolRegistry":
        registry = cls()
        for connection in connections:
            for descriptor in connection.descriptors:
                registry.register(descriptor, _provider_invoker(connection, descriptor))
        registry.freeze()
        return registry

    def register(self, descriptor: ToolDescriptor, invoke: ToolInvoker) -> None:
        if self._frozen:
            raise RegistryFrozen("Registry is read-only after initial population")
        origin = (descriptor.provider_endpoint, descriptor.local_name)
        if descriptor.tool_id in self._descriptors or origin in self._ids_by_origin:
            raise ToolIdCollision(descriptor.tool_id)

        self._descriptors[descriptor.tool_id] = descriptor
        self._ids_by_origin[origin] = descriptor.tool_id
        self._tools[descriptor.tool_id] = _build_tool(descriptor, invoke)

    def freeze(self) -> None:
        self._frozen = True

    def resolve(self, ids: Iterable[str]) -> list[BaseTool]:
        """Return tools for the known ids, in registry order; unknown ids are ignored."""
        wanted = set(ids)
        return [tool for tool_id, tool in self._tools.items() if tool_id in wanted]

    def resolve_refs(self, refs: Iterable[RankedToolRef]) -> list[BaseTool]:
        return self.resolve(self.ids_for_refs(refs))

    def ids_for_refs(self, refs: Iterable[RankedToolRef]) -> list[str]:
        ids: list[str] = []
        for ref in refs:
            found = self.id_for(ref.provider_endpoint, ref.local_name)
            if found is not None and found not in ids:
                ids.append(found)
        return ids

    def id_for(self, provider_endpoint: str, local_name: str) -> str | None:
        return self._ids_by_origin.get((provider_endpoint, local_name))

    def descriptor(self, tool_id: str) -> ToolDescriptor | None:
        return self._descriptors.get(tool_id)

    def all(self) -> list[BaseTool]:
        return list(self._tools.values())

    def __contains__(self, tool_id: object) -> bool:
        return tool_id in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)


def _build_tool(descriptor: ToolDescriptor, invoke: ToolInvoker) -> StructuredTool:
    async def _call(**kwargs: Any) -> str:
        return await invoke(kwargs)

    return StructuredTool.from_function(
        coroutine=_call,
        name=descriptor.tool_id,
        description=descriptor.description,
        args_schema=descriptor.input_schema or {"type": "object", "properties": {}},
        handle_tool_error=True,
    )


def _provider_invoker(connection: ProviderConnection, descriptor: ToolDescriptor) -> ToolInvoker:
    async def _invoke(arguments: dict[str, Any]) -> str:
        return await connection.call(descriptor.local_name, arguments)

    return _invoke
