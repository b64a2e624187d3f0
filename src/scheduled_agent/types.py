"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True, frozen=True)
class ToolDescriptor:
    """A provider tool as addressed inside one session's registry."""

    tool_id: str
    provider_endpoint: str
    local_name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


@dataclass(slots=True, frozen=True)
class SessionRegistration:
    """Correlation scope returned by the oracle for one agent request."""

    session_id: str
    provider_endpoints: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class RankedToolRef:
    """A tool reference as ranked by the oracle for the current turn."""

    provider_endpoint: str
    local_name: str
    description: str = ""
    score: float | None = None


@dataclass(slots=True, frozen=True)
class ToolCallOutcome:
    """Timing and status of one finished tool invocation."""

    tool_id: str
    provider_endpoint: str
    local_name: str
    duration_ms: int
    is_error: bool

    def __post_init__(self) -> None:
        if self.duration_ms < 0:
            raise ValueError("duration_ms must be >= 0")
