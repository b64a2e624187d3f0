"""HTTP client for the external tool-ranking oracle."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, Field, ValidationError

from scheduled_agent.config import SchedulerConfig
from scheduled_agent.errors import (
    OracleLogFailed,
    OracleRegisterFailed,
    OracleSearchFailed,
)
from scheduled_agent.obs.tracing import BackgroundTasks, DiagnosticSink
from scheduled_agent.types import RankedToolRef, SessionRegistration, ToolCallOutcome

logger = logging.getLogger(__name__)


class RegisterResponse(BaseModel):
    message: str = ""
    registered_id: str | None = None
    urls: list[str] = Field(default_factory=list)


class ToolResult(BaseModel):
    mcp_url: str
    name: str
    description: str = ""
    score: float | None = None


class LogRequest(BaseModel):
    mcp_url: str
    tool_name: str
    total_time_ms: int = Field(ge=0)
    is_error: bool


class CallStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class RegisterResult:
    status: CallStatus
    registration: SessionRegistration | None = None
    message: str = ""
    error: OracleRegisterFailed | None = None

    @property
    def ok(self) -> bool:
        return self.status is CallStatus.OK


@dataclass(slots=True, frozen=True)
class SearchResult:
    status: CallStatus
    refs: tuple[RankedToolRef, ...] = ()
    error: OracleSearchFailed | None = None

    @property
    def ok(self) -> bool:
        return self.status is CallStatus.OK


class RankingClient:
    """Talks to the oracle's `/register`, `/search` and `/log` endpoints.

    Every call is a single attempt. Transport errors and non-success statuses
    come back as `ERROR` results instead of exceptions; `log` never raises.
    """

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        diagnostics: DiagnosticSink | None = None,
    ) -> None:
        self.config = config or SchedulerConfig()
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout_seconds,
            headers={"Content-Type": "application/json"},
        )
        self.diagnostics = diagnostics or DiagnosticSink()
        self._background = BackgroundTasks(self.diagnostics)

    async def register(self, provider_endpoints: Sequence[str]) -> RegisterResult:
        try:
            response = await self._http.post(
                "/register", json={"mcp_urls": list(provider_endpoints)}
            )
            response.raise_for_status()
            payload = RegisterResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as exc:
            error = OracleRegisterFailed(f"Register failed: {_describe(exc)}")
            logger.warning("%s", error)
            return RegisterResult(status=CallStatus.ERROR, error=error)

        if not payload.registered_id:
            logger.warning("Oracle returned no registration id: %s", payload.message)
            return RegisterResult(status=CallStatus.EMPTY, message=payload.message)

        registration = SessionRegistration(
            session_id=payload.registered_id,
            provider_endpoints=tuple(payload.urls or provider_endpoints),
        )
        logger.info(
            "Registered %d provider(s) as session %s",
            len(registration.provider_endpoints),
            registration.session_id,
        )
        return RegisterResult(
            status=CallStatus.OK, registration=registration, message=payload.message
        )

    async def search(
        self,
        session_id: str,
        *,
        limit: int | None = None,
        score_threshold: float | None = None,
    ) -> SearchResult:
        params: dict[str, Any] = {"batch_id": session_id}
        if limit is not None:
            params["limit"] = limit
        if score_threshold is not None:
            params["score_threshold"] = score_threshold

        try:
            response = await self._http.get("/search", params=params)
            response.raise_for_status()
            items = [ToolResult.model_validate(item) for item in response.json()]
        except (httpx.HTTPError, ValueError, TypeError, ValidationError) as exc:
            error = OracleSearchFailed(f"Search failed for {session_id}: {_describe(exc)}")
            logger.warning("%s", error)
            return SearchResult(status=CallStatus.ERROR, error=error)

        refs = tuple(
            RankedToolRef(
                provider_endpoint=item.mcp_url,
                local_name=item.name,
                description=item.description,
                score=item.score,
            )
            for item in items
        )
        logger.debug("Oracle ranked %d tool(s) for %s", len(refs), session_id)
        if not refs:
            return SearchResult(status=CallStatus.EMPTY)
        return SearchResult(status=CallStatus.OK, refs=refs)

    async def log(self, outcome: ToolCallOutcome) -> None:
        body = LogRequest(
            mcp_url=outcome.provider_endpoint,
            tool_name=outcome.local_name,
            total_time_ms=outcome.duration_ms,
            is_error=outcome.is_error,
        )
        try:
            response = await self._http.post("/log", json=body.model_dump())
            response.raise_for_status()
        except httpx.HTTPError as exc:
            error = OracleLogFailed(
                f"Failed to log tool call for {outcome.local_name} from "
                f"{outcome.provider_endpoint}: {_describe(exc)}"
            )
            self.diagnostics.record("oracle.log", str(error))
            return
        logger.debug(
            "Logged tool call for %s from %s", outcome.local_name, outcome.provider_endpoint
        )

    def report(self, outcome: ToolCallOutcome) -> None:
        """Send `outcome` in the background; the caller never waits on it."""
        self._background.spawn(self.log(outcome), name=f"oracle.log:{outcome.tool_id}")

    @property
    def pending_reports(self) -> int:
        return len(self._background)

    async def drain(self) -> None:
        await self._background.drain()

    async def aclose(self) -> None:
        await self.drain()
        if self._owns_client:
            await self._http.aclose()


def _describe(exc: BaseException) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"{exc.response.status_code} {exc.response.text[:200]}"
    return str(exc) or type(exc).__name__
