"""HTTP client the benchmark uses to ask the agent questions."""

from __future__ import annotations

import httpx

from scheduled_agent.api.main import AnswerResponse


class HttpAgentClient:
    """Posts questions to `/agent/answer`.

    Pass `transport=httpx.ASGITransport(app=...)` to drive an in-process app
    instead of a running server.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3002",
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 600.0,
    ) -> None:
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def ask(self, question: str, *, scheduler: bool) -> str:
        response = await self._http.post(
            "/agent/answer", json={"question": question, "scheduler": scheduler}
        )
        response.raise_for_status()
        return AnswerResponse.model_validate(response.json()).answer

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "HttpAgentClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
