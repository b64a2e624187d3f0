"""FastAPI entrypoint exposing the agent over HTTP."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from pydantic import BaseModel, Field

from scheduled_agent.agent.orchestrator import AgentOrchestrator
from scheduled_agent.agent.runtime import LangChainRuntime, create_llm
from scheduled_agent.config import Settings
from scheduled_agent.scheduler.client import RankingClient


class AnswerRequest(BaseModel):
    question: str = Field(min_length=1)
    scheduler: bool = True
    max_steps: int | None = Field(default=None, ge=1)


class AnswerResponse(BaseModel):
    answer: str


def build_orchestrator(settings: Settings) -> AgentOrchestrator:
    llm = create_llm(settings.llm)
    if llm is None:
        raise RuntimeError("No chat model configured; set LLM_PROVIDER and its API key.")
    return AgentOrchestrator(
        runtime=LangChainRuntime(llm),
        ranking_client=RankingClient(settings.scheduler),
        config=settings.agent,
        scheduler_config=settings.scheduler,
    )


def create_app(
    orchestrator: AgentOrchestrator | None = None,
    *,
    settings: Settings | None = None,
) -> FastAPI:
    """Create the API app.

    Without an injected orchestrator one is built from the environment on
    first use, so importing this module never needs model credentials.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        current: AgentOrchestrator | None = app.state.orchestrator
        if current is not None:
            await current.ranking_client.aclose()

    app = FastAPI(title="Scheduled Agent", version="0.1.0", lifespan=lifespan)
    app.state.orchestrator = orchestrator
    app.state.settings = settings

    def _orchestrator(request: Request) -> AgentOrchestrator:
        state = request.app.state
        if state.orchestrator is None:
            state.orchestrator = build_orchestrator(state.settings or Settings.from_env())
        return state.orchestrator

    @app.get("/")
    def root() -> dict[str, Any]:
        return {"message": "Agent API is running", "status": "ok"}

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.post("/agent/answer", response_model=AnswerResponse)
    async def answer(body: AnswerRequest, request: Request) -> AnswerResponse:
        try:
            orchestrator = _orchestrator(request)
        except Exception as exc:
            return AnswerResponse(answer=f"Error: {exc}")
        result = await orchestrator.answer(
            body.question, scheduler=body.scheduler, max_steps=body.max_steps
        )
        return AnswerResponse(answer=result.answer)

    return app


app = create_app()
