"""Semantic answer judge backed by a chat model."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from scheduled_agent.benchmark.models import Verdict
from scheduled_agent.errors import JudgeUnavailable

logger = logging.getLogger(__name__)

JUDGE_PROMPT = """
You are an answer validator. Compare the Model Prediction with the Ground Truth
and decide whether they match.

The Ground Truth is authoritative. Do not use your own knowledge of the
question; only judge agreement with the Ground Truth.

Question: {question}
Ground Truth: {expected}
Model Prediction: {answer}

How to judge:
- The model was told to bold only its final answer (**like this**). Judge the
  bolded answer and ignore the working shown around it.
- Numbers must match exactly for dates and integer arithmetic; "87 years"
  equals "87". Allow rounding only where the question implies estimates.
- Named entities must refer to the same thing. A bare name that the Ground
  Truth sentence describes counts as a match.
- Verbosity is not an error; a different final entity is.
""".strip()


class AnswerJudge(Protocol):
    async def judge(self, question: str, expected: str, answer: str) -> Verdict: ...


class LLMJudge:
    """Asks a chat model for a structured `Verdict`."""

    def __init__(self, llm: Any) -> None:
        self._structured = llm.with_structured_output(Verdict)

    async def judge(self, question: str, expected: str, answer: str) -> Verdict:
        prompt = JUDGE_PROMPT.format(question=question, expected=expected, answer=answer)
        try:
            result = await self._structured.ainvoke(prompt)
        except Exception as exc:
            raise JudgeUnavailable(f"Judge call failed: {exc}") from exc
        if isinstance(result, dict):
            result = Verdict.model_validate(result)
        if not isinstance(result, Verdict):
            raise JudgeUnavailable(f"Judge returned an unexpected payload: {result!r}")
        logger.debug("Is Correct: %s Reason: %s", result.is_correct, result.reason)
        return result
