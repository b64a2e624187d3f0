"""Dataset items and persisted benchmark records."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DatasetItem(BaseModel):
    """One question/answer pair from the benchmark dataset file."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(alias="Prompt", min_length=1)
    answer: str = Field(alias="Answer")
    reasoning_types: str = ""
    wiki_links: list[str] = Field(default_factory=list)


class Verdict(BaseModel):
    """Judge decision on whether an answer matches the ground truth."""

    is_correct: bool = Field(description="Whether the agent's answer is correct.")
    reason: str = Field(
        description="Short explanation of why the prediction does or does not match."
    )


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TrialOutcome(_CamelModel):
    answer: str
    is_correct: bool
    judge_reason: str
    latency_ms: float = Field(ge=0.0)


class BenchmarkTrial(_CamelModel):
    question: str
    expected_answer: str
    scheduled_result: TrialOutcome
    unscheduled_result: TrialOutcome
