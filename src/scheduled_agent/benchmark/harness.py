"""Concurrent A/B benchmark: every question with and without tool scheduling."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol

from scheduled_agent.benchmark.dataset import build_prompt
from scheduled_agent.benchmark.judge import AnswerJudge
from scheduled_agent.benchmark.models import BenchmarkTrial, DatasetItem, TrialOutcome, Verdict
from scheduled_agent.benchmark.stats import BenchmarkStats, format_progress
from scheduled_agent.config import BenchmarkConfig
from scheduled_agent.obs.tracing import Timer

logger = logging.getLogger(__name__)

ERROR_ANSWER = "ERROR"

ProgressCallback = Callable[[BenchmarkStats, int], None]


class AgentClient(Protocol):
    async def ask(self, question: str, *, scheduler: bool) -> str: ...


@dataclass(slots=True)
class BenchmarkSummary:
    output_file: Path
    total: int
    stats: BenchmarkStats
    timed_out: bool = False


def next_output_path(output_dir: Path, now: datetime | None = None) -> Path:
    """`<dir>/<NNNNN>-<HH-MM-SS-MM-DD-YYYY>.json`, NNNNN = existing result count."""
    output_dir.mkdir(parents=True, exist_ok=True)
    existing = sum(1 for path in output_dir.iterdir() if path.suffix == ".json")
    now = now or datetime.now()
    stamp = now.strftime("%H-%M-%S-%m-%d-%Y")
    return output_dir / f"{existing:05d}-{stamp}.json"


def log_progress(stats: BenchmarkStats, total: int) -> None:
    logger.info("%s", format_progress(stats, total))


class ResultAggregator:
    """Sole owner of the running counters and the output artifact.

    Workers hand finished trials over a queue and wait for the
    acknowledgement; only `run()` mutates state or touches the file.
    """

    def __init__(
        self,
        output_file: Path,
        *,
        total: int,
        progress_every: int = 5,
        on_progress: ProgressCallback = log_progress,
    ) -> None:
        self.output_file = output_file
        self.total = total
        self.progress_every = progress_every
        self.on_progress = on_progress
        self.trials: list[BenchmarkTrial] = []
        self.stats = BenchmarkStats()
        self._inbox: asyncio.Queue[tuple[BenchmarkTrial, asyncio.Future[None]] | None] = (
            asyncio.Queue()
        )

    async def submit(self, trial: BenchmarkTrial) -> None:
        ack: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        await self._inbox.put((trial, ack))
        await ack

    async def run(self) -> None:
        self._persist()
        while True:
            message = await self._inbox.get()
            if message is None:
                return
            trial, ack = message
            try:
                self._apply(trial)
            except Exception as exc:
                logger.exception("Failed to record benchmark result")
                if not ack.done():
                    ack.set_exception(exc)
                continue
            if not ack.done():
                ack.set_result(None)

    async def close(self) -> None:
        await self._inbox.put(None)

    def _apply(self, trial: BenchmarkTrial) -> None:
        self.trials.append(trial)
        self.stats.add(trial)
        self._persist()
        processed = self.stats.processed
        if processed % self.progress_every == 0 or processed == self.total:
            self.on_progress(self.stats, self.total)

    def _persist(self) -> None:
        payload = [trial.model_dump(mode="json", by_alias=True) for trial in self.trials]
        tmp = self.output_file.with_name(self.output_file.name + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self.output_file)


class BenchmarkHarness:
    """Runs a dataset through the agent twice per item and judges both answers."""

    def __init__(
        self,
        agent: AgentClient,
        judge: AnswerJudge,
        config: BenchmarkConfig | None = None,
        *,
        on_progress: ProgressCallback = log_progress,
    ) -> None:
        self.agent = agent
        self.judge = judge
        self.config = config or BenchmarkConfig()
        self.on_progress = on_progress
        self.in_flight = 0
        self.peak_in_flight = 0

    async def run(
        self,
        items: Sequence[DatasetItem],
        *,
        output_file: Path | None = None,
    ) -> BenchmarkSummary:
        output_file = output_file or next_output_path(self.config.output_dir)
        logger.info(
            "Starting benchmark with concurrency %d. Output file: %s",
            self.config.concurrency,
            output_file,
        )

        queue: asyncio.Queue[DatasetItem] = asyncio.Queue()
        for item in items:
            queue.put_nowait(item)

        aggregator = ResultAggregator(
            output_file,
            total=len(items),
            progress_every=self.config.progress_every,
            on_progress=self.on_progress,
        )
        aggregator_task = asyncio.create_task(aggregator.run(), name="benchmark-aggregator")
        workers = [
            asyncio.create_task(self._worker(queue, aggregator), name=f"benchmark-worker-{index}")
            for index in range(self.config.concurrency)
        ]

        timed_out = False
        try:
            await asyncio.wait_for(
                asyncio.gather(*workers), timeout=self.config.deadline_seconds
            )
        except TimeoutError:
            timed_out = True
            logger.warning(
                "Benchmark deadline of %.1fs reached; %d item(s) left unprocessed",
                self.config.deadline_seconds,
                queue.qsize(),
            )
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            await aggregator.close()
            await aggregator_task

        return BenchmarkSummary(
            output_file=output_file,
            total=len(items),
            stats=aggregator.stats,
            timed_out=timed_out,
        )

    async def _worker(self, queue: asyncio.Queue[DatasetItem], aggregator: ResultAggregator) -> None:
        while True:
            try:
                item = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                try:
                    trial = await self.process(item)
                except Exception as exc:
                    logger.exception("Benchmark item failed: %r", item.prompt[:80])
                    trial = _error_trial(item, exc)
                try:
                    await aggregator.submit(trial)
                except Exception:
                    logger.exception("Could not persist result for %r", item.prompt[:80])
            finally:
                self.in_flight -= 1

    async def process(self, item: DatasetItem) -> BenchmarkTrial:
        prompt = build_prompt(item)
        arms = [True, False]
        if self.config.randomize_order:
            random.shuffle(arms)
        outcomes = await asyncio.gather(
            *(self._trial(prompt, item, scheduler=arm) for arm in arms)
        )
        by_arm = dict(zip(arms, outcomes, strict=True))
        return BenchmarkTrial(
            question=item.prompt,
            expected_answer=item.answer,
            scheduled_result=by_arm[True],
            unscheduled_result=by_arm[False],
        )

    async def _trial(self, prompt: str, item: DatasetItem, *, scheduler: bool) -> TrialOutcome:
        try:
            with Timer() as timer:
                answer = await self.agent.ask(prompt, scheduler=scheduler)
        except Exception as exc:
            logger.warning("Agent request failed (scheduler=%s): %s", scheduler, exc)
            return TrialOutcome(
                answer=ERROR_ANSWER,
                is_correct=False,
                judge_reason=f"Error: {exc}",
                latency_ms=0.0,
            )

        try:
            verdict = await self.judge.judge(item.prompt, item.answer, answer)
        except Exception as exc:
            logger.warning("Judge unavailable: %s", exc)
            verdict = Verdict(is_correct=False, reason=f"Judge unavailable: {exc}")

        return TrialOutcome(
            answer=answer,
            is_correct=verdict.is_correct,
            judge_reason=verdict.reason,
            latency_ms=timer.elapsed_ms,
        )


def _error_trial(item: DatasetItem, exc: BaseException) -> BenchmarkTrial:
    failed = TrialOutcome(
        answer=ERROR_ANSWER, is_correct=False, judge_reason=f"Error: {exc}", latency_ms=0.0
    )
    return BenchmarkTrial(
        question=item.prompt,
        expected_answer=item.answer,
        scheduled_result=failed,
        unscheduled_result=failed,
    )
