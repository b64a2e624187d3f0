"""Reading back persisted benchmark result files."""

from __future__ import annotations

from pathlib import Path

from pydantic import TypeAdapter

from scheduled_agent.benchmark.models import BenchmarkTrial
from scheduled_agent.benchmark.stats import BenchmarkStats

_TRIALS = TypeAdapter(list[BenchmarkTrial])


def list_result_files(output_dir: Path) -> list[Path]:
    """Result files, newest first. Names sort by their run counter."""
    if not output_dir.is_dir():
        return []
    return sorted((p for p in output_dir.iterdir() if p.suffix == ".json"), reverse=True)


def load_results(path: Path) -> list[BenchmarkTrial]:
    return _TRIALS.validate_json(path.read_bytes())


def summarize(trials: list[BenchmarkTrial]) -> BenchmarkStats:
    return BenchmarkStats.from_trials(trials)


def accuracy_pairs(trials: list[BenchmarkTrial]) -> str:
    """`((scheduled,unscheduled),...)` correctness tuples, one per question."""
    pairs = ",".join(
        f"({t.scheduled_result.is_correct},{t.unscheduled_result.is_correct})" for t in trials
    )
    return f"({pairs})"
