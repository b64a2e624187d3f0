"""Running accuracy and latency counters for the two benchmark arms."""

from __future__ import annotations

from dataclasses import dataclass

from scheduled_agent.benchmark.models import BenchmarkTrial


@dataclass(slots=True)
class BenchmarkStats:
    processed: int = 0
    scheduled_correct: int = 0
    unscheduled_correct: int = 0
    scheduled_total_ms: float = 0.0
    unscheduled_total_ms: float = 0.0

    def add(self, trial: BenchmarkTrial) -> None:
        self.processed += 1
        self.scheduled_total_ms += trial.scheduled_result.latency_ms
        self.unscheduled_total_ms += trial.unscheduled_result.latency_ms
        if trial.scheduled_result.is_correct:
            self.scheduled_correct += 1
        if trial.unscheduled_result.is_correct:
            self.unscheduled_correct += 1

    @property
    def scheduled_accuracy(self) -> float:
        return _percent(self.scheduled_correct, self.processed)

    @property
    def unscheduled_accuracy(self) -> float:
        return _percent(self.unscheduled_correct, self.processed)

    @property
    def avg_scheduled_ms(self) -> float:
        return self.scheduled_total_ms / self.processed if self.processed else 0.0

    @property
    def avg_unscheduled_ms(self) -> float:
        return self.unscheduled_total_ms / self.processed if self.processed else 0.0

    @property
    def latency_delta_ms(self) -> float:
        """Scheduled minus unscheduled average latency; negative means faster."""
        return self.avg_scheduled_ms - self.avg_unscheduled_ms

    @property
    def latency_delta_percent(self) -> float:
        if self.avg_unscheduled_ms <= 0:
            return 0.0
        return abs(self.latency_delta_ms) / self.avg_unscheduled_ms * 100.0

    @property
    def scheduler_faster(self) -> bool:
        return self.latency_delta_ms < 0

    @classmethod
    def from_trials(cls, trials: list[BenchmarkTrial]) -> "BenchmarkStats":
        stats = cls()
        for trial in trials:
            stats.add(trial)
        return stats


def format_progress(stats: BenchmarkStats, total: int) -> str:
    direction = "faster" if stats.scheduler_faster else "slower"
    return "\n".join(
        [
            "=== LIVE BENCHMARK METRICS ===",
            f"Processed: {stats.processed}/{total}",
            "",
            f"Accuracy with scheduler: {stats.scheduled_accuracy:.2f}%",
            f"Accuracy without scheduler: {stats.unscheduled_accuracy:.2f}%",
            "",
            f"Avg Time (Scheduler): {stats.avg_scheduled_ms:.2f}ms",
            f"Avg Time (No Scheduler): {stats.avg_unscheduled_ms:.2f}ms",
            f"Difference: {abs(stats.latency_delta_ms):.2f}ms "
            f"({stats.latency_delta_percent:.2f}% {direction} with scheduler)",
        ]
    )


def _percent(part: int, whole: int) -> float:
    return part / whole * 100.0 if whole else 0.0
