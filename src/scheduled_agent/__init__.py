"""Scheduled agent package."""

from .config import AgentConfig, BenchmarkConfig, LLMConfig, SchedulerConfig, Settings

__all__ = ["AgentConfig", "BenchmarkConfig", "LLMConfig", "SchedulerConfig", "Settings"]
