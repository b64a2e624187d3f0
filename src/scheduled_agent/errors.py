"""Exception hierarchy for the scheduled agent."""

from __future__ import annotations

from langchain_core.tools import ToolException


class SchedulerAgentError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(SchedulerAgentError, ValueError):
    """Invalid provider or registry configuration."""


class ToolIdCollision(ConfigurationError):
    """Two tools map to the same registry id."""

    def __init__(self, tool_id: str) -> None:
        super().__init__(f"Tool already registered: {tool_id}")
        self.tool_id = tool_id


class RegistryFrozen(SchedulerAgentError):
    """The registry is read-only once the session's tools are loaded."""


class ProviderUnreachable(SchedulerAgentError):
    """A tool provider could not be connected or enumerated."""

    def __init__(self, endpoint: str, reason: str = "") -> None:
        message = f"Tool provider unreachable: {endpoint}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.endpoint = endpoint
        self.reason = reason


class OracleError(SchedulerAgentError):
    """Base class for failed calls to the ranking oracle."""


class OracleRegisterFailed(OracleError):
    pass


class OracleSearchFailed(OracleError):
    pass


class OracleLogFailed(OracleError):
    pass


class ToolInvocationFailed(ToolException):
    """A provider reported an error while running a tool."""

    def __init__(self, tool_id: str, reason: str) -> None:
        super().__init__(f"Tool {tool_id} failed: {reason}")
        self.tool_id = tool_id
        self.reason = reason


class ReasoningBudgetExceeded(SchedulerAgentError):
    """The agent hit its step budget before producing a final answer."""

    def __init__(self, max_steps: int, partial_answer: str | None = None) -> None:
        super().__init__(f"Reasoning budget of {max_steps} steps exceeded")
        self.max_steps = max_steps
        self.partial_answer = partial_answer


class JudgeUnavailable(SchedulerAgentError):
    """The answer judge could not produce a verdict."""
