"""Centralised configuration for the agent module.

All agent configuration values are defined here as the single source of truth.
Use DEFAULT_AGENT_CONFIG for the standard configuration, or instantiate
AgentConfig with custom values for testing.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class AgentConfig:
    """Centralised configuration for the agent module.

    :param max_steps: Maximum number of model calls per turn.
    :param chat_model: Default model alias for chat/tool execution.
    :param max_tokens: Maximum tokens in LLM response.
    :param tool_timeout_seconds: Maximum seconds for a single tool execution.
        Prevents hung tools from blocking a turn indefinitely.
    :param http_timeout_seconds: Timeout for outbound HTTP calls made by tools.
    :param max_parallel_executions: Maximum approved tools executed at once
        during a reconciliation pass.
    :param resolve_stale_auto_calls: Whether an auto tool left unresolved
        across a turn boundary is resolved with an empty result. When False the
        call is left pending and logged.
    """

    # Runner settings
    max_steps: int = 10
    chat_model: str = "sonnet"
    max_tokens: int = 4096
    tool_timeout_seconds: float = 30.0
    http_timeout_seconds: float = 10.0

    # Reconciliation
    max_parallel_executions: int = 4
    resolve_stale_auto_calls: bool = True


# Default configuration singleton
DEFAULT_AGENT_CONFIG = AgentConfig()
