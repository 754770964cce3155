"""Exception taxonomy for Switchboard.

Only :class:`ConfigurationError` and :class:`ModelCallError` stop an invocation.
Everything else is turned into a tool-result message so the model can adapt.
"""

from __future__ import annotations


class SwitchboardError(Exception):
    """Base class for all Switchboard errors."""


class ConfigurationError(SwitchboardError):
    """Missing config file, credentials or model. Fatal before any conversation."""


class ServerConnectionError(SwitchboardError):
    """A tool server failed to connect or to list its tools."""

    def __init__(self, server: str, message: str) -> None:
        super().__init__(message)
        self.server = server


class ModelCallError(SwitchboardError):
    """The model provider call failed."""


class ToolExecutionError(SwitchboardError):
    """A single tool invocation failed."""

    def __init__(self, tool: str, message: str) -> None:
        super().__init__(message)
        self.tool = tool


class PolicyViolation(SwitchboardError):
    """A delegation request was rejected.

    ``str(exc)`` is the exact text returned to the model as the tool result.
    """


class InvalidDelegation(PolicyViolation):
    def __init__(self) -> None:
        super().__init__('call_agent requires a non-empty "query" string')


class UnknownAgent(PolicyViolation):
    def __init__(self, name: str) -> None:
        super().__init__(f"call_agent failed: unknown agent '{name}'")
        self.name = name


class DelegationRefused(PolicyViolation):
    """Target is outside the caller's allowlist (agent-level or CLI-level)."""

    def __init__(self, target: str, caller: str | None = None) -> None:
        if caller is not None:
            message = f"call_agent refused: agent '{caller}' is not allowed to call '{target}'"
        else:
            message = f"call_agent refused: target agent '{target}' not in CLI allowlist"
        super().__init__(message)
        self.target = target
        self.caller = caller


class DepthExceeded(PolicyViolation):
    def __init__(self) -> None:
        super().__init__("call_agent refused: maximum recursion depth reached")
