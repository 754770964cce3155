"""Switchboard -- LLM orchestration with scoped MCP tools and agent delegation.

Usage:
    import switchboard
    from switchboard.core.config import load_config

    async for msg in switchboard.run("Summarize my inbox", config=load_config()):
        match msg:
            case switchboard.TextMessage(text=t, agent=a):
                print(a or "orchestrator", t)
            case switchboard.Result(text=t):
                print(f"Done: {t}")
"""

from switchboard.agents.catalog import AgentCatalog
from switchboard.core.engine import ConversationEngine, run
from switchboard.errors import (
    ConfigurationError,
    DelegationRefused,
    DepthExceeded,
    InvalidDelegation,
    ModelCallError,
    PolicyViolation,
    ServerConnectionError,
    SwitchboardError,
    ToolExecutionError,
    UnknownAgent,
)
from switchboard.types.agents import AgentDefinition, ServerScopePolicy
from switchboard.types.config import AppConfig, LLMConfig, RunOptions, ServerConfig
from switchboard.types.messages import (
    Message,
    Result,
    SystemEvent,
    TextMessage,
    ToolResult,
    ToolUse,
)
from switchboard.types.tools import ToolConnection, ToolDescriptor

__version__ = "0.1.0"

__all__ = [
    # Core API
    "AgentCatalog",
    "ConversationEngine",
    "run",
    # Message types
    "Message",
    "Result",
    "SystemEvent",
    "TextMessage",
    "ToolResult",
    "ToolUse",
    # Configuration
    "AgentDefinition",
    "AppConfig",
    "LLMConfig",
    "RunOptions",
    "ServerConfig",
    "ServerScopePolicy",
    # Tools
    "ToolConnection",
    "ToolDescriptor",
    # Errors
    "ConfigurationError",
    "DelegationRefused",
    "DepthExceeded",
    "InvalidDelegation",
    "ModelCallError",
    "PolicyViolation",
    "ServerConnectionError",
    "SwitchboardError",
    "ToolExecutionError",
    "UnknownAgent",
]
