"""Type definitions for Switchboard."""

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
from switchboard.types.providers import ChatMessage, ModelResponse, ProviderAdapter, ToolCall
from switchboard.types.tools import ToolConnection, ToolDescriptor

__all__ = [
    "AgentDefinition",
    "AppConfig",
    "ChatMessage",
    "LLMConfig",
    "Message",
    "ModelResponse",
    "ProviderAdapter",
    "Result",
    "RunOptions",
    "ServerConfig",
    "ServerScopePolicy",
    "SystemEvent",
    "TextMessage",
    "ToolCall",
    "ToolConnection",
    "ToolDescriptor",
    "ToolResult",
    "ToolUse",
]
