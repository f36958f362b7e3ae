"""
Model backends.
All providers are reached through the OpenAI-compatible API format.
"""

from .base import (
    ChunkType,
    FinishReason,
    Message,
    ModelBackend,
    ModelResponse,
    Role,
    StreamChunk,
    ToolCall,
    ToolDefinition,
    ToolResult,
)
from .openai_compatible import OpenAICompatibleClient, create_client

__all__ = [
    "ChunkType",
    "FinishReason",
    "Message",
    "ModelBackend",
    "ModelResponse",
    "Role",
    "StreamChunk",
    "ToolCall",
    "ToolDefinition",
    "ToolResult",
    "OpenAICompatibleClient",
    "create_client",
]
