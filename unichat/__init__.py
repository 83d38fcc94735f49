from .client import UnifiedChatClient
from .errors import ErrorKind, UnichatError
from .models import ModelRegistry, ModelSpec
from .streaming import StreamReassembler
from .types import (
    CanonicalChunk, CanonicalResponse, Message, ProviderKind, SystemPromptPolicy, Tool, ToolCall,
)

__all__ = [
    "UnifiedChatClient",
    "ErrorKind",
    "UnichatError",
    "ModelRegistry",
    "ModelSpec",
    "StreamReassembler",
    "CanonicalChunk",
    "CanonicalResponse",
    "Message",
    "ProviderKind",
    "SystemPromptPolicy",
    "Tool",
    "ToolCall",
]
