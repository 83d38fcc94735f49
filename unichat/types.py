from enum import Enum
from typing import Literal, List, Dict, Any, Union, TypedDict, Optional

# =============================================================================
# Enumerations
# =============================================================================

class Role(str, Enum):
    """
    Conversation roles understood by the canonical message format.

    ``DEVELOPER`` is never supplied by callers; it only appears after the
    relabel system-prompt policy has been applied for reasoning models.
    """
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    DEVELOPER = "developer"


class ProviderKind(str, Enum):
    """
    Wire protocol family served by a provider handler.

    - OPENAI: OpenAI-compatible chat completions (OpenAI, xAI, DeepSeek, DashScope)
    - ANTHROPIC: block-oriented Messages API with multi-phase streaming
    - MISTRAL: OpenAI-shaped responses with diverging field casing
    - GEMINI: native google-genai generate_content
    """
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    MISTRAL = "mistral"
    GEMINI = "gemini"


class FinishReason(str, Enum):
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"


class SystemPromptPolicy(str, Enum):
    """
    How the leading system message is handled for a given model.
    """
    NONE = "none"          # sent as-is in the conversation
    SEPARATE = "separate"  # lifted out into a dedicated request field
    MERGE = "merge"        # prefixed onto the following message
    RELABEL = "relabel"    # role renamed to "developer" with a formatting marker


ReasoningEffort = Union[bool, Literal["low", "medium", "high"]]


# =============================================================================
# Content Blocks
# =============================================================================

class CacheControl(TypedDict):
    type: Literal["ephemeral"]


class TextBlock(TypedDict, total=False):
    type: Literal["text"]
    text: str
    cache_control: CacheControl


class ToolUseBlock(TypedDict, total=False):
    type: Literal["tool_use"]
    id: str
    name: str
    input: Dict[str, Any]
    cache_control: CacheControl


class ToolResultBlock(TypedDict, total=False):
    type: Literal["tool_result"]
    tool_use_id: str
    content: Any
    is_error: bool
    cache_control: CacheControl


class ThinkingBlock(TypedDict, total=False):
    type: Literal["thinking"]
    thinking: str
    signature: str
    cache_control: CacheControl


class RedactedThinkingBlock(TypedDict, total=False):
    type: Literal["redacted_thinking"]
    data: str
    cache_control: CacheControl


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock, ThinkingBlock, RedactedThinkingBlock]
MessageContent = Union[str, List[ContentBlock], None]


# =============================================================================
# Tool Calling Type Definitions
# =============================================================================

class InputSchema(TypedDict, total=False):
    """
    JSON Schema describing a tool's arguments.
    """
    type: str
    properties: Dict[str, Any]
    required: List[str]
    additionalProperties: bool


class FunctionDefinition(TypedDict, total=False):
    name: str
    description: str
    parameters: InputSchema


class WrappedTool(TypedDict):
    """
    Tool definition in the OpenAI function-wrapped dialect.
    """
    type: Literal["function"]
    function: FunctionDefinition


class LooseTool(TypedDict, total=False):
    """
    Tool definition with the schema stored under either spelling.
    """
    name: str
    description: str
    inputSchema: InputSchema
    input_schema: InputSchema


class CanonicalTool(TypedDict, total=False):
    """
    Canonical tool definition (also the Anthropic wire dialect).
    """
    name: str
    description: str
    input_schema: InputSchema
    cache_control: CacheControl


Tool = Union[WrappedTool, LooseTool, CanonicalTool]


class FunctionCall(TypedDict, total=False):
    name: str
    arguments: str  # JSON-encoded arguments (a fragment when streaming)


class ToolCall(TypedDict, total=False):
    """
    Tool call in the canonical (OpenAI) shape.
    """
    index: int  # only present on streaming fragments
    id: str
    type: Literal["function"]
    function: FunctionCall


# =============================================================================
# Message Type (depends on ToolCall)
# =============================================================================

class Message(TypedDict, total=False):
    """
    Chat message in the canonical format.

    Roles:
    - "system": System prompt / instructions
    - "user": User message
    - "assistant": Model response, optionally carrying tool_calls
    - "tool": Tool execution result, referencing tool_call_id
    """
    role: str
    content: MessageContent
    tool_call_id: str
    tool_calls: List[ToolCall]


# =============================================================================
# Canonical Response Types
# =============================================================================

class Usage(TypedDict):
    prompt_tokens: Optional[int]
    completion_tokens: Optional[int]
    total_tokens: Optional[int]


class ResponseMessage(TypedDict, total=False):
    role: str
    content: Optional[str]
    tool_calls: List[ToolCall]


class Choice(TypedDict):
    index: int
    message: ResponseMessage
    finish_reason: Optional[str]


class CanonicalResponse(TypedDict):
    id: str
    object: Literal["chat.completion"]
    created: int
    model: str
    choices: List[Choice]
    usage: Usage


class Delta(TypedDict, total=False):
    role: str
    content: Optional[str]
    tool_calls: List[ToolCall]


class ChunkChoice(TypedDict):
    index: int
    delta: Delta
    finish_reason: Optional[str]


class CanonicalChunk(TypedDict):
    id: str
    object: Literal["chat.completion.chunk"]
    created: int
    model: str
    choices: List[ChunkChoice]
