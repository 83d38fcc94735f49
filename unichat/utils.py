import json
import time
from typing import Union, List, Optional, Dict, Any, Literal

from .errors import ErrorKind, UnichatError
from .types import (
    Message, ContentBlock, TextBlock, WrappedTool, ToolCall, CacheControl
)

EPHEMERAL: CacheControl = {"type": "ephemeral"}

# =============================================================================
# Field Access Helpers
# =============================================================================

def get_field(obj: Any, name: str, default: Any = None) -> Any:
    """
    Read a field from either an SDK object or a plain dictionary.

    Provider SDKs return pydantic models while tests and raw HTTP payloads
    use dicts; normalization code reads both through this helper.

    Args:
        obj: SDK object, dict, or None.
        name: Attribute / key name.
        default: Value returned when the field is missing or None.

    Returns:
        The field value, or default.
    """
    if obj is None:
        return default
    if isinstance(obj, dict):
        value = obj.get(name, default)
    else:
        value = getattr(obj, name, default)
    return default if value is None else value


def now_ts() -> int:
    """
    Current Unix timestamp in whole seconds, as used in `created` fields.
    """
    return int(time.time())


def parse_temperature(value: Union[float, int, str, None], default: float = 1.0) -> float:
    """
    Accept a temperature as a number or numeric string.

    Raises:
        UnichatError: kind BAD_REQUEST when value is not numeric.
    """
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise UnichatError(ErrorKind.BAD_REQUEST, f"Invalid temperature: {value!r}") from exc


# =============================================================================
# Message Helpers
# =============================================================================

def create_text_content(text: str, *, cached: bool = False) -> TextBlock:
    """
    Create a text content block.

    Args:
        text (str): The text.
        cached (bool): Attach an ephemeral cache hint.

    Returns:
        TextBlock: {"type": "text", "text": text}.
    """
    block: TextBlock = {"type": "text", "text": text}
    if cached:
        block["cache_control"] = dict(EPHEMERAL)
    return block


def create_message(
    role: Literal["system", "user", "assistant"],
    content: Union[str, List[Union[str, ContentBlock]]],
) -> Message:
    """
    Create a standardized Message object.

    Handles both simple string content and lists of content blocks.
    String elements within a list are normalized to text blocks.

    Args:
        role (str): The role of the message sender ('system', 'user', 'assistant').
        content (Union[str, List]): The content of the message.

    Returns:
        Message: A dictionary matching the Message type definition.
    """
    if isinstance(content, str):
        return {"role": role, "content": content}

    normalized: List[ContentBlock] = []
    for item in content:
        if isinstance(item, str):
            normalized.append(create_text_content(item))
        else:
            normalized.append(item)

    return {"role": role, "content": normalized}


def message_text(content: Any) -> str:
    """
    Flatten message content to text: a string as-is, or the text blocks joined.
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return "\n".join(
        get_field(block, "text", "") for block in content
        if get_field(block, "type") == "text"
    )


# =============================================================================
# Tool Calling Helpers
# =============================================================================

def create_tool(
    name: str,
    description: str,
    parameters: Dict[str, Any],
    required: Optional[List[str]] = None,
) -> WrappedTool:
    """
    Create a tool definition in the function-wrapped dialect.

    Args:
        name (str): The name of the function/tool to be called.
        description (str): A clear description of what the tool does.
        parameters (Dict): JSON Schema properties for the arguments.
        required (List[str], optional): Names of required parameters.

    Returns:
        WrappedTool: A dictionary representing the tool definition.
    """
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": parameters,
                "required": required or [],
            },
        },
    }


def create_tool_call(call_id: str, name: str, arguments: Union[str, Dict[str, Any]]) -> ToolCall:
    """
    Create a canonical tool call; dict arguments are JSON-encoded.
    """
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return {
        "id": call_id,
        "type": "function",
        "function": {"name": name, "arguments": arguments},
    }


def create_tool_result(tool_call_id: str, content: str) -> Message:
    """
    Create a tool result message to send back to the LLM.

    Args:
        tool_call_id (str): The ID of the tool call this result corresponds to.
        content (str): The stringified result of the tool execution.

    Returns:
        Message: A message dictionary with role='tool'.
    """
    return {
        "role": "tool",
        "tool_call_id": tool_call_id,
        "content": content,
    }


def create_assistant_message_with_tool_calls(
    content: Optional[str],
    tool_calls: List[ToolCall],
) -> Message:
    """
    Create an assistant message that includes tool calls.

    Args:
        content (str, optional): Text accompanying the tool calls; None when
                                 the message consists of tool calls only.
        tool_calls (List[ToolCall]): Canonical tool call objects.

    Returns:
        Message: A message dictionary with role='assistant'.
    """
    return {
        "role": "assistant",
        "content": content or None,
        "tool_calls": tool_calls,
    }
