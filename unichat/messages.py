"""
Rewrites canonical (OpenAI-style) conversations into provider shapes.

Nothing here mutates the caller's messages; every function returns new
message dicts.
"""
import copy
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import ErrorKind, UnichatError
from .models import ModelSpec
from .types import ContentBlock, Message, Role, SystemPromptPolicy, ToolCall, ToolUseBlock
from .utils import EPHEMERAL, get_field

logger = logging.getLogger(__name__)

FORMATTING_MARKER = "Formatting re-enabled\n"
RAW_ARGS_KEY = "__raw_args__"
MAX_CACHED_USER_MESSAGES = 2


@dataclass(frozen=True)
class PreparedConversation:
    system_prompt: str
    messages: List[Message]


def _system_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list) and content and get_field(content[0], "type") == "text":
        return get_field(content[0], "text", "")
    return ""


def _prefix_content(prefix: str, content: Any) -> Any:
    if isinstance(content, list):
        return [{"type": "text", "text": prefix}, *content]
    if content is None:
        return prefix
    return f"{prefix}{content}"


def prepare_conversation(conversation: List[Message], model_spec: ModelSpec) -> PreparedConversation:
    """
    Apply the model's system prompt policy to a conversation.

    - SEPARATE: a leading system message is removed and returned as system_prompt.
    - MERGE: the system text is prefixed onto the next message, separated by a
      blank line. A lone system message becomes a user message.
    - RELABEL: the system message becomes a "developer" message whose content
      starts with a formatting marker.
    - NONE: the conversation is returned unchanged.

    Args:
        conversation: Canonical messages, oldest first.
        model_spec: Registry entry of the target model.

    Returns:
        PreparedConversation with the (possibly empty) system prompt and a new
        message list.
    """
    messages = [dict(message) for message in conversation]
    has_system = bool(messages) and messages[0].get("role") == Role.SYSTEM.value
    policy = model_spec.system_prompt

    if not has_system or policy is SystemPromptPolicy.NONE:
        return PreparedConversation("", messages)

    if policy is SystemPromptPolicy.SEPARATE:
        system = messages.pop(0)
        return PreparedConversation(_system_text(system.get("content")), messages)

    if policy is SystemPromptPolicy.MERGE:
        system_text = _system_text(messages[0].get("content"))
        if len(messages) == 1:
            return PreparedConversation("", [{"role": Role.USER.value, "content": system_text}])
        following = messages[1]
        following["content"] = _prefix_content(f"{system_text}\n\n", following.get("content"))
        return PreparedConversation("", messages[1:])

    # RELABEL
    first = messages[0]
    first["role"] = Role.DEVELOPER.value
    first["content"] = _prefix_content(FORMATTING_MARKER, first.get("content"))
    return PreparedConversation("", messages)


def transform_tool_calls(tool_calls: List[ToolCall]) -> List[ToolUseBlock]:
    """
    Convert canonical tool calls into tool_use content blocks.

    Arguments that are not a JSON object are passed through as a raw string
    under the "__raw_args__" key instead of failing the request.
    """
    blocks: List[ToolUseBlock] = []
    for call in tool_calls:
        function = call.get("function", {})
        name = function.get("name", "")
        arguments = function.get("arguments") or "{}"
        if isinstance(arguments, dict):
            args = arguments
        else:
            try:
                args = json.loads(arguments)
            except (TypeError, ValueError):
                logger.warning(
                    "Tool call arguments for %s are not valid JSON; passing as raw string", name
                )
                args = {RAW_ARGS_KEY: arguments}
            else:
                if not isinstance(args, dict):
                    logger.warning(
                        "Tool call arguments for %s are not a JSON object; passing as raw string", name
                    )
                    args = {RAW_ARGS_KEY: arguments}
        blocks.append({
            "type": "tool_use",
            "id": call.get("id", ""),
            "name": name,
            "input": args,
        })
    return blocks


def _as_blocks(content: Any) -> List[ContentBlock]:
    if content is None or content == "":
        return []
    if isinstance(content, str):
        return [{"type": "text", "text": content}]
    return list(content)


def transform_messages(messages: List[Message]) -> List[Dict[str, Any]]:
    """
    Rewrite canonical messages into block-oriented content.

    - assistant messages with tool_calls: each call becomes a tool_use block
      (any text is kept as a leading text block) and tool_calls is dropped.
    - tool messages: become a user message with one tool_result block.
    - string content: wrapped in a single text block.

    Message order is preserved.
    """
    transformed: List[Dict[str, Any]] = []
    for original in messages:
        message = dict(original)
        role = message.get("role")

        if role == Role.ASSISTANT.value and message.get("tool_calls"):
            tool_calls = message.pop("tool_calls")
            message["content"] = _as_blocks(message.get("content")) + transform_tool_calls(tool_calls)
            transformed.append(message)
        elif role == Role.TOOL.value:
            content = message.get("content")
            result: Dict[str, Any] = {
                "type": "tool_result",
                "tool_use_id": message.get("tool_call_id", ""),
                "content": content if isinstance(content, str) else json.dumps(content),
            }
            if "is_error" in message:
                result["is_error"] = bool(message["is_error"])
            transformed.append({"role": Role.USER.value, "content": [result]})
        else:
            if isinstance(message.get("content"), str):
                message["content"] = [{"type": "text", "text": message["content"]}]
            transformed.append(message)
    return transformed


def cache_messages(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Attach cache hints to the two most recent user messages.

    Every content block of those messages gets an ephemeral cache_control;
    string content becomes a single cached text block. Older messages are
    returned unchanged.
    """
    result: List[Dict[str, Any]] = []
    user_messages = 0

    for original in reversed(messages):
        message = dict(original)
        if message.get("role") == Role.USER.value and user_messages < MAX_CACHED_USER_MESSAGES:
            content = message.get("content")
            if isinstance(content, str):
                message["content"] = [
                    {"type": "text", "text": content, "cache_control": dict(EPHEMERAL)}
                ]
            elif isinstance(content, list):
                message["content"] = [
                    {**block, "cache_control": dict(EPHEMERAL)} if isinstance(block, dict) else block
                    for block in content
                ]
            user_messages += 1
        result.append(message)

    result.reverse()
    return result


def append_block(message: Message, block: Optional[Dict[str, Any]]) -> Message:
    """
    Return a copy of message with block appended to its content.

    Text merges into a trailing text block. Blocks without a type, or with
    missing required fields, are skipped with a warning.
    """
    if not block or not block.get("type"):
        logger.warning("Skipping append of typeless block: %r", block)
        return message

    updated = dict(message)
    content = updated.get("content")
    if isinstance(content, str):
        blocks = [{"type": "text", "text": content}]
    else:
        blocks = [dict(b) for b in content or []]

    kind = block["type"]
    if kind == "text" and isinstance(block.get("text"), str):
        if blocks and blocks[-1].get("type") == "text":
            blocks[-1]["text"] = blocks[-1]["text"] + block["text"]
        else:
            blocks.append({"type": "text", "text": block["text"]})
    elif kind == "tool_use" and block.get("id") and block.get("name") and "input" in block:
        blocks.append({
            "type": "tool_use",
            "id": block["id"],
            "name": block["name"],
            "input": copy.deepcopy(block["input"]),
        })
    elif kind == "tool_result" and block.get("tool_use_id") and "content" in block:
        blocks.append(dict(block))
    elif kind in ("thinking", "redacted_thinking"):
        blocks.append(dict(block))
    else:
        logger.warning("Cannot append unknown or incomplete block of type %r", kind)
        return message

    updated["content"] = blocks
    return updated


def validate_conversation(conversation: List[Message]) -> None:
    """
    Check structural requirements before anything is sent.

    Raises:
        UnichatError: kind BAD_REQUEST for an empty conversation, a message
                      without a role, or a tool message without tool_call_id.
    """
    if not conversation:
        raise UnichatError(ErrorKind.BAD_REQUEST, "messages must contain at least one message")

    seen_ids = set()
    for position, message in enumerate(conversation):
        role = message.get("role")
        if not role:
            raise UnichatError(ErrorKind.BAD_REQUEST, f"Message {position} has no role")
        for call in message.get("tool_calls") or []:
            seen_ids.add(call.get("id"))
        content = message.get("content")
        if isinstance(content, list):
            seen_ids.update(get_field(block, "id") for block in content if get_field(block, "type") == "tool_use")
        if role == Role.TOOL.value:
            call_id = message.get("tool_call_id")
            if not call_id:
                raise UnichatError(ErrorKind.BAD_REQUEST, f"Tool message {position} has no tool_call_id")
            if call_id not in seen_ids:
                logger.warning("Tool message %d references unknown tool call %s", position, call_id)
