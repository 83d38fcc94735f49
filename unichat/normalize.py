"""
Normalization of completed (non-streaming) provider responses into the
canonical chat-completion shape.

Every function accepts SDK response objects as well as plain dicts.
"""
import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from .types import CanonicalResponse, FinishReason, Role, ToolCall, Usage
from .utils import get_field, now_ts

logger = logging.getLogger(__name__)

_ANTHROPIC_STOP_REASONS: Dict[str, str] = {
    "tool_use": FinishReason.TOOL_CALLS.value,
    "end_turn": FinishReason.STOP.value,
    "stop_sequence": FinishReason.STOP.value,
    "max_tokens": FinishReason.LENGTH.value,
}

_GEMINI_FINISH_REASONS: Dict[str, str] = {
    "STOP": FinishReason.STOP.value,
    "MAX_TOKENS": FinishReason.LENGTH.value,
    "SAFETY": FinishReason.CONTENT_FILTER.value,
    "RECITATION": FinishReason.CONTENT_FILTER.value,
    "BLOCKLIST": FinishReason.CONTENT_FILTER.value,
    "PROHIBITED_CONTENT": FinishReason.CONTENT_FILTER.value,
    "SPII": FinishReason.CONTENT_FILTER.value,
    "IMAGE_SAFETY": FinishReason.CONTENT_FILTER.value,
}


def map_stop_reason(stop_reason: Optional[str]) -> Optional[str]:
    """
    Map an Anthropic stop_reason onto a canonical finish_reason.

    Unknown values pass through unchanged; None stays None.
    """
    if stop_reason is None:
        return None
    return _ANTHROPIC_STOP_REASONS.get(stop_reason, stop_reason)


def map_gemini_finish_reason(finish_reason: Any, has_tool_calls: bool = False) -> Optional[str]:
    """
    Map a Gemini FinishReason enum (or its string value) onto a canonical finish_reason.
    """
    if has_tool_calls:
        return FinishReason.TOOL_CALLS.value
    if finish_reason is None:
        return None
    value = str(getattr(finish_reason, "value", finish_reason))
    return _GEMINI_FINISH_REASONS.get(value.upper(), value.lower())


def build_usage(
    prompt_tokens: Optional[int],
    completion_tokens: Optional[int],
    total_tokens: Optional[int] = None,
) -> Usage:
    """
    Build a canonical usage dict, computing the total when it is missing.
    """
    if total_tokens is None and prompt_tokens is not None and completion_tokens is not None:
        total_tokens = prompt_tokens + completion_tokens
    return {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": total_tokens,
    }


def _first(obj: Any, *names: str) -> Any:
    for name in names:
        value = get_field(obj, name)
        if value is not None:
            return value
    return None


def reconcile_usage(usage: Any) -> Usage:
    """
    Read usage counters regardless of snake_case / camelCase spelling.
    """
    return build_usage(
        _first(usage, "prompt_tokens", "promptTokens", "input_tokens"),
        _first(usage, "completion_tokens", "completionTokens", "output_tokens"),
        _first(usage, "total_tokens", "totalTokens"),
    )


def _stringify_input(block: Any) -> str:
    tool_input = get_field(block, "input", {})
    try:
        return json.dumps(tool_input)
    except (TypeError, ValueError) as exc:
        logger.warning(
            "Failed to stringify tool call input for block %s: %s", get_field(block, "id"), exc
        )
        return json.dumps({
            "error": "Failed to stringify input",
            "originalInputPreview": str(tool_input)[:100],
        })


def normalize_anthropic_response(response: Any) -> CanonicalResponse:
    """
    Convert an Anthropic Messages API response into the canonical shape.

    Text blocks are newline-joined into the message content; tool_use blocks
    become tool calls with JSON-encoded arguments.
    """
    blocks = get_field(response, "content", [])
    text = "\n".join(
        get_field(block, "text", "") for block in blocks
        if get_field(block, "type") == "text"
    )

    tool_calls: List[ToolCall] = [
        {
            "id": get_field(block, "id", ""),
            "type": "function",
            "function": {
                "name": get_field(block, "name", ""),
                "arguments": _stringify_input(block),
            },
        }
        for block in blocks
        if get_field(block, "type") == "tool_use"
    ]

    message: Dict[str, Any] = {
        "role": get_field(response, "role", Role.ASSISTANT.value),
        "content": text or None,
    }
    if tool_calls:
        message["tool_calls"] = tool_calls

    usage = get_field(response, "usage")
    return {
        "id": get_field(response, "id", ""),
        "object": "chat.completion",
        "created": now_ts(),
        "model": get_field(response, "model", ""),
        "choices": [{
            "index": 0,
            "message": message,
            "finish_reason": map_stop_reason(get_field(response, "stop_reason")) or FinishReason.STOP.value,
        }],
        "usage": build_usage(get_field(usage, "input_tokens"), get_field(usage, "output_tokens")),
    }


def _normalize_tool_call(call: Any) -> ToolCall:
    function = get_field(call, "function")
    normalized: ToolCall = {
        "id": get_field(call, "id", ""),
        "type": get_field(call, "type", "function"),
        "function": {
            "name": get_field(function, "name", ""),
            "arguments": get_field(function, "arguments", ""),
        },
    }
    if isinstance(normalized["function"]["arguments"], dict):
        normalized["function"]["arguments"] = json.dumps(normalized["function"]["arguments"])
    return normalized


def normalize_openai_response(response: Any, model: str = "") -> CanonicalResponse:
    """
    Reconcile an OpenAI-shaped response (OpenAI, Mistral and compatible APIs).

    The structure is already canonical; only usage casing is reconciled and
    tool calls get their defaults filled in. Only the first choice is kept.
    """
    choices = get_field(response, "choices", [])
    choice = choices[0] if choices else None
    raw_message = get_field(choice, "message")

    message: Dict[str, Any] = {
        "role": get_field(raw_message, "role", Role.ASSISTANT.value),
        "content": get_field(raw_message, "content"),
    }
    raw_calls = get_field(raw_message, "tool_calls") or get_field(raw_message, "toolCalls") or []
    if raw_calls:
        message["tool_calls"] = [_normalize_tool_call(call) for call in raw_calls]

    return {
        "id": get_field(response, "id", ""),
        "object": "chat.completion",
        "created": get_field(response, "created", now_ts()),
        "model": get_field(response, "model", model),
        "choices": [{
            "index": 0,
            "message": message,
            "finish_reason": _first(choice, "finish_reason", "finishReason"),
        }],
        "usage": reconcile_usage(get_field(response, "usage")),
    }


def gemini_tool_call_id(name: str, position: int) -> str:
    # Gemini does not always return call IDs
    return f"call_{name}_{position}"


def gemini_parts(response: Any) -> List[Any]:
    candidates = get_field(response, "candidates", [])
    if not candidates:
        return []
    return get_field(get_field(candidates[0], "content"), "parts", [])


def gemini_tool_call(function_call: Any, position: int) -> ToolCall:
    name = get_field(function_call, "name", "")
    return {
        "id": get_field(function_call, "id") or gemini_tool_call_id(name, position),
        "type": "function",
        "function": {
            "name": name,
            "arguments": json.dumps(get_field(function_call, "args", {})),
        },
    }


def normalize_gemini_response(response: Any, model: str = "") -> CanonicalResponse:
    """
    Convert a google-genai GenerateContentResponse into the canonical shape.

    Thought parts are left out of the message content.
    """
    texts: List[str] = []
    tool_calls: List[ToolCall] = []
    for part in gemini_parts(response):
        function_call = get_field(part, "function_call")
        if function_call is not None:
            tool_calls.append(gemini_tool_call(function_call, len(tool_calls)))
        elif get_field(part, "text") and not get_field(part, "thought", False):
            texts.append(get_field(part, "text"))

    message: Dict[str, Any] = {
        "role": Role.ASSISTANT.value,
        "content": "".join(texts) or None,
    }
    if tool_calls:
        message["tool_calls"] = tool_calls

    candidates = get_field(response, "candidates", [])
    finish_reason = get_field(candidates[0], "finish_reason") if candidates else None
    usage = get_field(response, "usage_metadata")
    return {
        "id": get_field(response, "response_id") or f"chatcmpl-{uuid.uuid4().hex}",
        "object": "chat.completion",
        "created": now_ts(),
        "model": get_field(response, "model_version", model),
        "choices": [{
            "index": 0,
            "message": message,
            "finish_reason": map_gemini_finish_reason(finish_reason, bool(tool_calls)),
        }],
        "usage": build_usage(
            get_field(usage, "prompt_token_count"),
            get_field(usage, "candidates_token_count"),
            get_field(usage, "total_token_count"),
        ),
    }
