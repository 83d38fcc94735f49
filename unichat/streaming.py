"""
Streaming normalization.

Anthropic streams are multi-phase (message_start, content_block_start /
delta / stop, message_delta, message_stop). ``StreamReassembler`` drives an
explicit state machine over those events: each event kind has a pure
transition function taking the current :class:`StreamState` and the event and
returning a :class:`Step` (new state, canonical chunks to emit, and the message
to commit to history, if any).

OpenAI-compatible and Gemini streams are already flat, one delta per event;
their transformers only relabel fields into the canonical chunk shape.

All transformers consume their event source strictly in arrival order and
emit chunks eagerly, one event at a time.
"""
import copy
import json
import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from .errors import ErrorKind, UnichatError, normalize_error
from .messages import append_block
from .normalize import gemini_parts, gemini_tool_call, map_gemini_finish_reason, map_stop_reason
from .types import CanonicalChunk, Delta, Message, ProviderKind, Role, ToolCall
from .utils import get_field, now_ts

logger = logging.getLogger(__name__)


# =============================================================================
# State
# =============================================================================

class StreamPhase(str, Enum):
    IDLE = "idle"
    MESSAGE_OPEN = "message_open"
    TEXT_BLOCK_OPEN = "text_block_open"
    TOOL_BLOCK_OPEN = "tool_block_open"
    THINKING_BLOCK_OPEN = "thinking_block_open"
    MESSAGE_CLOSED = "message_closed"


@dataclass(frozen=True)
class ChunkBase:
    """
    Fields shared by every chunk of one message.
    """
    id: str
    model: str
    created: int


@dataclass(frozen=True)
class ToolCallAccumulator:
    index: int
    id: str
    name: str
    buffer: str = ""

    def append(self, fragment: str) -> "ToolCallAccumulator":
        return replace(self, buffer=self.buffer + fragment)


@dataclass(frozen=True)
class StreamState:
    base: ChunkBase
    message: Optional[Message] = None
    tool: Optional[ToolCallAccumulator] = None
    tool_index: int = 0
    phase: StreamPhase = StreamPhase.IDLE


@dataclass(frozen=True)
class Step:
    state: StreamState
    chunks: Tuple[CanonicalChunk, ...] = ()
    committed: Optional[Message] = None


def initial_state(model: str = "") -> StreamState:
    base = ChunkBase(
        id=f"chatcmpl-{int(time.time() * 1000)}",
        model=model,
        created=now_ts(),
    )
    return StreamState(base=base)


def make_chunk(base: ChunkBase, delta: Delta, finish_reason: Optional[str] = None) -> CanonicalChunk:
    return {
        "id": base.id,
        "object": "chat.completion.chunk",
        "created": base.created,
        "model": base.model,
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }


def _has_content(message: Optional[Message]) -> bool:
    return message is not None and bool(message.get("content"))


def _update_last_block(message: Message, block_type: str, update: Callable[[Dict[str, Any]], None]) -> Message:
    blocks = [dict(block) for block in message.get("content") or []]
    if not blocks or blocks[-1].get("type") != block_type:
        return message
    update(blocks[-1])
    return {**message, "content": blocks}


def _close_tool(state: StreamState) -> StreamState:
    """
    Parse the open accumulator into a tool_use block (or a diagnostic text
    block when the JSON is malformed) and advance the tool index.
    """
    tool = state.tool
    if tool is None:
        return state

    message = state.message
    if message is not None:
        try:
            tool_input = json.loads(tool.buffer) if tool.buffer.strip() else {}
        except ValueError as exc:
            logger.warning(
                "Failed to parse tool call input JSON for tool %s (ID: %s): %s. Buffer: %r",
                tool.name, tool.id, exc, tool.buffer,
            )
            message = append_block(message, {
                "type": "text",
                "text": f"Error: Tool {tool.name} (ID: {tool.id}) received malformed JSON input.",
            })
        else:
            message = append_block(message, {
                "type": "tool_use",
                "id": tool.id,
                "name": tool.name,
                "input": tool_input,
            })

    return replace(
        state,
        message=message,
        tool=None,
        tool_index=tool.index + 1,
        phase=StreamPhase.MESSAGE_OPEN,
    )


# =============================================================================
# Transitions (one per Anthropic event kind)
# =============================================================================

def on_message_start(state: StreamState, event: Any) -> Step:
    committed = None
    if _has_content(state.message):
        # A new message began without message_stop for the previous one
        state = _close_tool(state)
        committed = state.message

    message_info = get_field(event, "message")
    role = get_field(message_info, "role", Role.ASSISTANT.value)
    base = ChunkBase(
        id=get_field(message_info, "id", state.base.id),
        model=get_field(message_info, "model", state.base.model),
        created=now_ts(),
    )
    new_state = StreamState(
        base=base,
        message={"role": role, "content": []},
        phase=StreamPhase.MESSAGE_OPEN,
    )
    return Step(new_state, (make_chunk(base, {"role": role}),), committed)


def on_content_block_start(state: StreamState, event: Any) -> Step:
    block = get_field(event, "content_block")
    block_type = get_field(block, "type")

    if block_type == "tool_use":
        state = _close_tool(state)
        tool = ToolCallAccumulator(
            index=state.tool_index,
            id=get_field(block, "id", ""),
            name=get_field(block, "name", ""),
        )
        delta: Delta = {
            "tool_calls": [{
                "index": tool.index,
                "id": tool.id,
                "type": "function",
                "function": {"name": tool.name, "arguments": ""},
            }],
        }
        new_state = replace(state, tool=tool, phase=StreamPhase.TOOL_BLOCK_OPEN)
        return Step(new_state, (make_chunk(state.base, delta),))

    if block_type in ("thinking", "redacted_thinking"):
        message = state.message
        if message is not None:
            if block_type == "thinking":
                new_block = {
                    "type": "thinking",
                    "thinking": get_field(block, "thinking", ""),
                    "signature": get_field(block, "signature", ""),
                }
            else:
                new_block = {"type": "redacted_thinking", "data": get_field(block, "data", "")}
            message = append_block(message, new_block)
        return Step(replace(state, message=message, phase=StreamPhase.THINKING_BLOCK_OPEN))

    # Text arrives entirely through deltas
    return Step(replace(state, phase=StreamPhase.TEXT_BLOCK_OPEN))


def on_content_block_delta(state: StreamState, event: Any) -> Step:
    delta = get_field(event, "delta")
    delta_type = get_field(delta, "type")

    if delta_type == "text_delta":
        text = get_field(delta, "text", "")
        message = state.message
        if message is not None:
            message = append_block(message, {"type": "text", "text": text})
        return Step(replace(state, message=message), (make_chunk(state.base, {"content": text}),))

    if delta_type == "input_json_delta":
        if state.tool is None:
            return Step(state)
        fragment = get_field(delta, "partial_json", "")
        tool = state.tool.append(fragment)
        chunk_delta: Delta = {
            "tool_calls": [{"index": tool.index, "function": {"arguments": fragment}}],
        }
        return Step(replace(state, tool=tool), (make_chunk(state.base, chunk_delta),))

    if delta_type in ("thinking_delta", "signature_delta") and state.message is not None:
        if delta_type == "thinking_delta":
            fragment = get_field(delta, "thinking", "")

            def update(block: Dict[str, Any]) -> None:
                block["thinking"] = block.get("thinking", "") + fragment
        else:
            signature = get_field(delta, "signature", "")

            def update(block: Dict[str, Any]) -> None:
                block["signature"] = signature

        return Step(replace(state, message=_update_last_block(state.message, "thinking", update)))

    return Step(state)


def on_content_block_stop(state: StreamState, event: Any) -> Step:
    if state.tool is not None:
        return Step(_close_tool(state))
    if state.message is None:
        return Step(state)
    return Step(replace(state, phase=StreamPhase.MESSAGE_OPEN))


def on_message_delta(state: StreamState, event: Any) -> Step:
    stop_reason = get_field(get_field(event, "delta"), "stop_reason")
    return Step(state, (make_chunk(state.base, {}, map_stop_reason(stop_reason)),))


def on_message_stop(state: StreamState, event: Any) -> Step:
    state = _close_tool(state)
    reset = StreamState(base=state.base, phase=StreamPhase.MESSAGE_CLOSED)
    return Step(reset, (), state.message)


def finalize(state: StreamState) -> Step:
    """
    Transition for an event source that ended without message_stop.

    An open tool call is closed (yielding a diagnostic block when its JSON is
    truncated) and a non-empty message is committed.
    """
    state = _close_tool(state)
    committed = state.message if _has_content(state.message) else None
    return Step(StreamState(base=state.base, phase=StreamPhase.MESSAGE_CLOSED), (), committed)


TRANSITIONS: Dict[str, Callable[[StreamState, Any], Step]] = {
    "message_start": on_message_start,
    "content_block_start": on_content_block_start,
    "content_block_delta": on_content_block_delta,
    "content_block_stop": on_content_block_stop,
    "message_delta": on_message_delta,
    "message_stop": on_message_stop,
}


def step(state: StreamState, event: Any) -> Step:
    """
    Apply one event. Unknown event kinds (e.g. ping) leave the state untouched.
    """
    transition = TRANSITIONS.get(get_field(event, "type"))
    if transition is None:
        return Step(state)
    return transition(state, event)


# =============================================================================
# Drivers
# =============================================================================

def transport_error(exc: Exception, kind: ProviderKind) -> UnichatError:
    """
    Normalize a failure raised by the provider event source itself.
    """
    error = normalize_error(exc, kind)
    if error.kind is ErrorKind.UNKNOWN:
        error.kind = ErrorKind.CONNECTION_FAILED
    return error


class StreamTransformer(ABC):
    """
    Base driver: pulls provider events one at a time and yields canonical chunks.

    A single event that fails to transform is logged and skipped; failures of
    the event source propagate as UnichatError.
    """

    kind: ProviderKind = ProviderKind.OPENAI

    def __init__(self, model: str = ""):
        self.model = model

    @abstractmethod
    def transform(self, event: Any) -> List[CanonicalChunk]:
        """
        Turn one provider event into zero or more canonical chunks.
        """

    def close(self) -> None:
        """
        Called once when the event source is exhausted or abandoned.
        """

    def feed(self, event: Any) -> List[CanonicalChunk]:
        try:
            return self.transform(event)
        except Exception:
            logger.error(
                "Failed to transform %s stream event %r; skipping",
                self.kind.value, get_field(event, "type"), exc_info=True,
            )
            return []

    def reassemble(self, events: Iterable[Any]) -> Iterator[CanonicalChunk]:
        """
        Transform a synchronous event iterable.
        """
        iterator = iter(events)
        try:
            while True:
                try:
                    event = next(iterator)
                except StopIteration:
                    break
                except Exception as exc:
                    raise transport_error(exc, self.kind) from exc
                yield from self.feed(event)
        finally:
            self.close()

    async def areassemble(self, events: AsyncIterable[Any]) -> AsyncIterator[CanonicalChunk]:
        """
        Transform an asynchronous event stream (the SDK stream objects).
        """
        iterator = events.__aiter__()
        try:
            while True:
                try:
                    event = await iterator.__anext__()
                except StopAsyncIteration:
                    break
                except Exception as exc:
                    raise transport_error(exc, self.kind) from exc
                for chunk in self.feed(event):
                    yield chunk
        finally:
            self.close()


class StreamReassembler(StreamTransformer):
    """
    Anthropic event stream -> canonical chunks, rebuilding each assistant
    message and committing it to ``history`` at message_stop (or when the
    stream ends early).
    """

    kind = ProviderKind.ANTHROPIC

    def __init__(self, model: str = "", history: Optional[List[Message]] = None):
        super().__init__(model)
        self.state = initial_state(model)
        self.history: List[Message] = history if history is not None else []

    def _apply(self, result: Step) -> List[CanonicalChunk]:
        self.state = result.state
        if result.committed is not None:
            self.history.append(copy.deepcopy(result.committed))
        return list(result.chunks)

    def transform(self, event: Any) -> List[CanonicalChunk]:
        return self._apply(step(self.state, event))

    def close(self) -> None:
        self._apply(finalize(self.state))


def _relabel_tool_fragment(fragment: Any, position: int) -> ToolCall:
    function = get_field(fragment, "function")
    relabeled: Dict[str, Any] = {"index": get_field(fragment, "index", position)}
    call_id = get_field(fragment, "id")
    if call_id:
        relabeled["id"] = call_id
        relabeled["type"] = get_field(fragment, "type", "function")
    relabeled_function: Dict[str, Any] = {"arguments": get_field(function, "arguments", "")}
    name = get_field(function, "name")
    if name:
        relabeled_function["name"] = name
    relabeled["function"] = relabeled_function
    return relabeled


class FlatChunkRelabeler(StreamTransformer):
    """
    OpenAI-compatible (and Mistral) chunks -> canonical chunks.
    """

    def __init__(self, model: str = "", kind: ProviderKind = ProviderKind.OPENAI):
        super().__init__(model)
        self.kind = kind

    def transform(self, event: Any) -> List[CanonicalChunk]:
        choices = get_field(event, "choices", [])
        if not choices:
            # usage-only trailer or keep-alive
            return []

        choice = choices[0]
        raw_delta = get_field(choice, "delta")
        delta: Delta = {}
        role = get_field(raw_delta, "role")
        if role:
            delta["role"] = role
        content = get_field(raw_delta, "content")
        if content is not None:
            delta["content"] = content
        fragments = get_field(raw_delta, "tool_calls") or get_field(raw_delta, "toolCalls") or []
        if fragments:
            delta["tool_calls"] = [
                _relabel_tool_fragment(fragment, position)
                for position, fragment in enumerate(fragments)
            ]

        base = ChunkBase(
            id=get_field(event, "id", ""),
            model=get_field(event, "model", self.model),
            created=get_field(event, "created", now_ts()),
        )
        finish_reason = get_field(choice, "finish_reason") or get_field(choice, "finishReason")
        return [make_chunk(base, delta, finish_reason)]


class GeminiChunkRelabeler(StreamTransformer):
    """
    google-genai stream chunks -> canonical chunks.

    Gemini delivers function calls whole, so each becomes one complete
    tool-call delta with the next index.
    """

    kind = ProviderKind.GEMINI

    def __init__(self, model: str = ""):
        super().__init__(model)
        self.base = ChunkBase(id=f"chatcmpl-{uuid.uuid4().hex}", model=model, created=now_ts())
        self._role_sent = False
        self._tool_index = 0

    def transform(self, event: Any) -> List[CanonicalChunk]:
        delta: Delta = {}
        if not self._role_sent:
            delta["role"] = Role.ASSISTANT.value
            self._role_sent = True

        texts: List[str] = []
        tool_calls: List[ToolCall] = []
        for part in gemini_parts(event):
            function_call = get_field(part, "function_call")
            if function_call is not None:
                call = gemini_tool_call(function_call, self._tool_index)
                tool_calls.append({"index": self._tool_index, **call})
                self._tool_index += 1
            elif get_field(part, "text") and not get_field(part, "thought", False):
                texts.append(get_field(part, "text"))

        if texts:
            delta["content"] = "".join(texts)
        if tool_calls:
            delta["tool_calls"] = tool_calls

        candidates = get_field(event, "candidates", [])
        raw_reason = get_field(candidates[0], "finish_reason") if candidates else None
        finish_reason = None
        if raw_reason is not None:
            finish_reason = map_gemini_finish_reason(raw_reason, self._tool_index > 0)

        if not delta and finish_reason is None:
            return []
        return [make_chunk(self.base, delta, finish_reason)]
