from typing import Dict, Any, List, AsyncIterable, Optional, Sequence, Union

from anthropic import AsyncAnthropic

from .base import BaseLLMProvider, CompletionOptions
from ..config import CLIENT_TIMEOUT_SECONDS
from ..messages import cache_messages, prepare_conversation, transform_messages
from ..models import ModelSpec
from ..normalize import normalize_anthropic_response
from ..streaming import StreamReassembler, StreamTransformer
from ..tools import ToolDialect, denormalize_tools, mark_last_tool_cached, normalize_tools
from ..types import CanonicalResponse, Message, ProviderKind, TextBlock, Tool
from ..utils import EPHEMERAL


class AnthropicProvider(BaseLLMProvider):
    """
    Provider for Anthropic's Messages API.
    """

    kind = ProviderKind.ANTHROPIC
    max_temperature = 1.0

    def _create_client(self) -> AsyncAnthropic:
        kwargs: Dict[str, Any] = {
            "api_key": self.credentials.api_key,
            "max_retries": 0,
            "timeout": CLIENT_TIMEOUT_SECONDS,
        }
        if self.credentials.base_url:
            kwargs["base_url"] = self.credentials.base_url
        return AsyncAnthropic(**kwargs)

    def build_request(
        self,
        model_spec: ModelSpec,
        messages: List[Message],
        tools: Optional[Sequence[Tool]],
        options: CompletionOptions,
    ) -> Dict[str, Any]:
        """
        Build a messages.create request.

        Handles:
        - System prompt extraction (sent as the top-level "system" field).
        - tool_calls / tool messages rewritten into tool_use / tool_result blocks.
        - Prompt caching hints when cached is set.
        - Temperature clamped to 1.0 and max_tokens from the model registry.
        """
        prepared = prepare_conversation(messages, model_spec)
        converted = transform_messages(prepared.messages)
        if options.cached:
            converted = cache_messages(converted)

        request: Dict[str, Any] = {
            "model": model_spec.name,
            "max_tokens": model_spec.output_tokens,
            "temperature": self.resolve_temperature(model_spec, options),
            "messages": converted,
            "stream": options.stream,
        }

        system = self._system_param(prepared.system_prompt, options.cached)
        if system:
            request["system"] = system

        if tools and model_spec.supports_tools:
            wire_tools = denormalize_tools(normalize_tools(tools), ToolDialect.LOOSE)
            if options.cached:
                wire_tools = mark_last_tool_cached(wire_tools)
            request["tools"] = wire_tools

        effort = self.resolve_effort(options.reasoning_effort)
        if effort:
            request["extra_body"] = {"output_config": {"effort": effort}}

        return request

    @staticmethod
    def _system_param(system_prompt: str, cached: Union[bool, str]) -> Union[str, List[TextBlock], None]:
        if not cached:
            return system_prompt or None

        if isinstance(cached, str):
            # The cache string travels as its own cached block after the prompt
            blocks: List[TextBlock] = []
            if system_prompt:
                blocks.append({"type": "text", "text": system_prompt})
            blocks.append({"type": "text", "text": cached, "cache_control": dict(EPHEMERAL)})
            return blocks

        if not system_prompt:
            return None
        return [{"type": "text", "text": system_prompt, "cache_control": dict(EPHEMERAL)}]

    async def _send(self, request: Dict[str, Any]) -> Any:
        return await self.client.messages.create(**request)

    async def _open_stream(self, request: Dict[str, Any]) -> AsyncIterable[Any]:
        return await self.client.messages.create(**request)

    def normalize_response(self, response: Any, model_spec: ModelSpec) -> CanonicalResponse:
        return normalize_anthropic_response(response)

    def stream_transformer(self, model_spec: ModelSpec, history: List[Message]) -> StreamTransformer:
        return StreamReassembler(model_spec.name, history)
