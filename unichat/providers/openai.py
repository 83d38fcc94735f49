import logging
from typing import Dict, Any, List, AsyncIterable, Optional, Sequence

from openai import AsyncOpenAI

from .base import BaseLLMProvider, CompletionOptions
from ..config import CLIENT_TIMEOUT_SECONDS
from ..messages import prepare_conversation
from ..models import ModelSpec
from ..normalize import normalize_openai_response
from ..streaming import FlatChunkRelabeler, StreamTransformer
from ..tools import ToolDialect, denormalize_tools, normalize_tools
from ..types import CanonicalResponse, Message, ProviderKind, Tool

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """
    Provider for OpenAI-compatible APIs (OpenAI, xAI, DeepSeek, DashScope).
    """

    kind = ProviderKind.OPENAI
    max_temperature = 2.0

    def _create_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=self.credentials.api_key,
            base_url=self.credentials.base_url,
            max_retries=0,
            timeout=CLIENT_TIMEOUT_SECONDS,
        )

    def build_request(
        self,
        model_spec: ModelSpec,
        messages: List[Message],
        tools: Optional[Sequence[Tool]],
        options: CompletionOptions,
    ) -> Dict[str, Any]:
        """
        Build a chat.completions request.

        Handles:
        - System prompt policy for reasoning models (merge / relabel).
        - Temperature override for fixed-temperature models.
        - Tool declarations in the function-wrapped dialect.
        - Request-level reasoning_effort.
        """
        prepared = prepare_conversation(messages, model_spec)

        request: Dict[str, Any] = {
            "model": model_spec.name,
            "messages": prepared.messages,
            "temperature": self.resolve_temperature(model_spec, options),
            "stream": options.stream,
        }

        if tools:
            if model_spec.supports_tools:
                request["tools"] = denormalize_tools(normalize_tools(tools), ToolDialect.WRAPPED)
            else:
                logger.debug("Model %s does not accept tools; omitting %d tool(s)", model_spec.name, len(tools))

        effort = self.resolve_effort(options.reasoning_effort)
        if effort:
            request.update(self._effort_fields(model_spec, effort))

        return request

    def _effort_fields(self, model_spec: ModelSpec, effort: str) -> Dict[str, Any]:
        return {"reasoning_effort": effort}

    async def _send(self, request: Dict[str, Any]) -> Any:
        return await self.client.chat.completions.create(**request)

    async def _open_stream(self, request: Dict[str, Any]) -> AsyncIterable[Any]:
        return await self.client.chat.completions.create(**request)

    def normalize_response(self, response: Any, model_spec: ModelSpec) -> CanonicalResponse:
        return normalize_openai_response(response, model_spec.name)

    def stream_transformer(self, model_spec: ModelSpec, history: List[Message]) -> StreamTransformer:
        return FlatChunkRelabeler(model_spec.name, self.kind)
