from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, List, AsyncIterable, AsyncIterator, Optional, Sequence, Union

from ..config import Credentials
from ..errors import normalize_error
from ..models import ModelSpec
from ..streaming import StreamTransformer
from ..types import CanonicalChunk, CanonicalResponse, Message, ProviderKind, ReasoningEffort, Tool

HIGHEST_EFFORT = "high"


@dataclass(frozen=True)
class CompletionOptions:
    """
    Caller options for one completion request.

    Attributes:
        temperature: Sampling temperature (clamped / overridden per provider).
        stream: Return a chunk stream instead of a single response.
        cached: False, True, or a cache-namespace string whose text is sent
                as a cached system block (Anthropic).
        reasoning_effort: False, True (highest level) or a named level.
    """
    temperature: float = 1.0
    stream: bool = True
    cached: Union[bool, str] = False
    reasoning_effort: ReasoningEffort = False


class BaseLLMProvider(ABC):
    """
    Abstract base class for provider handlers.

    One subclass per ProviderKind. A handler builds wire requests (pure, no
    I/O), sends them through a vendor SDK client that is created lazily on
    first use and then reused, and normalizes what comes back.
    """

    kind: ProviderKind
    max_temperature: Optional[float] = None

    def __init__(self, credentials: Credentials):
        self.credentials = credentials
        self._client: Any = None

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = self._create_client()
        return self._client

    @abstractmethod
    def _create_client(self) -> Any:
        """
        Instantiate the vendor SDK client (retries disabled).
        """

    @abstractmethod
    def build_request(
        self,
        model_spec: ModelSpec,
        messages: List[Message],
        tools: Optional[Sequence[Tool]],
        options: CompletionOptions,
    ) -> Dict[str, Any]:
        """
        Build the provider request payload from canonical inputs.

        Args:
            model_spec (ModelSpec): Registry entry of the target model.
            messages (List[Message]): Canonical conversation.
            tools (List[Tool], optional): Tool declarations in any dialect.
            options (CompletionOptions): Caller options.

        Returns:
            Dict[str, Any]: Keyword arguments for the SDK call.
        """

    @abstractmethod
    async def _send(self, request: Dict[str, Any]) -> Any:
        """
        Issue a non-streaming request and return the raw SDK response.
        """

    @abstractmethod
    async def _open_stream(self, request: Dict[str, Any]) -> AsyncIterable[Any]:
        """
        Issue a streaming request and return the raw SDK event stream.
        """

    @abstractmethod
    def normalize_response(self, response: Any, model_spec: ModelSpec) -> CanonicalResponse:
        pass

    @abstractmethod
    def stream_transformer(self, model_spec: ModelSpec, history: List[Message]) -> StreamTransformer:
        pass

    async def complete(
        self,
        model_spec: ModelSpec,
        messages: List[Message],
        tools: Optional[Sequence[Tool]],
        options: CompletionOptions,
    ) -> CanonicalResponse:
        """
        Send a non-streaming request and return the canonical response.

        Raises:
            UnichatError: Provider failures, normalized. Never retried.
        """
        request = self.build_request(model_spec, messages, tools, options)
        try:
            response = await self._send(request)
        except Exception as exc:
            raise normalize_error(exc, self.kind) from exc
        return self.normalize_response(response, model_spec)

    async def stream(
        self,
        model_spec: ModelSpec,
        messages: List[Message],
        tools: Optional[Sequence[Tool]],
        options: CompletionOptions,
        history: List[Message],
    ) -> AsyncIterator[CanonicalChunk]:
        """
        Open a streaming request and return the canonical chunk iterator.

        The request is issued before this coroutine returns, so request-level
        failures surface here rather than on the first iteration.
        """
        request = self.build_request(model_spec, messages, tools, options)
        try:
            events = await self._open_stream(request)
        except Exception as exc:
            raise normalize_error(exc, self.kind) from exc
        return self.stream_transformer(model_spec, history).areassemble(events)

    def resolve_temperature(self, model_spec: ModelSpec, options: CompletionOptions) -> float:
        """
        Apply the model's fixed temperature, or clamp to the provider maximum.
        """
        if model_spec.fixed_temperature is not None:
            return model_spec.fixed_temperature
        if self.max_temperature is not None and options.temperature > self.max_temperature:
            return self.max_temperature
        return options.temperature

    @staticmethod
    def resolve_effort(effort: ReasoningEffort) -> Optional[str]:
        """
        Map the reasoning-effort tri-state to a level name, or None when off.
        """
        if effort is False or effort is None:
            return None
        if effort is True:
            return HIGHEST_EFFORT
        return str(effort)
