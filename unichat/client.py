import logging
from pathlib import Path
from typing import Optional, Dict, List, Any, AsyncIterator, Literal, Sequence, Union

from .config import Settings, load_settings
from .messages import validate_conversation
from .models import ModelRegistry, ModelSpec
from .providers import PROVIDER_CLASSES, BaseLLMProvider, CompletionOptions
from .types import (
    CanonicalChunk, CanonicalResponse, ContentBlock, Message, ProviderKind, ReasoningEffort,
    TextBlock, Tool, ToolCall, WrappedTool,
)
from .utils import (
    create_message, create_text_content, create_tool, create_tool_call, create_tool_result,
    create_assistant_message_with_tool_calls, parse_temperature,
)

logger = logging.getLogger(__name__)

CompletionResult = Union[CanonicalResponse, AsyncIterator[CanonicalChunk]]


class _Completions:
    def __init__(self, client: "UnifiedChatClient"):
        self._client = client

    async def create(self, model: str, messages: List[Message], **kwargs) -> CompletionResult:
        return await self._client.create_completion(model, messages, **kwargs)


class _Chat:
    def __init__(self, client: "UnifiedChatClient"):
        self.completions = _Completions(client)


class UnifiedChatClient:
    """
    Unified client for chat completions across LLM providers.

    The model name alone selects the provider (OpenAI and compatible vendors,
    Anthropic, Mistral, Gemini). Requests and responses use the OpenAI chat
    completion shape regardless of the provider serving them.

    Assistant messages rebuilt from Anthropic streams are appended to
    ``history``. The client does not synchronize concurrent streams that
    share it.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        registry: Optional[ModelRegistry] = None,
        dotenv_path: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: Key used for every provider. Defaults to the per-vendor
                     <VENDOR>_API_KEY environment variables.
            base_url: Endpoint override used for every provider.
            settings: Pre-built Settings; skips reading .env and the environment.
            registry: Model registry. Defaults to the built-in model table.
            dotenv_path: Explicit .env file to load.
        """
        self.api_key = api_key
        self.base_url = base_url
        self.settings = settings if settings is not None else load_settings(dotenv_path)
        self.registry = registry if registry is not None else ModelRegistry()
        # One handler per vendor; each creates its SDK client on first use
        self.providers: Dict[str, BaseLLMProvider] = {}
        self.history: List[Message] = []
        self.chat = _Chat(self)

    # ==========================================================================
    # Message and Tool Helpers - Re-exported from utils
    # ==========================================================================

    @staticmethod
    def create_text_content(text: str, *, cached: bool = False) -> TextBlock:
        return create_text_content(text, cached=cached)

    @staticmethod
    def create_message(
        role: Literal["system", "user", "assistant"],
        content: Union[str, List[Union[str, ContentBlock]]],
    ) -> Message:
        return create_message(role, content)

    @staticmethod
    def create_tool(
        name: str,
        description: str,
        parameters: Dict[str, Any],
        required: Optional[List[str]] = None,
    ) -> WrappedTool:
        return create_tool(name, description, parameters, required)

    @staticmethod
    def create_tool_call(call_id: str, name: str, arguments: Union[str, Dict[str, Any]]) -> ToolCall:
        return create_tool_call(call_id, name, arguments)

    @staticmethod
    def create_tool_result(tool_call_id: str, content: str) -> Message:
        return create_tool_result(tool_call_id, content)

    @staticmethod
    def create_assistant_message_with_tool_calls(
        content: Optional[str],
        tool_calls: List[ToolCall],
    ) -> Message:
        return create_assistant_message_with_tool_calls(content, tool_calls)

    # ==========================================================================
    # Unified Chat Methods
    # ==========================================================================

    def list_models(self, kind: Optional[Union[ProviderKind, str]] = None) -> List[str]:
        """
        Names of the registered models, optionally for one provider kind.
        """
        if kind is not None and not isinstance(kind, ProviderKind):
            kind = ProviderKind(kind)
        return self.registry.names(kind)

    def get_provider(self, model_spec: ModelSpec) -> BaseLLMProvider:
        """
        Return the handler for the vendor serving model_spec, creating it once.

        Raises:
            UnichatError: kind UNSUPPORTED when no API key is configured.
        """
        provider = self.providers.get(model_spec.provider)
        if provider is None:
            credentials = self.settings.credentials_for(model_spec.provider, self.api_key, self.base_url)
            provider = PROVIDER_CLASSES[model_spec.kind](credentials)
            self.providers[model_spec.provider] = provider
            logger.debug("Created %s handler for vendor %s", model_spec.kind.value, model_spec.provider)
        return provider

    async def create_completion(
        self,
        model: str,
        messages: List[Message],
        tools: Optional[Sequence[Tool]] = None,
        temperature: Union[float, str, None] = 1.0,
        stream: bool = True,
        cached: Union[bool, str] = False,
        reasoning_effort: ReasoningEffort = False,
    ) -> CompletionResult:
        """
        Create a chat completion on whichever provider serves model.

        Args:
            model (str): Registered model name (e.g. 'gpt-4o', 'claude-sonnet-4-20250514').
            messages (List[Message]): Canonical conversation, oldest first.
            tools (List[Tool], optional): Tool declarations, function-wrapped
                                          or loose; dialects may be mixed.
            temperature (float | str): Sampling temperature. Defaults to 1.0.
            stream (bool): Return an async iterator of chunks. Defaults to True.
            cached (bool | str): Enable prompt caching hints (Anthropic).
            reasoning_effort (bool | str): False, True (highest) or a level name.

        Returns:
            CanonicalResponse when stream is False, otherwise an async
            iterator of CanonicalChunk.

        Raises:
            UnichatError: UNSUPPORTED for unknown models or missing keys and
                          BAD_REQUEST for malformed conversations, both before
                          any network call; provider failures are normalized.
        """
        validate_conversation(messages)
        model_spec = self.registry.get(model)
        provider = self.get_provider(model_spec)
        options = CompletionOptions(
            temperature=parse_temperature(temperature),
            stream=stream,
            cached=cached,
            reasoning_effort=reasoning_effort,
        )
        logger.debug("Dispatching %s to %s (stream=%s)", model, model_spec.kind.value, stream)

        if stream:
            return await provider.stream(model_spec, messages, tools, options, self.history)
        return await provider.complete(model_spec, messages, tools, options)
