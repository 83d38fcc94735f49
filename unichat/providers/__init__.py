from typing import Dict, Type

from .base import BaseLLMProvider, CompletionOptions
from .openai import OpenAIProvider
from .anthropic import AnthropicProvider
from .mistral import MistralProvider
from .gemini import GeminiProvider
from ..types import ProviderKind

PROVIDER_CLASSES: Dict[ProviderKind, Type[BaseLLMProvider]] = {
    ProviderKind.OPENAI: OpenAIProvider,
    ProviderKind.ANTHROPIC: AnthropicProvider,
    ProviderKind.MISTRAL: MistralProvider,
    ProviderKind.GEMINI: GeminiProvider,
}

__all__ = [
    "BaseLLMProvider",
    "CompletionOptions",
    "OpenAIProvider",
    "AnthropicProvider",
    "MistralProvider",
    "GeminiProvider",
    "PROVIDER_CLASSES",
]
