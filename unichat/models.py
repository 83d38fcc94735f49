"""
Model registry: maps a model name to the provider that serves it and to the
per-model special cases (system prompt policy, tool support, fixed
temperature, output ceiling).

The default table is plain data; callers with other models either register
them on a registry instance or pass their own registry to the client.
"""
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional

from .errors import unsupported
from .types import ProviderKind, SystemPromptPolicy

DEFAULT_MAX_TOKENS = 4096


@dataclass(frozen=True)
class ModelSpec:
    """
    Registry entry for one model.

    Attributes:
        name: Model identifier sent to the provider.
        provider: Vendor key used for credentials and base URL lookup
                  (e.g. 'openai', 'deepseek', 'xai').
        kind: Wire protocol family handling the request.
        max_tokens: Maximum completion length; DEFAULT_MAX_TOKENS when None.
        system_prompt: How a leading system message is handled.
        supports_tools: False for models that reject tool declarations.
        fixed_temperature: Forced temperature for reasoning models.
    """
    name: str
    provider: str
    kind: ProviderKind
    max_tokens: Optional[int] = None
    system_prompt: SystemPromptPolicy = SystemPromptPolicy.NONE
    supports_tools: bool = True
    fixed_temperature: Optional[float] = None

    @property
    def output_tokens(self) -> int:
        return self.max_tokens or DEFAULT_MAX_TOKENS


def _family(
    provider: str,
    kind: ProviderKind,
    max_tokens: Dict[str, Optional[int]],
    **flags,
) -> List[ModelSpec]:
    return [
        ModelSpec(name=name, provider=provider, kind=kind, max_tokens=limit, **flags)
        for name, limit in max_tokens.items()
    ]


_SEPARATE = SystemPromptPolicy.SEPARATE

DEFAULT_MODELS: List[ModelSpec] = [
    *_family("anthropic", ProviderKind.ANTHROPIC, {
        "claude-3-5-haiku-20241022": 8192,
        "claude-3-5-sonnet-20241022": 8192,
        "claude-3-7-sonnet-20250219": 64000,
        "claude-sonnet-4-20250514": 64000,
        "claude-opus-4-20250514": 32000,
        "claude-opus-4-1-20250805": 32000,
        "claude-sonnet-4-5-20250929": 64000,
        "claude-haiku-4-5-20251001": 64000,
        "claude-opus-4-5-20251101": 64000,
    }, system_prompt=_SEPARATE),
    *_family("openai", ProviderKind.OPENAI, {
        "gpt-4o": None,
        "gpt-4o-mini": None,
        "gpt-4.1": None,
        "gpt-4.1-mini": None,
        "gpt-4.1-nano": None,
        "gpt-5": None,
        "gpt-5-mini": None,
    }),
    # First-generation reasoning models accept neither a system role nor tools.
    *_family("openai", ProviderKind.OPENAI, {
        "o1-mini": None,
        "o1-preview": None,
    }, system_prompt=SystemPromptPolicy.MERGE, supports_tools=False, fixed_temperature=1.0),
    *_family("openai", ProviderKind.OPENAI, {
        "o1": None,
        "o3": None,
        "o3-mini": None,
        "o4-mini": None,
    }, system_prompt=SystemPromptPolicy.RELABEL, fixed_temperature=1.0),
    *_family("xai", ProviderKind.OPENAI, {
        "grok-2-latest": None,
        "grok-3": None,
        "grok-3-mini": None,
        "grok-4": None,
    }),
    *_family("deepseek", ProviderKind.OPENAI, {
        "deepseek-chat": None,
    }),
    *_family("deepseek", ProviderKind.OPENAI, {
        "deepseek-reasoner": None,
    }, supports_tools=False),
    *_family("dashscope", ProviderKind.OPENAI, {
        "qwen-max": None,
        "qwen-plus": None,
        "qwen-turbo": None,
    }),
    *_family("mistral", ProviderKind.MISTRAL, {
        "mistral-large-latest": None,
        "mistral-medium-latest": None,
        "mistral-small-latest": None,
        "codestral-latest": None,
    }),
    *_family("google", ProviderKind.GEMINI, {
        "gemini-2.0-flash": 8192,
        "gemini-2.5-flash": 65536,
        "gemini-2.5-pro": 65536,
    }, system_prompt=_SEPARATE),
]


class ModelRegistry:
    """
    Lookup table from model name to ModelSpec.
    """

    def __init__(self, models: Optional[Iterable[ModelSpec]] = None):
        self._models: Dict[str, ModelSpec] = {}
        for model_spec in DEFAULT_MODELS if models is None else models:
            self.register(model_spec)

    def register(self, model_spec: ModelSpec) -> None:
        """
        Add or replace a model entry.
        """
        self._models[model_spec.name] = model_spec

    def get(self, model: str) -> ModelSpec:
        """
        Resolve a model name.

        Raises:
            UnichatError: kind UNSUPPORTED when the model is unknown.
        """
        model_spec = self._models.get(model)
        if model_spec is None:
            raise unsupported(f"Model '{model}' is currently not supported")
        return model_spec

    def with_overrides(self, model: str, **changes) -> ModelSpec:
        """
        Register a modified copy of an existing entry and return it.
        """
        model_spec = replace(self.get(model), **changes)
        self.register(model_spec)
        return model_spec

    def names(self, kind: Optional[ProviderKind] = None) -> List[str]:
        return [
            name for name, model_spec in self._models.items()
            if kind is None or model_spec.kind == kind
        ]

    def __contains__(self, model: str) -> bool:
        return model in self._models


__all__ = ["DEFAULT_MAX_TOKENS", "DEFAULT_MODELS", "ModelRegistry", "ModelSpec"]
