import logging
from typing import Any, Dict

from .openai import OpenAIProvider
from ..models import ModelSpec
from ..types import ProviderKind

logger = logging.getLogger(__name__)


class MistralProvider(OpenAIProvider):
    """
    Provider for Mistral (OpenAI-compatible endpoint).

    Responses are read through the same normalizer as OpenAI, which also
    reconciles Mistral's camelCase usage and tool-call fields.
    """

    kind = ProviderKind.MISTRAL
    max_temperature = None

    def _effort_fields(self, model_spec: ModelSpec, effort: str) -> Dict[str, Any]:
        logger.debug("Reasoning effort is not supported for %s; ignoring %r", model_spec.name, effort)
        return {}
