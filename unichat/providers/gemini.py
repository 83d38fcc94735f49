import logging
from typing import Dict, Any, List, AsyncIterable, Optional, Sequence

from google import genai
from google.genai import types

from .base import BaseLLMProvider, CompletionOptions
from ..config import CLIENT_TIMEOUT_SECONDS
from ..messages import RAW_ARGS_KEY, prepare_conversation, transform_tool_calls
from ..models import ModelSpec
from ..normalize import normalize_gemini_response
from ..streaming import GeminiChunkRelabeler, StreamTransformer
from ..tools import normalize_tools
from ..types import CanonicalResponse, CanonicalTool, Message, ProviderKind, Role, Tool
from ..utils import message_text

logger = logging.getLogger(__name__)


class GeminiProvider(BaseLLMProvider):
    """
    Provider for Google Gemini API (using google-genai SDK).
    """

    kind = ProviderKind.GEMINI
    max_temperature = 2.0

    def _create_client(self) -> genai.Client:
        http_options = types.HttpOptions(
            base_url=self.credentials.base_url,
            timeout=int(CLIENT_TIMEOUT_SECONDS * 1000),
        )
        return genai.Client(api_key=self.credentials.api_key, http_options=http_options)

    def build_request(
        self,
        model_spec: ModelSpec,
        messages: List[Message],
        tools: Optional[Sequence[Tool]],
        options: CompletionOptions,
    ) -> Dict[str, Any]:
        """
        Build a generate_content request.

        Handles:
        - Role mapping (assistant -> model, tool -> user function_response).
        - System prompt as system_instruction.
        - Tool declarations as function_declarations.
        """
        prepared = prepare_conversation(messages, model_spec)

        config_kwargs: Dict[str, Any] = {
            "temperature": self.resolve_temperature(model_spec, options),
            "max_output_tokens": model_spec.output_tokens,
        }
        if prepared.system_prompt:
            config_kwargs["system_instruction"] = prepared.system_prompt
        if tools and model_spec.supports_tools:
            config_kwargs["tools"] = self._convert_tools(normalize_tools(tools))

        effort = self.resolve_effort(options.reasoning_effort)
        if effort:
            logger.debug("Reasoning effort is not forwarded to Gemini; ignoring %r", effort)

        return {
            "model": model_spec.name,
            "contents": self._convert_messages(prepared.messages),
            "config": types.GenerateContentConfig(**config_kwargs),
        }

    def _convert_messages(self, messages: List[Message]) -> List[types.Content]:
        """
        Convert canonical messages into Gemini contents.

        Function responses need the function name, which canonical tool
        messages only carry indirectly through tool_call_id.
        """
        call_names: Dict[str, str] = {}
        contents: List[types.Content] = []

        for msg in messages:
            role = msg.get("role")
            parts: List[types.Part] = []

            if role == Role.TOOL.value:
                call_id = msg.get("tool_call_id", "")
                name = call_names.get(call_id) or msg.get("name") or call_id
                parts.append(types.Part(function_response=types.FunctionResponse(
                    id=call_id or None,
                    name=name,
                    response={"result": message_text(msg.get("content"))},
                )))
                contents.append(types.Content(role="user", parts=parts))
                continue

            content = msg.get("content")
            if isinstance(content, list):
                for block in content:
                    if block.get("type") == "text" and block.get("text"):
                        parts.append(types.Part(text=block["text"]))
                    elif block.get("type") == "tool_use":
                        call_names[block.get("id", "")] = block.get("name", "")
                        parts.append(self._function_call_part(block))
            elif content:
                parts.append(types.Part(text=str(content)))

            for tool_use in transform_tool_calls(msg.get("tool_calls") or []):
                call_names[tool_use["id"]] = tool_use["name"]
                parts.append(self._function_call_part(tool_use))

            if not parts:
                continue
            gemini_role = "model" if role == Role.ASSISTANT.value else "user"
            contents.append(types.Content(role=gemini_role, parts=parts))

        return contents

    @staticmethod
    def _function_call_part(tool_use: Dict[str, Any]) -> types.Part:
        args = tool_use.get("input") or {}
        if not isinstance(args, dict):
            args = {RAW_ARGS_KEY: args}
        if RAW_ARGS_KEY in args:
            logger.warning("Forwarding unparsed arguments for %s to Gemini", tool_use.get("name"))
        return types.Part(function_call=types.FunctionCall(
            id=tool_use.get("id") or None,
            name=tool_use.get("name", ""),
            args=dict(args),
        ))

    @staticmethod
    def _convert_tools(tools: List[CanonicalTool]) -> List[types.Tool]:
        declarations = [
            types.FunctionDeclaration(
                name=tool["name"],
                description=tool.get("description", ""),
                parameters_json_schema=tool.get("input_schema"),
            )
            for tool in tools
        ]
        return [types.Tool(function_declarations=declarations)]

    async def _send(self, request: Dict[str, Any]) -> Any:
        return await self.client.aio.models.generate_content(**request)

    async def _open_stream(self, request: Dict[str, Any]) -> AsyncIterable[Any]:
        return await self.client.aio.models.generate_content_stream(**request)

    def normalize_response(self, response: Any, model_spec: ModelSpec) -> CanonicalResponse:
        return normalize_gemini_response(response, model_spec.name)

    def stream_transformer(self, model_spec: ModelSpec, history: List[Message]) -> StreamTransformer:
        return GeminiChunkRelabeler(model_spec.name)
