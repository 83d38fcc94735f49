"""
Conversion between the tool declaration dialects callers may supply and the
dialects providers expect.
"""
import copy
from enum import Enum
from typing import Any, Dict, List, Sequence

from .types import CanonicalTool, InputSchema, Tool
from .utils import EPHEMERAL


class ToolDialect(str, Enum):
    WRAPPED = "wrapped"  # {"type": "function", "function": {..., "parameters"}}
    LOOSE = "loose"      # {"name", "description", "inputSchema" | "input_schema"}


def default_schema() -> InputSchema:
    return {
        "type": "object",
        "properties": {},
        "required": [],
        "additionalProperties": False,
    }


def classify_tool(tool: Dict[str, Any]) -> ToolDialect:
    """
    Decide which dialect a tool declaration is written in.
    """
    if "type" in tool and "function" in tool:
        return ToolDialect.WRAPPED
    return ToolDialect.LOOSE


def normalize_tool(tool: Tool) -> CanonicalTool:
    """
    Convert one tool declaration of either dialect into the canonical form.

    Schemas are not validated; whatever the caller supplied passes through.
    """
    if classify_tool(tool) is ToolDialect.WRAPPED:
        function = tool["function"]
        schema = function.get("parameters")
        return {
            "name": function.get("name", ""),
            "description": function.get("description", ""),
            "input_schema": schema if schema is not None else default_schema(),
        }

    if "inputSchema" in tool:
        schema = tool["inputSchema"]
    elif "input_schema" in tool:
        schema = tool["input_schema"]
    else:
        schema = default_schema()
    return {
        "name": tool.get("name", ""),
        "description": tool.get("description", ""),
        "input_schema": schema,
    }


def normalize_tools(tools: Sequence[Tool]) -> List[CanonicalTool]:
    """
    Normalize a list of tool declarations; dialects may be mixed.
    """
    return [normalize_tool(tool) for tool in tools or []]


def denormalize_tools(tools: Sequence[CanonicalTool], dialect: ToolDialect) -> List[Dict[str, Any]]:
    """
    Render canonical tools in the dialect a provider expects.

    Args:
        tools: Canonical tool definitions.
        dialect: WRAPPED for OpenAI-compatible APIs, LOOSE for Anthropic.

    Returns:
        List of wire-format tool dicts (deep copies; inputs are untouched).
    """
    if dialect is ToolDialect.WRAPPED:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool["name"],
                    "description": tool.get("description", ""),
                    "parameters": copy.deepcopy(tool.get("input_schema", default_schema())),
                },
            }
            for tool in tools
        ]
    return [
        {
            "name": tool["name"],
            "description": tool.get("description", ""),
            "input_schema": copy.deepcopy(tool.get("input_schema", default_schema())),
        }
        for tool in tools
    ]


def mark_last_tool_cached(tools: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Attach an ephemeral cache hint to the last tool in the list.

    Tool schemas are large and static, so caching the final declaration
    caches the whole tool prefix.
    """
    if not tools:
        return tools
    marked = list(tools)
    marked[-1] = {**marked[-1], "cache_control": dict(EPHEMERAL)}
    return marked
