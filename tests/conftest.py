import pytest
from typing import Any, Dict, List

from unichat.config import Settings
from unichat.models import ModelRegistry


@pytest.fixture
def mock_env(monkeypatch):
    """Mock environment variables for API keys."""
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-openai")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test-anthropic")
    monkeypatch.setenv("GOOGLE_API_KEY", "AIza-test-google")
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-test-deepseek")
    monkeypatch.setenv("MISTRAL_API_KEY", "test-mistral")


@pytest.fixture
def settings():
    """Settings with keys for the main vendors, independent of the environment."""
    return Settings(api_keys={
        "openai": "sk-openai",
        "anthropic": "sk-anthropic",
        "google": "AIza-google",
        "mistral": "mistral-key",
    })


@pytest.fixture
def registry():
    return ModelRegistry()


async def aiter_events(events: List[Any]):
    """Async event source standing in for an SDK stream."""
    for event in events:
        yield event


def anthropic_tool_stream(arguments: List[str]) -> List[Dict[str, Any]]:
    """
    Event sequence for a message with one text block and one tool call whose
    JSON input arrives in the given fragments.
    """
    return [
        {"type": "message_start", "message": {"id": "msg_1", "model": "claude-test", "role": "assistant"}},
        {"type": "content_block_start", "index": 0, "content_block": {"type": "text", "text": ""}},
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Let me check"}},
        {"type": "content_block_stop", "index": 0},
        {
            "type": "content_block_start",
            "index": 1,
            "content_block": {"type": "tool_use", "id": "toolu_1", "name": "get_weather", "input": {}},
        },
        *[
            {"type": "content_block_delta", "index": 1, "delta": {"type": "input_json_delta", "partial_json": part}}
            for part in arguments
        ],
        {"type": "content_block_stop", "index": 1},
        {"type": "message_delta", "delta": {"stop_reason": "tool_use"}, "usage": {"output_tokens": 12}},
        {"type": "message_stop"},
    ]


@pytest.fixture
def tool_stream_events():
    return anthropic_tool_stream(['{"city": ', '"Paris"}'])
