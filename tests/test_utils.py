import pytest
from types import SimpleNamespace

from unichat.client import UnifiedChatClient
from unichat.errors import ErrorKind, UnichatError
from unichat.utils import get_field, message_text, parse_temperature


class TestUtils:

    def test_create_text_content(self):
        content = UnifiedChatClient.create_text_content("Hello")
        assert content == {"type": "text", "text": "Hello"}

    def test_create_text_content_cached(self):
        content = UnifiedChatClient.create_text_content("Hello", cached=True)
        assert content["cache_control"] == {"type": "ephemeral"}

    def test_create_message_text(self):
        msg = UnifiedChatClient.create_message("user", "Hello world")
        assert msg == {"role": "user", "content": "Hello world"}

    def test_create_message_blocks(self):
        content = [
            "Look at this",
            {"type": "text", "text": "and this"},
        ]
        msg = UnifiedChatClient.create_message("user", content)
        assert msg["role"] == "user"
        assert len(msg["content"]) == 2
        assert msg["content"][0] == {"type": "text", "text": "Look at this"}

    def test_create_tool(self):
        tool = UnifiedChatClient.create_tool(
            name="get_weather",
            description="Get weather",
            parameters={"location": {"type": "string"}},
            required=["location"],
        )
        assert tool["type"] == "function"
        assert tool["function"]["name"] == "get_weather"
        assert tool["function"]["parameters"]["required"] == ["location"]
        assert tool["function"]["parameters"]["properties"]["location"] == {"type": "string"}

    def test_create_tool_call_encodes_dict_arguments(self):
        call = UnifiedChatClient.create_tool_call("call_1", "get_weather", {"city": "Paris"})
        assert call == {
            "id": "call_1",
            "type": "function",
            "function": {"name": "get_weather", "arguments": '{"city": "Paris"}'},
        }

    def test_create_tool_result(self):
        msg = UnifiedChatClient.create_tool_result("call_123", "Result data")
        assert msg == {"role": "tool", "tool_call_id": "call_123", "content": "Result data"}

    def test_create_assistant_message_with_tool_calls(self):
        call = UnifiedChatClient.create_tool_call("call_1", "f", "{}")
        msg = UnifiedChatClient.create_assistant_message_with_tool_calls("", [call])
        assert msg["role"] == "assistant"
        assert msg["content"] is None
        assert msg["tool_calls"] == [call]


class TestFieldAccess:

    def test_get_field_reads_dicts_and_objects(self):
        assert get_field({"a": 1}, "a") == 1
        assert get_field(SimpleNamespace(a=2), "a") == 2

    def test_get_field_defaults(self):
        assert get_field(None, "a", "x") == "x"
        assert get_field({"a": None}, "a", "x") == "x"
        assert get_field(SimpleNamespace(), "missing", 0) == 0

    @pytest.mark.parametrize("value,expected", [
        (0.2, 0.2),
        ("0.7", 0.7),
        (None, 1.0),
        ("", 1.0),
        (1, 1.0),
    ])
    def test_parse_temperature(self, value, expected):
        assert parse_temperature(value) == expected

    def test_parse_temperature_rejects_garbage(self):
        with pytest.raises(UnichatError) as excinfo:
            parse_temperature("warm")
        assert excinfo.value.kind is ErrorKind.BAD_REQUEST

    def test_message_text(self):
        assert message_text("plain") == "plain"
        assert message_text(None) == ""
        assert message_text([
            {"type": "text", "text": "a"},
            {"type": "tool_use", "id": "t", "name": "f", "input": {}},
            {"type": "text", "text": "b"},
        ]) == "a\nb"
