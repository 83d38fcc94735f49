import copy
import logging

import pytest

from unichat.errors import ErrorKind, UnichatError
from unichat.messages import (
    FORMATTING_MARKER, RAW_ARGS_KEY, append_block, cache_messages, prepare_conversation,
    transform_messages, transform_tool_calls, validate_conversation,
)

CONVERSATION = [
    {"role": "system", "content": "Be brief."},
    {"role": "user", "content": "Hi"},
]


class TestPrepareConversation:

    def test_separate_extracts_system(self, registry):
        prepared = prepare_conversation(CONVERSATION, registry.get("claude-sonnet-4-20250514"))
        assert prepared.system_prompt == "Be brief."
        assert prepared.messages == [{"role": "user", "content": "Hi"}]

    def test_merge_prefixes_next_message(self, registry):
        prepared = prepare_conversation(CONVERSATION, registry.get("o1-mini"))
        assert prepared.system_prompt == ""
        assert prepared.messages == [{"role": "user", "content": "Be brief.\n\nHi"}]

    def test_merge_lone_system_becomes_user(self, registry):
        prepared = prepare_conversation(CONVERSATION[:1], registry.get("o1-preview"))
        assert prepared.messages == [{"role": "user", "content": "Be brief."}]

    def test_relabel_to_developer(self, registry):
        prepared = prepare_conversation(CONVERSATION, registry.get("o3-mini"))
        assert prepared.messages[0] == {"role": "developer", "content": FORMATTING_MARKER + "Be brief."}
        assert prepared.messages[1] == {"role": "user", "content": "Hi"}

    def test_default_policy_leaves_system_in_place(self, registry):
        prepared = prepare_conversation(CONVERSATION, registry.get("gpt-4o"))
        assert prepared.messages == CONVERSATION

    def test_no_system_message(self, registry):
        prepared = prepare_conversation(CONVERSATION[1:], registry.get("claude-sonnet-4-20250514"))
        assert prepared.system_prompt == ""
        assert prepared.messages == [{"role": "user", "content": "Hi"}]

    def test_input_not_mutated(self, registry):
        original = copy.deepcopy(CONVERSATION)
        for model in ("o1-mini", "o3", "claude-sonnet-4-20250514"):
            prepare_conversation(CONVERSATION, registry.get(model))
        assert CONVERSATION == original


class TestTransformMessages:

    def test_tool_calls_become_tool_use_blocks(self):
        messages = [{
            "role": "assistant",
            "content": "Checking",
            "tool_calls": [{
                "id": "call_1",
                "type": "function",
                "function": {"name": "get_weather", "arguments": '{"city": "Paris"}'},
            }],
        }]
        transformed = transform_messages(messages)
        assert transformed == [{
            "role": "assistant",
            "content": [
                {"type": "text", "text": "Checking"},
                {"type": "tool_use", "id": "call_1", "name": "get_weather", "input": {"city": "Paris"}},
            ],
        }]
        assert "tool_calls" in messages[0]

    def test_tool_message_becomes_tool_result(self):
        transformed = transform_messages([
            {"role": "tool", "tool_call_id": "call_1", "content": "sunny", "is_error": False},
        ])
        assert transformed == [{
            "role": "user",
            "content": [{"type": "tool_result", "tool_use_id": "call_1", "content": "sunny", "is_error": False}],
        }]

    def test_string_content_wrapped(self):
        assert transform_messages([{"role": "user", "content": "Hi"}]) == [
            {"role": "user", "content": [{"type": "text", "text": "Hi"}]},
        ]

    def test_order_preserved(self):
        messages = [
            {"role": "user", "content": "one"},
            {"role": "assistant", "content": None, "tool_calls": [
                {"id": "c", "type": "function", "function": {"name": "f", "arguments": "{}"}},
            ]},
            {"role": "tool", "tool_call_id": "c", "content": "done"},
            {"role": "user", "content": "two"},
        ]
        roles = [m["role"] for m in transform_messages(messages)]
        assert roles == ["user", "assistant", "user", "user"]

    def test_malformed_arguments_pass_through(self, caplog):
        calls = [{"id": "c", "type": "function", "function": {"name": "f", "arguments": "{not json"}}]
        with caplog.at_level(logging.WARNING):
            blocks = transform_tool_calls(calls)
        assert blocks[0]["input"] == {RAW_ARGS_KEY: "{not json"}
        assert "not valid JSON" in caplog.text

    @pytest.mark.parametrize("arguments", ["5", "[1]", '"text"', "null"])
    def test_non_object_arguments_pass_through(self, arguments):
        calls = [{"id": "c", "type": "function", "function": {"name": "f", "arguments": arguments}}]
        assert transform_tool_calls(calls)[0]["input"] == {RAW_ARGS_KEY: arguments}

    def test_empty_arguments_parse_as_empty_object(self):
        calls = [{"id": "c", "type": "function", "function": {"name": "f", "arguments": ""}}]
        assert transform_tool_calls(calls)[0]["input"] == {}


class TestCacheMessages:

    def test_two_most_recent_user_messages(self):
        messages = transform_messages([
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "a"},
            {"role": "user", "content": "second"},
            {"role": "assistant", "content": "b"},
            {"role": "user", "content": "third"},
        ])
        cached = cache_messages(messages)
        marked = [bool(m["content"][0].get("cache_control")) for m in cached]
        assert marked == [False, False, True, False, True]
        assert "cache_control" not in messages[4]["content"][0]

    def test_string_content(self):
        cached = cache_messages([{"role": "user", "content": "hi"}])
        assert cached[0]["content"] == [{"type": "text", "text": "hi", "cache_control": {"type": "ephemeral"}}]


class TestAppendBlock:

    def test_text_merges_into_trailing_text(self):
        message = {"role": "assistant", "content": []}
        message = append_block(message, {"type": "text", "text": "Hel"})
        message = append_block(message, {"type": "text", "text": "lo"})
        assert message["content"] == [{"type": "text", "text": "Hello"}]

    def test_tool_use_after_text(self):
        message = {"role": "assistant", "content": "Hi"}
        updated = append_block(message, {"type": "tool_use", "id": "t1", "name": "f", "input": {"a": 1}})
        assert updated["content"][1] == {"type": "tool_use", "id": "t1", "name": "f", "input": {"a": 1}}
        assert message["content"] == "Hi"

    def test_typeless_block_skipped(self, caplog):
        message = {"role": "assistant", "content": []}
        with caplog.at_level(logging.WARNING):
            assert append_block(message, {"text": "x"}) is message
            assert append_block(message, None) is message
        assert "typeless" in caplog.text

    def test_incomplete_tool_use_skipped(self):
        message = {"role": "assistant", "content": []}
        assert append_block(message, {"type": "tool_use", "name": "f"}) is message


class TestValidateConversation:

    def test_empty(self):
        with pytest.raises(UnichatError) as excinfo:
            validate_conversation([])
        assert excinfo.value.kind is ErrorKind.BAD_REQUEST

    def test_missing_role(self):
        with pytest.raises(UnichatError, match="no role"):
            validate_conversation([{"content": "hi"}])

    def test_tool_message_without_id(self):
        with pytest.raises(UnichatError, match="tool_call_id"):
            validate_conversation([{"role": "tool", "content": "x"}])

    def test_unknown_tool_call_id_only_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            validate_conversation([
                {"role": "user", "content": "hi"},
                {"role": "tool", "tool_call_id": "ghost", "content": "x"},
            ])
        assert "unknown tool call ghost" in caplog.text

    def test_valid_tool_round(self):
        validate_conversation([
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": None, "tool_calls": [
                {"id": "c1", "type": "function", "function": {"name": "f", "arguments": "{}"}},
            ]},
            {"role": "tool", "tool_call_id": "c1", "content": "ok"},
        ])
