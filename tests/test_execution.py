import json

import pytest

from sts_agent.exceptions import ProtocolError
from sts_agent.execution import ChatResponse, Message, Run, ToolCall, ToolResult


class TestMessage:
    def test_factories_set_roles(self):
        assert Message.system("s").role == "system"
        assert Message.user("u").role == "user"
        assert Message.assistant("a").role == "assistant"

    def test_tool_response(self):
        msg = Message.tool_response("call_123", "result")
        assert msg.role == "tool"
        assert msg.tool_call_id == "call_123"
        assert msg.content == "result"

    def test_assistant_with_tool_calls_allows_null_content(self):
        tc = ToolCall(id="1", tool_name="get_deck", arguments={})
        msg = Message.assistant_with_tool_calls([tc])
        assert msg.content is None
        assert msg.tool_calls == [tc]
        assert "content" not in msg.to_dict()

    def test_to_dict_tool_calls_wire_shape(self):
        tc = ToolCall(id="call_9", tool_name="execute_actions", arguments={"actions": []})
        data = Message.assistant_with_tool_calls([tc]).to_dict()
        wire = data["tool_calls"][0]
        assert wire["id"] == "call_9"
        assert wire["type"] == "function"
        assert wire["function"]["name"] == "execute_actions"
        assert json.loads(wire["function"]["arguments"]) == {"actions": []}

    @pytest.mark.parametrize(
        "message",
        [
            Message.system("You are helpful."),
            Message.user("What cards do I have?"),
            Message.assistant_with_tool_calls(
                [
                    ToolCall(id="a", tool_name="get_deck", arguments={}),
                    ToolCall(id="b", tool_name="execute_actions", arguments={"actions": [{"action": "end_turn"}]}),
                ],
                content="Checking.",
            ),
            Message.tool_response("a", '{"cards": []}'),
        ],
    )
    def test_wire_round_trip(self, message):
        decoded = Message.from_dict(message.to_dict())
        assert decoded.role == message.role
        assert decoded.content == message.content
        assert decoded.tool_call_id == message.tool_call_id
        if message.tool_calls is None:
            assert decoded.tool_calls is None
        else:
            assert [(tc.id, tc.tool_name, tc.arguments) for tc in decoded.tool_calls] == [
                (tc.id, tc.tool_name, tc.arguments) for tc in message.tool_calls
            ]


class TestToolCall:
    def test_tool_call_defaults(self):
        tc = ToolCall(id="1", tool_name="get_map", arguments={})
        assert tc.result == ""
        assert tc.error is None
        assert tc.timestamp > 0

    def test_from_dict_missing_function(self):
        with pytest.raises(ProtocolError, match="missing"):
            ToolCall.from_dict({"id": "1"})

    def test_from_dict_invalid_json_arguments(self):
        with pytest.raises(ProtocolError, match="Malformed arguments"):
            ToolCall.from_dict(
                {"id": "1", "function": {"name": "get_map", "arguments": "{not json"}}
            )

    def test_from_dict_arguments_must_be_object(self):
        with pytest.raises(ProtocolError, match="JSON object"):
            ToolCall.from_dict(
                {"id": "1", "function": {"name": "get_map", "arguments": "[1, 2]"}}
            )

    def test_from_dict_empty_arguments(self):
        tc = ToolCall.from_dict({"id": "1", "function": {"name": "get_map", "arguments": ""}})
        assert tc.arguments == {}


class TestToolResult:
    def test_success_text_is_message(self):
        assert ToolResult.ok("played").text == "played"

    def test_error_text_is_json(self):
        result = ToolResult.error("Unknown tool: x")
        assert json.loads(result.text) == {"error": "Unknown tool: x"}
        assert str(result) == "Error: Unknown tool: x"


class TestChatResponse:
    def test_has_tool_calls(self):
        assert not ChatResponse(content="hi").has_tool_calls
        assert ChatResponse(
            content=None, tool_calls=[ToolCall(id="1", tool_name="get_map", arguments={})]
        ).has_tool_calls


class TestRun:
    def test_run_defaults(self):
        run = Run(mode="chat", input="hello")
        assert run.state == "running"
        assert run.iterations == 0
        assert run.output == []
        assert run.tool_calls == []
        assert run.response == ""

    def test_mutable_defaults_are_independent(self):
        r1 = Run(mode="chat")
        r2 = Run(mode="chat")
        r1.output.append("x")
        assert r2.output == []
