"""
Tests for turn persistence conversion and the model wire format.
"""

from agent.turns import (
    INPUT_STREAMING, OUTPUT_AVAILABLE, OUTPUT_ERROR,
    FilePart, TextPart, ToolPart, Turn,
    persisted_to_turn, text_after_last_tool, to_model_messages, turn_text, turn_to_persisted,
)
from conversations import PersistedMessage, ToolCallRecord


def test_persisted_message_becomes_completed_turn():
    message = PersistedMessage(
        id="m1",
        role="assistant",
        text_content="Added a cube.",
        timestamp=12.0,
        tool_calls=[ToolCallRecord(tool_name="addObject", args={"name": "Cube"}, result={"id": "obj-1"})],
    )
    turn = persisted_to_turn(message)

    assert turn.id == "m1"
    assert turn.created_at == 12.0
    assert isinstance(turn.parts[0], TextPart)
    tool = turn.parts[1]
    assert tool.state == OUTPUT_AVAILABLE
    assert tool.tool_call_id == "m1-tool-0"
    assert tool.output == {"id": "obj-1"}


def test_empty_persisted_message_keeps_one_part():
    turn = persisted_to_turn(PersistedMessage(id="m1", role="assistant"))
    assert len(turn.parts) == 1
    assert turn_text(turn) == ""


def test_turn_to_persisted_records_tools_and_images():
    turn = Turn(id="u1", role="user", parts=[
        TextPart(text="like this"),
        FilePart(media_type="image/png", data="aGk="),
    ])
    message = turn_to_persisted(turn)
    assert message.text_content == "like this"
    assert message.has_image is True
    assert message.tool_calls is None


def test_text_after_last_tool():
    turn = Turn(id="a1", role="assistant", parts=[
        TextPart(text="before"),
        ToolPart(tool_name="addObject", tool_call_id="t1"),
        TextPart(text="after"),
    ])
    assert text_after_last_tool(turn) == "after"
    assert text_after_last_tool(Turn(id="a2", role="assistant", parts=[TextPart(text="x")])) is None


def test_model_messages_split_tool_round_trips():
    turns = [
        Turn(id="u1", role="user", parts=[TextPart(text="add a cube")]),
        Turn(id="a1", role="assistant", parts=[
            TextPart(text="Adding."),
            ToolPart(tool_name="addObject", tool_call_id="t1", input={"name": "Cube"},
                     state=OUTPUT_AVAILABLE, output={"id": "obj-1"}),
            ToolPart(tool_name="removeObject", tool_call_id="t2", input={"id": "x"},
                     state=OUTPUT_ERROR, output={"error": "nope"}),
            TextPart(text="Done."),
        ]),
    ]
    messages = to_model_messages(turns)

    assert [m["role"] for m in messages] == ["user", "assistant", "user", "assistant"]
    assert [b["type"] for b in messages[1]["content"]] == ["text", "tool_use", "tool_use"]
    results = messages[2]["content"]
    assert results[0]["tool_use_id"] == "t1"
    assert "is_error" not in results[0]
    assert results[1]["is_error"] is True
    assert messages[3]["content"] == [{"type": "text", "text": "Done."}]


def test_unfinished_tool_calls_are_not_replayed():
    turns = [
        Turn(id="u1", role="user", parts=[TextPart(text="go")]),
        Turn(id="a1", role="assistant", parts=[
            ToolPart(tool_name="addObject", tool_call_id="t1", state=INPUT_STREAMING),
        ]),
    ]
    assert to_model_messages(turns) == [{"role": "user", "content": [{"type": "text", "text": "go"}]}]


def test_consecutive_user_messages_merge():
    turns = [
        Turn(id="u1", role="user", parts=[TextPart(text="one")]),
        Turn(id="u2", role="user", parts=[TextPart(text="two"), FilePart(media_type="image/png", data="aGk=")]),
    ]
    messages = to_model_messages(turns)
    assert len(messages) == 1
    assert [b["type"] for b in messages[0]["content"]] == ["text", "text", "image"]
