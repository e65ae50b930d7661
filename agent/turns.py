"""
Turn structures shared by the streaming session, the drivers and persistence.

A turn is one message of a chat session made of ordered parts: text, file
attachments, and tool invocations that move through the input-streaming ->
input-available -> output-available/output-error states.
"""

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from conversations import PersistedMessage, ToolCallRecord, now_ts

INPUT_STREAMING = "input-streaming"
INPUT_AVAILABLE = "input-available"
OUTPUT_AVAILABLE = "output-available"
OUTPUT_ERROR = "output-error"

TOOL_DONE_STATES = frozenset({OUTPUT_AVAILABLE, OUTPUT_ERROR})
TOOL_PENDING_STATES = frozenset({INPUT_STREAMING, INPUT_AVAILABLE})


@dataclass
class TextPart:
    text: str = ""
    type: str = field(default="text", init=False)


@dataclass
class FilePart:
    media_type: str
    data: str  # base64 payload
    type: str = field(default="file", init=False)


@dataclass
class ToolPart:
    tool_name: str
    tool_call_id: str
    input: Dict[str, Any] = field(default_factory=dict)
    state: str = INPUT_STREAMING
    output: Any = None
    # Raw partial JSON while the input is still streaming
    input_json: str = field(default="", repr=False)
    type: str = field(default="tool", init=False)


Part = Union[TextPart, FilePart, ToolPart]


@dataclass
class Turn:
    id: str
    role: str  # "user" | "assistant"
    parts: List[Part] = field(default_factory=list)
    created_at: float = field(default_factory=now_ts)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


# ------------------------------------------------------------------
# Read helpers
# ------------------------------------------------------------------

def turn_text(turn: Optional[Turn]) -> str:
    if turn is None:
        return ""
    return "".join(p.text for p in turn.parts if isinstance(p, TextPart))


def tool_parts(turn: Optional[Turn]) -> List[ToolPart]:
    if turn is None:
        return []
    return [p for p in turn.parts if isinstance(p, ToolPart)]


def tool_names(turn: Optional[Turn]) -> List[str]:
    return [p.tool_name for p in tool_parts(turn)]


def has_tool(turn: Optional[Turn], name: str) -> bool:
    return any(p.tool_name == name for p in tool_parts(turn))


def has_file(turn: Optional[Turn]) -> bool:
    return turn is not None and any(isinstance(p, FilePart) for p in turn.parts)


def text_after_last_tool(turn: Turn) -> Optional[str]:
    """Text of the parts after the last tool part, or None when the turn has no tool part."""
    last_tool = -1
    for i, p in enumerate(turn.parts):
        if isinstance(p, ToolPart):
            last_tool = i
    if last_tool == -1:
        return None
    return "".join(p.text for p in turn.parts[last_tool + 1:] if isinstance(p, TextPart))


def last_assistant_turn(turns: List[Turn]) -> Optional[Turn]:
    for turn in reversed(turns):
        if turn.role == "assistant":
            return turn
    return None


# ------------------------------------------------------------------
# Persistence round-trip
# ------------------------------------------------------------------

def persisted_to_turn(message: PersistedMessage) -> Turn:
    """Rebuild a turn from storage: text first, then one completed part per stored tool call."""
    parts: List[Part] = []
    if message.text_content:
        parts.append(TextPart(text=message.text_content))
    for i, tc in enumerate(message.tool_calls or []):
        parts.append(ToolPart(
            tool_name=tc.tool_name,
            tool_call_id=tc.tool_call_id or f"{message.id}-tool-{i}",
            input=dict(tc.args or {}),
            state=OUTPUT_AVAILABLE,
            output=tc.result,
        ))
    # Every turn needs at least one part
    if not parts:
        parts.append(TextPart(text=""))
    return Turn(id=message.id, role=message.role, parts=parts, created_at=message.timestamp or now_ts())


def persisted_to_turns(messages: List[PersistedMessage]) -> List[Turn]:
    return [persisted_to_turn(m) for m in messages]


def turn_to_persisted(turn: Turn) -> PersistedMessage:
    tool_calls = [
        ToolCallRecord(
            tool_name=p.tool_name,
            tool_call_id=p.tool_call_id,
            args=dict(p.input),
            result=p.output,
        )
        for p in tool_parts(turn)
    ]
    return PersistedMessage(
        id=turn.id,
        role=turn.role,
        text_content=turn_text(turn),
        timestamp=now_ts(),
        tool_calls=tool_calls or None,
        has_image=True if has_file(turn) else None,
    )


# ------------------------------------------------------------------
# Model wire format (Anthropic Messages API)
# ------------------------------------------------------------------

def _user_blocks(turn: Turn) -> List[Dict[str, Any]]:
    blocks: List[Dict[str, Any]] = []
    for p in turn.parts:
        if isinstance(p, TextPart) and p.text.strip():
            blocks.append({"type": "text", "text": p.text})
        elif isinstance(p, FilePart) and p.media_type.startswith("image/"):
            blocks.append({
                "type": "image",
                "source": {"type": "base64", "media_type": p.media_type, "data": p.data},
            })
    return blocks


def _assistant_messages(turn: Turn) -> List[Dict[str, Any]]:
    """Split one assistant turn into assistant/user(tool_result) message pairs per model step."""
    messages: List[Dict[str, Any]] = []
    content: List[Dict[str, Any]] = []
    results: List[Dict[str, Any]] = []

    def _flush():
        if content:
            messages.append({"role": "assistant", "content": list(content)})
        if results:
            messages.append({"role": "user", "content": list(results)})
        content.clear()
        results.clear()

    for p in turn.parts:
        if isinstance(p, TextPart):
            if results:
                _flush()
            if p.text.strip():
                content.append({"type": "text", "text": p.text})
        elif isinstance(p, ToolPart):
            # Unfinished calls cannot be replayed without a result
            if p.state not in TOOL_DONE_STATES:
                continue
            content.append({
                "type": "tool_use",
                "id": p.tool_call_id,
                "name": p.tool_name,
                "input": p.input,
            })
            results.append(tool_result_block(p))
    _flush()
    return messages


def tool_result_block(part: ToolPart) -> Dict[str, Any]:
    output = part.output
    text = output if isinstance(output, str) else json.dumps(output, default=str)
    block = {"type": "tool_result", "tool_use_id": part.tool_call_id, "content": text}
    if part.state == OUTPUT_ERROR:
        block["is_error"] = True
    return block


def to_model_messages(turns: List[Turn]) -> List[Dict[str, Any]]:
    """Convert session turns to Messages API messages, merging consecutive same-role messages."""
    raw: List[Dict[str, Any]] = []
    for turn in turns:
        if turn.role == "user":
            blocks = _user_blocks(turn)
            if blocks:
                raw.append({"role": "user", "content": blocks})
        elif turn.role == "assistant":
            raw.extend(_assistant_messages(turn))

    merged: List[Dict[str, Any]] = []
    for msg in raw:
        if merged and merged[-1]["role"] == msg["role"]:
            merged[-1]["content"].extend(msg["content"])
        else:
            merged.append({"role": msg["role"], "content": list(msg["content"])})
    return merged
