"""
Streaming chat session.

A StreamingSession owns the in-memory turns of one conversation and drives
"send a turn, await completion" against a ChatBackend. Tool calls are run
synchronously as soon as their input has streamed in, and their results are
fed back to the model in the next step of the same assistant turn.
"""

import asyncio
import json
import logging
import queue
import threading
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from agent.events import AgentEvent
from agent.intent import should_force_plan
from agent.prompts import build_system_prompt, get_template
from agent.turns import (
    INPUT_AVAILABLE, OUTPUT_AVAILABLE, OUTPUT_ERROR,
    Part, TextPart, ToolPart, Turn, new_id, to_model_messages,
)
from tools.schemas import CREATE_PLAN_NAME, TOOL_DEFINITIONS

logger = logging.getLogger(__name__)

IDLE = "idle"
SUBMITTED = "submitted"
STREAMING = "streaming"
READY = "ready"
ERROR = "error"

BUSY_STATES = frozenset({SUBMITTED, STREAMING})

ToolExecutor = Callable[[str, Dict[str, Any], str], Any]
Listener = Callable[[AgentEvent], None]


class SessionBusyError(Exception):
    """A turn is already in flight on this session"""
    pass


# ------------------------------------------------------------------
# Backends
# ------------------------------------------------------------------

class ChatBackend:
    """Streams one model step as chunk dicts (text, tool_use_start/delta/end, message_end)."""

    def stream(
        self,
        messages: List[Dict[str, Any]],
        system_prompt: str,
        tools: List[Dict[str, Any]],
        tool_choice: Optional[Dict[str, Any]] = None,
        background: bool = False,
    ) -> AsyncIterator[Dict[str, Any]]:
        raise NotImplementedError


class BedrockChatBackend(ChatBackend):
    """
    ChatBackend on top of BedrockService.

    boto3 streaming is blocking, so a producer thread drains the response
    into a queue that the event loop reads through the default executor.
    """

    def __init__(self, service=None, models=None):
        if service is None:
            from bedrock_service import BedrockService
            service = BedrockService()
        if models is None:
            from config import model_config
            models = model_config
        self.service = service
        self.models = models

    def _generation_config(self, tool_choice: Optional[Dict[str, Any]], background: bool):
        from bedrock_service import GenerationConfig
        return GenerationConfig(
            max_tokens=self.models.background_max_tokens if background else self.models.conversation_max_tokens,
            temperature=self.models.temperature,
            tool_choice=tool_choice,
        )

    async def stream(self, messages, system_prompt, tools, tool_choice=None, background=False):
        model_id = self.models.background_model_id if background else self.models.conversation_model_id
        gen_config = self._generation_config(tool_choice, background)
        cq: queue.Queue = queue.Queue()

        def _producer():
            try:
                for c in self.service.generate_response_stream(
                    messages=messages,
                    system_prompt=system_prompt,
                    model_id=model_id,
                    config=gen_config,
                    tools=tools,
                ):
                    cq.put(c)
                cq.put(None)  # sentinel: stream complete
            except Exception as exc:
                cq.put(exc)

        t = threading.Thread(target=_producer, daemon=True)
        t.start()

        loop = asyncio.get_running_loop()
        while True:
            chunk = await loop.run_in_executor(None, cq.get)
            if chunk is None:
                break
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk


# ------------------------------------------------------------------
# Session
# ------------------------------------------------------------------

class StreamingSession:
    """
    One chat thread bound to a conversation id.

    status: idle -> submitted -> streaming -> ready | error. Listeners get an
    AgentEvent for every status change ("status"), turn mutation ("update"),
    completed turn ("finish") and failure ("error").
    """

    def __init__(
        self,
        session_id: str,
        backend: ChatBackend,
        tool_executor: ToolExecutor,
        context_provider: Optional[Callable[[], Dict[str, Any]]] = None,
        max_steps: int = 5,
        tools: Optional[List[Dict[str, Any]]] = None,
    ):
        self.id = session_id
        self.backend = backend
        self.tool_executor = tool_executor
        self.context_provider = context_provider
        self.max_steps = max_steps
        self.tools = tools if tools is not None else TOOL_DEFINITIONS
        self.messages: List[Turn] = []
        self.status = IDLE
        self.error: Optional[str] = None
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: AgentEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Session {self.id}: listener failed on {event.type}")

    def _set_status(self, status: str) -> None:
        if self.status == status:
            return
        self.status = status
        self._emit(AgentEvent(type="status", content=status, data={"session_id": self.id}))

    def _update(self, turn: Turn) -> None:
        self._emit(AgentEvent(type="update", data={"session_id": self.id, "message_id": turn.id}))

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    @property
    def is_busy(self) -> bool:
        return self.status in BUSY_STATES

    def set_messages(self, turns: List[Turn]) -> None:
        if self.is_busy:
            raise SessionBusyError(f"Session {self.id} is busy")
        self.messages = list(turns)

    def clear(self) -> None:
        self.set_messages([])
        self.error = None

    @staticmethod
    def _template(value):
        if isinstance(value, str):
            return get_template(value)
        return value

    def _request(self, body: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        request: Dict[str, Any] = {}
        if self.context_provider is not None:
            request.update(self.context_provider())
        if body:
            request.update(body)
        return request

    async def send_message(
        self,
        text: str,
        parts: Optional[List[Part]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Turn:
        """Append a user turn and stream the assistant reply. Returns the finished assistant turn."""
        if self.is_busy:
            raise SessionBusyError(f"Session {self.id} is busy")

        request = self._request(body)
        user_parts: List[Part] = [TextPart(text=text)] + list(parts or [])
        self.messages.append(Turn(id=new_id("msg"), role="user", parts=user_parts))

        system_prompt = build_system_prompt(
            scene_context=request.get("scene_context"),
            selection_context=request.get("selection_context"),
            camera_context=request.get("camera_context"),
            mode=request.get("mode"),
            template=self._template(request.get("template")),
        )
        tool_choice = {"type": "tool", "name": CREATE_PLAN_NAME} if should_force_plan(self.messages) else None
        background = bool(request.get("background"))

        assistant = Turn(id=new_id("msg"), role="assistant")
        self.messages.append(assistant)
        self.error = None
        self._set_status(SUBMITTED)

        try:
            for step in range(self.max_steps):
                stop_reason = await self._run_step(
                    assistant, system_prompt, tool_choice if step == 0 else None, background,
                )
                if stop_reason != "tool_use":
                    break
                # A proposed plan waits for the user
                if any(p.tool_name == CREATE_PLAN_NAME for p in assistant.parts if isinstance(p, ToolPart)):
                    break
        except Exception as e:
            self.error = str(e)
            logger.error(f"Session {self.id}: stream failed: {e}")
            self._set_status(ERROR)
            self._emit(AgentEvent(type="error", content=str(e), data={"session_id": self.id}))
            raise

        self._set_status(READY)
        self._emit(AgentEvent(type="finish", data={"session_id": self.id, "message_id": assistant.id}))
        return assistant

    async def _run_step(
        self,
        turn: Turn,
        system_prompt: str,
        tool_choice: Optional[Dict[str, Any]],
        background: bool,
    ) -> Optional[str]:
        """Stream one model step into `turn`. Returns the step's stop_reason."""
        # The streaming turn itself is part of the history once it holds finished tool calls
        messages = to_model_messages(self.messages)
        current_tool: Optional[ToolPart] = None
        stop_reason = None

        async for chunk in self.backend.stream(
            messages, system_prompt, self.tools, tool_choice=tool_choice, background=background,
        ):
            chunk_type = chunk.get("type", "")
            content = chunk.get("content", "")

            if chunk_type == "text":
                self._set_status(STREAMING)
                last = turn.parts[-1] if turn.parts else None
                if isinstance(last, TextPart):
                    last.text += content
                else:
                    turn.parts.append(TextPart(text=content))
                self._update(turn)

            elif chunk_type == "tool_use_start":
                self._set_status(STREAMING)
                data = chunk.get("data") or {}
                current_tool = ToolPart(
                    tool_name=data.get("name", ""),
                    tool_call_id=data.get("id") or new_id("tool"),
                )
                turn.parts.append(current_tool)
                self._update(turn)

            elif chunk_type == "tool_use_delta":
                if current_tool is not None:
                    current_tool.input_json += content

            elif chunk_type == "tool_use_end":
                if current_tool is not None:
                    self._finish_tool(current_tool)
                    self._update(turn)
                    current_tool = None

            elif chunk_type == "message_end":
                stop_reason = chunk.get("stop_reason")

        return stop_reason

    def _finish_tool(self, part: ToolPart) -> None:
        try:
            part.input = json.loads(part.input_json) if part.input_json else {}
        except json.JSONDecodeError:
            logger.warning(f"Session {self.id}: malformed input for {part.tool_name}")
            part.input = {}
        part.state = INPUT_AVAILABLE

        try:
            part.output = self.tool_executor(part.tool_name, part.input, part.tool_call_id)
            part.state = OUTPUT_AVAILABLE
        except Exception as e:
            logger.error(f"Session {self.id}: tool {part.tool_name} raised: {e}")
            part.output = {"error": str(e)}
            part.state = OUTPUT_ERROR
