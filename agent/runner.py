"""
Background task driver.

Drains the TaskQueue one command at a time through the scratch session. A turn
that turns out to need the user (a proposed plan, or the assistant asking for
the full panel) is promoted into a real conversation, mid-stream if possible;
otherwise the finished turn is classified and kept as a task.
"""

import logging
from typing import Callable, List, Optional

from agent.brackets import truncate_title
from agent.classify import TASK, classify_response, extract_task_summary, parse_response
from agent.events import AgentEvent
from agent.tasks import TaskQueue, TaskStatus, TaskToolCall
from agent.turns import (
    TOOL_DONE_STATES, Turn, has_tool, last_assistant_turn, new_id, tool_names, tool_parts, turn_text,
)
from conversations import PersistedMessage, ToolCallRecord, now_ts
from tools.schemas import CREATE_PLAN_NAME

logger = logging.getLogger(__name__)

FAILED_MESSAGE = "AI request failed"

# Which path owns the running task's outcome
NOT_STARTED = "not-started"
PROMOTED = "promoted"
COMPLETED = "completed"


class BackgroundTaskRunner:
    def __init__(
        self,
        queue: TaskQueue,
        session,
        coordinator,
        scheduler,
        is_any_busy: Callable[[], bool],
        title_max_chars: int = 40,
    ):
        self.queue = queue
        self.session = session
        self.coordinator = coordinator
        self.scheduler = scheduler
        self.is_any_busy = is_any_busy
        self.title_max_chars = title_max_chars

        self.running_task_id: Optional[str] = None
        self.guard = NOT_STARTED
        # Conversation the running task was promoted into, if any
        self.promoted_conversation_id: Optional[str] = None
        self._promoted_message_id: Optional[str] = None
        self.on_promoted: Optional[Callable[[str, str], None]] = None
        self.on_refreshed: Optional[Callable[[str], None]] = None

        session.add_listener(self._on_session_event)

    @property
    def is_running(self) -> bool:
        return self.running_task_id is not None or self.queue.running_task() is not None

    def owns_live_task(self) -> bool:
        """True once promoted, or while the running task has not been cancelled or dismissed."""
        if self.promoted_conversation_id is not None:
            return True
        task = self.queue.get(self.running_task_id) if self.running_task_id else None
        return task is not None and task.status == TaskStatus.RUNNING

    # ------------------------------------------------------------------
    # Driving
    # ------------------------------------------------------------------

    def kick(self) -> Optional[str]:
        """Start the next pending task if nothing else is in flight."""
        if self.running_task_id is not None or self.is_any_busy():
            return None
        task = self.queue.pick_next()
        if task is None or not self.queue.start(task.id):
            return None

        # Each command runs in isolation
        self.session.clear()
        self.running_task_id = task.id
        self.guard = NOT_STARTED
        self.promoted_conversation_id = None
        self._promoted_message_id = None
        logger.info(f"Running background task {task.id}")
        self.scheduler.spawn(self._run(task.id, task.command))
        return task.id

    async def _run(self, task_id: str, command: str) -> None:
        try:
            turn = await self.session.send_message(command, body={"background": True})
        except Exception as e:
            logger.error(f"Background task {task_id} failed: {e}")
            if self.guard == NOT_STARTED:
                self.guard = COMPLETED
                self.queue.fail(task_id, FAILED_MESSAGE)
        else:
            self._on_complete(task_id, turn)
        finally:
            if self.running_task_id == task_id:
                self.running_task_id = None
            self.kick()

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------

    def _on_session_event(self, event: AgentEvent) -> None:
        if event.type != "update" or self.running_task_id is None or self.guard != NOT_STARTED:
            return
        turn = last_assistant_turn(self.session.messages)
        if turn is None:
            return
        _, wants = parse_response(turn_text(turn))
        if has_tool(turn, CREATE_PLAN_NAME) or wants:
            self._promote(self.running_task_id, turn)

    def _on_complete(self, task_id: str, turn: Turn) -> None:
        if self.guard == PROMOTED:
            self._refresh_promoted(turn)
            return
        if self.guard != NOT_STARTED:
            return
        task = self.queue.get(task_id)
        # Cancelled or dismissed while streaming
        if task is None or task.status != TaskStatus.RUNNING:
            self.guard = COMPLETED
            return

        raw_text = turn_text(turn)
        clean_text, wants = parse_response(raw_text)
        names = tool_names(turn)
        classification = classify_response(clean_text, names, has_tool(turn, CREATE_PLAN_NAME), wants)

        if classification == TASK:
            self.guard = COMPLETED
            message_ids = [t.id for t in self.session.messages]
            self.queue.add_hidden_message_ids(message_ids)
            self.queue.complete_with_classification(
                task_id,
                classification,
                extract_task_summary(clean_text, names),
                full_response_text=clean_text,
                tool_calls=[TaskToolCall(tool_name=p.tool_name, args=dict(p.input)) for p in tool_parts(turn)],
                message_ids=message_ids,
            )
            logger.info(f"Background task {task_id} done")
        else:
            self._promote(task_id, turn)

    def _promote(self, task_id: str, turn: Turn) -> None:
        task = self.queue.get(task_id)
        if task is None or task.status != TaskStatus.RUNNING:
            return
        self.guard = PROMOTED

        conv_id = self.coordinator.create_conversation(title=truncate_title(task.command, self.title_max_chars))
        self.coordinator.add_message(conv_id, PersistedMessage(
            id=new_id("user-task"),
            role="user",
            text_content=task.command,
            timestamp=now_ts(),
        ))
        reply = self._assistant_message(new_id("assistant-task"), turn)
        if reply.text_content or reply.tool_calls:
            self.coordinator.add_message(conv_id, reply)
            self._promoted_message_id = reply.id
        self.promoted_conversation_id = conv_id

        self.queue.dismiss(task_id)
        logger.info(f"Background task {task_id} promoted to conversation {conv_id}")
        if self.on_promoted is not None:
            self.on_promoted(task_id, conv_id)

    def _refresh_promoted(self, turn: Turn) -> None:
        """Replace the mid-stream copy of the reply with the finished turn."""
        conv_id = self.promoted_conversation_id
        if conv_id is None:
            return
        if self._promoted_message_id is None:
            reply = self._assistant_message(new_id("assistant-task"), turn)
            if reply.text_content or reply.tool_calls:
                self.coordinator.add_message(conv_id, reply)
        else:
            self.coordinator.replace_message(conv_id, self._assistant_message(self._promoted_message_id, turn))
        if self.on_refreshed is not None:
            self.on_refreshed(conv_id)

    @staticmethod
    def _assistant_message(message_id: str, turn: Turn) -> PersistedMessage:
        text, _ = parse_response(turn_text(turn))
        calls: List[ToolCallRecord] = [
            ToolCallRecord(tool_name=p.tool_name, args=dict(p.input), result=p.output, tool_call_id=p.tool_call_id)
            for p in tool_parts(turn)
            if p.state in TOOL_DONE_STATES
        ]
        return PersistedMessage(
            id=message_id,
            role="assistant",
            text_content=text,
            timestamp=now_ts(),
            tool_calls=calls or None,
        )
