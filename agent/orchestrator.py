"""
Orchestrator service.

Single owner of the agent layer's state: scene, plan store, task queue,
conversation coordinator, one streaming session per conversation, and the
two drivers (background tasks, plan execution). The web layer talks only to
this object.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from agent.brackets import truncate_title
from agent.context import build_request_context
from agent.coordinator import BACKGROUND_CONVERSATION_ID, ConversationCoordinator
from agent.events import AgentEvent
from agent.executor import PlanExecutor
from agent.plan import PlanStatus, PlanStore
from agent.runner import BackgroundTaskRunner
from agent.session import ChatBackend, SessionBusyError, StreamingSession
from agent.tasks import TaskQueue, TaskStatus
from agent.timers import Scheduler, TimerRegistry
from agent.turns import Part, Turn, new_id, persisted_to_turns, turn_to_persisted
from config import app_config, model_config
from conversations import Conversation, ConversationStore, PersistedMessage, now_ts
from scene import Scene
from tools import CREATE_PLAN_NAME, ToolContext, execute_tool

logger = logging.getLogger(__name__)

ROUTE_TASK = "task"
ROUTE_CONVERSATION = "conversation"


def make_bedrock_summarizer(service) -> Callable[[Conversation], Awaitable[str]]:
    """Summarizer running BedrockService.summarize_conversation off the event loop."""
    async def summarize(conv: Conversation) -> str:
        transcript = "\n".join(f"{m.role}: {m.text_content}" for m in conv.messages if m.text_content)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, service.summarize_conversation, transcript)
    return summarize


class Orchestrator:
    def __init__(
        self,
        backend: ChatBackend,
        store: ConversationStore,
        scheduler: Scheduler,
        scene: Optional[Scene] = None,
        summarizer: Optional[Callable[[Conversation], Awaitable[str]]] = None,
        app=None,
        models=None,
    ):
        self.app = app or app_config
        self.models = models or model_config
        self.backend = backend
        self.scheduler = scheduler
        self.timers = TimerRegistry(scheduler)

        self.scene = scene or Scene(timers=self.timers, highlight_ms=self.app.ai_highlight_ms)
        self.plans = PlanStore()
        self.tasks = TaskQueue(
            self.timers,
            auto_dismiss_ms=self.app.task_auto_dismiss_ms,
            history_cap=self.app.task_history_cap,
        )
        self.coordinator = ConversationCoordinator(
            store,
            scheduler=scheduler,
            summarizer=summarizer if self.app.summary_enabled else None,
            title_max_chars=self.app.title_max_chars,
            summary_min_messages=self.app.summary_min_messages,
        )
        self.sessions: Dict[str, StreamingSession] = {}
        # Conversations with a send accepted but not yet submitted
        self._pending_sends: Set[str] = set()
        # Sessions whose persisted history changed while they were busy
        self._stale_sessions: Set[str] = set()
        self._listeners: List[Callable[[AgentEvent], None]] = []

        self.executor = PlanExecutor(
            self.plans,
            self.send_message,
            cutoff_threshold=self.app.cutoff_text_threshold,
            max_auto_resumes=self.app.max_auto_resumes,
        )
        self.runner = BackgroundTaskRunner(
            self.tasks,
            self.session_for(BACKGROUND_CONVERSATION_ID),
            self.coordinator,
            scheduler,
            self.is_any_busy,
            title_max_chars=self.app.title_max_chars,
        )
        self.runner.on_promoted = self._on_task_promoted
        self.runner.on_refreshed = self._resync_session

    def load(self) -> None:
        self.coordinator.load()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def session_for(self, conversation_id: str) -> StreamingSession:
        session = self.sessions.get(conversation_id)
        if session is None:
            session = StreamingSession(
                conversation_id,
                self.backend,
                tool_executor=lambda name, inputs, call_id: self._execute_tool(conversation_id, name, inputs, call_id),
                context_provider=lambda: build_request_context(self.scene),
                max_steps=self.models.max_steps,
            )
            session.add_listener(self._forward)
            self.sessions[conversation_id] = session
        self.coordinator.restore_session(session, conversation_id)
        return session

    def is_any_busy(self) -> bool:
        return bool(self._pending_sends) or any(s.is_busy for s in self.sessions.values())

    def is_conversation_busy(self, conversation_id: str) -> bool:
        if conversation_id in self._pending_sends:
            return True
        session = self.sessions.get(conversation_id)
        return session is not None and session.is_busy

    def _resync_session(self, conversation_id: str) -> None:
        """Reload a live session from persistence after its stored history was rewritten."""
        session = self.sessions.get(conversation_id)
        conv = self.coordinator.get(conversation_id)
        if session is None or conv is None:
            return
        if session.is_busy:
            self._stale_sessions.add(conversation_id)
            return
        self._stale_sessions.discard(conversation_id)
        session.set_messages(persisted_to_turns(conv.messages))
        logger.debug(f"Resynced session {conversation_id} from {len(conv.messages)} stored message(s)")

    def add_listener(self, listener: Callable[[AgentEvent], None]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[AgentEvent], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _forward(self, event: AgentEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Orchestrator listener failed")

    def _execute_tool(self, conversation_id: str, name: str, inputs: Dict[str, Any], call_id: str) -> Dict[str, Any]:
        if (
            name == CREATE_PLAN_NAME
            and conversation_id == BACKGROUND_CONVERSATION_ID
            and not self.runner.owns_live_task()
        ):
            logger.info(f"Ignoring {name} from a background task that is no longer running")
            return {"error": "Background task is no longer running"}
        ctx = ToolContext(scene=self.scene, plans=self.plans, conversation_id=conversation_id)
        result = execute_tool(name, inputs, ctx, call_id)
        if name == CREATE_PLAN_NAME and "error" not in result:
            target = conversation_id
            if conversation_id == BACKGROUND_CONVERSATION_ID:
                target = self.runner.promoted_conversation_id or conversation_id
            self.executor.conversation_id = target
            self.executor.auto_resumes = 0
        return result

    def _on_task_promoted(self, task_id: str, conversation_id: str) -> None:
        if self.executor.conversation_id == BACKGROUND_CONVERSATION_ID:
            self.executor.conversation_id = conversation_id

    async def _guarded(self, coro: Awaitable[Any], what: str) -> None:
        try:
            await coro
        except SessionBusyError as e:
            logger.warning(f"{what} skipped: {e}")
        except Exception as e:
            logger.error(f"{what} failed: {e}")

    # ------------------------------------------------------------------
    # Foreground turns
    # ------------------------------------------------------------------

    async def send_message(
        self,
        conversation_id: str,
        text: str,
        parts: Optional[List[Part]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Turn:
        """Run one foreground turn and persist it. Raises KeyError for unknown conversations."""
        conv = self.coordinator.get(conversation_id)
        if conv is None:
            raise KeyError(conversation_id)
        session = self.session_for(conversation_id)
        if self.is_conversation_busy(conversation_id):
            raise SessionBusyError(f"Conversation {conversation_id} is busy")

        request = {"mode": conv.mode}
        request.update(body or {})
        before = len(session.messages)
        self.coordinator.mark_streaming(conversation_id)
        self.coordinator.clear_draft(conversation_id)
        try:
            turn = await session.send_message(text, parts, request)
        finally:
            self.coordinator.mark_ready(conversation_id)
            self._persist_new_turns(conversation_id, session, before)
            if conversation_id in self._stale_sessions:
                self._resync_session(conversation_id)
            self.runner.kick()

        self.coordinator.maybe_request_summary(conversation_id)
        await self.executor.on_turn_finished(conversation_id, turn)
        return turn

    def start_message(
        self,
        conversation_id: str,
        text: str,
        parts: Optional[List[Part]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Fire-and-forget send. Busy or unknown conversations raise before anything
        is spawned; an accepted send holds the conversation until its turn starts.
        """
        if self.coordinator.get(conversation_id) is None:
            raise KeyError(conversation_id)
        self.session_for(conversation_id)
        if self.is_conversation_busy(conversation_id):
            raise SessionBusyError(f"Conversation {conversation_id} is busy")
        self._pending_sends.add(conversation_id)
        self.scheduler.spawn(self._send_reserved(conversation_id, text, parts, body))

    async def _send_reserved(
        self,
        conversation_id: str,
        text: str,
        parts: Optional[List[Part]],
        body: Optional[Dict[str, Any]],
    ) -> None:
        # The session turns busy before send_message first yields
        self._pending_sends.discard(conversation_id)
        try:
            await self._guarded(self.send_message(conversation_id, text, parts, body), "Chat turn")
        finally:
            self.runner.kick()

    def _persist_new_turns(self, conversation_id: str, session: StreamingSession, before: int) -> None:
        for turn in session.messages[before:]:
            message = turn_to_persisted(turn)
            if turn.role == "assistant" and not message.text_content and not message.tool_calls:
                continue
            self.coordinator.add_message(conversation_id, message)

    # ------------------------------------------------------------------
    # Input routing
    # ------------------------------------------------------------------

    def submit(self, text: str, expanded: bool = False, surface: Optional[str] = None) -> Dict[str, Any]:
        """Route composer input to the background queue or a conversation."""
        text = text.strip()
        if not text:
            raise ValueError("Empty input")

        if not expanded or self.scene.selected_object_ids:
            task_id = self.enqueue_task(text)
            return {"route": ROUTE_TASK, "task_id": task_id}

        if surface:
            conversation_id = self.coordinator.get_conversation_for_surface(surface)
        else:
            conversation_id = self.coordinator.active_conversation_id
        if conversation_id is None:
            conversation_id = self.coordinator.create_conversation()
        self.start_message(conversation_id, text)
        return {"route": ROUTE_CONVERSATION, "conversation_id": conversation_id}

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def enqueue_task(self, command: str) -> str:
        task_id = self.tasks.enqueue(command)
        self.runner.kick()
        return task_id

    def cancel_task(self, task_id: str) -> bool:
        return self.tasks.cancel(task_id)

    def dismiss_task(self, task_id: str) -> bool:
        return self.tasks.dismiss(task_id)

    def remove_task(self, task_id: str) -> bool:
        return self.tasks.remove(task_id)

    def open_task(self, task_id: str) -> Optional[str]:
        """Continue a finished task as a conversation seeded with its command and reply."""
        task = self.tasks.get(task_id)
        if task is None or task.status != TaskStatus.DONE:
            return None
        conv_id = self.coordinator.create_conversation(title=truncate_title(task.command, self.app.title_max_chars))
        self.coordinator.add_message(conv_id, PersistedMessage(
            id=new_id("user-task"),
            role="user",
            text_content=task.command,
            timestamp=now_ts(),
        ))
        reply = task.full_response_text or task.summary or ""
        if reply:
            self.coordinator.add_message(conv_id, PersistedMessage(
                id=new_id("assistant-task"),
                role="assistant",
                text_content=reply,
                timestamp=now_ts(),
            ))
        self.tasks.promote_to_conversation(task_id)
        logger.info(f"Task {task_id} opened as conversation {conv_id}")
        return conv_id

    # ------------------------------------------------------------------
    # Plan
    # ------------------------------------------------------------------

    def approve_plan(self) -> bool:
        if self.plans.status != PlanStatus.PENDING:
            return False
        self.scheduler.spawn(self._guarded(self.executor.approve(), "Plan approval"))
        return True

    def submit_plan_answers(self, answers: List[str]) -> bool:
        if self.plans.status != PlanStatus.CLARIFYING:
            return False
        self.scheduler.spawn(self._guarded(self.executor.submit_answers(answers), "Plan answers"))
        return True

    def resume_plan(self) -> bool:
        if self.plans.status != PlanStatus.DONE:
            return False
        self.scheduler.spawn(self._guarded(self.executor.resume(), "Plan resume"))
        return True

    def reject_plan(self) -> bool:
        return self.executor.reject()

    def dismiss_plan(self) -> None:
        self.executor.dismiss()

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def shutdown(self) -> None:
        self.timers.cancel_all()
        self.coordinator.store.flush()
