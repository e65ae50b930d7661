"""
Background task queue.

FIFO, single-concurrency queue of short natural-language commands. Each
command becomes one agent turn that is classified on completion. The queue
only keeps bookkeeping; the runner drives the actual turns.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from agent.classify import TASK
from agent.timers import TimerRegistry

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Cancelled by user"


class TaskStatus(Enum):
    """Task status enumeration."""
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


@dataclass
class TaskToolCall:
    tool_name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Task:
    """One queued command."""
    id: str
    command: str
    status: TaskStatus = TaskStatus.PENDING
    created_at: float = field(default_factory=time.time)
    completed_at: Optional[float] = None
    classification: Optional[str] = None  # "task" | "conversation"
    summary: Optional[str] = None
    full_response_text: Optional[str] = None
    tool_calls: Optional[List[TaskToolCall]] = None
    message_ids: Optional[List[str]] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (TaskStatus.DONE, TaskStatus.ERROR)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "command": self.command,
            "status": self.status.value,
            "created_at": self.created_at,
            "completed_at": self.completed_at,
            "classification": self.classification,
            "summary": self.summary,
            "full_response_text": self.full_response_text,
            "tool_calls": [
                {"tool_name": tc.tool_name, "args": tc.args} for tc in self.tool_calls
            ] if self.tool_calls is not None else None,
            "message_ids": self.message_ids,
            "error": self.error,
        }


class TaskQueue:
    """Owns every background task; callers read state and issue commands."""

    def __init__(self, timers: TimerRegistry, auto_dismiss_ms: int = 4000, history_cap: int = 50):
        self.timers = timers
        self.auto_dismiss_ms = auto_dismiss_ms
        self.history_cap = history_cap
        self.tasks: List[Task] = []
        self.history: List[Task] = []
        # Message ids of background turns that must stay out of the chat view
        self.hidden_message_ids: Set[str] = set()
        self._counter = 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, task_id: str) -> Optional[Task]:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def running_task(self) -> Optional[Task]:
        for t in self.tasks:
            if t.status == TaskStatus.RUNNING:
                return t
        return None

    def get_next_pending(self) -> Optional[Task]:
        for t in self.tasks:
            if t.status == TaskStatus.PENDING:
                return t
        return None

    def pick_next(self) -> Optional[Task]:
        """Oldest pending task, or None while another task is running."""
        if self.running_task() is not None:
            return None
        return self.get_next_pending()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _new_id(self) -> str:
        self._counter += 1
        return f"bg-task-{self._counter}-{uuid.uuid4().hex[:8]}"

    def enqueue(self, command: str) -> str:
        task = Task(id=self._new_id(), command=command)
        self.tasks.append(task)
        logger.info(f"Task queued: {task.id} ({command[:60]!r})")
        return task.id

    def start(self, task_id: str) -> bool:
        task = self.get(task_id)
        if task is None or task.status != TaskStatus.PENDING:
            return False
        running = self.running_task()
        if running is not None:
            logger.debug(f"Not starting {task_id}: {running.id} is still running")
            return False
        task.status = TaskStatus.RUNNING
        return True

    def complete_with_classification(
        self,
        task_id: str,
        classification: str,
        summary: str,
        full_response_text: str = "",
        tool_calls: Optional[List[TaskToolCall]] = None,
        message_ids: Optional[List[str]] = None,
    ) -> bool:
        """running -> done. Tasks classified "task" auto-dismiss after the configured delay."""
        task = self.get(task_id)
        if task is None or task.status != TaskStatus.RUNNING:
            return False
        task.status = TaskStatus.DONE
        task.completed_at = time.time()
        task.classification = classification
        task.summary = summary
        task.full_response_text = full_response_text
        task.tool_calls = list(tool_calls or [])
        task.message_ids = list(message_ids or [])

        if classification == TASK:
            self.timers.schedule(
                task_id,
                self.auto_dismiss_ms / 1000.0,
                lambda: self._auto_dismiss(task_id),
            )
        return True

    def fail(self, task_id: str, error: str) -> bool:
        task = self.get(task_id)
        if task is None or task.status != TaskStatus.RUNNING:
            return False
        task.status = TaskStatus.ERROR
        task.error = error
        task.completed_at = time.time()
        logger.warning(f"Task {task_id} failed: {error}")
        return True

    def cancel(self, task_id: str) -> bool:
        self.timers.cancel(task_id)
        task = self.get(task_id)
        if task is None or task.is_terminal:
            return False
        task.status = TaskStatus.ERROR
        task.error = CANCELLED_MESSAGE
        task.completed_at = time.time()
        logger.info(f"Task {task_id} cancelled")
        return True

    def dismiss(self, task_id: str) -> bool:
        """Move a task to the head of history and drop it from the active list."""
        self.timers.cancel(task_id)
        task = self.get(task_id)
        if task is None:
            return False
        archived = replace(task, completed_at=task.completed_at or time.time())
        self.history = [archived] + self.history
        if len(self.history) > self.history_cap:
            self._unhide(self.history[self.history_cap:])
            self.history = self.history[:self.history_cap]
        self.tasks = [t for t in self.tasks if t.id != task_id]
        return True

    def remove(self, task_id: str) -> bool:
        """Drop a task without archiving it."""
        self.timers.cancel(task_id)
        task = self.get(task_id)
        if task is None:
            return False
        self._unhide([task])
        self.tasks = [t for t in self.tasks if t.id != task_id]
        return True

    def add_hidden_message_ids(self, ids: List[str]) -> None:
        self.hidden_message_ids.update(ids)

    def promote_to_conversation(self, task_id: str) -> bool:
        """Drop the task from the drawer and un-hide its messages."""
        task = self.get(task_id)
        if task is None:
            return False
        self.timers.cancel(task_id)
        self._unhide([task])
        self.tasks = [t for t in self.tasks if t.id != task_id]
        return True

    def clear_history(self) -> None:
        self._unhide(self.history)
        self.history = []

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _unhide(self, tasks: List[Task]) -> None:
        """Forget hidden message ids of tasks leaving history."""
        for t in tasks:
            for mid in t.message_ids or []:
                self.hidden_message_ids.discard(mid)

    def _auto_dismiss(self, task_id: str) -> None:
        task = self.get(task_id)
        # The id may have been dismissed, cancelled or re-run since scheduling
        if task is None or task.status != TaskStatus.DONE:
            return
        self.dismiss(task_id)
