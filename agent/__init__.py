"""
Agent package - orchestration layer between the scene editor and the model.

This package is split into logical modules:
- classify: task vs. conversation classification of finished turns
- brackets: [Context: ...] prefix stripping and conversation titles
- intent: input routing heuristics (agent commands, forced plans)
- timers: scheduler abstraction and keyed cancellable timers
- turns: turn/part model, persistence conversion, model wire format
- tasks: background task queue
- plan: plan lifecycle state machine
- prompts / context: system prompt and scene context serialization
- session: streaming chat session and chat backends
- coordinator: conversation list, streaming bookkeeping, drafts
- runner: background task driver
- executor: plan execution driver
- orchestrator: owner of all of the above

The orchestrator, session and drivers import the tools package, so they are
imported from their modules directly rather than re-exported here.
"""

from .events import AgentEvent
from .classify import TASK, CONVERSATION, classify_response, extract_task_summary, parse_response
from .brackets import strip_leading_brackets, derive_title
from .tasks import Task, TaskQueue, TaskStatus
from .plan import PlanStatus, PlanStore, PlanData, is_cut_off
from .turns import Turn, TextPart, FilePart, ToolPart

__all__ = [
    "AgentEvent",
    "TASK",
    "CONVERSATION",
    "classify_response",
    "extract_task_summary",
    "parse_response",
    "strip_leading_brackets",
    "derive_title",
    "Task",
    "TaskQueue",
    "TaskStatus",
    "PlanStatus",
    "PlanStore",
    "PlanData",
    "is_cut_off",
    "Turn",
    "TextPart",
    "FilePart",
    "ToolPart",
]
