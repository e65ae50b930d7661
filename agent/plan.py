"""
Plan lifecycle state machine.

Holds the single active plan the agent proposed through createPlan: either a
todo list awaiting approval or a clarifying-question flow. Every transition
checks the exact expected prior status and is a silent no-op otherwise, so a
stale caller can never clobber a newer plan.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from agent.turns import Turn, text_after_last_tool

logger = logging.getLogger(__name__)

BUILD_PROMPT = "Build it."
CONTINUE_PROMPT = "Continue building. Pick up where you left off."

DEFAULT_CUTOFF_THRESHOLD = 20


class PlanStatus(Enum):
    PENDING = "pending"
    CLARIFYING = "clarifying"
    ANSWERED = "answered"
    APPROVED = "approved"
    EXECUTING = "executing"
    DONE = "done"
    REJECTED = "rejected"


@dataclass
class PlanTodo:
    label: str
    category: Optional[str] = None


@dataclass
class PlanQuestionOption:
    label: str
    description: str = ""


@dataclass
class PlanQuestion:
    text: str
    placeholder: Optional[str] = None
    category: Optional[str] = None
    options: Optional[List[PlanQuestionOption]] = None


@dataclass
class PlanData:
    todos: List[PlanTodo] = field(default_factory=list)
    questions: Optional[List[PlanQuestion]] = None
    answers: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlanData":
        questions = data.get("questions")
        return cls(
            todos=[
                PlanTodo(label=t.get("label", ""), category=t.get("category"))
                for t in data.get("todos") or []
            ],
            questions=[
                PlanQuestion(
                    text=q.get("text", ""),
                    placeholder=q.get("placeholder"),
                    category=q.get("category"),
                    options=[
                        PlanQuestionOption(label=o.get("label", ""), description=o.get("description", ""))
                        for o in q["options"]
                    ] if q.get("options") else None,
                )
                for q in questions
            ] if questions else None,
            answers=list(data["answers"]) if data.get("answers") is not None else None,
        )


@dataclass
class ActivePlan:
    id: str
    data: PlanData
    status: PlanStatus
    checked_items: Set[int] = field(default_factory=set)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "checked_items": sorted(self.checked_items),
            "todos": [{"label": t.label, "category": t.category} for t in self.data.todos],
            "questions": [
                {
                    "text": q.text,
                    "placeholder": q.placeholder,
                    "category": q.category,
                    "options": [
                        {"label": o.label, "description": o.description} for o in q.options
                    ] if q.options else None,
                }
                for q in self.data.questions
            ] if self.data.questions else None,
            "answers": self.data.answers,
        }


class PlanStore:
    """Owner of the one active plan. Replacing the plan discards the old one's state."""

    def __init__(self):
        self.active_plan: Optional[ActivePlan] = None

    @property
    def status(self) -> Optional[PlanStatus]:
        return self.active_plan.status if self.active_plan else None

    def _transition(self, allowed: Set[PlanStatus], to: PlanStatus) -> bool:
        plan = self.active_plan
        if plan is None or plan.status not in allowed:
            return False
        logger.info(f"Plan {plan.id}: {plan.status.value} -> {to.value}")
        plan.status = to
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def set_plan(self, plan_id: str, data: PlanData) -> ActivePlan:
        status = PlanStatus.CLARIFYING if data.questions else PlanStatus.PENDING
        if self.active_plan is not None:
            logger.info(f"Plan {self.active_plan.id} superseded by {plan_id}")
        self.active_plan = ActivePlan(id=plan_id, data=data, status=status)
        return self.active_plan

    def approve_plan(self) -> bool:
        return self._transition({PlanStatus.PENDING}, PlanStatus.APPROVED)

    def reject_plan(self) -> bool:
        return self._transition({PlanStatus.PENDING, PlanStatus.CLARIFYING}, PlanStatus.REJECTED)

    def start_executing(self) -> bool:
        return self._transition({PlanStatus.APPROVED}, PlanStatus.EXECUTING)

    def resume_execution(self) -> bool:
        return self._transition({PlanStatus.DONE}, PlanStatus.EXECUTING)

    def complete_plan(self) -> bool:
        if not self._transition({PlanStatus.EXECUTING}, PlanStatus.DONE):
            return False
        plan = self.active_plan
        plan.checked_items = set(range(len(plan.data.todos)))
        return True

    def answer_questions(self, answers: List[str]) -> bool:
        plan = self.active_plan
        if plan is None or plan.status != PlanStatus.CLARIFYING:
            return False
        plan.data = replace(plan.data, answers=list(answers))
        plan.status = PlanStatus.ANSWERED
        return True

    def clear_plan(self) -> None:
        self.active_plan = None

    # ------------------------------------------------------------------
    # Todo editing (only while the plan awaits approval)
    # ------------------------------------------------------------------

    def _editable(self) -> Optional[ActivePlan]:
        plan = self.active_plan
        if plan is None or plan.status != PlanStatus.PENDING:
            return None
        return plan

    def toggle_todo(self, index: int) -> bool:
        plan = self._editable()
        if plan is None or not 0 <= index < len(plan.data.todos):
            return False
        if index in plan.checked_items:
            plan.checked_items.discard(index)
        else:
            plan.checked_items.add(index)
        return True

    def update_todo(self, index: int, label: str) -> bool:
        plan = self._editable()
        if plan is None or not 0 <= index < len(plan.data.todos):
            return False
        todos = list(plan.data.todos)
        todos[index] = replace(todos[index], label=label)
        plan.data = replace(plan.data, todos=todos)
        return True

    def add_todo(self, label: str, category: Optional[str] = None) -> bool:
        plan = self._editable()
        if plan is None:
            return False
        plan.data = replace(plan.data, todos=list(plan.data.todos) + [PlanTodo(label=label, category=category)])
        return True

    def remove_todo(self, index: int) -> bool:
        plan = self._editable()
        if plan is None or not 0 <= index < len(plan.data.todos):
            return False
        todos = list(plan.data.todos)
        del todos[index]
        # Shift checked indices past the removed row
        checked = set()
        for i in plan.checked_items:
            if i < index:
                checked.add(i)
            elif i > index:
                checked.add(i - 1)
        plan.data = replace(plan.data, todos=todos)
        plan.checked_items = checked
        return True

    def reorder_todos(self, from_index: int, to_index: int) -> bool:
        plan = self._editable()
        if plan is None:
            return False
        n = len(plan.data.todos)
        if not (0 <= from_index < n and 0 <= to_index < n):
            return False
        todos = list(plan.data.todos)
        item = todos.pop(from_index)
        todos.insert(to_index, item)
        plan.data = replace(plan.data, todos=todos)
        return True


# ------------------------------------------------------------------
# Follow-up turns
# ------------------------------------------------------------------

def is_cut_off(turn: Optional[Turn], threshold: int = DEFAULT_CUTOFF_THRESHOLD) -> bool:
    """True when the turn called tools and then stopped with almost no closing text.

    Best-effort: a model that hit its step or token limit mid-build usually
    ends right after a tool call instead of summarising what it did.
    """
    if turn is None:
        return False
    trailing = text_after_last_tool(turn)
    if trailing is None:
        return False
    return len(trailing.strip()) < threshold


def format_todo_list(todos: List[PlanTodo]) -> str:
    lines = []
    for i, t in enumerate(todos):
        prefix = f"{t.category}: " if t.category else ""
        lines.append(f"{i + 1}. {prefix}{t.label}")
    return "\n".join(lines)


def format_answers(questions: List[PlanQuestion], answers: List[str]) -> str:
    """User turn that hands the clarifying answers back to the agent."""
    lines = ["Here are my answers to your questions:", ""]
    for i, q in enumerate(questions):
        answer = answers[i].strip() if i < len(answers) and answers[i] else ""
        lines.append(f"Q{i + 1}: {q.text}")
        lines.append(f"A{i + 1}: {answer or '(no preference)'}")
        lines.append("")
    lines.append("Based on these answers, propose a concrete plan.")
    return "\n".join(lines)
