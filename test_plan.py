"""
Tests for the plan lifecycle state machine and follow-up helpers.
"""

from agent.plan import (
    PlanData, PlanQuestion, PlanStatus, PlanStore, PlanTodo,
    format_answers, format_todo_list, is_cut_off,
)
from agent.turns import OUTPUT_AVAILABLE, TextPart, ToolPart, Turn


def _todos(*labels):
    return PlanData(todos=[PlanTodo(label=label) for label in labels])


def _store(*labels):
    store = PlanStore()
    store.set_plan("plan-1", _todos(*(labels or ("Floor", "Walls", "Roof"))))
    return store


def test_new_plan_awaits_approval():
    store = _store()
    assert store.status == PlanStatus.PENDING
    assert store.active_plan.checked_items == set()


def test_questions_start_clarifying():
    store = PlanStore()
    store.set_plan("plan-q", PlanData(questions=[PlanQuestion(text="Which style?")]))
    assert store.status == PlanStatus.CLARIFYING


def test_happy_path_transitions():
    store = _store()
    assert store.approve_plan()
    assert store.status == PlanStatus.APPROVED
    assert store.start_executing()
    assert store.status == PlanStatus.EXECUTING
    assert store.complete_plan()
    assert store.status == PlanStatus.DONE
    assert store.active_plan.checked_items == {0, 1, 2}
    assert store.resume_execution()
    assert store.status == PlanStatus.EXECUTING


def test_approve_while_executing_is_noop():
    store = _store()
    store.approve_plan()
    store.start_executing()
    assert not store.approve_plan()
    assert store.status == PlanStatus.EXECUTING


def test_start_executing_twice():
    store = _store()
    store.approve_plan()
    assert store.start_executing()
    assert not store.start_executing()
    assert store.status == PlanStatus.EXECUTING


def test_reject_only_before_approval():
    store = _store()
    store.approve_plan()
    assert not store.reject_plan()

    store = _store()
    assert store.reject_plan()
    assert store.status == PlanStatus.REJECTED


def test_transitions_without_plan_are_noops():
    store = PlanStore()
    assert not store.approve_plan()
    assert not store.complete_plan()
    assert not store.answer_questions(["a"])
    assert store.status is None


def test_answer_questions():
    store = PlanStore()
    store.set_plan("plan-q", PlanData(questions=[PlanQuestion(text="Which style?")]))
    assert store.answer_questions(["Gothic"])
    assert store.status == PlanStatus.ANSWERED
    assert store.active_plan.data.answers == ["Gothic"]
    assert not store.answer_questions(["again"])


def test_new_plan_replaces_old_state():
    store = _store()
    store.toggle_todo(0)
    store.set_plan("plan-2", _todos("Only"))
    assert store.active_plan.id == "plan-2"
    assert store.active_plan.checked_items == set()


def test_remove_todo_reindexes_checked_items():
    store = _store("a", "b", "c", "d")
    for i in (0, 2, 3):
        store.toggle_todo(i)

    assert store.remove_todo(1)
    plan = store.active_plan
    assert [t.label for t in plan.data.todos] == ["a", "c", "d"]
    assert plan.checked_items == {0, 1, 2}


def test_todo_edits():
    store = _store("a", "b")
    assert store.update_todo(1, "B")
    assert store.add_todo("c", category="Lighting")
    assert store.reorder_todos(2, 0)
    assert [t.label for t in store.active_plan.data.todos] == ["c", "a", "B"]
    assert store.toggle_todo(0)
    assert store.toggle_todo(0)
    assert store.active_plan.checked_items == set()
    assert not store.update_todo(5, "x")
    assert not store.reorder_todos(0, 9)


def test_todo_edits_refused_after_approval():
    store = _store("a", "b")
    store.approve_plan()
    assert not store.add_todo("c")
    assert not store.remove_todo(0)
    assert not store.toggle_todo(0)
    assert len(store.active_plan.data.todos) == 2


def test_plan_data_from_dict():
    data = PlanData.from_dict({
        "todos": [{"label": "Floor", "category": "Structure"}],
        "questions": [{"text": "Style?", "options": [{"label": "Modern"}]}],
    })
    assert data.todos[0].category == "Structure"
    assert data.questions[0].options[0].label == "Modern"
    assert data.answers is None


# ------------------------------------------------------------------
# Follow-up helpers
# ------------------------------------------------------------------

def _build_turn(trailing):
    parts = [
        TextPart(text="Building now."),
        ToolPart(tool_name="addObject", tool_call_id="t1", state=OUTPUT_AVAILABLE),
    ]
    if trailing is not None:
        parts.append(TextPart(text=trailing))
    return Turn(id="a1", role="assistant", parts=parts)


def test_cut_off_when_turn_ends_on_tool_call():
    assert is_cut_off(_build_turn(None))
    assert is_cut_off(_build_turn("  ok  "))


def test_not_cut_off_with_closing_text():
    assert not is_cut_off(_build_turn("I added the floor and walls."))


def test_turn_without_tools_is_not_cut_off():
    assert not is_cut_off(Turn(id="a1", role="assistant", parts=[TextPart(text="")]))
    assert not is_cut_off(None)


def test_format_answers_marks_missing_answers():
    text = format_answers([PlanQuestion(text="Style?"), PlanQuestion(text="Size?")], ["Gothic"])
    assert "Q1: Style?" in text
    assert "A1: Gothic" in text
    assert "A2: (no preference)" in text


def test_format_todo_list():
    assert format_todo_list([PlanTodo("Floor", "Structure"), PlanTodo("Lamp")]) == "1. Structure: Floor\n2. Lamp"
