"""
Tests for plan execution: approval, cut-off resumes, completion and clarifying answers.
"""

import asyncio

from agent.executor import PlanExecutor
from agent.plan import (
    BUILD_PROMPT, CONTINUE_PROMPT, PlanData, PlanQuestion, PlanStatus, PlanStore, PlanTodo,
)
from agent.turns import OUTPUT_AVAILABLE, TextPart, ToolPart, Turn, turn_text
from conftest import end, step, text, tool_call


def _cut_off_turn():
    return Turn(id="a1", role="assistant", parts=[
        ToolPart(tool_name="addObject", tool_call_id="t1", state=OUTPUT_AVAILABLE),
    ])


def _executor(max_auto_resumes=10):
    sent = []

    async def send(conversation_id, message):
        sent.append((conversation_id, message))

    plans = PlanStore()
    executor = PlanExecutor(plans, send, max_auto_resumes=max_auto_resumes)
    executor.conversation_id = "conv-1"
    return executor, plans, sent


def _executing(plans):
    plans.set_plan("plan-1", PlanData(todos=[PlanTodo("Floor"), PlanTodo("Walls")]))
    plans.approve_plan()
    plans.start_executing()


def test_approve_sends_build_prompt():
    executor, plans, sent = _executor()
    plans.set_plan("plan-1", PlanData(todos=[PlanTodo("Floor")]))

    assert asyncio.run(executor.approve())
    assert plans.status == PlanStatus.EXECUTING
    assert sent == [("conv-1", BUILD_PROMPT)]


def test_approve_twice_sends_once():
    executor, plans, sent = _executor()
    plans.set_plan("plan-1", PlanData(todos=[PlanTodo("Floor")]))
    asyncio.run(executor.approve())
    assert not asyncio.run(executor.approve())
    assert len(sent) == 1


def test_cut_off_turn_is_resumed():
    executor, plans, sent = _executor()
    _executing(plans)

    asyncio.run(executor.on_turn_finished("conv-1", _cut_off_turn()))
    assert sent == [("conv-1", CONTINUE_PROMPT)]
    assert executor.auto_resumes == 1
    assert plans.status == PlanStatus.EXECUTING


def test_clean_finish_completes_plan():
    executor, plans, sent = _executor()
    _executing(plans)
    turn = _cut_off_turn()
    turn.parts.append(TextPart(text="The floor and walls are in place."))

    asyncio.run(executor.on_turn_finished("conv-1", turn))
    assert sent == []
    assert plans.status == PlanStatus.DONE
    assert plans.active_plan.checked_items == {0, 1}


def test_other_conversations_are_ignored():
    executor, plans, sent = _executor()
    _executing(plans)
    asyncio.run(executor.on_turn_finished("conv-2", _cut_off_turn()))
    assert sent == []
    assert plans.status == PlanStatus.EXECUTING


def test_resume_limit_leaves_plan_executing():
    executor, plans, sent = _executor(max_auto_resumes=2)
    _executing(plans)

    for _ in range(3):
        asyncio.run(executor.on_turn_finished("conv-1", _cut_off_turn()))

    assert len(sent) == 2
    assert plans.status == PlanStatus.EXECUTING


def test_manual_resume_resets_the_counter():
    executor, plans, sent = _executor()
    _executing(plans)
    plans.complete_plan()
    executor.auto_resumes = 4

    assert asyncio.run(executor.resume())
    assert plans.status == PlanStatus.EXECUTING
    assert executor.auto_resumes == 0
    assert sent == [("conv-1", CONTINUE_PROMPT)]


def test_answers_clear_plan_and_go_back_to_the_agent():
    executor, plans, sent = _executor()
    plans.set_plan("plan-q", PlanData(questions=[PlanQuestion("Style?"), PlanQuestion("Size?")]))

    assert asyncio.run(executor.submit_answers(["Gothic", ""]))
    assert plans.active_plan is None
    [(conversation_id, message)] = sent
    assert conversation_id == "conv-1"
    assert "A1: Gothic" in message
    assert "A2: (no preference)" in message


def test_answers_need_a_clarifying_plan():
    executor, plans, sent = _executor()
    plans.set_plan("plan-1", PlanData(todos=[PlanTodo("Floor")]))
    assert not asyncio.run(executor.submit_answers(["x"]))
    assert sent == []


def test_dismiss_forgets_the_conversation():
    executor, plans, _ = _executor()
    plans.set_plan("plan-1", PlanData(todos=[PlanTodo("Floor")]))
    executor.dismiss()
    assert plans.active_plan is None
    assert executor.conversation_id is None


# ------------------------------------------------------------------
# Through the orchestrator
# ------------------------------------------------------------------

def test_plan_round_trip_in_a_conversation(orchestrator, backend, scheduler):
    conv_id = orchestrator.coordinator.active_conversation_id
    backend.add(
        # Proposal
        step(text("Here is my plan."), tool_call("createPlan", "plan-1", {"todos": [{"label": "Floor"}]}), end("tool_use")),
        # Build turn, cut off after a tool call
        step(tool_call("addObject", "t1", {"name": "Floor", "primitive": "plane"}), end("tool_use")),
        step(text("ok"), end()),
        # Resumed turn
        step(text("Everything is built and lit."), end()),
    )

    async def go():
        await orchestrator.send_message(conv_id, "Build a small house")
        assert orchestrator.plans.status == PlanStatus.PENDING
        assert orchestrator.executor.conversation_id == conv_id
        assert orchestrator.approve_plan()
        await scheduler.settle()

    asyncio.run(go())

    assert orchestrator.plans.status == PlanStatus.DONE
    assert orchestrator.executor.auto_resumes == 1
    session = orchestrator.sessions[conv_id]
    user_texts = [turn_text(t) for t in session.messages if t.role == "user"]
    assert user_texts == ["Build a small house", BUILD_PROMPT, CONTINUE_PROMPT]
    stored = [m.text_content for m in orchestrator.coordinator.get(conv_id).messages if m.role == "user"]
    assert stored == user_texts
