"""
Tests for the background task runner: classification, promotion and failure paths.
"""

import asyncio

from agent.classify import TASK
from agent.coordinator import BACKGROUND_CONVERSATION_ID
from agent.plan import PlanStatus
from agent.runner import FAILED_MESSAGE, PROMOTED
from agent.session import STREAMING
from agent.tasks import CANCELLED_MESSAGE, TaskStatus
from agent.turns import tool_parts
from conftest import end, step, text, tool_call


def _run(orchestrator, scheduler, *commands):
    async def go():
        ids = [orchestrator.enqueue_task(c) for c in commands]
        await scheduler.settle()
        return ids

    return asyncio.run(go())


def test_quick_command_completes_as_task(orchestrator, backend, scheduler):
    backend.add(
        step(tool_call("addObject", "t1", {"name": "Cube", "primitive": "box"}), end("tool_use")),
        step(text("Added a cube."), end()),
    )
    conversations_before = len(orchestrator.coordinator.conversations)

    [task_id] = _run(orchestrator, scheduler, "add a cube")

    task = orchestrator.tasks.get(task_id)
    assert task.status == TaskStatus.DONE
    assert task.classification == TASK
    assert task.summary == "Added a cube."
    assert [tc.tool_name for tc in task.tool_calls] == ["addObject"]
    assert set(task.message_ids) <= orchestrator.tasks.hidden_message_ids
    assert len(task.message_ids) == 2
    assert all(call["background"] for call in backend.calls)
    assert len(orchestrator.coordinator.conversations) == conversations_before
    assert not orchestrator.runner.is_running

    scheduler.advance(4.0)
    assert orchestrator.tasks.get(task_id) is None
    assert orchestrator.tasks.history[0].id == task_id


def test_tasks_run_one_after_another_in_isolation(orchestrator, backend, scheduler):
    backend.add(step(text("First."), end()), step(text("Second."), end()))

    first, second = _run(orchestrator, scheduler, "one", "two")

    assert orchestrator.tasks.get(first).summary == "First."
    assert orchestrator.tasks.get(second).summary == "Second."
    # Each command starts from an empty scratch session
    assert len(backend.calls[1]["messages"]) == 1


def test_marker_promotes_to_conversation(orchestrator, backend, scheduler):
    backend.add(step(text("Let's talk"), text(" more [OPEN_ASSISTANT]"), end()))

    [task_id] = _run(orchestrator, scheduler, "explain the lighting setup")

    runner = orchestrator.runner
    conv_id = runner.promoted_conversation_id
    conv = orchestrator.coordinator.get(conv_id)
    assert runner.guard == PROMOTED
    assert conv.title == "explain the lighting setup"
    assert [m.role for m in conv.messages] == ["user", "assistant"]
    assert conv.messages[0].text_content == "explain the lighting setup"
    assert conv.messages[1].text_content == "Let's talk more"
    assert orchestrator.coordinator.active_conversation_id == conv_id
    assert orchestrator.tasks.get(task_id) is None
    assert orchestrator.tasks.history[0].id == task_id


def test_long_question_promotes_after_completion(orchestrator, backend, scheduler):
    question = "Would you like the lamp to cast warm or cool light over the whole table?"
    backend.add(step(text(question), end()))

    _run(orchestrator, scheduler, "add a lamp")

    conv = orchestrator.coordinator.get(orchestrator.runner.promoted_conversation_id)
    assert conv.messages[-1].text_content == question


def test_create_plan_promotes_and_targets_the_new_conversation(orchestrator, backend, scheduler):
    backend.add(step(
        text("Here's a plan."),
        tool_call("createPlan", "plan-1", {"todos": [{"label": "Floor"}, {"label": "Walls"}]}),
        end("tool_use"),
    ))

    _run(orchestrator, scheduler, "add a house")

    conv_id = orchestrator.runner.promoted_conversation_id
    assert conv_id is not None and conv_id != BACKGROUND_CONVERSATION_ID
    assert orchestrator.plans.active_plan.id == "plan-1"
    assert orchestrator.plans.status == PlanStatus.PENDING
    assert orchestrator.executor.conversation_id == conv_id

    reply = orchestrator.coordinator.get(conv_id).messages[-1]
    assert reply.text_content == "Here's a plan."
    assert [tc.tool_name for tc in reply.tool_calls] == ["createPlan"]
    assert reply.tool_calls[0].result == {"status": "plan_created", "todoCount": 2}


def test_failure_marks_task_error(orchestrator, backend, scheduler):
    backend.add(RuntimeError("throttled"))

    [task_id] = _run(orchestrator, scheduler, "add a cube")

    task = orchestrator.tasks.get(task_id)
    assert task.status == TaskStatus.ERROR
    assert task.error == FAILED_MESSAGE
    assert orchestrator.runner.running_task_id is None


def test_queue_continues_after_failure(orchestrator, backend, scheduler):
    backend.add(RuntimeError("throttled"), step(text("Added."), end()))

    first, second = _run(orchestrator, scheduler, "one", "two")

    assert orchestrator.tasks.get(first).status == TaskStatus.ERROR
    assert orchestrator.tasks.get(second).status == TaskStatus.DONE


def test_cancel_while_streaming_keeps_cancelled_state(orchestrator, backend, scheduler):
    ids = []

    async def cancel():
        orchestrator.cancel_task(ids[0])

    backend.add(step(text("Working"), cancel, text(" on it."), end()))

    async def go():
        ids.append(orchestrator.enqueue_task("add a cube"))
        await scheduler.settle()

    asyncio.run(go())

    task = orchestrator.tasks.get(ids[0])
    assert task.status == TaskStatus.ERROR
    assert task.error == CANCELLED_MESSAGE
    assert task.summary is None


def test_waits_for_busy_foreground_session(orchestrator, scheduler):
    conv_id = orchestrator.coordinator.active_conversation_id
    session = orchestrator.session_for(conv_id)

    async def go():
        session.status = STREAMING
        task_id = orchestrator.enqueue_task("add a cube")
        assert orchestrator.tasks.get(task_id).status == TaskStatus.PENDING

        session.status = "ready"
        assert orchestrator.runner.kick() == task_id
        await scheduler.settle()
        return task_id

    task_id = asyncio.run(go())
    assert orchestrator.tasks.get(task_id).status == TaskStatus.DONE


def test_opening_promoted_conversation_mid_stream_still_gets_the_plan(orchestrator, backend, scheduler):
    runner = orchestrator.runner

    async def open_conversation():
        orchestrator.session_for(runner.promoted_conversation_id)

    backend.add(step(
        text("Here's a plan."),
        tool_call("createPlan", "plan-1", {"todos": [{"label": "Floor"}]}),
        open_conversation,
        end("tool_use"),
    ))

    _run(orchestrator, scheduler, "add a house")

    conv_id = runner.promoted_conversation_id
    persisted = orchestrator.coordinator.get(conv_id).messages[-1]
    session = orchestrator.sessions[conv_id]
    reply = session.messages[-1]
    assert [tc.tool_name for tc in persisted.tool_calls] == ["createPlan"]
    assert reply.role == "assistant"
    assert [p.tool_name for p in tool_parts(reply)] == ["createPlan"]

    # The build turn carries the plan round trip in its history
    backend.add(step(text("Built the floor and finished every item on the list."), end()))

    async def build():
        assert orchestrator.approve_plan()
        await scheduler.settle()

    asyncio.run(build())
    build_messages = backend.calls[-1]["messages"]
    assert any(
        block.get("type") == "tool_use" and block.get("name") == "createPlan"
        for m in build_messages if isinstance(m["content"], list)
        for block in m["content"]
    )


def test_plan_from_cancelled_task_is_ignored(orchestrator, backend, scheduler):
    ids = []

    async def cancel():
        orchestrator.cancel_task(ids[0])

    backend.add(step(
        text("Working"),
        cancel,
        tool_call("createPlan", "plan-1", {"todos": [{"label": "Floor"}]}),
        end("tool_use"),
    ))

    async def go():
        ids.append(orchestrator.enqueue_task("add a house"))
        await scheduler.settle()

    asyncio.run(go())

    assert orchestrator.plans.active_plan is None
    assert orchestrator.runner.promoted_conversation_id is None
    assert orchestrator.tasks.get(ids[0]).error == CANCELLED_MESSAGE
    assert not orchestrator.approve_plan()
