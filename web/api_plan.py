"""
Plan lifecycle REST API endpoints.

Transitions that do not apply to the current plan status answer
{"ok": false} with the unchanged plan; callers inspect the status.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from web.api_tasks import _json_body
from web.state import get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


def _plan_response(ok: bool = True):
    orch = get_orchestrator()
    plan = orch.plans.active_plan
    return {
        "ok": ok,
        "plan": plan.to_dict() if plan else None,
        "conversation_id": orch.executor.conversation_id,
    }


def _index(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@router.get("/api/plan")
async def get_plan():
    return _plan_response()


@router.post("/api/plan/approve")
async def approve_plan():
    return _plan_response(get_orchestrator().approve_plan())


@router.post("/api/plan/reject")
async def reject_plan():
    return _plan_response(get_orchestrator().reject_plan())


@router.post("/api/plan/dismiss")
async def dismiss_plan():
    get_orchestrator().dismiss_plan()
    return _plan_response()


@router.post("/api/plan/resume")
async def resume_plan():
    return _plan_response(get_orchestrator().resume_plan())


@router.post("/api/plan/answers")
async def submit_answers(request: Request):
    body = await _json_body(request)
    answers = body.get("answers")
    if not isinstance(answers, list):
        return JSONResponse({"ok": False, "error": "answers must be a list"}, status_code=400)
    return _plan_response(get_orchestrator().submit_plan_answers([str(a or "") for a in answers]))


# ------------------------------------------------------------------
# Todo edits
# ------------------------------------------------------------------

@router.post("/api/plan/todos")
async def add_todo(request: Request):
    body = await _json_body(request)
    label = str(body.get("label", "") or "").strip()
    if not label:
        return JSONResponse({"ok": False, "error": "label required"}, status_code=400)
    return _plan_response(get_orchestrator().plans.add_todo(label, body.get("category")))


@router.patch("/api/plan/todos/{index}")
async def update_todo(index: int, request: Request):
    body = await _json_body(request)
    label = str(body.get("label", "") or "").strip()
    if not label:
        return JSONResponse({"ok": False, "error": "label required"}, status_code=400)
    return _plan_response(get_orchestrator().plans.update_todo(index, label))


@router.delete("/api/plan/todos/{index}")
async def remove_todo(index: int):
    return _plan_response(get_orchestrator().plans.remove_todo(index))


@router.post("/api/plan/todos/{index}/toggle")
async def toggle_todo(index: int):
    return _plan_response(get_orchestrator().plans.toggle_todo(index))


@router.post("/api/plan/todos/reorder")
async def reorder_todos(request: Request):
    body = await _json_body(request)
    from_index, to_index = _index(body.get("from")), _index(body.get("to"))
    if from_index is None or to_index is None:
        return JSONResponse({"ok": False, "error": "from and to must be integers"}, status_code=400)
    return _plan_response(get_orchestrator().plans.reorder_todos(from_index, to_index))
