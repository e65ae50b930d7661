"""
Background task queue REST API endpoints.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from web.state import get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except Exception:
        body = {}
    return body if isinstance(body, dict) else {}


def _snapshot():
    orch = get_orchestrator()
    return {
        "tasks": [t.to_dict() for t in orch.tasks.tasks],
        "history": [t.to_dict() for t in orch.tasks.history],
        "is_running": orch.runner.is_running,
    }


@router.get("/api/tasks")
async def list_tasks():
    return _snapshot()


@router.post("/api/tasks")
async def enqueue_task(request: Request):
    body = await _json_body(request)
    command = str(body.get("command", "") or "").strip()
    if not command:
        return JSONResponse({"ok": False, "error": "command required"}, status_code=400)
    task_id = get_orchestrator().enqueue_task(command)
    return {"ok": True, "task_id": task_id}


@router.get("/api/tasks/{task_id}")
async def get_task(task_id: str):
    task = get_orchestrator().tasks.get(task_id)
    if task is None:
        return JSONResponse({"ok": False, "error": f"Task not found: {task_id}"}, status_code=404)
    return task.to_dict()


@router.post("/api/tasks/{task_id}/cancel")
async def cancel_task(task_id: str):
    orch = get_orchestrator()
    if orch.tasks.get(task_id) is None:
        return JSONResponse({"ok": False, "error": f"Task not found: {task_id}"}, status_code=404)
    return {"ok": orch.cancel_task(task_id)}


@router.post("/api/tasks/{task_id}/dismiss")
async def dismiss_task(task_id: str):
    orch = get_orchestrator()
    if not orch.dismiss_task(task_id):
        return JSONResponse({"ok": False, "error": f"Task not found: {task_id}"}, status_code=404)
    return {"ok": True}


@router.delete("/api/tasks/history")
async def clear_history():
    get_orchestrator().tasks.clear_history()
    return {"ok": True}


@router.delete("/api/tasks/{task_id}")
async def remove_task(task_id: str):
    if not get_orchestrator().remove_task(task_id):
        return JSONResponse({"ok": False, "error": f"Task not found: {task_id}"}, status_code=404)
    return {"ok": True}


@router.post("/api/tasks/{task_id}/open")
async def open_task(task_id: str):
    orch = get_orchestrator()
    task = orch.tasks.get(task_id)
    if task is None:
        return JSONResponse({"ok": False, "error": f"Task not found: {task_id}"}, status_code=404)
    conversation_id = orch.open_task(task_id)
    if conversation_id is None:
        return JSONResponse({"ok": False, "error": "Task has not finished"}, status_code=409)
    return {"ok": True, "conversation_id": conversation_id}
