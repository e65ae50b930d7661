"""
Conversation management REST API endpoints.
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from web.api_tasks import _json_body
from web.state import get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


def _not_found(conversation_id: str) -> JSONResponse:
    return JSONResponse({"ok": False, "error": f"Conversation not found: {conversation_id}"}, status_code=404)


def _summary(conv) -> dict:
    coordinator = get_orchestrator().coordinator
    return {
        "id": conv.id,
        "title": conv.title,
        "created_at": conv.created_at,
        "updated_at": conv.updated_at,
        "message_count": len(conv.messages),
        "summary": conv.summary,
        "mode": conv.mode,
        "streaming": coordinator.is_streaming(conv.id),
        "active": conv.id == coordinator.active_conversation_id,
    }


@router.get("/api/conversations")
async def list_conversations():
    coordinator = get_orchestrator().coordinator
    return {
        "active_conversation_id": coordinator.active_conversation_id,
        "conversations": [_summary(c) for c in coordinator.list_conversations()],
    }


@router.post("/api/conversations")
async def create_conversation(request: Request):
    body = await _json_body(request)
    title = str(body.get("title", "") or "").strip() or None
    mode = body.get("mode") or None
    if mode not in (None, "default", "sketch", "voice"):
        return JSONResponse({"ok": False, "error": f"Unknown mode: {mode}"}, status_code=400)
    coordinator = get_orchestrator().coordinator
    conversation_id = coordinator.create_conversation(title=title, mode=mode)
    return {"ok": True, "conversation": _summary(coordinator.get(conversation_id))}


@router.get("/api/conversations/{conversation_id}")
async def get_conversation(conversation_id: str):
    orch = get_orchestrator()
    conv = orch.coordinator.get(conversation_id)
    if conv is None:
        return _not_found(conversation_id)
    data = _summary(conv)
    data["messages"] = [asdict(m) for m in conv.messages]
    data["draft"] = orch.coordinator.get_draft(conversation_id)
    return data


@router.post("/api/conversations/{conversation_id}/switch")
async def switch_conversation(conversation_id: str, request: Request):
    body = await _json_body(request)
    coordinator = get_orchestrator().coordinator
    if coordinator.get(conversation_id) is None:
        return _not_found(conversation_id)
    draft = coordinator.switch_conversation(conversation_id, body.get("draft"))
    return {"ok": True, "draft": draft}


@router.post("/api/conversations/{conversation_id}/rename")
async def rename_conversation(conversation_id: str, request: Request):
    body = await _json_body(request)
    title = str(body.get("title", "") or "")
    if not get_orchestrator().coordinator.rename_conversation(conversation_id, title):
        return _not_found(conversation_id)
    return {"ok": True}


@router.post("/api/conversations/{conversation_id}/clear")
async def clear_conversation(conversation_id: str):
    orch = get_orchestrator()
    session = orch.sessions.get(conversation_id)
    if orch.is_conversation_busy(conversation_id):
        return JSONResponse({"ok": False, "error": "Conversation is busy"}, status_code=409)
    if not orch.coordinator.clear_messages(conversation_id):
        return _not_found(conversation_id)
    if session is not None:
        session.clear()
    return {"ok": True}


@router.delete("/api/conversations/{conversation_id}")
async def delete_conversation(conversation_id: str):
    orch = get_orchestrator()
    if not orch.coordinator.delete_conversation(conversation_id):
        return _not_found(conversation_id)
    session = orch.sessions.get(conversation_id)
    if session is not None and not session.is_busy:
        orch.sessions.pop(conversation_id, None)
    return {"ok": True, "active_conversation_id": orch.coordinator.active_conversation_id}


# ------------------------------------------------------------------
# Surface bindings
# ------------------------------------------------------------------

@router.get("/api/surfaces/{surface}")
async def get_surface(surface: str):
    return {"surface": surface, "conversation_id": get_orchestrator().coordinator.get_conversation_for_surface(surface)}


@router.post("/api/surfaces/{surface}")
async def bind_surface(surface: str, request: Request):
    body = await _json_body(request)
    conversation_id = str(body.get("conversation_id", "") or "")
    if not get_orchestrator().coordinator.bind_surface(surface, conversation_id):
        return _not_found(conversation_id)
    return {"ok": True}


@router.delete("/api/surfaces/{surface}")
async def unbind_surface(surface: str):
    get_orchestrator().coordinator.unbind_surface(surface)
    return {"ok": True}
