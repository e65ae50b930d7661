"""
Chat endpoints and the event WebSocket.

POST /api/chat sends a foreground turn, POST /api/submit routes composer input
between the background queue and a conversation, and /ws streams session
events (with the affected turn) to the editor.
"""

import asyncio
import base64
import binascii
import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from agent.context import build_request_context
from agent.events import AgentEvent
from agent.intent import is_ai_intent
from agent.prompts import list_templates
from agent.session import SessionBusyError
from agent.turns import FilePart
from web.api_tasks import _json_body
from web.state import (
    _ALLOWED_IMAGE_MEDIA_TYPES, _MAX_IMAGE_ATTACHMENTS, _MAX_IMAGE_BYTES,
    get_orchestrator,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _normalize_user_images(raw: Any) -> List[FilePart]:
    """Validate image attachments ({media_type, data}) into file parts. Raises ValueError."""
    if not raw:
        return []
    if not isinstance(raw, list):
        raise ValueError("images must be a list")
    if len(raw) > _MAX_IMAGE_ATTACHMENTS:
        raise ValueError(f"At most {_MAX_IMAGE_ATTACHMENTS} images per message")
    parts = []
    for img in raw:
        if not isinstance(img, dict):
            raise ValueError("Invalid image attachment")
        media_type = str(img.get("media_type", "")).lower()
        data = str(img.get("data", ""))
        if media_type not in _ALLOWED_IMAGE_MEDIA_TYPES:
            raise ValueError(f"Unsupported image type: {media_type}")
        try:
            size = len(base64.b64decode(data, validate=True))
        except (binascii.Error, ValueError):
            raise ValueError("Image data must be base64")
        if size > _MAX_IMAGE_BYTES:
            raise ValueError("Image too large")
        parts.append(FilePart(media_type=media_type, data=data))
    return parts


@router.post("/api/chat")
async def chat(request: Request):
    body = await _json_body(request)
    text = str(body.get("text", "") or "").strip()
    if not text:
        return JSONResponse({"ok": False, "error": "text required"}, status_code=400)
    try:
        images = _normalize_user_images(body.get("images"))
    except ValueError as e:
        return JSONResponse({"ok": False, "error": str(e)}, status_code=400)

    orch = get_orchestrator()
    conversation_id = body.get("conversation_id") or orch.coordinator.active_conversation_id
    if conversation_id is None:
        conversation_id = orch.coordinator.create_conversation()

    request_body: Dict[str, Any] = {}
    if body.get("template"):
        request_body["template"] = body["template"]
    try:
        orch.start_message(conversation_id, text, parts=images, body=request_body)
    except KeyError:
        return JSONResponse({"ok": False, "error": f"Conversation not found: {conversation_id}"}, status_code=404)
    except SessionBusyError as e:
        return JSONResponse({"ok": False, "error": str(e)}, status_code=409)
    return JSONResponse({"ok": True, "conversation_id": conversation_id}, status_code=202)


@router.post("/api/submit")
async def submit(request: Request):
    body = await _json_body(request)
    text = str(body.get("text", "") or "")
    try:
        result = get_orchestrator().submit(text, expanded=bool(body.get("expanded")), surface=body.get("surface"))
    except ValueError as e:
        return JSONResponse({"ok": False, "error": str(e)}, status_code=400)
    except SessionBusyError as e:
        return JSONResponse({"ok": False, "error": str(e)}, status_code=409)
    result["ok"] = True
    return result


@router.get("/api/intent")
async def intent(q: str = ""):
    return {"query": q, "is_ai_intent": is_ai_intent(q)}


@router.get("/api/templates")
async def templates():
    return {"templates": list_templates()}


@router.get("/api/scene/context")
async def scene_context():
    return build_request_context(get_orchestrator().scene)


@router.get("/api/sessions/{conversation_id}/messages")
async def session_messages(conversation_id: str):
    orch = get_orchestrator()
    if conversation_id not in orch.sessions and orch.coordinator.get(conversation_id) is None:
        return JSONResponse({"ok": False, "error": f"Conversation not found: {conversation_id}"}, status_code=404)
    session = orch.session_for(conversation_id)
    return {
        "status": session.status,
        "error": session.error,
        "messages": [asdict(t) for t in session.messages],
    }


# ============================================================
# WebSocket
# ============================================================

def _event_payload(event: AgentEvent) -> Dict[str, Any]:
    payload = event.to_dict()
    data = event.data or {}
    if event.type in ("update", "finish"):
        session = get_orchestrator().sessions.get(data.get("session_id"))
        if session is not None:
            turn = next((t for t in session.messages if t.id == data.get("message_id")), None)
            if turn is not None:
                payload["turn"] = asdict(turn)
    return payload


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    orch = get_orchestrator()
    events: "asyncio.Queue[Optional[AgentEvent]]" = asyncio.Queue()

    def _listener(event: AgentEvent) -> None:
        events.put_nowait(event)

    async def _sender():
        while True:
            event = await events.get()
            if event is None:
                return
            await ws.send_json(_event_payload(event))

    orch.add_listener(_listener)
    sender = asyncio.ensure_future(_sender())
    try:
        while True:
            msg = await ws.receive_json()
            msg_type = msg.get("type") if isinstance(msg, dict) else None
            if msg_type == "ping":
                await ws.send_json({"type": "pong"})
            elif msg_type == "submit":
                try:
                    result = orch.submit(
                        str(msg.get("text", "") or ""),
                        expanded=bool(msg.get("expanded")),
                        surface=msg.get("surface"),
                    )
                    await ws.send_json({"type": "submitted", "data": result})
                except (ValueError, SessionBusyError) as e:
                    await ws.send_json({"type": "error", "content": str(e)})
            else:
                await ws.send_json({"type": "error", "content": f"Unknown message type: {msg_type}"})
    except WebSocketDisconnect:
        logger.info("WebSocket disconnected")
    finally:
        orch.remove_listener(_listener)
        events.put_nowait(None)
        await asyncio.gather(sender, return_exceptions=True)
