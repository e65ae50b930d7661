"""
Studio Agent web server.
FastAPI + WebSocket bridge to the agent orchestrator.

Run:  python -m web [--port 8765] [--data-dir ~/.studio-agent]
"""

import logging

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI

from config import app_config
import web.state as _state
from web import api_conversations, api_plan, api_tasks, chat

logger = logging.getLogger(__name__)

# ============================================================
# FastAPI application
# ============================================================

app = FastAPI(title=app_config.title)


@app.on_event("shutdown")
async def _on_shutdown():
    """Cancel timers and write any debounced conversation save before exit."""
    if _state._orchestrator is None:
        return
    try:
        _state._orchestrator.shutdown()
        logger.info("Shutdown: conversations saved")
    except Exception as exc:
        logger.error(f"Shutdown: failed to save conversations: {exc}")


# ============================================================
# Include routers from submodules
# ============================================================

app.include_router(api_tasks.router)
app.include_router(api_plan.router)
app.include_router(api_conversations.router)
app.include_router(chat.router)
