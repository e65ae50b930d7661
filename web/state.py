"""
Shared mutable state for the web server.

The one Orchestrator instance lives here; route modules read it through
get_orchestrator(). Tests may assign web.state._orchestrator directly.
"""

import logging
from typing import Optional

from agent.orchestrator import Orchestrator, make_bedrock_summarizer
from agent.session import BedrockChatBackend
from agent.timers import AsyncioScheduler
from config import app_config
from conversations import ConversationStore

logger = logging.getLogger(__name__)

# ============================================================
# Globals
# ============================================================

_data_dir: str = app_config.data_dir
_orchestrator: Optional[Orchestrator] = None

_MAX_IMAGE_ATTACHMENTS = 3
_MAX_IMAGE_BYTES = 2 * 1024 * 1024  # 2 MB per image (base64-decoded)
_ALLOWED_IMAGE_MEDIA_TYPES = {
    "image/png",
    "image/jpeg",
    "image/webp",
    "image/gif",
}


def create_orchestrator(data_dir: Optional[str] = None) -> Orchestrator:
    """Build the production orchestrator: Bedrock backend, JSON store, asyncio timers."""
    from bedrock_service import BedrockService

    scheduler = AsyncioScheduler()
    store = ConversationStore(
        data_dir or _data_dir,
        scheduler=scheduler,
        debounce_ms=app_config.persist_debounce_ms,
    )
    service = BedrockService()
    orchestrator = Orchestrator(
        BedrockChatBackend(service),
        store,
        scheduler,
        summarizer=make_bedrock_summarizer(service),
    )
    orchestrator.load()
    logger.info(f"Orchestrator ready (data dir: {store.base_dir})")
    return orchestrator


def get_orchestrator() -> Orchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = create_orchestrator()
    return _orchestrator
