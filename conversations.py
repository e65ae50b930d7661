"""
Conversation persistence for Studio Agent.
Stores every conversation thread in one JSON document so users can close the
editor and resume where they left off, with multiple conversations per project.
"""

import json
import logging
import os
import time
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "conversations.json"

STORE_VERSION = 1


@dataclass
class ToolCallRecord:
    """A tool call as stored with an assistant message."""
    tool_name: str
    args: Dict[str, Any] = field(default_factory=dict)
    result: Any = None
    tool_call_id: Optional[str] = None


@dataclass
class PersistedMessage:
    """One stored turn of a conversation."""
    id: str
    role: str  # "user" | "assistant"
    text_content: str = ""
    timestamp: float = 0.0
    tool_calls: Optional[List[ToolCallRecord]] = None
    has_image: Optional[bool] = None


@dataclass
class Conversation:
    """A persisted conversation thread."""
    id: str
    title: str = "New Chat"
    created_at: float = 0.0
    updated_at: float = 0.0
    messages: List[PersistedMessage] = field(default_factory=list)
    summary: Optional[str] = None
    context: Optional[Dict[str, Any]] = None  # {"mode": "default" | "sketch" | "voice"}

    @property
    def mode(self) -> Optional[str]:
        return (self.context or {}).get("mode")


def now_ts() -> float:
    return time.time()


def message_from_dict(data: Dict[str, Any]) -> PersistedMessage:
    tool_calls = data.get("tool_calls")
    return PersistedMessage(
        id=data.get("id", ""),
        role=data.get("role", "user"),
        text_content=data.get("text_content", ""),
        timestamp=data.get("timestamp", 0.0),
        tool_calls=[
            ToolCallRecord(
                tool_name=tc.get("tool_name", ""),
                args=tc.get("args") or {},
                result=tc.get("result"),
                tool_call_id=tc.get("tool_call_id"),
            )
            for tc in tool_calls
        ] if tool_calls else None,
        has_image=data.get("has_image"),
    )


def conversation_from_dict(data: Dict[str, Any]) -> Conversation:
    return Conversation(
        id=data.get("id", ""),
        title=data.get("title", "New Chat"),
        created_at=data.get("created_at", 0.0),
        updated_at=data.get("updated_at", 0.0),
        messages=[message_from_dict(m) for m in data.get("messages", [])],
        summary=data.get("summary"),
        context=data.get("context"),
    )


class ConversationStore:
    """
    Durable key-value storage for conversations.

    File layout:  {base_dir}/conversations.json
    Reads are synchronous; writes are debounced through the scheduler so a
    burst of mutations collapses into one write (last write wins).
    """

    def __init__(
        self,
        base_dir: str,
        scheduler=None,
        debounce_ms: int = 500,
        filename: str = DEFAULT_FILENAME,
    ):
        self.base_dir = base_dir
        os.makedirs(self.base_dir, exist_ok=True)
        self.path = os.path.join(self.base_dir, filename)
        self.scheduler = scheduler
        self.debounce_ms = debounce_ms
        self._pending = None
        self._pending_getter: Optional[Callable[[], Dict[str, Conversation]]] = None

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def load(self) -> Dict[str, Conversation]:
        """Load all conversations keyed by id. Unreadable files yield {}."""
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            raw = data.get("conversations", {}) if isinstance(data, dict) else {}
            conversations = {}
            for cid, conv in raw.items():
                conversations[cid] = conversation_from_dict(conv)
            return conversations
        except Exception as e:
            logger.warning(f"Failed to read conversations {self.path}: {e}")
            return {}

    def save_later(self, get_data: Callable[[], Dict[str, Conversation]]) -> None:
        """Debounced save. Rapid calls collapse into a single write of the latest data."""
        if self.scheduler is None:
            self.save_now(get_data())
            return
        self.cancel_save()
        self._pending_getter = get_data
        self._pending = self.scheduler.call_later(self.debounce_ms / 1000.0, self._flush_pending)

    def save_now(self, conversations: Dict[str, Conversation]) -> bool:
        """Write immediately via a temp file + os.replace. Returns False on failure."""
        data = {
            "version": STORE_VERSION,
            "conversations": {cid: asdict(conv) for cid, conv in conversations.items()},
        }
        tmp_path = self.path + ".tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
            logger.debug(f"Conversations saved: {self.path}")
            return True
        except Exception as e:
            logger.error(f"Failed to save conversations {self.path}: {e}")
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            return False

    def cancel_save(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
        self._pending = None
        self._pending_getter = None

    def flush(self) -> None:
        """Write any pending debounced save right away."""
        if self._pending_getter is None:
            return
        getter = self._pending_getter
        self.cancel_save()
        self.save_now(getter())

    @property
    def has_pending_save(self) -> bool:
        return self._pending_getter is not None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _flush_pending(self) -> None:
        getter = self._pending_getter
        self._pending = None
        self._pending_getter = None
        if getter is not None:
            self.save_now(getter())
