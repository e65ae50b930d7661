"""
Conversation coordinator.

Owns the conversation list, the active conversation, the set of conversations
with a turn in flight, composer drafts and UI surface bindings. Every mutation
is persisted through the ConversationStore's debounced save.
"""

import logging
import uuid
from typing import Awaitable, Callable, Dict, List, Optional, Set

from agent.brackets import DEFAULT_TITLE, derive_title
from agent.turns import persisted_to_turns
from conversations import Conversation, ConversationStore, PersistedMessage, now_ts

logger = logging.getLogger(__name__)

# Scratch thread of the background task queue; never listed or persisted
BACKGROUND_CONVERSATION_ID = "__background-tasks__"

Summarizer = Callable[[Conversation], Awaitable[str]]


class ConversationCoordinator:
    def __init__(
        self,
        store: ConversationStore,
        scheduler=None,
        summarizer: Optional[Summarizer] = None,
        title_max_chars: int = 40,
        summary_min_messages: int = 3,
    ):
        self.store = store
        self.scheduler = scheduler
        self.summarizer = summarizer
        self.title_max_chars = title_max_chars
        self.summary_min_messages = summary_min_messages

        self.conversations: Dict[str, Conversation] = {}
        self.active_conversation_id: Optional[str] = None
        self.streaming_conversation_ids: Set[str] = set()
        self.drafts: Dict[str, str] = {}
        self.surface_bindings: Dict[str, str] = {}
        self._summaries_in_flight: Set[str] = set()
        self._restored: Set[str] = set()

    # ------------------------------------------------------------------
    # Loading / persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Load stored conversations, migrating legacy titles and seeding an empty store."""
        loaded = self.store.load()
        self.conversations = {cid: c for cid, c in loaded.items() if cid != BACKGROUND_CONVERSATION_ID}

        migrated = 0
        for conv in self.conversations.values():
            # Older builds saved titles with the bracketed viewport context still attached
            if conv.title.startswith("["):
                conv.title = derive_title(conv.title, self.title_max_chars)
                migrated += 1
        if migrated:
            logger.info(f"Migrated {migrated} conversation title(s)")
            self._persist()

        if not self.conversations:
            self.create_conversation()
        else:
            self.active_conversation_id = self._most_recent_id()
        logger.info(f"Loaded {len(self.conversations)} conversation(s)")

    def _persist(self) -> None:
        self.store.save_later(lambda: self.conversations)

    def _most_recent_id(self) -> Optional[str]:
        if not self.conversations:
            return None
        # max() keeps the first of equal keys, i.e. insertion order breaks ties
        return max(self.conversations.values(), key=lambda c: c.updated_at).id

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def get(self, conversation_id: str) -> Optional[Conversation]:
        return self.conversations.get(conversation_id)

    def get_active_conversation(self) -> Optional[Conversation]:
        if self.active_conversation_id is None:
            return None
        return self.conversations.get(self.active_conversation_id)

    def list_conversations(self) -> List[Conversation]:
        """Newest first."""
        return sorted(self.conversations.values(), key=lambda c: c.updated_at, reverse=True)

    def create_conversation(self, title: Optional[str] = None, mode: Optional[str] = None) -> str:
        ts = now_ts()
        conv = Conversation(
            id=f"conv-{uuid.uuid4().hex[:12]}",
            title=title or DEFAULT_TITLE,
            created_at=ts,
            updated_at=ts,
            context={"mode": mode} if mode else None,
        )
        self.conversations[conv.id] = conv
        self.active_conversation_id = conv.id
        self._persist()
        logger.info(f"Conversation created: {conv.id}")
        return conv.id

    def switch_conversation(self, conversation_id: str, draft: Optional[str] = None) -> Optional[str]:
        """Make a conversation active. Stores the outgoing draft, returns the incoming one."""
        if conversation_id not in self.conversations:
            return None
        if self.active_conversation_id and draft is not None:
            self.save_draft(self.active_conversation_id, draft)
        self.active_conversation_id = conversation_id
        return self.drafts.get(conversation_id, "")

    def rename_conversation(self, conversation_id: str, title: str) -> bool:
        conv = self.conversations.get(conversation_id)
        if conv is None:
            return False
        conv.title = title.strip() or DEFAULT_TITLE
        conv.updated_at = now_ts()
        self._persist()
        return True

    def set_mode(self, conversation_id: str, mode: Optional[str]) -> bool:
        conv = self.conversations.get(conversation_id)
        if conv is None:
            return False
        conv.context = {"mode": mode} if mode else None
        self._persist()
        return True

    def delete_conversation(self, conversation_id: str) -> bool:
        if self.conversations.pop(conversation_id, None) is None:
            return False
        self.streaming_conversation_ids.discard(conversation_id)
        self.drafts.pop(conversation_id, None)
        self._restored.discard(conversation_id)
        self.surface_bindings = {s: cid for s, cid in self.surface_bindings.items() if cid != conversation_id}
        if self.active_conversation_id == conversation_id:
            self.active_conversation_id = self._most_recent_id()
        self._persist()
        logger.info(f"Conversation deleted: {conversation_id}")
        return True

    def clear_messages(self, conversation_id: str) -> bool:
        conv = self.conversations.get(conversation_id)
        if conv is None:
            return False
        conv.messages = []
        conv.summary = None
        conv.updated_at = now_ts()
        self._restored.discard(conversation_id)
        self._persist()
        return True

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def add_message(self, conversation_id: str, message: PersistedMessage) -> bool:
        conv = self.conversations.get(conversation_id)
        if conv is None:
            return False
        is_first_user = message.role == "user" and not any(m.role == "user" for m in conv.messages)
        conv.messages.append(message)
        conv.updated_at = now_ts()
        if is_first_user and conv.title == DEFAULT_TITLE:
            conv.title = derive_title(message.text_content, self.title_max_chars)
        self._persist()
        return True

    def replace_message(self, conversation_id: str, message: PersistedMessage) -> bool:
        """Swap a stored message with the same id for a newer rendition."""
        conv = self.conversations.get(conversation_id)
        if conv is None:
            return False
        for i, m in enumerate(conv.messages):
            if m.id == message.id:
                conv.messages[i] = message
                conv.updated_at = now_ts()
                self._persist()
                return True
        return False

    # ------------------------------------------------------------------
    # Streaming bookkeeping
    # ------------------------------------------------------------------

    def mark_streaming(self, conversation_id: str) -> None:
        if conversation_id == BACKGROUND_CONVERSATION_ID:
            return
        self.streaming_conversation_ids.add(conversation_id)

    def mark_ready(self, conversation_id: str) -> None:
        self.streaming_conversation_ids.discard(conversation_id)

    def is_streaming(self, conversation_id: str) -> bool:
        return conversation_id in self.streaming_conversation_ids

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def set_summary(self, conversation_id: str, summary: str) -> bool:
        conv = self.conversations.get(conversation_id)
        if conv is None:
            return False
        conv.summary = summary
        self._persist()
        return True

    def maybe_request_summary(self, conversation_id: str) -> bool:
        """Launch the summarizer out of band once a conversation is long enough."""
        conv = self.conversations.get(conversation_id)
        if conv is None or self.summarizer is None or self.scheduler is None:
            return False
        if conv.summary or len(conv.messages) < self.summary_min_messages:
            return False
        if conversation_id in self._summaries_in_flight:
            return False
        self._summaries_in_flight.add(conversation_id)
        self.scheduler.spawn(self._summarize(conversation_id))
        return True

    async def _summarize(self, conversation_id: str) -> None:
        try:
            conv = self.conversations.get(conversation_id)
            if conv is None:
                return
            summary = await self.summarizer(conv)
            if summary:
                self.set_summary(conversation_id, summary)
        except Exception as e:
            logger.warning(f"Summary failed for {conversation_id}: {e}")
        finally:
            self._summaries_in_flight.discard(conversation_id)

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------

    def save_draft(self, conversation_id: str, draft: str) -> None:
        if draft:
            self.drafts[conversation_id] = draft
        else:
            self.drafts.pop(conversation_id, None)

    def get_draft(self, conversation_id: str) -> str:
        return self.drafts.get(conversation_id, "")

    def clear_draft(self, conversation_id: str) -> None:
        self.drafts.pop(conversation_id, None)

    # ------------------------------------------------------------------
    # Session restore
    # ------------------------------------------------------------------

    def restore_session(self, session, conversation_id: str) -> bool:
        """Load persisted messages into an empty session once."""
        if conversation_id == BACKGROUND_CONVERSATION_ID or conversation_id in self._restored:
            return False
        conv = self.conversations.get(conversation_id)
        if conv is None or session.messages or session.is_busy:
            return False
        self._restored.add(conversation_id)
        if not conv.messages:
            return False
        session.set_messages(persisted_to_turns(conv.messages))
        logger.debug(f"Restored {len(conv.messages)} message(s) into session {conversation_id}")
        return True

    # ------------------------------------------------------------------
    # Surface bindings
    # ------------------------------------------------------------------

    def bind_surface(self, surface: str, conversation_id: str) -> bool:
        if conversation_id not in self.conversations:
            return False
        self.surface_bindings[surface] = conversation_id
        return True

    def unbind_surface(self, surface: str) -> None:
        self.surface_bindings.pop(surface, None)

    def get_conversation_for_surface(self, surface: str) -> Optional[str]:
        cid = self.surface_bindings.get(surface)
        if cid in self.conversations:
            return cid
        return self.active_conversation_id
