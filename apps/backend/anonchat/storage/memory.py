import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional

from anonchat.errors import NotFoundError, PersistenceError
from anonchat.models.db import utcnow
from anonchat.schemas import AdminRecord, ConversationRecord, MessageRecord
from anonchat.storage.base import StoragePort

logger = logging.getLogger(__name__)


class MemoryStorage(StoragePort):
    """
    In-process store backed by dicts.

    Records are immutable pydantic models, so handing them out never exposes
    internal state. One lock guards every mutation, which keeps per-key
    operations atomic even when called from worker threads.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._conversations: Dict[int, ConversationRecord] = {}
        self._by_session: Dict[str, int] = {}
        self._messages: Dict[int, List[MessageRecord]] = {}
        self._admins: Dict[str, AdminRecord] = {}
        self._conversation_seq = 0
        self._message_seq = 0
        self._admin_seq = 0

    # --- conversations ---

    def get_conversation(self, conversation_id: int) -> Optional[ConversationRecord]:
        return self._conversations.get(conversation_id)

    def get_conversation_by_session(self, session_id: str) -> Optional[ConversationRecord]:
        conversation_id = self._by_session.get(session_id)
        if conversation_id is None:
            return None
        return self._conversations.get(conversation_id)

    def get_or_create_conversation(self, session_id: str) -> ConversationRecord:
        with self._lock:
            existing = self.get_conversation_by_session(session_id)
            if existing:
                return existing

            self._conversation_seq += 1
            now = utcnow()
            conversation = ConversationRecord(
                id=self._conversation_seq,
                session_id=session_id,
                created_at=now,
                last_activity=now,
            )
            self._conversations[conversation.id] = conversation
            self._by_session[session_id] = conversation.id
            self._messages[conversation.id] = []
            logger.info(f"Created conversation {conversation.id}")
            return conversation

    def touch_conversation(self, conversation_id: int) -> None:
        with self._lock:
            self._touch(conversation_id, utcnow())

    def _touch(self, conversation_id: int, at: datetime) -> None:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return
        last_activity = max(at, conversation.last_activity)
        self._conversations[conversation_id] = conversation.model_copy(
            update={"last_activity": last_activity}
        )

    def list_conversations(self) -> List[ConversationRecord]:
        with self._lock:
            conversations = list(self._conversations.values())
        return sorted(conversations, key=lambda c: (c.last_activity, c.id), reverse=True)

    def delete_conversation(self, conversation_id: int) -> bool:
        with self._lock:
            conversation = self._conversations.pop(conversation_id, None)
            if conversation is None:
                return False
            self._by_session.pop(conversation.session_id, None)
            self._messages.pop(conversation_id, None)
            return True

    # --- messages ---

    def append_message(
        self, conversation_id: int, content: str, is_admin_reply: bool
    ) -> MessageRecord:
        with self._lock:
            if conversation_id not in self._conversations:
                raise NotFoundError(f"Conversation {conversation_id} not found")

            log = self._messages.setdefault(conversation_id, [])
            now = utcnow()
            if log and log[-1].created_at > now:
                # wall clock stepped back; keep timestamps in append order
                now = log[-1].created_at

            self._message_seq += 1
            message = MessageRecord(
                id=self._message_seq,
                conversation_id=conversation_id,
                content=content,
                is_admin_reply=is_admin_reply,
                created_at=now,
            )
            log.append(message)
            self._touch(conversation_id, now)
            return message

    def list_messages(self, conversation_id: int) -> List[MessageRecord]:
        with self._lock:
            return list(self._messages.get(conversation_id, []))

    def latest_messages(self, conversation_id: int, limit: int) -> List[MessageRecord]:
        if limit <= 0:
            return []
        return self.list_messages(conversation_id)[-limit:]

    def count_messages(self, conversation_id: int) -> int:
        return len(self._messages.get(conversation_id, []))

    # --- admins ---

    def get_admin_by_username(self, username: str) -> Optional[AdminRecord]:
        return self._admins.get(username)

    def create_admin(self, username: str, password_hash: str) -> AdminRecord:
        with self._lock:
            if username in self._admins:
                raise PersistenceError(f"Admin {username!r} already exists")
            self._admin_seq += 1
            admin = AdminRecord(
                id=self._admin_seq,
                username=username,
                password_hash=password_hash,
                created_at=utcnow(),
            )
            self._admins[username] = admin
            return admin
