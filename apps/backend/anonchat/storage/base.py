"""
Persistence port.

The chat core only talks to durable state through this interface. Two variants
exist: ``MemoryStorage`` for tests and single-node dev runs, ``SqlStorage`` for
production. The variant is chosen once when the app container is built.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from anonchat.schemas import AdminRecord, ConversationRecord, MessageRecord


class StoragePort(ABC):

    def init_schema(self) -> None:
        """Create tables / structures if needed. No-op by default."""

    def close(self) -> None:
        """Release connections. No-op by default."""

    # --- conversations ---

    @abstractmethod
    def get_conversation(self, conversation_id: int) -> Optional[ConversationRecord]:
        ...

    @abstractmethod
    def get_conversation_by_session(self, session_id: str) -> Optional[ConversationRecord]:
        ...

    @abstractmethod
    def get_or_create_conversation(self, session_id: str) -> ConversationRecord:
        """
        Return the conversation for ``session_id``, creating it if absent.

        Must be atomic per session id: concurrent callers converge on one row.
        """

    @abstractmethod
    def touch_conversation(self, conversation_id: int) -> None:
        """Advance last_activity to now. Silently ignores unknown ids."""

    @abstractmethod
    def list_conversations(self) -> List[ConversationRecord]:
        """All conversations, most recently active first."""

    @abstractmethod
    def delete_conversation(self, conversation_id: int) -> bool:
        """Delete a conversation and, by cascade, its messages."""

    # --- messages ---

    @abstractmethod
    def append_message(
        self, conversation_id: int, content: str, is_admin_reply: bool
    ) -> MessageRecord:
        """
        Insert a message and advance the parent's last_activity as one unit.

        Raises:
            NotFoundError: conversation does not exist
            PersistenceError: the write failed
        """

    @abstractmethod
    def list_messages(self, conversation_id: int) -> List[MessageRecord]:
        """Messages ordered by (created_at, id); empty for unknown conversations."""

    @abstractmethod
    def latest_messages(self, conversation_id: int, limit: int) -> List[MessageRecord]:
        ...

    @abstractmethod
    def count_messages(self, conversation_id: int) -> int:
        ...

    # --- admins ---

    @abstractmethod
    def get_admin_by_username(self, username: str) -> Optional[AdminRecord]:
        ...

    @abstractmethod
    def create_admin(self, username: str, password_hash: str) -> AdminRecord:
        ...
