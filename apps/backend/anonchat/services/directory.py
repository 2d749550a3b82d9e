import logging
from typing import List, Optional

from anonchat.errors import ValidationError
from anonchat.schemas import ConversationRecord, ConversationSummary
from anonchat.storage.base import StoragePort

logger = logging.getLogger(__name__)


class ConversationDirectory:
    """Maps opaque session tokens to durable conversations."""

    def __init__(self, storage: StoragePort):
        self.storage = storage

    def resolve_or_create(self, session_id: str) -> ConversationRecord:
        """
        Get the conversation for a session token, creating it on first contact.

        Args:
            session_id: Server-issued session token

        Returns:
            The single conversation bound to this token
        """
        if not session_id or not session_id.strip():
            raise ValidationError("Session id is required")
        return self.storage.get_or_create_conversation(session_id)

    def find_by_session(self, session_id: str) -> Optional[ConversationRecord]:
        if not session_id:
            return None
        return self.storage.get_conversation_by_session(session_id)

    def get(self, conversation_id: int) -> Optional[ConversationRecord]:
        return self.storage.get_conversation(conversation_id)

    def touch_activity(self, conversation_id: int) -> None:
        self.storage.touch_conversation(conversation_id)

    def list(self) -> List[ConversationRecord]:
        return self.storage.list_conversations()

    def list_summaries(self) -> List[ConversationSummary]:
        """Conversations, most recently active first, with count and last message."""
        summaries = []
        for conversation in self.storage.list_conversations():
            last = self.storage.latest_messages(conversation.id, 1)
            summaries.append(
                ConversationSummary(
                    **conversation.model_dump(),
                    message_count=self.storage.count_messages(conversation.id),
                    last_message=last[0] if last else None,
                )
            )
        return summaries
