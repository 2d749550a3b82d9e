import logging
from typing import List, Optional

from anonchat.errors import ValidationError
from anonchat.schemas import MessageRecord
from anonchat.storage.base import StoragePort

logger = logging.getLogger(__name__)


def clean_body(body, max_length: int) -> str:
    """
    Trim a message body and reject empty or oversized ones.

    Raises:
        ValidationError: body is missing, blank, or longer than max_length
    """
    if not isinstance(body, str):
        raise ValidationError("Message must be a string")
    text = body.strip()
    if not text:
        raise ValidationError("Message cannot be empty")
    if len(text) > max_length:
        raise ValidationError(f"Message exceeds {max_length} characters")
    return text


class MessageLog:
    """Append-only, strictly ordered message history per conversation."""

    def __init__(self, storage: StoragePort, max_length: int = 5000, recent_limit: int = 50):
        self.storage = storage
        self.max_length = max_length
        self.recent_limit = recent_limit

    def append(self, conversation_id: int, body: str, is_admin_reply: bool = False) -> MessageRecord:
        """
        Persist a message and advance the conversation's last activity.

        Args:
            conversation_id: Owning conversation
            body: Raw message text, stored trimmed
            is_admin_reply: True when the admin wrote it

        Returns:
            The persisted message

        Raises:
            ValidationError: blank body (nothing is written)
            NotFoundError: conversation does not exist
            PersistenceError: the store rejected the write
        """
        text = clean_body(body, self.max_length)
        message = self.storage.append_message(conversation_id, text, is_admin_reply)
        logger.debug(
            f"Appended message {message.id} to conversation {conversation_id} "
            f"(admin={is_admin_reply})"
        )
        return message

    def list_ordered(self, conversation_id: int) -> List[MessageRecord]:
        return self.storage.list_messages(conversation_id)

    def latest(self, conversation_id: int, limit: Optional[int] = None) -> List[MessageRecord]:
        if limit is None:
            limit = self.recent_limit
        return self.storage.latest_messages(conversation_id, limit)

    def count(self, conversation_id: int) -> int:
        return self.storage.count_messages(conversation_id)
