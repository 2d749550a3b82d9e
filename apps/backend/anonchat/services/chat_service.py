"""Request/response operations: visitor sends, admin replies, transcript reads."""
import logging
from typing import List, Tuple

from anonchat.errors import NotFoundError
from anonchat.schemas import ConversationRecord, ConversationSummary, MessageRecord
from anonchat.services.directory import ConversationDirectory
from anonchat.services.message_log import MessageLog, clean_body
from anonchat.services.router import FanoutRouter

logger = logging.getLogger(__name__)


class ChatService:
    def __init__(self, directory: ConversationDirectory, message_log: MessageLog,
                 router: FanoutRouter):
        self.directory = directory
        self.message_log = message_log
        self.router = router

    def send_visitor_message(self, session_id: str, body: str) -> MessageRecord:
        # validate first: a rejected body must not create the conversation
        clean_body(body, self.message_log.max_length)
        conversation = self.directory.resolve_or_create(session_id)
        message = self.message_log.append(conversation.id, body, is_admin_reply=False)
        self.router.publish(message)
        return message

    def send_admin_reply(self, conversation_id: int, body: str) -> MessageRecord:
        clean_body(body, self.message_log.max_length)
        message = self.message_log.append(conversation_id, body, is_admin_reply=True)
        self.router.publish(message)
        logger.info(f"Admin replied in conversation {conversation_id}")
        return message

    def transcript_for_session(self, session_id: str) -> List[MessageRecord]:
        conversation = self.directory.find_by_session(session_id)
        if conversation is None:
            return []
        return self.message_log.list_ordered(conversation.id)

    def conversation_detail(self, conversation_id: int) -> Tuple[ConversationRecord, List[MessageRecord]]:
        conversation = self.directory.get(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        return conversation, self.message_log.list_ordered(conversation_id)

    def conversation_summaries(self) -> List[ConversationSummary]:
        return self.directory.list_summaries()
