"""
Session/identity bridge between real-time channels and the chat core.

A channel is unbound until its first ``join``. Visitors join with the session
token the web layer issued them; admins join with ``isAdmin`` and are only
accepted when their web session actually holds the admin capability.
"""
import json
import logging
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from anonchat.errors import ChatError, ProtocolError, UnauthorizedError
from anonchat.schemas import (
    ChatMessageEvent,
    ErrorEvent,
    InboundEvent,
    JoinEvent,
    JoinedEvent,
    MessageRecord,
)
from anonchat.services.directory import ConversationDirectory
from anonchat.services.message_log import MessageLog
from anonchat.services.registry import Connection, ConnectionRegistry
from anonchat.services.router import FanoutRouter
from anonchat.services.session_store import SessionStore

logger = logging.getLogger(__name__)


def parse_event(raw: Union[str, bytes, dict]) -> Union[JoinEvent, ChatMessageEvent]:
    """
    Decode one inbound JSON envelope.

    Raises:
        ProtocolError: not JSON, not an object, unknown type or bad fields
    """
    data = raw
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ProtocolError("Event is not valid JSON") from e
    if not isinstance(data, dict):
        raise ProtocolError("Event must be a JSON object")
    try:
        return InboundEvent.validate_python(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ()))
        raise ProtocolError(f"Malformed event ({where}): {first.get('msg')}") from e


class SessionBridge:
    def __init__(
        self,
        directory: ConversationDirectory,
        message_log: MessageLog,
        registry: ConnectionRegistry,
        router: FanoutRouter,
        sessions: Optional[SessionStore] = None,
    ):
        self.directory = directory
        self.message_log = message_log
        self.registry = registry
        self.router = router
        self.sessions = sessions

    def on_join(self, handle: str, session_id: str, is_admin: bool) -> Optional[Connection]:
        """
        Bind a connection to its role. Only the first join counts.

        ``is_admin`` must already be the trusted capability, not the client's claim.
        """
        connection = self.registry.get(handle)
        if connection is None:
            logger.warning(f"Join on unknown connection {handle}")
            return None
        if connection.is_bound:
            logger.info(f"Ignoring repeated join on {handle} ({connection.role})")
            return connection

        if is_admin:
            self.registry.bind_admin(handle)
            return connection

        if not session_id:
            raise ProtocolError("join requires a sessionId")
        conversation = self.directory.resolve_or_create(session_id)
        self.registry.bind_visitor(handle, conversation.id)
        return connection

    def on_message(self, handle: str, body: str,
                   conversation_id: Optional[int] = None) -> Optional[MessageRecord]:
        """
        Append a message from a bound connection and fan it out.

        Visitors always write to their own conversation; admins must name one.

        Returns:
            The persisted message, or None if the connection is not bound
        """
        connection = self.registry.get(handle)
        if connection is None or not connection.is_bound:
            logger.warning(f"Dropping message from unbound connection {handle}")
            return None

        if connection.is_admin:
            if conversation_id is None:
                raise ProtocolError("Admin messages need a conversationId")
            message = self.message_log.append(conversation_id, body, is_admin_reply=True)
        else:
            message = self.message_log.append(
                connection.conversation_id, body, is_admin_reply=False
            )

        self.router.publish(message)
        return message

    def _trusted_admin(self, event: JoinEvent) -> bool:
        if self.sessions is None:
            return event.is_admin

        if event.is_admin:
            if not self.sessions.is_admin(event.session_id):
                raise UnauthorizedError("Session does not hold admin capability")
            return True
        if not self.sessions.exists(event.session_id):
            raise ProtocolError("Unknown session")
        return False

    def handle_event(self, connection: Connection, raw) -> None:
        """
        Process one raw inbound event for a live connection.

        Errors are reported back on the channel as ``error`` events and the
        event is dropped; the channel itself stays open.
        """
        try:
            event = parse_event(raw)
            if isinstance(event, JoinEvent):
                already_bound = connection.is_bound
                is_admin = False if already_bound else self._trusted_admin(event)
                self.on_join(connection.handle, event.session_id, is_admin)
                if not already_bound:
                    ack = JoinedEvent(role=connection.role, conversation_id=connection.conversation_id)
                    self.router.send_direct(connection, ack.model_dump(mode="json", by_alias=True))
                return

            message = self.on_message(connection.handle, event.content, event.conversation_id)
            if message is None:
                raise ProtocolError("Join before sending messages")
        except ChatError as e:
            logger.warning(f"Dropped event on {connection.handle}: {e.kind}: {e.message}")
            error = ErrorEvent(kind=e.kind, error=e.message)
            self.router.send_direct(connection, error.model_dump(mode="json", by_alias=True))
