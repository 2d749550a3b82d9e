"""
Tests for the session/identity bridge and event parsing
"""

import json

import fakeredis
import pytest

from anonchat.errors import ProtocolError, ValidationError
from anonchat.schemas import ChatMessageEvent, JoinEvent
from anonchat.services.bridge import SessionBridge, parse_event
from anonchat.services.session_store import SessionStore


def drain(connection):
    items = []
    while not connection.outbox.empty():
        items.append(connection.outbox.get_nowait())
    return items


@pytest.fixture
def bridge(directory, message_log, registry, router):
    return SessionBridge(directory, message_log, registry, router)


class TestParseEvent:

    def test_join(self):
        event = parse_event(json.dumps({"type": "join", "sessionId": "abc", "isAdmin": True}))
        assert isinstance(event, JoinEvent)
        assert event.session_id == "abc" and event.is_admin is True

    def test_message_from_bytes(self):
        event = parse_event(b'{"type": "message", "content": "hi", "conversationId": 3}')
        assert isinstance(event, ChatMessageEvent)
        assert event.content == "hi" and event.conversation_id == 3

    @pytest.mark.parametrize("raw", [
        "not json",
        "[1, 2]",
        '{"type": "wave"}',
        '{"content": "no type"}',
        '{"type": "message"}',
        '{"type": "message", "content": "x", "conversationId": "abc"}',
    ])
    def test_malformed(self, raw):
        with pytest.raises(ProtocolError):
            parse_event(raw)


class TestSessionBridge:

    def test_visitor_join_creates_conversation(self, bridge, registry, directory):
        connection = registry.register()
        bridge.on_join(connection.handle, "sess-1", is_admin=False)

        conversation = directory.find_by_session("sess-1")
        assert connection.conversation_id == conversation.id
        assert connection.role == "visitor"

    def test_rejoin_reuses_conversation(self, bridge, registry):
        first = registry.register()
        bridge.on_join(first.handle, "sess-1", is_admin=False)
        registry.unregister(first.handle)

        again = registry.register()
        bridge.on_join(again.handle, "sess-1", is_admin=False)
        assert again.conversation_id == first.conversation_id

    def test_second_join_is_ignored(self, bridge, registry):
        connection = registry.register()
        bridge.on_join(connection.handle, "sess-1", is_admin=False)
        bridge.on_join(connection.handle, "", is_admin=True)
        bridge.on_join(connection.handle, "sess-2", is_admin=False)
        assert connection.role == "visitor"
        assert not connection.is_admin

    def test_visitor_join_needs_session(self, bridge, registry):
        connection = registry.register()
        with pytest.raises(ProtocolError):
            bridge.on_join(connection.handle, "", is_admin=False)
        assert not connection.is_bound

    def test_unbound_message_is_dropped(self, bridge, registry, message_log):
        connection = registry.register()
        assert bridge.on_message(connection.handle, "hello") is None

    def test_visitor_message_fans_out(self, bridge, registry):
        a = registry.register()
        b = registry.register()
        stranger = registry.register()
        admin = registry.register()
        bridge.on_join(a.handle, "shared", is_admin=False)
        bridge.on_join(b.handle, "shared", is_admin=False)
        bridge.on_join(stranger.handle, "other", is_admin=False)
        bridge.on_join(admin.handle, "", is_admin=True)

        message = bridge.on_message(a.handle, "hi there")

        assert message.is_admin_reply is False
        assert message.conversation_id == a.conversation_id
        assert [p["content"] for p in drain(a)] == ["hi there"]
        assert [p["content"] for p in drain(b)] == ["hi there"]
        assert [p["content"] for p in drain(admin)] == ["hi there"]
        assert drain(stranger) == []

    def test_visitor_cannot_target_other_conversation(self, bridge, registry, message_log):
        a = registry.register()
        b = registry.register()
        bridge.on_join(a.handle, "one", is_admin=False)
        bridge.on_join(b.handle, "two", is_admin=False)

        message = bridge.on_message(a.handle, "sneaky", conversation_id=b.conversation_id)

        assert message.conversation_id == a.conversation_id
        assert message_log.list_ordered(b.conversation_id) == []

    def test_admin_message_needs_target(self, bridge, registry, directory):
        admin = registry.register()
        bridge.on_join(admin.handle, "", is_admin=True)
        with pytest.raises(ProtocolError):
            bridge.on_message(admin.handle, "hello")

        conversation = directory.resolve_or_create("visitor")
        message = bridge.on_message(admin.handle, "hello", conversation_id=conversation.id)
        assert message.is_admin_reply is True

    def test_blank_message_is_rejected_without_broadcast(self, bridge, registry):
        connection = registry.register()
        bridge.on_join(connection.handle, "s", is_admin=False)
        with pytest.raises(ValidationError):
            bridge.on_message(connection.handle, "   ")
        assert drain(connection) == []


class TestHandleEvent:

    def setup_method(self):
        self.sessions = SessionStore(fakeredis.FakeRedis(decode_responses=True))

    def make_bridge(self, directory, message_log, registry, router):
        return SessionBridge(directory, message_log, registry, router, self.sessions)

    def test_join_ack_then_message(self, directory, message_log, registry, router):
        bridge = self.make_bridge(directory, message_log, registry, router)
        session = self.sessions.create()
        connection = registry.register()

        bridge.handle_event(connection, json.dumps({"type": "join", "sessionId": session.session_id}))
        bridge.handle_event(connection, json.dumps({"type": "message", "content": "yo"}))

        ack, pushed = drain(connection)
        assert ack == {"type": "joined", "role": "visitor", "conversationId": connection.conversation_id}
        assert pushed["type"] == "message" and pushed["content"] == "yo"

    def test_unknown_session_is_refused(self, directory, message_log, registry, router):
        bridge = self.make_bridge(directory, message_log, registry, router)
        connection = registry.register()

        bridge.handle_event(connection, json.dumps({"type": "join", "sessionId": "made-up"}))

        (error,) = drain(connection)
        assert error["type"] == "error" and error["kind"] == "protocol_error"
        assert not connection.is_bound
        assert directory.list() == []

    def test_admin_claim_needs_capability(self, directory, message_log, registry, router):
        bridge = self.make_bridge(directory, message_log, registry, router)
        session = self.sessions.create()
        connection = registry.register()

        bridge.handle_event(connection, json.dumps(
            {"type": "join", "sessionId": session.session_id, "isAdmin": True}))
        (error,) = drain(connection)
        assert error["kind"] == "unauthorized"
        assert not connection.is_bound

        self.sessions.set_admin(session.session_id, True)
        bridge.handle_event(connection, json.dumps(
            {"type": "join", "sessionId": session.session_id, "isAdmin": True}))
        (ack,) = drain(connection)
        assert ack == {"type": "joined", "role": "admin", "conversationId": None}

    def test_malformed_and_unbound_events_report_errors(self, directory, message_log, registry, router):
        bridge = self.make_bridge(directory, message_log, registry, router)
        connection = registry.register()

        bridge.handle_event(connection, "{{{")
        bridge.handle_event(connection, json.dumps({"type": "message", "content": "early"}))

        errors = drain(connection)
        assert [e["kind"] for e in errors] == ["protocol_error", "protocol_error"]
        assert directory.list() == []
