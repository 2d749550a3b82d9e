"""
Tests for both persistence port variants (in-memory and SQLite via SQLAlchemy)
"""

import pytest
from sqlalchemy import event
from sqlalchemy.orm import Session

from anonchat.errors import NotFoundError, PersistenceError
from anonchat.models import Conversation, utcnow
from anonchat.storage.sql import SqlStorage


def test_get_or_create_is_idempotent(storage):
    first = storage.get_or_create_conversation("tok-a")
    second = storage.get_or_create_conversation("tok-a")

    assert first.id == second.id
    assert first.created_at <= first.last_activity
    assert len(storage.list_conversations()) == 1


def test_distinct_sessions_get_distinct_conversations(storage):
    a = storage.get_or_create_conversation("tok-a")
    b = storage.get_or_create_conversation("tok-b")

    assert a.id != b.id
    assert storage.get_conversation_by_session("tok-b").id == b.id
    assert storage.get_conversation_by_session("missing") is None
    assert storage.get_conversation(9999) is None


def test_append_keeps_order_and_touches_activity(storage):
    conversation = storage.get_or_create_conversation("tok-a")

    ids = []
    for i in range(5):
        message = storage.append_message(conversation.id, f"msg {i}", is_admin_reply=(i % 2 == 1))
        ids.append(message.id)
        refreshed = storage.get_conversation(conversation.id)
        assert refreshed.last_activity >= message.created_at

    messages = storage.list_messages(conversation.id)
    assert [m.id for m in messages] == ids
    assert ids == sorted(ids)
    assert [m.content for m in messages] == [f"msg {i}" for i in range(5)]
    assert [m.is_admin_reply for m in messages] == [False, True, False, True, False]
    assert storage.count_messages(conversation.id) == 5


def test_append_to_missing_conversation_raises(storage):
    with pytest.raises(NotFoundError):
        storage.append_message(42, "hello", is_admin_reply=True)
    assert storage.list_messages(42) == []


def test_latest_messages_is_ordered_suffix(storage):
    conversation = storage.get_or_create_conversation("tok-a")
    for i in range(6):
        storage.append_message(conversation.id, str(i), False)

    latest = storage.latest_messages(conversation.id, 3)
    assert [m.content for m in latest] == ["3", "4", "5"]
    assert storage.latest_messages(conversation.id, 0) == []
    assert len(storage.latest_messages(conversation.id, 100)) == 6


def test_list_conversations_most_recent_first(storage):
    a = storage.get_or_create_conversation("tok-a")
    b = storage.get_or_create_conversation("tok-b")
    storage.append_message(b.id, "b first", False)
    storage.append_message(a.id, "a later", False)

    assert [c.id for c in storage.list_conversations()] == [a.id, b.id]


def test_touch_unknown_conversation_is_noop(storage):
    storage.touch_conversation(12345)
    assert storage.list_conversations() == []


def test_delete_cascades_to_messages(storage):
    conversation = storage.get_or_create_conversation("tok-a")
    storage.append_message(conversation.id, "one", False)
    storage.append_message(conversation.id, "two", True)

    assert storage.delete_conversation(conversation.id) is True
    assert storage.get_conversation(conversation.id) is None
    assert storage.list_messages(conversation.id) == []
    assert storage.count_messages(conversation.id) == 0
    assert storage.delete_conversation(conversation.id) is False


def test_admin_usernames_are_unique(storage):
    admin = storage.create_admin("root", "hash")
    assert storage.get_admin_by_username("root").id == admin.id
    assert storage.get_admin_by_username("nobody") is None

    with pytest.raises(PersistenceError):
        storage.create_admin("root", "other-hash")


def test_sql_get_or_create_when_another_writer_commits_first(tmp_path):
    store = SqlStorage(f"sqlite:///{tmp_path / 'race.db'}")
    store.init_schema()
    winner = {}

    # lands the competing row after our lookup missed, right before our insert
    def other_writer_commits_first(session, flush_context, instances):
        with Session(store.engine) as other:
            now = utcnow()
            row = Conversation(session_id="racy-token", created_at=now, last_activity=now)
            other.add(row)
            other.commit()
            winner["id"] = row.id

    event.listen(store.SessionLocal, "before_flush", other_writer_commits_first, once=True)
    try:
        conversation = store.get_or_create_conversation("racy-token")

        assert conversation.id == winner["id"]
        assert [c.id for c in store.list_conversations()] == [winner["id"]]
        assert store.get_or_create_conversation("racy-token").id == winner["id"]
    finally:
        store.close()
