import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from anonchat.errors import NotFoundError, PersistenceError
from anonchat.models import (
    AdminUser,
    Conversation,
    Message,
    create_all,
    make_engine,
    make_session_factory,
    utcnow,
)
from anonchat.schemas import AdminRecord, ConversationRecord, MessageRecord
from anonchat.storage.base import StoragePort

logger = logging.getLogger(__name__)


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we store is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _conversation(row: Conversation) -> ConversationRecord:
    return ConversationRecord(
        id=row.id,
        session_id=row.session_id,
        created_at=_aware(row.created_at),
        last_activity=_aware(row.last_activity),
    )


def _message(row: Message) -> MessageRecord:
    return MessageRecord(
        id=row.id,
        conversation_id=row.conversation_id,
        content=row.content,
        is_admin_reply=row.is_admin_reply,
        created_at=_aware(row.created_at),
    )


def _admin(row: AdminUser) -> AdminRecord:
    return AdminRecord(
        id=row.id,
        username=row.username,
        password_hash=row.password_hash,
        created_at=_aware(row.created_at),
    )


class SqlStorage(StoragePort):
    """SQLAlchemy-backed store (PostgreSQL in production, SQLite in dev/tests)."""

    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None):
        if engine is None and database_url is None:
            raise ValueError("SqlStorage needs a database_url or an engine")
        self.engine = engine or make_engine(database_url)
        self.SessionLocal = make_session_factory(self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self.SessionLocal()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Database operation failed: {e}")
            raise PersistenceError("Database operation failed") from e
        finally:
            db.close()

    def init_schema(self) -> None:
        create_all(self.engine)

    def close(self) -> None:
        self.engine.dispose()

    # --- conversations ---

    def get_conversation(self, conversation_id: int) -> Optional[ConversationRecord]:
        with self._session() as db:
            row = db.get(Conversation, conversation_id)
            return _conversation(row) if row else None

    def get_conversation_by_session(self, session_id: str) -> Optional[ConversationRecord]:
        with self._session() as db:
            row = db.query(Conversation).filter(Conversation.session_id == session_id).first()
            return _conversation(row) if row else None

    def get_or_create_conversation(self, session_id: str) -> ConversationRecord:
        with self._session() as db:
            row = db.query(Conversation).filter(Conversation.session_id == session_id).first()
            if row:
                return _conversation(row)

            now = utcnow()
            row = Conversation(session_id=session_id, created_at=now, last_activity=now)
            db.add(row)
            try:
                db.commit()
            except IntegrityError:
                # another writer created it first; the unique constraint picks the winner
                db.rollback()
                row = db.query(Conversation).filter(Conversation.session_id == session_id).one()
                return _conversation(row)

            logger.info(f"Created conversation {row.id}")
            return _conversation(row)

    def touch_conversation(self, conversation_id: int) -> None:
        with self._session() as db:
            row = db.get(Conversation, conversation_id)
            if row is None:
                return
            row.last_activity = max(utcnow(), _aware(row.last_activity))
            db.commit()

    def list_conversations(self) -> List[ConversationRecord]:
        with self._session() as db:
            rows = (
                db.query(Conversation)
                .order_by(Conversation.last_activity.desc(), Conversation.id.desc())
                .all()
            )
            return [_conversation(r) for r in rows]

    def delete_conversation(self, conversation_id: int) -> bool:
        with self._session() as db:
            row = db.get(Conversation, conversation_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True

    # --- messages ---

    def append_message(
        self, conversation_id: int, content: str, is_admin_reply: bool
    ) -> MessageRecord:
        with self._session() as db:
            # row lock serializes appends per conversation where the dialect supports it
            conversation = db.get(Conversation, conversation_id, with_for_update=True)
            if conversation is None:
                raise NotFoundError(f"Conversation {conversation_id} not found")

            now = utcnow()
            last = (
                db.query(func.max(Message.created_at))
                .filter(Message.conversation_id == conversation_id)
                .scalar()
            )
            if last is not None and _aware(last) > now:
                now = _aware(last)

            row = Message(
                conversation_id=conversation_id,
                content=content,
                is_admin_reply=is_admin_reply,
                created_at=now,
            )
            db.add(row)
            conversation.last_activity = max(now, _aware(conversation.last_activity))
            db.commit()
            return _message(row)

    def list_messages(self, conversation_id: int) -> List[MessageRecord]:
        with self._session() as db:
            rows = (
                db.query(Message)
                .filter(Message.conversation_id == conversation_id)
                .order_by(Message.created_at.asc(), Message.id.asc())
                .all()
            )
            return [_message(r) for r in rows]

    def latest_messages(self, conversation_id: int, limit: int) -> List[MessageRecord]:
        if limit <= 0:
            return []
        with self._session() as db:
            rows = (
                db.query(Message)
                .filter(Message.conversation_id == conversation_id)
                .order_by(Message.created_at.desc(), Message.id.desc())
                .limit(limit)
                .all()
            )
            return [_message(r) for r in reversed(rows)]

    def count_messages(self, conversation_id: int) -> int:
        with self._session() as db:
            return (
                db.query(func.count(Message.id))
                .filter(Message.conversation_id == conversation_id)
                .scalar()
            ) or 0

    # --- admins ---

    def get_admin_by_username(self, username: str) -> Optional[AdminRecord]:
        with self._session() as db:
            row = db.query(AdminUser).filter(AdminUser.username == username).first()
            return _admin(row) if row else None

    def create_admin(self, username: str, password_hash: str) -> AdminRecord:
        with self._session() as db:
            row = AdminUser(username=username, password_hash=password_hash, created_at=utcnow())
            db.add(row)
            db.commit()
            return _admin(row)
