import uuid
import logging
from datetime import datetime, timezone
from typing import Optional

import redis

from anonchat.errors import PersistenceError
from anonchat.schemas import WebSession

logger = logging.getLogger(__name__)

# Sessions expire after 24 hours of inactivity
DEFAULT_SESSION_TTL = 86400


class SessionStore:
    """
    Server-side web sessions kept in redis.

    Each session is a hash ``anonchat:session:{sid}`` holding the admin
    capability flag. The TTL is refreshed on every read, so active visitors
    keep their session (and therefore their conversation) indefinitely.
    """

    def __init__(self, client: redis.Redis, ttl_seconds: int = DEFAULT_SESSION_TTL,
                 prefix: str = "anonchat:session"):
        self.r = client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    def _key(self, session_id: str) -> str:
        """Generate redis key for a web session"""
        return f"{self.prefix}:{session_id}"

    def create(self) -> WebSession:
        session_id = uuid.uuid4().hex
        key = self._key(session_id)
        try:
            pipe = self.r.pipeline()
            pipe.hset(key, mapping={
                "is_admin": "0",
                "created_at": datetime.now(timezone.utc).isoformat(),
            })
            pipe.expire(key, self.ttl_seconds)
            pipe.execute()
        except redis.RedisError as e:
            raise PersistenceError("Session store unavailable") from e
        logger.info(f"Issued web session {session_id[:8]}…")
        return WebSession(session_id=session_id, is_admin=False)

    def get(self, session_id: Optional[str]) -> Optional[WebSession]:
        """
        Load a session and refresh its TTL.

        Returns:
            The session, or None if it never existed or expired
        """
        if not session_id:
            return None
        key = self._key(session_id)
        try:
            data = self.r.hgetall(key)
            if not data:
                return None
            self.r.expire(key, self.ttl_seconds)
        except redis.RedisError as e:
            raise PersistenceError("Session store unavailable") from e
        return WebSession(session_id=session_id, is_admin=data.get("is_admin") == "1")

    def exists(self, session_id: Optional[str]) -> bool:
        return self.get(session_id) is not None

    def is_admin(self, session_id: Optional[str]) -> bool:
        session = self.get(session_id)
        return bool(session and session.is_admin)

    def set_admin(self, session_id: str, is_admin: bool) -> None:
        key = self._key(session_id)
        try:
            pipe = self.r.pipeline()
            pipe.hset(key, "is_admin", "1" if is_admin else "0")
            pipe.expire(key, self.ttl_seconds)
            pipe.execute()
        except redis.RedisError as e:
            raise PersistenceError("Session store unavailable") from e
