import logging
from typing import Optional

import redis

from anonchat.config import Settings
from anonchat.services.auth_service import AdminAuth
from anonchat.services.bridge import SessionBridge
from anonchat.services.chat_service import ChatService
from anonchat.services.directory import ConversationDirectory
from anonchat.services.message_log import MessageLog
from anonchat.services.registry import ConnectionRegistry
from anonchat.services.router import FanoutRouter
from anonchat.services.session_store import SessionStore
from anonchat.storage import StoragePort, build_storage

logger = logging.getLogger(__name__)


class AppContainer:
    """
    Owns every long-lived object of one application instance.

    The connection registry lives here rather than at module level, so each
    app (and each test) gets an isolated set of live connections.
    """

    def __init__(self, settings: Settings, storage: Optional[StoragePort] = None,
                 redis_client: Optional[redis.Redis] = None):
        self.settings = settings
        self.storage = storage or build_storage(settings)
        self.redis = redis_client or redis.from_url(settings.REDIS_URL, decode_responses=True)

        self.sessions = SessionStore(self.redis, ttl_seconds=settings.SESSION_TTL_SECONDS)
        self.auth = AdminAuth(self.storage)
        self.directory = ConversationDirectory(self.storage)
        self.message_log = MessageLog(
            self.storage,
            max_length=settings.MAX_MESSAGE_LENGTH,
            recent_limit=settings.RECENT_MESSAGES_LIMIT,
        )
        self.registry = ConnectionRegistry(outbox_size=settings.OUTBOX_MAX_SIZE)
        self.router = FanoutRouter(self.registry)
        self.bridge = SessionBridge(
            self.directory, self.message_log, self.registry, self.router, self.sessions
        )
        self.chat = ChatService(self.directory, self.message_log, self.router)

    def startup(self) -> None:
        self.storage.init_schema()
        self.auth.ensure_default_admin(self.settings.ADMIN_USERNAME, self.settings.ADMIN_PASSWORD)

    def shutdown(self) -> None:
        self.storage.close()
        self.redis.close()
