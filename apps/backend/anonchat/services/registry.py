"""
Live connection registry.

Tracks every open real-time channel in this process. A connection starts
unbound and takes exactly one role on its first successful join: bound to a
visitor conversation, or admin. Roles never change afterwards.
"""
import asyncio
import logging
import threading
import uuid
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class Connection:
    """One open real-time channel and its outbound queue."""

    def __init__(self, handle: str, outbox_size: int = 0):
        self.handle = handle
        self.conversation_id: Optional[int] = None
        self.is_admin = False
        self.closed = False
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=outbox_size)
        # loop running the writer; set by FanoutRouter.subscribe
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def is_bound(self) -> bool:
        return self.is_admin or self.conversation_id is not None

    @property
    def role(self) -> Optional[str]:
        if self.is_admin:
            return "admin"
        if self.conversation_id is not None:
            return "visitor"
        return None

    def push(self, payload: dict) -> bool:
        """
        Queue a payload for the writer. False when closed or the queue is full.

        From another loop or thread the enqueue is scheduled on the writer's
        loop, so True only means it was handed over; a full queue or a close
        in between still drops it there.
        """
        if self.closed:
            return False
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if self.loop is not None and current is not self.loop:
            if self.loop.is_closed():
                return False
            # asyncio queues are not thread-safe; hop onto the writer's loop
            self.loop.call_soon_threadsafe(self._enqueue, payload)
            return True
        return self._enqueue(payload)

    def _enqueue(self, payload: dict) -> bool:
        if self.closed:
            return False
        try:
            self.outbox.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning(f"Outbox full for connection {self.handle}, dropping event")
            return False
        return True

    def __repr__(self):
        return f"<Connection {self.handle} role={self.role} conversation={self.conversation_id}>"


class ConnectionRegistry:
    def __init__(self, outbox_size: int = 0):
        self._lock = threading.Lock()
        self._connections: Dict[str, Connection] = {}
        self.outbox_size = outbox_size

    def register(self) -> Connection:
        connection = Connection(uuid.uuid4().hex, self.outbox_size)
        with self._lock:
            self._connections[connection.handle] = connection
        logger.info(f"Connection {connection.handle} opened ({len(self)} live)")
        return connection

    def get(self, handle: str) -> Optional[Connection]:
        return self._connections.get(handle)

    def bind_visitor(self, handle: str, conversation_id: int) -> bool:
        with self._lock:
            connection = self._bindable(handle)
            if connection is None:
                return False
            connection.conversation_id = conversation_id
        logger.info(f"Connection {handle} joined conversation {conversation_id}")
        return True

    def bind_admin(self, handle: str) -> bool:
        with self._lock:
            connection = self._bindable(handle)
            if connection is None:
                return False
            connection.is_admin = True
        logger.info(f"Connection {handle} joined as admin")
        return True

    def _bindable(self, handle: str) -> Optional[Connection]:
        connection = self._connections.get(handle)
        if connection is None:
            logger.warning(f"Bind on unknown connection {handle}")
            return None
        if connection.is_bound:
            logger.warning(f"Connection {handle} is already bound as {connection.role}, ignoring rebind")
            return None
        return connection

    def unregister(self, handle: str) -> None:
        with self._lock:
            connection = self._connections.pop(handle, None)
        if connection is None:
            return
        connection.closed = True
        logger.info(f"Connection {handle} closed ({len(self)} live)")

    def matching(self, predicate: Callable[[Connection], bool]) -> List[Connection]:
        with self._lock:
            connections = list(self._connections.values())
        return [c for c in connections if predicate(c)]

    def __len__(self):
        return len(self._connections)
