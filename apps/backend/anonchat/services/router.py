"""
Fan-out router.

Given a freshly persisted message for conversation C, hands it to every live
connection bound to C plus every admin connection, once per connection.

Publishing only enqueues: each connection has its own writer task draining its
queue to the network, so a slow or dead peer never holds up the others or the
caller that appended the message. Because enqueueing happens synchronously
right after the append, every connection sees a conversation's messages in
append order.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Protocol

from anonchat.schemas import MessageEvent, MessageRecord
from anonchat.services.registry import Connection, ConnectionRegistry

logger = logging.getLogger(__name__)


class Channel(Protocol):
    async def send_json(self, data: Any) -> None:
        ...


class FanoutRouter:
    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    def publish(self, message: MessageRecord) -> int:
        """
        Push a persisted message to every entitled live connection.

        Returns:
            Number of connections the payload was handed to. Best-effort:
            cross-loop hand-offs count even if that outbox later drops it.
        """
        # built from the durable record so anything pushed is also readable later
        payload = MessageEvent.from_record(message).model_dump(mode="json", by_alias=True)
        conversation_id = message.conversation_id

        targets = self.registry.matching(
            lambda c: c.is_admin or c.conversation_id == conversation_id
        )

        delivered = 0
        for connection in targets:
            if connection.push(payload):
                delivered += 1
            else:
                logger.debug(f"Skipped delivery of message {message.id} to {connection.handle}")

        logger.debug(
            f"Message {message.id} fanned out to {delivered}/{len(targets)} connections"
        )
        return delivered

    def send_direct(self, connection: Connection, payload: dict) -> bool:
        """Queue a control event (ack, error) for a single connection."""
        return connection.push(payload)

    @asynccontextmanager
    async def subscribe(self, channel: Channel) -> AsyncIterator[Connection]:
        """
        Register a live connection for the lifetime of the ``async with`` block.

        The connection is unregistered and its writer stopped on exit, whether
        the block ends normally, raises, or is cancelled.
        """
        connection = self.registry.register()
        connection.loop = asyncio.get_running_loop()
        writer = asyncio.create_task(self._pump(connection, channel))
        try:
            yield connection
        finally:
            self.registry.unregister(connection.handle)
            writer.cancel()
            await asyncio.gather(writer, return_exceptions=True)

    async def _pump(self, connection: Connection, channel: Channel) -> None:
        while True:
            payload = await connection.outbox.get()
            try:
                await channel.send_json(payload)
            except Exception as e:
                # peer went away mid-write; the durable log is the recovery path
                logger.warning(f"Delivery to {connection.handle} failed: {e}")
                connection.closed = True
                return
