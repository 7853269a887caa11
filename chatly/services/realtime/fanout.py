"""Per-tenant realtime broadcast of message events.

Each connection gets its own bounded FIFO outbox drained by a dedicated task,
so a publish never waits on a socket and every connection sees events in the
order they were published. A connection whose outbox fills up is dropped.
"""

import asyncio
from typing import Any, Protocol

import structlog

from chatly.core.config import settings
from chatly.models import Message, MessageStatus

logger = structlog.get_logger()

NEW_MESSAGE_EVENT = "message:new"
STATUS_UPDATE_EVENT = "message:update"


class Connection(Protocol):
    """A live client connection able to receive JSON events."""

    async def send_json(self, data: Any) -> None: ...


class Subscriber:
    """A joined connection plus its outbox and delivery task."""

    def __init__(
        self,
        connection: Connection,
        tenant_id: str,
        fanout: "RealtimeFanout",
        maxsize: int = 0,
    ) -> None:
        self.connection = connection
        self.tenant_id = tenant_id
        self.outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self._fanout = fanout
        self._task = asyncio.get_running_loop().create_task(self._pump())

    def enqueue(self, event: dict[str, Any]) -> bool:
        """Queue an event. False if the outbox is full."""
        try:
            self.outbox.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    async def _pump(self) -> None:
        while True:
            event = await self.outbox.get()
            try:
                await self.connection.send_json(event)
            except Exception as e:
                logger.warning(
                    "Dropping connection after failed delivery",
                    tenant_id=self.tenant_id,
                    error=str(e),
                )
                self._discard_pending()
                self._fanout.registry.remove(self.connection)
                return
            finally:
                # Also runs on cancellation so outbox.join() never waits on a dead send
                self.outbox.task_done()

    def _discard_pending(self) -> None:
        while not self.outbox.empty():
            self.outbox.get_nowait()
            self.outbox.task_done()

    def close(self) -> None:
        if not self._task.done() and self._task is not asyncio.current_task():
            self._task.cancel()
        self._discard_pending()


class ConnectionRegistry:
    """Maps tenant ids to the subscribers in that tenant's group."""

    def __init__(self) -> None:
        self._groups: dict[str, dict[int, Subscriber]] = {}
        self._by_connection: dict[int, Subscriber] = {}

    def add(self, subscriber: Subscriber) -> None:
        key = id(subscriber.connection)
        self._groups.setdefault(subscriber.tenant_id, {})[key] = subscriber
        self._by_connection[key] = subscriber

    def remove(self, connection: Connection) -> Subscriber | None:
        subscriber = self._by_connection.pop(id(connection), None)
        if subscriber is None:
            return None
        group = self._groups.get(subscriber.tenant_id, {})
        group.pop(id(connection), None)
        if not group:
            self._groups.pop(subscriber.tenant_id, None)
        return subscriber

    def get(self, connection: Connection) -> Subscriber | None:
        return self._by_connection.get(id(connection))

    def members(self, tenant_id: str) -> list[Subscriber]:
        return list(self._groups.get(tenant_id, {}).values())

    def all(self) -> list[Subscriber]:
        return list(self._by_connection.values())

    def count(self, tenant_id: str | None = None) -> int:
        if tenant_id is None:
            return len(self._by_connection)
        return len(self._groups.get(tenant_id, {}))


class RealtimeFanout:
    """Broadcasts message events to every connection joined to a tenant."""

    def __init__(
        self,
        registry: ConnectionRegistry | None = None,
        outbox_limit: int | None = None,
    ) -> None:
        self.registry = registry or ConnectionRegistry()
        self.outbox_limit = settings.realtime_outbox_limit if outbox_limit is None else outbox_limit

    def join(self, connection: Connection, tenant_id: str) -> None:
        """Subscribe a connection to a tenant's group, leaving any previous one.

        No authorization happens here; callers must only pass a tenant id the
        connection is entitled to.
        """
        current = self.registry.get(connection)
        if current is not None:
            if current.tenant_id == tenant_id:
                return
            self.leave(connection)

        self.registry.add(Subscriber(connection, tenant_id, self, maxsize=self.outbox_limit))
        logger.debug("Connection joined tenant", tenant_id=tenant_id)

    def leave(self, connection: Connection) -> None:
        subscriber = self.registry.remove(connection)
        if subscriber is not None:
            subscriber.close()
            logger.debug("Connection left tenant", tenant_id=subscriber.tenant_id)

    def tenant_of(self, connection: Connection) -> str | None:
        subscriber = self.registry.get(connection)
        return subscriber.tenant_id if subscriber else None

    def notify(self, connection: Connection, event: dict[str, Any]) -> bool:
        """Queue an event for one joined connection.

        False if it has not joined, or was dropped because its outbox is full.
        """
        subscriber = self.registry.get(connection)
        if subscriber is None:
            return False
        if not subscriber.enqueue(event):
            self._drop_overflowing(subscriber)
            return False
        return True

    def publish_new_message(self, tenant_id: str, message: Message) -> int:
        """Queue a new-message event for the tenant's group. Returns recipient count."""
        return self._publish(
            tenant_id,
            {"event": NEW_MESSAGE_EVENT, "data": message.to_event_payload()},
        )

    def publish_status_update(self, tenant_id: str, message_id: str, status: MessageStatus) -> int:
        """Queue a status-change event for the tenant's group. Returns recipient count."""
        return self._publish(
            tenant_id,
            {
                "event": STATUS_UPDATE_EVENT,
                "data": {"messageId": message_id, "status": MessageStatus(status).value},
            },
        )

    def _publish(self, tenant_id: str, event: dict[str, Any]) -> int:
        recipients = 0
        for subscriber in self.registry.members(tenant_id):
            if subscriber.enqueue(event):
                recipients += 1
            else:
                self._drop_overflowing(subscriber)
        logger.debug(
            "Published realtime event",
            tenant_id=tenant_id,
            event=event["event"],
            recipients=recipients,
        )
        return recipients

    def _drop_overflowing(self, subscriber: Subscriber) -> None:
        logger.warning(
            "Dropping connection with full outbox",
            tenant_id=subscriber.tenant_id,
            limit=self.outbox_limit,
        )
        self.leave(subscriber.connection)

    async def drain(self) -> None:
        """Wait until every joined connection has been sent its queued events."""
        await asyncio.gather(*(s.outbox.join() for s in self.registry.all()))

    def close(self) -> None:
        for subscriber in self.registry.all():
            self.leave(subscriber.connection)


# Process-wide instance, handed to request handlers through dependencies
_fanout: RealtimeFanout | None = None


def get_fanout() -> RealtimeFanout:
    """Get or create the fanout for this process."""
    global _fanout
    if _fanout is None:
        _fanout = RealtimeFanout()
    return _fanout


def reset_fanout() -> None:
    """Reset the fanout singleton (for testing)."""
    global _fanout
    if _fanout is not None:
        _fanout.close()
    _fanout = None
