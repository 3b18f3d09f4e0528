"""Async message bus linking channels to the agent core."""

import asyncio
from typing import Any, Awaitable, Callable

from loguru import logger

from pincer.bus.events import ApprovalResponse, InboundMessage

Subscriber = Callable[[Any], Awaitable[None]]


class MessageBus:
    """
    Async message bus that decouples channels from the agent core.

    Channels push user messages to the inbound queue; the agent consumes them
    one at a time. Everything the agent produces (stream fragments, stream
    end, final messages, tool activity, approval requests) is published as a
    typed event and delivered to subscribers in subscription order.
    """

    def __init__(self):
        self.inbound: asyncio.Queue[InboundMessage] = asyncio.Queue()
        self._subscribers: dict[type, list[tuple[str | None, Subscriber]]] = {}

    async def publish_inbound(self, msg: InboundMessage) -> None:
        """Publish a message from a channel to the agent."""
        logger.debug(f"Inbound {msg.channel}:{msg.conversation_id}: {msg.content[:80]}")
        await self.inbound.put(msg)

    async def consume_inbound(self) -> InboundMessage:
        """Consume the next inbound message (blocks until available)."""
        return await self.inbound.get()

    def subscribe(
        self,
        event_type: type,
        callback: Subscriber,
        channel: str | None = None,
    ) -> None:
        """Subscribe to one event type, optionally restricted to a channel."""
        self._subscribers.setdefault(event_type, []).append((channel, callback))

    def unsubscribe(self, event_type: type, callback: Subscriber) -> None:
        subscribers = self._subscribers.get(event_type, [])
        self._subscribers[event_type] = [(c, cb) for c, cb in subscribers if cb is not callback]

    async def publish(self, event: Any) -> None:
        """
        Deliver an event to every matching subscriber.

        Subscribers are awaited one after another, so events published from a
        single turn reach every subscriber in the order they were produced.
        """
        event_channel = getattr(event, "channel", None) or None
        for channel, callback in list(self._subscribers.get(type(event), [])):
            if channel is not None and channel != event_channel:
                continue
            try:
                await callback(event)
            except Exception as e:
                logger.error(f"Error dispatching {type(event).__name__} to subscriber: {e}")

    async def respond_to_approval(self, invocation_id: str, approved: bool, channel: str = "") -> None:
        """Publish an approval answer coming from any channel."""
        await self.publish(ApprovalResponse(invocation_id=invocation_id, approved=approved, channel=channel))

    @property
    def inbound_size(self) -> int:
        """Number of pending inbound messages."""
        return self.inbound.qsize()
