"""
In-process topic publish/subscribe.

The EventBus keeps a registry of topic -> attachments. Each attachment
(a ``Subscription``) owns a private asyncio queue: ``publish`` drops the
payload into the queue of every attachment registered at call time and
returns immediately, and each consumer pulls from its own queue in its
own turn.

Invariants:
    - A subscription sees only payloads published after subscribe()
      returned, in publish order
    - publish() never awaits; a slow or stalled consumer cannot block
      the publisher or other consumers
    - A payload is handed to every attachment that existed when
      publish() was called; none are skipped
    - Closing a subscription removes it from the registry synchronously

How to change safely:
    - Keep publish() synchronous so mutations and fan-out happen in the
      same scheduling turn
    - Any new way of ending a subscription must go through close() so
      the registry does not leak attachments
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """One consumer's attachment to a topic.

    Usable as an async iterator and as an async context manager; leaving
    the ``async with`` block or calling ``aclose()`` detaches it.

    Attributes:
        topic: Topic this attachment listens to
        subscription_id: Process-unique sequence number, for logs

    Example:
        >>> async with bus.subscribe("ACCOUNT_CREATED") as sub:
        ...     async for payload in sub:
        ...         handle(payload)
    """

    def __init__(self, bus: EventBus, topic: str, subscription_id: int) -> None:
        self.topic = topic
        self.subscription_id = subscription_id
        self._bus = bus
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether this attachment has been detached."""
        return self._closed

    @property
    def pending(self) -> int:
        """Payloads delivered but not yet pulled."""
        return self._queue.qsize()

    def _deliver(self, payload: Any) -> None:
        if not self._closed:
            self._queue.put_nowait(payload)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Any:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        payload = await self._queue.get()
        if payload is _CLOSED:
            raise StopAsyncIteration
        return payload

    def close(self) -> None:
        """Detach from the bus. Idempotent.

        A consumer blocked in ``__anext__`` is woken and its iteration
        ends after any payloads already delivered.
        """
        if self._closed:
            return
        self._closed = True
        self._bus._detach(self)
        self._queue.put_nowait(_CLOSED)

    async def aclose(self) -> None:
        self.close()

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"Subscription(id={self.subscription_id}, topic={self.topic}, {state})"


class EventBus:
    """Topic-keyed publish/subscribe registry.

    Example:
        >>> bus = EventBus()
        >>> sub = bus.subscribe("ACCOUNT_CREATED")
        >>> bus.publish("ACCOUNT_CREATED", account)
        1
        >>> await sub.__anext__() is account
        True
        >>> sub.close()
    """

    def __init__(self) -> None:
        self._attachments: Dict[str, List[Subscription]] = {}
        self._sequence = itertools.count(1)

    def subscribe(self, topic: str) -> Subscription:
        """Attach a new consumer to ``topic``.

        The attachment is registered before this method returns, so any
        later publish() reaches it.

        Args:
            topic: Topic name

        Returns:
            A fresh Subscription owned by the caller
        """
        subscription = Subscription(self, topic, next(self._sequence))
        self._attachments.setdefault(topic, []).append(subscription)
        logger.debug(
            "Subscription attached",
            extra={"topic": topic, "subscription_id": subscription.subscription_id},
        )
        return subscription

    def publish(self, topic: str, payload: Any) -> int:
        """Hand ``payload`` to every consumer currently attached to ``topic``.

        Args:
            topic: Topic name
            payload: Value to deliver; delivered by reference

        Returns:
            Number of attachments that received the payload
        """
        attachments = list(self._attachments.get(topic, ()))
        for subscription in attachments:
            subscription._deliver(payload)
        logger.debug("Payload published", extra={"topic": topic, "delivered": len(attachments)})
        return len(attachments)

    def attachment_count(self, topic: Optional[str] = None) -> int:
        """Number of live attachments, for one topic or in total."""
        if topic is not None:
            return len(self._attachments.get(topic, ()))
        return sum(len(subs) for subs in self._attachments.values())

    def topics(self) -> List[str]:
        """Topics with at least one live attachment."""
        return list(self._attachments)

    def close(self) -> None:
        """Detach every subscription; waiting consumers finish iterating."""
        for subscriptions in list(self._attachments.values()):
            for subscription in list(subscriptions):
                subscription.close()
        self._attachments.clear()
        logger.debug("EventBus closed")

    def _detach(self, subscription: Subscription) -> None:
        subscriptions = self._attachments.get(subscription.topic)
        if not subscriptions:
            return
        try:
            subscriptions.remove(subscription)
        except ValueError:
            return
        if not subscriptions:
            del self._attachments[subscription.topic]
        logger.debug(
            "Subscription detached",
            extra={"topic": subscription.topic, "subscription_id": subscription.subscription_id},
        )
