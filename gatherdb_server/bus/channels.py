"""
Subscription multiplexer: live-notification channels over the Event Bus.

A channel is what a client subscribes to (``accountCreated``); a topic
is what the bus routes on (``ACCOUNT_CREATED``). The multiplexer maps
each channel to exactly one topic and wraps every payload in the
channel's envelope, ``{channel_name: payload}``.

Two channel families exist and exactly one is active per deployment:

- ENTITY: created/updated/deleted channels for each observable kind
- COUNTER: a single ``counter`` channel ticking 1, 2, 3, ... on a fixed
  period, independent of any mutation

Invariants:
    - No bus attachment or timer exists until a consumer pulls the
      first item from a stream
    - The attachment or timer is released exactly when the consumer
      stops (aclose, cancellation or end of iteration)
    - Each counter consumer has its own timer; cancelling one does not
      affect another
    - A counter only waits while its consumer is pulling; ticks never
      pile up behind a stalled consumer
    - close() ends every counter stream

How to change safely:
    - New channels must map to exactly one topic
    - Keep release logic in ``finally`` blocks so cancellation cannot
      leak an attachment
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Set

from ..config import ChannelFamily
from ..errors import ChannelNotFoundError
from ..store import EntityKind
from .event_bus import EventBus
from .topics import COUNTER_CHANNEL, ChangeType, channel_for, topic_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Channel:
    """A live-notification channel backed by one bus topic.

    Attributes:
        name: Client-facing channel name
        topic: Event Bus topic
        kind: Entity kind carried by the channel
        change: Change type carried by the channel
    """

    name: str
    topic: str
    kind: EntityKind
    change: ChangeType

    def shape(self, payload: Any) -> Dict[str, Any]:
        """Wrap a raw payload in this channel's envelope."""
        return {self.name: payload}


class PeriodicCounter:
    """Pull-driven counter producing 1, 2, 3, ... for one consumer.

    Each call to next_value() waits one period and returns the next
    value, so nothing accumulates while the consumer is not pulling.
    stop() wakes a waiting caller, which then receives None.
    """

    def __init__(self, period: float, start_at: int = 1) -> None:
        self.period = period
        self._values = itertools.count(start_at)
        self._stopped = asyncio.Event()

    @property
    def running(self) -> bool:
        return not self._stopped.is_set()

    async def next_value(self) -> Optional[int]:
        """Wait one period and return the next value.

        Returns:
            The next value, or None once the counter has been stopped
        """
        if self._stopped.is_set():
            return None
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=self.period)
        except asyncio.TimeoutError:
            return next(self._values)
        return None

    def stop(self) -> None:
        self._stopped.set()


class ChannelMultiplexer:
    """Opens per-consumer streams on named channels.

    Attributes:
        bus: Event Bus the entity channels read from
        family: Active channel family
        counter_period: Seconds between counter ticks

    Example:
        >>> mux = ChannelMultiplexer(bus, ChannelFamily.ENTITY, [EntityKind.ACCOUNT])
        >>> async for envelope in mux.stream("accountCreated"):
        ...     print(envelope["accountCreated"])
    """

    def __init__(
        self,
        bus: EventBus,
        family: ChannelFamily = ChannelFamily.ENTITY,
        observable_kinds: Iterable[EntityKind] = (),
        counter_period: float = 1.0,
    ) -> None:
        self.bus = bus
        self.family = family
        self.counter_period = counter_period
        self.observable_kinds = frozenset(observable_kinds)
        self._channels: Dict[str, Channel] = {}
        self._counters: Set[PeriodicCounter] = set()
        self._active = 0

        if family == ChannelFamily.ENTITY:
            for kind in EntityKind:
                if kind not in self.observable_kinds:
                    continue
                for change in ChangeType:
                    name = channel_for(kind, change)
                    self._channels[name] = Channel(
                        name=name,
                        topic=topic_for(kind, change),
                        kind=kind,
                        change=change,
                    )

    @property
    def active_streams(self) -> int:
        """Streams that have started and not yet been released."""
        return self._active

    def channel_names(self) -> List[str]:
        """Names of every channel available in the active family."""
        if self.family == ChannelFamily.COUNTER:
            return [COUNTER_CHANNEL]
        return list(self._channels)

    def is_observable(self, kind: EntityKind) -> bool:
        """Whether mutations of ``kind`` should publish notifications."""
        return self.family == ChannelFamily.ENTITY and kind in self.observable_kinds

    def get(self, name: str) -> Channel:
        """Look up an entity channel.

        Raises:
            ChannelNotFoundError: If the channel is unknown or inactive
        """
        channel = self._channels.get(name)
        if channel is None:
            raise ChannelNotFoundError(name, family=self.family.value)
        return channel

    def stream(self, name: str) -> AsyncIterator[Dict[str, Any]]:
        """Open a stream of envelopes on a channel.

        The name is checked immediately; the bus attachment (or counter
        timer) is only created when the consumer pulls the first item.

        Args:
            name: Channel name

        Returns:
            Async iterator of ``{name: payload}`` envelopes

        Raises:
            ChannelNotFoundError: If the channel is unknown or inactive
        """
        if self.family == ChannelFamily.COUNTER:
            if name != COUNTER_CHANNEL:
                raise ChannelNotFoundError(name, family=self.family.value)
            return self._count()
        return self._relay(self.get(name))

    async def _relay(self, channel: Channel) -> AsyncIterator[Dict[str, Any]]:
        subscription = self.bus.subscribe(channel.topic)
        self._active += 1
        logger.debug(f"Channel stream opened: {channel.name}")
        try:
            async for payload in subscription:
                yield channel.shape(payload)
        finally:
            subscription.close()
            self._active -= 1
            logger.debug(f"Channel stream closed: {channel.name}")

    def close(self) -> None:
        """Stop every live counter; their streams end on the next pull.

        Entity streams end when the bus they read from is closed.
        """
        for counter in list(self._counters):
            counter.stop()
        logger.debug(f"ChannelMultiplexer closed, {self._active} stream(s) draining")

    async def _count(self) -> AsyncIterator[Dict[str, Any]]:
        counter = PeriodicCounter(self.counter_period)
        self._counters.add(counter)
        self._active += 1
        logger.debug("Counter stream opened")
        try:
            while True:
                value = await counter.next_value()
                if value is None:
                    return
                yield {COUNTER_CHANNEL: value}
        finally:
            counter.stop()
            self._counters.discard(counter)
            self._active -= 1
            logger.debug("Counter stream closed")
