"""
Bus module for GatherDB - live notification distribution.

This module provides:
- EventBus: topic-keyed publish/subscribe with per-consumer queues
- ChannelMultiplexer: client-facing channels mapped onto bus topics
- PeriodicCounter: per-consumer ticking task for the counter channel

Invariants:
    - publish() never blocks on a consumer
    - Every attachment is released when its consumer stops
    - No replay of payloads published before a consumer attached
"""

from .channels import Channel, ChannelMultiplexer, PeriodicCounter
from .event_bus import EventBus, Subscription
from .topics import COUNTER_CHANNEL, ChangeType, channel_for, topic_for

__all__ = [
    "EventBus",
    "Subscription",
    "Channel",
    "ChannelMultiplexer",
    "PeriodicCounter",
    "ChangeType",
    "COUNTER_CHANNEL",
    "channel_for",
    "topic_for",
]
