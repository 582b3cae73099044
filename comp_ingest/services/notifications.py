from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from typing import Any

import redis

"""Run notifications.

NotificationHub fans each (event, payload) pair out to every subscriber.
Delivery is best-effort: a subscriber that raises is logged and skipped,
the others still receive the message and the run is unaffected.

RedisChannelPublisher is a subscriber that forwards messages to a Redis
pub/sub channel for consumers in other processes.
"""

__all__ = [
    "Subscriber",
    "NotificationHub",
    "RedisChannelPublisher",
]

logger = logging.getLogger(__name__)

Subscriber = Callable[[str, dict[str, Any]], None]


class NotificationHub:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register ``subscriber``; returns a callable that unsubscribes it."""
        with self._lock:
            self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return unsubscribe

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: str, payload: dict[str, Any]) -> int:
        """Deliver to all current subscribers. Returns the number of failed deliveries."""
        with self._lock:
            targets = list(self._subscribers)
        failures = 0
        for subscriber in targets:
            try:
                subscriber(event, payload)
            except Exception:
                failures += 1
                logger.warning("notification subscriber failed event=%s", event, exc_info=True)
        return failures


class RedisChannelPublisher:
    """Subscriber publishing ``{"event": ..., "data": ...}`` JSON to a Redis channel."""

    def __init__(self, client: redis.Redis, channel: str) -> None:
        self._client = client
        self.channel = channel

    @classmethod
    def from_url(cls, url: str, organization_id: str) -> RedisChannelPublisher:
        return cls(redis.Redis.from_url(url, decode_responses=True), f"org:{organization_id}:import")

    def __call__(self, event: str, payload: dict[str, Any]) -> None:
        self._client.publish(self.channel, json.dumps({"event": event, "data": payload}, ensure_ascii=False))
