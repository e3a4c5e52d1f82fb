"""Typed publish/subscribe bus connecting the intelligence components."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from assistant_engine.logs import get_logger

logger = get_logger(__name__)


class Topic(str, Enum):
    KNOWLEDGE_UPDATED = "knowledgeUpdated"
    CORRELATIONS_UPDATED = "correlationsUpdated"
    LIFECYCLE_UPDATED = "lifecycleUpdated"
    USER_INSIGHTS_UPDATED = "userInsightsUpdated"


@dataclass(frozen=True)
class Notification:
    topic: Topic
    user_id: str
    payload: dict = field(default_factory=dict)


Subscriber = Callable[[Notification], None]


class MessageBus:
    """Synchronous in-process bus; delivery never awaits."""

    def __init__(self) -> None:
        self._subscribers: dict[Topic, list[Subscriber]] = defaultdict(list)

    def subscribe(self, topic: Topic, callback: Subscriber) -> Callable[[], None]:
        """Register callback for topic and return a function that removes it."""

        self._subscribers[topic].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[topic]:
                self._subscribers[topic].remove(callback)

        return unsubscribe

    def publish(self, notification: Notification) -> int:
        """Deliver to every subscriber of the topic; returns the delivery count."""

        delivered = 0
        for callback in list(self._subscribers[notification.topic]):
            try:
                callback(notification)
                delivered += 1
            except Exception:
                logger.exception(
                    "Subscriber failed for %s (user %s)", notification.topic.value, notification.user_id
                )
        return delivered

    def subscriber_count(self, topic: Topic) -> int:
        return len(self._subscribers[topic])
