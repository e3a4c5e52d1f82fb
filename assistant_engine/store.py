"""Explicit state store for per-user sessions and caches."""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from assistant_engine.behavior_model import FeedbackModel
from assistant_engine.knowledge import KnowledgeSnapshot
from assistant_engine.logs import get_logger
from assistant_engine.schema import CorrelationRecord, LifecycleRecord, PairId

logger = get_logger(__name__)

DEFAULT_QUEUE_CAPACITY = 100


@dataclass
class CorrelationCache:
    """Scored pairs plus the counterpart records they were computed from."""

    records: dict[PairId, CorrelationRecord] = field(default_factory=dict)
    events: dict[str, dict] = field(default_factory=dict)
    tasks: dict[str, dict] = field(default_factory=dict)
    last_update: Optional[datetime] = None


@dataclass
class UserSession:
    """Live intelligence state for one user."""

    user_id: str
    update_queue: deque
    started_at: datetime
    lifecycle: dict[str, LifecycleRecord] = field(default_factory=dict)
    tracked_projects: set[str] = field(default_factory=set)
    ignored_projects: set[str] = field(default_factory=set)
    snapshot: Optional[KnowledgeSnapshot] = None
    last_analysis_at: Optional[datetime] = None
    last_reconciled_at: Optional[datetime] = None
    active: bool = True
    reconciling: bool = False
    timer: Optional[asyncio.Task] = None
    dropped_updates: int = 0

    def enqueue(self, update: dict) -> None:
        """Append an update; at capacity the oldest entry is dropped."""

        if len(self.update_queue) == self.update_queue.maxlen:
            self.dropped_updates += 1
            logger.debug("Update queue full for %s, dropping oldest entry", self.user_id)
        self.update_queue.append(update)

    def drain(self) -> list[dict]:
        updates = list(self.update_queue)
        self.update_queue.clear()
        return updates


class IntelligenceStore:
    """Owns sessions, correlation caches and feedback models; open before use."""

    def __init__(self, queue_capacity: int = DEFAULT_QUEUE_CAPACITY):
        self.queue_capacity = queue_capacity
        self._open = False
        self._sessions: dict[str, UserSession] = {}
        self._correlations: dict[str, CorrelationCache] = {}
        self._feedback: dict[str, FeedbackModel] = {}

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> IntelligenceStore:
        self._open = True
        return self

    def close(self) -> None:
        """Stop every session timer and drop all state."""

        for session in self._sessions.values():
            session.active = False
            if session.timer is not None and not session.timer.done():
                session.timer.cancel()
        self._sessions.clear()
        self._correlations.clear()
        self._feedback.clear()
        self._open = False

    def _require_open(self) -> None:
        if not self._open:
            raise RuntimeError("IntelligenceStore is not open")

    def get_session(self, user_id: str) -> Optional[UserSession]:
        self._require_open()
        return self._sessions.get(user_id)

    def create_session(self, user_id: str, started_at: Optional[datetime] = None) -> UserSession:
        self._require_open()
        session = UserSession(
            user_id=user_id,
            update_queue=deque(maxlen=self.queue_capacity),
            started_at=started_at or datetime.now(timezone.utc),
        )
        self._sessions[user_id] = session
        return session

    def discard_session(self, user_id: str) -> Optional[UserSession]:
        self._require_open()
        return self._sessions.pop(user_id, None)

    def sessions(self) -> list[UserSession]:
        self._require_open()
        return list(self._sessions.values())

    def correlation_cache(self, user_id: str) -> CorrelationCache:
        self._require_open()
        return self._correlations.setdefault(user_id, CorrelationCache())

    def peek_correlation_cache(self, user_id: str) -> Optional[CorrelationCache]:
        self._require_open()
        return self._correlations.get(user_id)

    def drop_correlation_cache(self, user_id: str) -> None:
        self._require_open()
        self._correlations.pop(user_id, None)

    def correlation_cache_sizes(self) -> dict[str, int]:
        self._require_open()
        return {user_id: len(cache.records) for user_id, cache in self._correlations.items()}

    def feedback_model(self, user_id: str) -> FeedbackModel:
        self._require_open()
        return self._feedback.setdefault(user_id, FeedbackModel())
