"""Event-task correlation scoring with a per-user cache."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import numpy as np

from assistant_engine.bus import MessageBus, Notification, Topic
from assistant_engine.features import event_start, event_text, task_due, task_text, tokenize
from assistant_engine.logs import get_logger
from assistant_engine.schema import CorrelationAlgorithm, CorrelationRecord, confidence_level
from assistant_engine.store import CorrelationCache, IntelligenceStore

logger = get_logger(__name__)

BEHAVIORAL_PRIOR = 0.5
DEFAULT_MAX_AGE = timedelta(hours=24)
_TIMELINE_BANDS = ((1, 1.0), (3, 0.8), (7, 0.6), (14, 0.4))
_TIMELINE_FLOOR = 0.2
_TITLE_PREFIX_CHARS = 10


def jaccard_similarity(left_text: str, right_text: str) -> float:
    """Jaccard similarity of two texts' token sets."""

    left = tokenize(left_text)
    right = tokenize(right_text)
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def keyword_score(event: dict, task: dict) -> float:
    return jaccard_similarity(event_text(event), task_text(task))


def timeline_score(event: dict, task: dict) -> Optional[float]:
    """Closeness of event start and task due date; None when either is missing."""

    start = event_start(event)
    due = task_due(task)
    if start is None or due is None:
        return None
    gap_days = abs((start - due).total_seconds()) / 86400.0
    for limit, score in _TIMELINE_BANDS:
        if gap_days <= limit:
            return score
    return _TIMELINE_FLOOR


def contextual_score(event: dict, task: dict) -> float:
    title = str(task.get("title") or "").strip().lower()
    summary = str(event.get("summary") or "").lower()
    text = event_text(event)

    score = 0.0
    prefix = title[:_TITLE_PREFIX_CHARS]
    if prefix and prefix in text:
        score += 0.4
    if "meeting" in summary and "follow" in title:
        score += 0.3
    start = event_start(event)
    due = task_due(task)
    if start is not None and due is not None and start.date() == due.date():
        score += 0.3
    return min(score, 1.0)


def select_best_algorithm(components: dict[str, Optional[float]]) -> CorrelationAlgorithm:
    """Algorithm with the highest score among those that applied."""

    applied = {name: value for name, value in components.items() if value is not None}
    if not applied:
        return CorrelationAlgorithm.KEYWORD
    best = max(applied, key=lambda name: applied[name])
    return CorrelationAlgorithm(best)


class CorrelationEngine:
    """Scores calendar events against tasks and keeps the results per user."""

    def __init__(
        self,
        store: IntelligenceStore,
        bus: Optional[MessageBus] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.bus = bus
        self.clock = clock

    def behavioral_score(self, user_id: str, components: dict[str, Optional[float]]) -> float:
        predicted = self.store.feedback_model(user_id).predict(components)
        return BEHAVIORAL_PRIOR if predicted is None else predicted

    def score_pair(self, event: dict, task: dict, user_id: Optional[str] = None) -> tuple[float, dict]:
        """Mean of the applicable algorithm scores and the per-algorithm breakdown."""

        components: dict[str, Optional[float]] = {
            CorrelationAlgorithm.KEYWORD.value: keyword_score(event, task),
            CorrelationAlgorithm.TIMELINE.value: timeline_score(event, task),
            CorrelationAlgorithm.CONTEXTUAL.value: contextual_score(event, task),
        }
        if user_id is None:
            behavioral = BEHAVIORAL_PRIOR
        else:
            behavioral = self.behavioral_score(user_id, components)
        components[CorrelationAlgorithm.BEHAVIORAL.value] = behavioral

        applied = [value for value in components.values() if value is not None]
        score = float(np.mean(applied)) if applied else 0.0
        return max(0.0, min(1.0, score)), components

    def _correlate(self, user_id: str, cache: CorrelationCache, event: dict, task: dict, now: datetime) -> None:
        score, components = self.score_pair(event, task, user_id)
        pair_id = (str(event["id"]), str(task["id"]))
        cache.records[pair_id] = CorrelationRecord(
            pair_id=pair_id,
            event=dict(event),
            task=dict(task),
            score=score,
            algorithm=select_best_algorithm(components),
            computed_at=now,
            components=components,
        )

    def update(self, user_id: str, source_kind: str, record: dict) -> int:
        """Rescore a changed event or task against every counterpart on file."""

        if source_kind not in ("event", "task"):
            logger.warning("Ignoring correlation update of unknown kind %r for %s", source_kind, user_id)
            return 0
        if not record.get("id"):
            logger.warning("Ignoring %s update without id for %s", source_kind, user_id)
            return 0

        cache = self.store.correlation_cache(user_id)
        now = self.clock()
        record_id = str(record["id"])
        if source_kind == "event":
            cache.events[record_id] = dict(record)
            for task in cache.tasks.values():
                self._correlate(user_id, cache, record, task, now)
            rescored = len(cache.tasks)
        else:
            cache.tasks[record_id] = dict(record)
            for event in cache.events.values():
                self._correlate(user_id, cache, event, record, now)
            rescored = len(cache.events)
        cache.last_update = now

        if self.bus is not None:
            self.bus.publish(
                Notification(
                    Topic.CORRELATIONS_UPDATED,
                    user_id,
                    {
                        "kind": source_kind,
                        "record_id": record_id,
                        "count": len(cache.records),
                        "confidence": self._overall_confidence(cache),
                    },
                )
            )
        return rescored

    def register_records(self, user_id: str, events: list[dict], tasks: list[dict]) -> int:
        """Refresh the counterpart index from a knowledge snapshot.

        Pairs already scored are rescored when either record changed; pairs
        never scored stay unscored. Returns how many pairs were rescored.
        """

        cache = self.store.correlation_cache(user_id)
        changed_events = self._reindex(cache.events, events)
        changed_tasks = self._reindex(cache.tasks, tasks)
        if not changed_events and not changed_tasks:
            return 0

        now = self.clock()
        rescored = 0
        for event_id, task_id in list(cache.records):
            if event_id not in changed_events and task_id not in changed_tasks:
                continue
            self._correlate(user_id, cache, cache.events[event_id], cache.tasks[task_id], now)
            rescored += 1
        if rescored:
            cache.last_update = now
            logger.debug("Rescored %d correlations for %s after snapshot refresh", rescored, user_id)
        return rescored

    @staticmethod
    def _reindex(index: dict[str, dict], records: list[dict]) -> set[str]:
        changed = set()
        for record in records:
            if not record.get("id"):
                continue
            record_id = str(record["id"])
            if record_id in index and index[record_id] != record:
                changed.add(record_id)
            index[record_id] = dict(record)
        return changed

    def record_feedback(self, user_id: str, event_id: str, task_id: str, accepted: bool) -> None:
        """Learn from a user confirming or rejecting a suggested link."""

        cache = self.store.correlation_cache(user_id)
        record = cache.records.get((str(event_id), str(task_id)))
        if record is None:
            raise KeyError(f"No correlation between event {event_id} and task {task_id}")
        self.store.feedback_model(user_id).record(record.components, accepted)

    @staticmethod
    def _overall_confidence(cache: CorrelationCache) -> float:
        if not cache.records:
            return 0.0
        return float(np.mean([record.score for record in cache.records.values()]))

    def get_real_time_correlations(self, user_id: str) -> dict:
        cache = self.store.peek_correlation_cache(user_id) or CorrelationCache()
        records = sorted(cache.records.values(), key=lambda r: r.score, reverse=True)
        overall = self._overall_confidence(cache)
        return {
            "correlations": [record.as_dict() for record in records],
            "overall_confidence": overall,
            "confidence_level": confidence_level(overall),
            "last_update": cache.last_update.isoformat() if cache.last_update else None,
        }

    def cleanup(self, user_id: str, max_age: timedelta = DEFAULT_MAX_AGE) -> int:
        """Drop correlations older than max_age; returns how many were removed."""

        cache = self.store.peek_correlation_cache(user_id)
        if cache is None:
            return 0
        cutoff = self.clock() - max_age
        stale = [pair_id for pair_id, record in cache.records.items() if record.computed_at < cutoff]
        for pair_id in stale:
            del cache.records[pair_id]
        if stale:
            logger.debug("Pruned %d stale correlations for %s", len(stale), user_id)
        return len(stale)

    def purge(self, user_id: str) -> None:
        self.store.drop_correlation_cache(user_id)
