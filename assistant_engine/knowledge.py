"""User knowledge snapshots and the in-memory knowledge source."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional, Protocol

from assistant_engine.bus import MessageBus, Notification, Topic
from assistant_engine.logs import get_logger

logger = get_logger(__name__)

UNASSIGNED_PROJECT = "unassigned"


@dataclass
class KnowledgeSnapshot:
    """Everything currently known about a user's tasks and calendar events."""

    tasks: list[dict] = field(default_factory=list)
    events: list[dict] = field(default_factory=list)

    def project_ids(self) -> list[str]:
        """Distinct explicit project ids, in first-seen order."""

        seen: dict[str, None] = {}
        for record in (*self.tasks, *self.events):
            project = record.get("project")
            if project:
                seen.setdefault(str(project), None)
        return list(seen)

    def for_project(self, project_id: str) -> dict:
        if project_id == UNASSIGNED_PROJECT:
            return {"tasks": list(self.tasks), "events": list(self.events)}
        return {
            "tasks": [t for t in self.tasks if str(t.get("project")) == project_id],
            "events": [e for e in self.events if str(e.get("project")) == project_id],
        }


class KnowledgeSource(Protocol):
    async def get_comprehensive_user_knowledge(self, user_id: str) -> KnowledgeSnapshot:
        ...


class InMemoryKnowledgeStore:
    """Knowledge source backed by dicts; every write is announced on the bus."""

    def __init__(self, bus: Optional[MessageBus] = None):
        self.bus = bus
        self._tasks: dict[str, dict[str, dict]] = defaultdict(dict)
        self._events: dict[str, dict[str, dict]] = defaultdict(dict)

    def load_snapshot(self, user_id: str, snapshot: KnowledgeSnapshot) -> None:
        """Replace a user's knowledge without publishing per-record updates."""

        self._tasks[user_id] = {str(t["id"]): dict(t) for t in snapshot.tasks}
        self._events[user_id] = {str(e["id"]): dict(e) for e in snapshot.events}

    def record_event(self, user_id: str, event: dict) -> None:
        self._upsert(user_id, "event", event, self._events[user_id])

    def record_task(self, user_id: str, task: dict) -> None:
        self._upsert(user_id, "task", task, self._tasks[user_id])

    def _upsert(self, user_id: str, kind: str, record: dict, bucket: dict[str, dict]) -> None:
        if not record.get("id"):
            raise ValueError(f"{kind} record requires an id")
        bucket[str(record["id"])] = dict(record)
        if self.bus is not None:
            self.bus.publish(
                Notification(Topic.KNOWLEDGE_UPDATED, user_id, {"kind": kind, "record": dict(record)})
            )

    async def get_comprehensive_user_knowledge(self, user_id: str) -> KnowledgeSnapshot:
        return KnowledgeSnapshot(
            tasks=[dict(t) for t in self._tasks.get(user_id, {}).values()],
            events=[dict(e) for e in self._events.get(user_id, {}).values()],
        )
