"""Per-user intelligence sessions: event intake, periodic reconciliation, synthesis."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from assistant_engine.bus import MessageBus, Notification, Topic
from assistant_engine.config import Settings
from assistant_engine.correlation import CorrelationEngine
from assistant_engine.errors import SessionNotFound
from assistant_engine.insights import (
    build_recommendations,
    correlation_insights,
    cross_engine_insights,
    data_freshness,
    lifecycle_insights,
    productivity_insights,
)
from assistant_engine.knowledge import KnowledgeSnapshot, KnowledgeSource
from assistant_engine.lifecycle import LifecycleTracker
from assistant_engine.logs import get_logger
from assistant_engine.productivity import ProductivityOptimizer
from assistant_engine.schema import LifecycleRecord, confidence_level
from assistant_engine.store import IntelligenceStore, UserSession
from assistant_engine.techniques import TechniqueMatrix
from assistant_engine.time_management import TimeManagementEngine
from assistant_engine.workflow import WorkflowAnalyzer

logger = get_logger(__name__)


def default_engines() -> dict:
    engines = (ProductivityOptimizer(), WorkflowAnalyzer(), TimeManagementEngine(), TechniqueMatrix())
    return {engine.name: engine for engine in engines}


class IntelligenceCoordinator:
    """Owns user sessions and keeps their correlation and lifecycle views current."""

    def __init__(
        self,
        store: IntelligenceStore,
        bus: MessageBus,
        knowledge: KnowledgeSource,
        correlation: Optional[CorrelationEngine] = None,
        lifecycle: Optional[LifecycleTracker] = None,
        settings: Optional[Settings] = None,
        engines: Optional[dict] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.bus = bus
        self.knowledge = knowledge
        self.clock = clock
        self.settings = settings or Settings()
        self.correlation = correlation or CorrelationEngine(store, bus, clock=clock)
        self.lifecycle = lifecycle or LifecycleTracker(bus, clock=clock)
        self.engines = engines if engines is not None else default_engines()
        self._unsubscribers = [
            bus.subscribe(Topic.KNOWLEDGE_UPDATED, self._on_knowledge_updated),
            bus.subscribe(Topic.CORRELATIONS_UPDATED, self._on_engine_update),
            bus.subscribe(Topic.LIFECYCLE_UPDATED, self._on_engine_update),
        ]

    # Session lifecycle

    def is_active(self, user_id: str) -> bool:
        session = self.store.get_session(user_id)
        return session is not None and session.active

    async def start_user_intelligence(self, user_id: str) -> UserSession:
        """Start a session, its timer and an immediate reconciliation; no-op when active."""

        existing = self.store.get_session(user_id)
        if existing is not None and existing.active:
            return existing

        session = self.store.create_session(user_id, started_at=self.clock())
        session.timer = asyncio.create_task(self._run_timer(session), name=f"intelligence-{user_id}")
        logger.info("Started intelligence session for %s", user_id)
        await self._reconcile_safely(session)
        return session

    def stop_user_intelligence(self, user_id: str) -> bool:
        """Cancel the timer, discard the session and purge the correlation cache."""

        session = self.store.discard_session(user_id)
        if session is None:
            return False
        session.active = False
        if session.timer is not None and not session.timer.done() and not session.reconciling:
            session.timer.cancel()
        session.update_queue.clear()
        self.correlation.purge(user_id)
        logger.info("Stopped intelligence session for %s", user_id)
        return True

    async def shutdown(self) -> None:
        """Stop every session and wait for their timers to finish."""

        timers = []
        for session in self.store.sessions():
            if session.timer is not None:
                timers.append(session.timer)
            self.stop_user_intelligence(session.user_id)
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)

    async def _run_timer(self, session: UserSession) -> None:
        interval = self.settings.reconcile_interval_seconds
        try:
            while session.active:
                await asyncio.sleep(interval)
                if not session.active:
                    break
                session.reconciling = True
                try:
                    await self._reconcile_safely(session)
                finally:
                    session.reconciling = False
        except asyncio.CancelledError:
            logger.debug("Timer cancelled for %s", session.user_id)

    # Event intake

    def _on_knowledge_updated(self, notification: Notification) -> None:
        session = self.store.get_session(notification.user_id)
        if session is None or not session.active:
            return
        kind = notification.payload.get("kind")
        record = notification.payload.get("record") or {}
        session.enqueue({"source": "knowledge", "kind": kind, "record_id": record.get("id")})
        self.correlation.update(notification.user_id, kind, record)

    def _on_engine_update(self, notification: Notification) -> None:
        session = self.store.get_session(notification.user_id)
        if session is None or not session.active:
            return
        session.enqueue({**notification.payload, "source": notification.topic.value})

    # Reconciliation

    async def _reconcile_safely(self, session: UserSession) -> None:
        try:
            await self.reconcile(session)
        except Exception:
            logger.exception("Reconciliation failed for %s", session.user_id)

    def _project_ids(self, session: UserSession, snapshot: KnowledgeSnapshot) -> list[str]:
        project_ids = list(session.tracked_projects)
        if self.settings.auto_track_projects:
            project_ids.extend(pid for pid in snapshot.project_ids() if pid not in project_ids)
        return [pid for pid in project_ids if pid not in session.ignored_projects]

    async def reconcile(self, session: UserSession) -> dict:
        """Drain queued updates, refresh knowledge and re-track every project."""

        user_id = session.user_id
        updates = session.drain()
        snapshot = await self.knowledge.get_comprehensive_user_knowledge(user_id)
        if not session.active:
            return {"updates": len(updates), "projects": []}

        session.snapshot = snapshot
        self.correlation.register_records(user_id, snapshot.events, snapshot.tasks)
        self.correlation.cleanup(user_id, timedelta(hours=self.settings.correlation_max_age_hours))

        tracked = []
        for project_id in self._project_ids(session, snapshot):
            data = snapshot.for_project(project_id)
            if not data["tasks"] and not data["events"]:
                continue
            session.lifecycle[project_id] = self.lifecycle.track_project_lifecycle(project_id, data, user_id)
            tracked.append(project_id)

        session.last_reconciled_at = self.clock()
        summary = {
            "updates": len(updates),
            "projects": tracked,
            "correlation_confidence": self.correlation.get_real_time_correlations(user_id)["overall_confidence"],
        }
        if session.active:
            self.bus.publish(Notification(Topic.USER_INSIGHTS_UPDATED, user_id, summary))
        return summary

    # Projects

    def _require_session(self, user_id: str) -> UserSession:
        session = self.store.get_session(user_id)
        if session is None or not session.active:
            raise SessionNotFound(user_id)
        return session

    def track_project(self, user_id: str, project_id: str, project_data: Optional[dict] = None) -> Optional[LifecycleRecord]:
        session = self._require_session(user_id)
        session.tracked_projects.add(project_id)
        session.ignored_projects.discard(project_id)
        if project_data is None:
            return None
        record = self.lifecycle.track_project_lifecycle(project_id, project_data, user_id)
        session.lifecycle[project_id] = record
        return record

    def untrack_project(self, user_id: str, project_id: str) -> bool:
        session = self._require_session(user_id)
        session.tracked_projects.discard(project_id)
        session.ignored_projects.add(project_id)
        return session.lifecycle.pop(project_id, None) is not None

    def get_project_lifecycle(self, user_id: str, project_id: str) -> Optional[LifecycleRecord]:
        return self._require_session(user_id).lifecycle.get(project_id)

    def get_all_project_lifecycles(self, user_id: str) -> list[LifecycleRecord]:
        return list(self._require_session(user_id).lifecycle.values())

    # Reads

    def record_feedback(self, user_id: str, event_id: str, task_id: str, accepted: bool) -> None:
        self._require_session(user_id)
        self.correlation.record_feedback(user_id, event_id, task_id, accepted)

    def run_engines(self, user_id: str, names: Iterable[str]) -> dict[str, dict]:
        """Run the named analysis engines on the user's latest snapshot."""

        session = self._require_session(user_id)
        snapshot = session.snapshot or KnowledgeSnapshot()
        now = self.clock()
        results = {}
        for name in names:
            engine = self.engines.get(name)
            if engine is None:
                logger.warning("Unknown analysis engine %r requested for %s", name, user_id)
                continue
            results[name] = engine.analyze(snapshot, now)
        return results

    def get_user_intelligence(self, user_id: str) -> dict:
        """Unified view across engines; stamps the session's last analysis time."""

        session = self._require_session(user_id)
        now = self.clock()

        correlations = self.correlation.get_real_time_correlations(user_id)
        projects = list(session.lifecycle.values())
        productivity = None
        if session.snapshot is not None and "productivity" in self.engines:
            productivity = self.engines["productivity"].analyze(session.snapshot, now)

        corr = correlation_insights(correlations)
        life = lifecycle_insights(projects)
        prod = productivity_insights(productivity)

        cache = self.store.peek_correlation_cache(user_id)
        session.last_analysis_at = now
        return {
            "user_id": user_id,
            "correlations": correlations,
            "lifecycle": {
                "projects": [record.as_dict() for record in projects],
                "summary": life["summary"],
            },
            "insights": {
                "correlation": corr,
                "lifecycle": life,
                "productivity": prod,
                "cross_engine": cross_engine_insights(corr, life, prod),
            },
            "recommendations": build_recommendations(corr, life, prod),
            "status": {
                "active": session.active,
                "queued_updates": len(session.update_queue),
                "dropped_updates": session.dropped_updates,
                "confidence_level": confidence_level(correlations["overall_confidence"]),
                "last_reconciled_at": session.last_reconciled_at.isoformat() if session.last_reconciled_at else None,
                "data_freshness": data_freshness(cache.last_update if cache else None, now),
            },
            "last_analysis_at": now.isoformat(),
        }

    def get_system_status(self) -> dict:
        sessions = self.store.sessions()
        return {
            "store_open": self.store.is_open,
            "active_users": sorted(session.user_id for session in sessions if session.active),
            "queued_updates": {session.user_id: len(session.update_queue) for session in sessions},
            "correlation_cache_sizes": self.store.correlation_cache_sizes(),
            "tracked_projects": {session.user_id: sorted(session.lifecycle) for session in sessions},
            "engines": sorted(self.engines),
            "reconcile_interval_seconds": self.settings.reconcile_interval_seconds,
        }
