import asyncio

import pytest

from assistant_engine.bus import MessageBus, Topic
from assistant_engine.config import Settings
from assistant_engine.coordinator import IntelligenceCoordinator
from assistant_engine.errors import SessionNotFound
from assistant_engine.knowledge import InMemoryKnowledgeStore, KnowledgeSnapshot
from assistant_engine.store import IntelligenceStore

from helpers import NOW, FixedClock, days, sample_event, sample_task


class FailingKnowledge:
    async def get_comprehensive_user_knowledge(self, user_id):
        raise ConnectionError(f"knowledge backend down for {user_id}")


def make_coordinator(interval=3600.0, knowledge=None):
    bus = MessageBus()
    knowledge = knowledge or InMemoryKnowledgeStore(bus)
    store = IntelligenceStore().open()
    coordinator = IntelligenceCoordinator(
        store, bus, knowledge, settings=Settings(reconcile_interval_seconds=interval), clock=FixedClock()
    )
    return coordinator, knowledge, store, bus


def website_snapshot():
    return KnowledgeSnapshot(
        events=[sample_event(project="website", start=NOW - days(1))],
        tasks=[
            sample_task(project="website", due=NOW + days(1)),
            sample_task(task_id="t2", title="Plan launch checklist", project="website", due=NOW + days(2)),
        ],
    )


@pytest.mark.asyncio
async def test_start_is_idempotent():
    coordinator, _, store, _ = make_coordinator()
    first = await coordinator.start_user_intelligence("u1")
    second = await coordinator.start_user_intelligence("u1")
    assert first is second
    assert len(store.sessions()) == 1
    await coordinator.shutdown()


@pytest.mark.asyncio
async def test_start_runs_immediate_reconciliation():
    coordinator, knowledge, store, bus = make_coordinator()
    knowledge.load_snapshot("u1", website_snapshot())
    published = []
    bus.subscribe(Topic.USER_INSIGHTS_UPDATED, published.append)

    session = await coordinator.start_user_intelligence("u1")
    assert session.started_at == NOW
    assert "website" in session.lifecycle
    assert session.last_reconciled_at is not None
    assert session.last_analysis_at is None
    assert published and published[0].payload["projects"] == ["website"]
    await coordinator.shutdown()


@pytest.mark.asyncio
async def test_stop_then_start_gives_fresh_state():
    coordinator, knowledge, store, _ = make_coordinator()
    knowledge.load_snapshot("u1", website_snapshot())
    await coordinator.start_user_intelligence("u1")
    knowledge.record_event("u1", sample_event(event_id="e9", summary="Website redesign sync"))
    coordinator.get_user_intelligence("u1")
    assert store.correlation_cache("u1").records

    assert coordinator.stop_user_intelligence("u1")
    session = await coordinator.start_user_intelligence("u1")

    assert session.last_analysis_at is None
    assert store.correlation_cache("u1").records == {}
    assert coordinator.correlation.get_real_time_correlations("u1")["correlations"] == []
    await coordinator.shutdown()


@pytest.mark.asyncio
async def test_stop_cancels_timer():
    coordinator, _, _, _ = make_coordinator()
    session = await coordinator.start_user_intelligence("u1")
    coordinator.stop_user_intelligence("u1")
    await asyncio.gather(session.timer, return_exceptions=True)
    assert session.timer.done()
    assert not coordinator.is_active("u1")
    assert coordinator.stop_user_intelligence("u1") is False


@pytest.mark.asyncio
async def test_knowledge_updates_are_correlated_and_queued():
    coordinator, knowledge, store, _ = make_coordinator()
    knowledge.load_snapshot("u1", website_snapshot())
    session = await coordinator.start_user_intelligence("u1")
    session.drain()

    knowledge.record_event("u1", sample_event(event_id="e2", summary="Website redesign review", start=NOW))

    sources = [update["source"] for update in session.update_queue]
    assert sources == ["knowledge", Topic.CORRELATIONS_UPDATED.value]
    assert session.update_queue[-1]["kind"] == "event"
    assert ("e2", "t1") in store.correlation_cache("u1").records
    await coordinator.shutdown()


@pytest.mark.asyncio
async def test_reconcile_rescores_pairs_changed_in_snapshot():
    coordinator, knowledge, store, _ = make_coordinator()
    knowledge.load_snapshot("u1", website_snapshot())
    session = await coordinator.start_user_intelligence("u1")
    review = sample_event(event_id="e2", summary="Website redesign review", start=NOW + days(1))
    knowledge.record_event("u1", review)
    assert store.correlation_cache("u1").records[("e2", "t1")].components["timeline"] == 1.0

    moved = sample_task(project="website", due=NOW + days(22))
    knowledge.load_snapshot("u1", KnowledgeSnapshot(events=[review], tasks=[moved]))
    await coordinator.reconcile(session)

    record = store.correlation_cache("u1").records[("e2", "t1")]
    assert record.task["due"] == moved["due"]
    assert record.components["timeline"] == 0.2
    await coordinator.shutdown()


@pytest.mark.asyncio
async def test_project_lifecycles_and_feedback_through_coordinator():
    coordinator, knowledge, store, _ = make_coordinator()
    knowledge.load_snapshot("u1", website_snapshot())
    await coordinator.start_user_intelligence("u1")
    coordinator.track_project("u1", "launch", {"tasks": [sample_task(task_id="t9", title="Launch plan")], "events": []})

    projects = {record.project_id for record in coordinator.get_all_project_lifecycles("u1")}
    assert projects == {"website", "launch"}

    knowledge.record_event("u1", sample_event(event_id="e2", summary="Website redesign review"))
    coordinator.record_feedback("u1", "e2", "t1", accepted=True)
    assert store.feedback_model("u1").sample_count == 1
    with pytest.raises(KeyError):
        coordinator.record_feedback("u1", "e2", "missing", accepted=False)
    await coordinator.shutdown()
    with pytest.raises(SessionNotFound):
        coordinator.get_all_project_lifecycles("u1")


@pytest.mark.asyncio
async def test_updates_for_inactive_users_are_ignored():
    coordinator, knowledge, store, _ = make_coordinator()
    knowledge.record_task("ghost", sample_task())
    assert store.peek_correlation_cache("ghost") is None


@pytest.mark.asyncio
async def test_timer_reconciles_periodically():
    coordinator, knowledge, _, bus = make_coordinator(interval=0.01)
    published = []
    bus.subscribe(Topic.USER_INSIGHTS_UPDATED, published.append)
    await coordinator.start_user_intelligence("u1")
    await asyncio.sleep(0.1)
    assert len(published) >= 3
    await coordinator.shutdown()


@pytest.mark.asyncio
async def test_reconcile_failure_does_not_affect_other_users():
    coordinator, _, _, _ = make_coordinator(interval=0.01, knowledge=FailingKnowledge())
    session = await coordinator.start_user_intelligence("u1")
    await asyncio.sleep(0.05)
    assert not session.timer.done()
    assert session.last_reconciled_at is None
    await coordinator.shutdown()


@pytest.mark.asyncio
async def test_get_user_intelligence_shape_and_stamp():
    coordinator, knowledge, _, _ = make_coordinator()
    knowledge.load_snapshot("u1", website_snapshot())
    session = await coordinator.start_user_intelligence("u1")
    knowledge.record_task("u1", sample_task(task_id="t3", title="Website redesign follow up", due=NOW))

    report = coordinator.get_user_intelligence("u1")
    assert session.last_analysis_at is not None
    assert set(report) >= {"correlations", "lifecycle", "insights", "recommendations", "status"}
    assert set(report["insights"]) == {"correlation", "lifecycle", "productivity", "cross_engine"}
    assert report["lifecycle"]["projects"][0]["project_id"] == "website"
    assert report["status"]["data_freshness"]["status"] == "fresh"
    priorities = [rec["priority"] for rec in report["recommendations"]]
    assert priorities == sorted(priorities, key=["high", "medium", "low"].index)
    await coordinator.shutdown()


@pytest.mark.asyncio
async def test_get_user_intelligence_requires_session():
    coordinator, _, _, _ = make_coordinator()
    with pytest.raises(SessionNotFound):
        coordinator.get_user_intelligence("nobody")


@pytest.mark.asyncio
async def test_track_and_untrack_project():
    coordinator, knowledge, _, _ = make_coordinator()
    knowledge.load_snapshot("u1", website_snapshot())
    await coordinator.start_user_intelligence("u1")

    record = coordinator.track_project("u1", "manual", {"tasks": [sample_task(title="Research options")]})
    assert record.project_type == "personal_project"
    assert coordinator.get_project_lifecycle("u1", "manual") is record

    assert coordinator.untrack_project("u1", "website")
    await coordinator.reconcile(coordinator.store.get_session("u1"))
    assert coordinator.get_project_lifecycle("u1", "website") is None
    await coordinator.shutdown()


@pytest.mark.asyncio
async def test_run_engines_and_system_status():
    coordinator, knowledge, _, _ = make_coordinator()
    knowledge.load_snapshot("u1", website_snapshot())
    await coordinator.start_user_intelligence("u1")

    results = coordinator.run_engines("u1", ["productivity", "unknown", "time_management"])
    assert set(results) == {"productivity", "time_management"}

    status = coordinator.get_system_status()
    assert status["active_users"] == ["u1"]
    assert status["tracked_projects"]["u1"] == ["website"]
    await coordinator.shutdown()
    assert coordinator.get_system_status()["active_users"] == []
