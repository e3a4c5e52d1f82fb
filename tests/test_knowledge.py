import pytest

from assistant_engine.bus import MessageBus, Topic
from assistant_engine.knowledge import UNASSIGNED_PROJECT, InMemoryKnowledgeStore, KnowledgeSnapshot

from helpers import sample_event, sample_task


@pytest.mark.asyncio
async def test_record_publishes_and_upserts():
    bus = MessageBus()
    seen = []
    bus.subscribe(Topic.KNOWLEDGE_UPDATED, seen.append)
    store = InMemoryKnowledgeStore(bus)

    store.record_task("u1", sample_task())
    store.record_task("u1", sample_task(title="Renamed"))
    snapshot = await store.get_comprehensive_user_knowledge("u1")

    assert [t["title"] for t in snapshot.tasks] == ["Renamed"]
    assert [n.payload["kind"] for n in seen] == ["task", "task"]


def test_record_requires_id():
    with pytest.raises(ValueError):
        InMemoryKnowledgeStore().record_event("u1", {"summary": "x"})


def test_snapshot_project_grouping():
    snapshot = KnowledgeSnapshot(
        tasks=[sample_task(project="a"), sample_task(task_id="t2")],
        events=[sample_event(project="b")],
    )
    assert snapshot.project_ids() == ["a", "b"]
    assert len(snapshot.for_project("a")["tasks"]) == 1
    assert len(snapshot.for_project(UNASSIGNED_PROJECT)["tasks"]) == 2
