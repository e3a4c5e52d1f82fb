from assistant_engine.knowledge import KnowledgeSnapshot
from assistant_engine.metrics import compute_task_metrics, data_confidence
from assistant_engine.productivity import ProductivityOptimizer, productivity_score, workload_level
from assistant_engine.techniques import TECHNIQUES, TechniqueMatrix, assess_needs
from assistant_engine.time_management import TimeManagementEngine, meeting_density, priority_distribution
from assistant_engine.workflow import WorkflowAnalyzer, context_switching, workflow_type

from helpers import NOW, days, sample_event, sample_task


def finished(task_id, due_offset, done_offset, **extra):
    return sample_task(
        task_id=task_id,
        due=NOW + days(due_offset),
        status="completed",
        updated=(NOW + days(done_offset)).isoformat(),
        **extra,
    )


def test_task_metrics():
    tasks = [
        finished("a", -2, -3),
        finished("b", -2, -1),
        sample_task(task_id="c", due=NOW - days(1)),
        sample_task(task_id="d", due=NOW + days(2)),
        sample_task(task_id="e", due=NOW + days(10)),
    ]
    metrics = compute_task_metrics(tasks, NOW)
    assert metrics["completion_rate"] == 0.4
    assert metrics["on_time_rate"] == 0.5
    assert metrics["overdue_tasks"] == 1
    assert metrics["urgent_tasks"] == 2


def test_empty_metrics():
    assert compute_task_metrics([], NOW)["completion_rate"] == 0.0


def test_data_confidence_grows_and_caps():
    assert data_confidence(0) == 0.3
    assert data_confidence(5) > data_confidence(1)
    assert data_confidence(1000) == 0.9


def test_workload_thresholds():
    assert workload_level(21) == "high"
    assert workload_level(11) == "medium"
    assert workload_level(10) == "low"


def test_productivity_score_reflects_completion():
    good = compute_task_metrics([finished(str(i), 1, 0) for i in range(4)], NOW)
    poor = compute_task_metrics([sample_task(task_id=str(i), due=NOW - days(1)) for i in range(4)], NOW)
    assert productivity_score(good) == 100.0
    assert productivity_score(poor) == 0.0
    assert productivity_score(compute_task_metrics([], NOW)) is None


def test_productivity_optimizer_recommends_overdue_cleanup():
    snapshot = KnowledgeSnapshot(tasks=[sample_task(task_id=str(i), due=NOW - days(1)) for i in range(3)])
    result = ProductivityOptimizer().analyze(snapshot, NOW)
    titles = [rec["title"] for rec in result["recommendations"]]
    assert "Clear overdue tasks" in titles
    assert result["workload"] == "low"


def test_workflow_type_thresholds():
    assert workflow_type(0.7) == "collaborative"
    assert workflow_type(0.4) == "mixed"
    assert workflow_type(0.3) == "focused"


def test_workflow_analyzer_meeting_heavy_calendar():
    events = [sample_event(event_id=str(i), summary="Team meeting", start=NOW + days(i)) for i in range(4)]
    events.append(sample_event(event_id="solo", summary="Dentist", start=NOW))
    result = WorkflowAnalyzer().analyze(KnowledgeSnapshot(events=events), NOW)
    assert result["workflow_type"] == "collaborative"
    assert result["recommendations"][0]["title"] == "Protect focus blocks"


def test_context_switching_counts_projects_per_day():
    tasks = [
        sample_task(task_id="1", project="a", due=NOW),
        sample_task(task_id="2", project="b", due=NOW),
        sample_task(task_id="3", project="a", due=NOW + days(1)),
    ]
    assert context_switching(KnowledgeSnapshot(tasks=tasks)) == 1.5


def test_meeting_density_levels():
    busy = [sample_event(event_id=str(i), start=NOW) for i in range(35)]
    assert meeting_density(busy)[1] == "high"
    assert meeting_density([sample_event(start=NOW)])[1] == "low"
    assert meeting_density([]) == (0.0, "low")


def test_time_management_flags_urgency_and_peaks():
    tasks = [
        sample_task(task_id="1", due=NOW + days(1)),
        sample_task(task_id="2", due=NOW + days(2)),
        finished("3", 5, -1, priority="high"),
    ]
    result = TimeManagementEngine().analyze(KnowledgeSnapshot(tasks=tasks), NOW)
    assert result["urgency"]["level"] == "high_pressure"
    assert result["peak_hours"] == [NOW.hour]
    assert result["priority_distribution"] == {"high": 1, "medium": 2, "low": 0}


def test_priority_distribution_defaults_to_medium():
    assert priority_distribution([{"id": "x"}]) == {"high": 0, "medium": 1, "low": 0}


def test_technique_matrix_matches_learning_work():
    tasks = [sample_task(task_id=str(i), title=f"Study chapter {i} for exam", due=NOW + days(9)) for i in range(3)]
    snapshot = KnowledgeSnapshot(tasks=tasks)
    needs = assess_needs(snapshot, NOW)
    assert needs["learning"] == 1.0

    result = TechniqueMatrix().analyze(snapshot, NOW)
    keys = [rec["technique"] for rec in result["recommendations"]]
    assert len(keys) == 3
    assert {"spaced_repetition", "feynman"} & set(keys)


def test_technique_catalogue_scores_are_bounded():
    for technique in TECHNIQUES:
        assert all(0.0 <= value <= 1.0 for value in technique.effectiveness.values())
