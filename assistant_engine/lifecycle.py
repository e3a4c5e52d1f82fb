"""Project lifecycle tracking against phase templates."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from assistant_engine.bus import MessageBus, Notification, Topic
from assistant_engine.features import activity_dates, event_text, is_completed, record_timestamp, task_text
from assistant_engine.logs import get_logger
from assistant_engine.metrics import average_task_days
from assistant_engine.schema import Bottleneck, CompletionPrediction, LifecycleRecord, Milestone

logger = get_logger(__name__)

RECENT_WINDOW = timedelta(days=7)
BOTTLENECK_GAP_DAYS = 7.0
HIGH_SEVERITY_GAP_DAYS = 14.0
DEFAULT_TASK_DAYS = 2.0
MIN_TASK_DAYS = 0.5
SCENARIOS = (("optimistic", 0.8, 0.2), ("realistic", 1.0, 0.6), ("pessimistic", 1.3, 0.2))


@dataclass(frozen=True)
class Phase:
    name: str
    duration_days: int
    keywords: tuple[str, ...]


@dataclass(frozen=True)
class LifecycleTemplate:
    name: str
    phases: tuple[Phase, ...]

    def phase_names(self) -> list[str]:
        return [phase.name for phase in self.phases]

    def keywords(self) -> tuple[str, ...]:
        return tuple(keyword for phase in self.phases for keyword in phase.keywords)


TEMPLATES: dict[str, LifecycleTemplate] = {
    "work_project": LifecycleTemplate(
        "work_project",
        (
            Phase("Planning", 7, ("plan", "design", "requirements", "specification")),
            Phase("Development", 14, ("build", "develop", "code", "implement", "create")),
            Phase("Review", 3, ("review", "test", "validate", "verify", "check")),
            Phase("Deployment", 2, ("deploy", "release", "launch", "go-live")),
            Phase("Maintenance", 7, ("support", "fix", "update", "maintain")),
        ),
    ),
    "personal_project": LifecycleTemplate(
        "personal_project",
        (
            Phase("Research", 5, ("research", "investigate", "explore", "learn")),
            Phase("Setup", 3, ("setup", "install", "configure", "prepare")),
            Phase("Implementation", 10, ("implement", "execute", "build", "create")),
            Phase("Review", 2, ("review", "evaluate", "assess", "complete")),
        ),
    ),
}


def project_content(project_data: dict) -> str:
    texts = [event_text(event) for event in project_data.get("events", [])]
    texts.extend(task_text(task) for task in project_data.get("tasks", []))
    return " ".join(texts)


def _count_keywords(content: str, keywords: tuple[str, ...]) -> int:
    return sum(content.count(keyword) for keyword in keywords)


def classify_project_type(content: str) -> str:
    """Template with the most keyword occurrences; ties keep the earlier template."""

    best_name = next(iter(TEMPLATES))
    best_hits = -1
    for name, template in TEMPLATES.items():
        hits = _count_keywords(content, template.keywords())
        if hits > best_hits:
            best_name, best_hits = name, hits
    return best_name


def identify_current_phase(template: LifecycleTemplate, content: str) -> str:
    """Phase whose keywords occur most often; the first phase when none occur."""

    best = template.phases[0].name
    best_hits = 0
    for phase in template.phases:
        hits = _count_keywords(content, phase.keywords)
        if hits > best_hits:
            best, best_hits = phase.name, hits
    return best


def _recent_content(project_data: dict, now: datetime) -> str:
    cutoff = now - RECENT_WINDOW
    texts = []
    for event in project_data.get("events", []):
        stamp = record_timestamp(event)
        if stamp is not None and cutoff <= stamp <= now:
            texts.append(event_text(event))
    for task in project_data.get("tasks", []):
        stamp = record_timestamp(task)
        if stamp is not None and cutoff <= stamp <= now:
            texts.append(task_text(task))
    return " ".join(texts)


def calculate_phase_progress(template: LifecycleTemplate, phase_name: str, project_data: dict, now: datetime) -> float:
    names = template.phase_names()
    index = names.index(phase_name) if phase_name in names else 0
    progress = index / len(names) * 100.0

    phase = template.phases[index]
    recent_hits = _count_keywords(_recent_content(project_data, now), phase.keywords)
    if recent_hits > 5:
        progress += 10.0
    elif recent_hits > 2:
        progress += 5.0
    return max(0.0, min(100.0, progress))


def _phase_starts(template: LifecycleTemplate, start: datetime) -> list[tuple[Phase, datetime, datetime]]:
    windows = []
    cursor = start
    for phase in template.phases:
        end = cursor + timedelta(days=phase.duration_days)
        windows.append((phase, cursor, end))
        cursor = end
    return windows


def assess_timeline_health(template: LifecycleTemplate, phase_name: str, project_data: dict, now: datetime) -> str:
    dates = activity_dates(project_data.get("events", []), project_data.get("tasks", []))
    if not dates:
        return "unknown"

    current_index = template.phase_names().index(phase_name)
    behind = 0
    for index, (_, _, planned_end) in enumerate(_phase_starts(template, dates[0])):
        if planned_end < now and index >= current_index:
            behind += 1

    if behind == 0:
        return "healthy"
    if behind / len(template.phases) > 0.5:
        return "behind"
    return "at-risk"


def detect_bottlenecks(project_data: dict) -> list[Bottleneck]:
    dates = activity_dates(project_data.get("events", []), project_data.get("tasks", []))
    bottlenecks = []
    for previous, current in zip(dates, dates[1:]):
        gap_days = (current - previous).total_seconds() / 86400.0
        if gap_days > BOTTLENECK_GAP_DAYS:
            bottlenecks.append(
                Bottleneck(
                    kind="activity_gap",
                    start=previous,
                    end=current,
                    gap_days=round(gap_days, 2),
                    severity="high" if gap_days > HIGH_SEVERITY_GAP_DAYS else "medium",
                )
            )
    return bottlenecks


def _data_quality(project_data: dict) -> float:
    events = project_data.get("events", [])
    tasks = project_data.get("tasks", [])
    quality = 0.0
    quality += 0.3 if events else 0.0
    quality += 0.3 if tasks else 0.0
    quality += 0.2 if any(is_completed(task) for task in tasks) else 0.0
    quality += 0.2 if activity_dates(events, tasks) else 0.0
    return quality


def predict_completion(project_data: dict, now: datetime) -> CompletionPrediction:
    tasks = project_data.get("tasks", [])
    remaining = sum(1 for task in tasks if not is_completed(task))

    measured = average_task_days(tasks)
    avg_days = max(MIN_TASK_DAYS, measured if measured is not None else DEFAULT_TASK_DAYS)
    base_days = remaining * avg_days

    scenarios = {}
    for name, multiplier, probability in SCENARIOS:
        days = base_days * multiplier
        scenarios[name] = {
            "days": round(days, 2),
            "date": (now + timedelta(days=days)).isoformat(),
            "probability": probability,
        }

    quality = _data_quality(project_data)
    confidence = min(quality * 0.8 + (1.0 - quality) * 0.5, 0.9)

    factors = [f"{remaining} remaining tasks"]
    if measured is None:
        factors.append(f"default pace of {DEFAULT_TASK_DAYS:g} days per task")
    else:
        factors.append(f"measured pace of {avg_days:.1f} days per task")
    factors.append(f"data quality {quality:.1f}")

    return CompletionPrediction(
        predicted_date=now + timedelta(days=base_days),
        confidence=round(confidence, 3),
        remaining_tasks=remaining,
        average_task_days=round(avg_days, 2),
        scenarios=scenarios,
        factors=factors,
    )


def generate_milestones(template: LifecycleTemplate, project_data: dict, now: datetime) -> list[Milestone]:
    dates = activity_dates(project_data.get("events", []), project_data.get("tasks", []))
    start = dates[0] if dates else now
    windows = _phase_starts(template, start)
    last = len(windows) - 1
    return [
        Milestone(name=f"{phase.name} start", phase=phase.name, target_date=phase_start, critical=index in (0, last))
        for index, (phase, phase_start, _) in enumerate(windows)
    ]


def sanitize_project_data(project_data: dict) -> tuple[dict, bool]:
    """Keep only dict records; the flag reports whether anything was dropped."""

    clean = {}
    malformed = False
    for key in ("events", "tasks"):
        items = project_data.get(key) or []
        if not isinstance(items, list):
            malformed = True
            items = []
        records = [item for item in items if isinstance(item, dict)]
        malformed = malformed or len(records) != len(items)
        clean[key] = records
    return clean, malformed


class LifecycleTracker:
    """Builds lifecycle records; holds no per-project state of its own."""

    def __init__(
        self,
        bus: Optional[MessageBus] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.bus = bus
        self.clock = clock

    def track_project_lifecycle(self, project_id: str, project_data: dict, user_id: Optional[str] = None) -> LifecycleRecord:
        now = self.clock()
        requested_type = project_data.get("type")
        project_data, malformed = sanitize_project_data(project_data)
        if malformed:
            logger.warning("Malformed activity data for project %s, timeline unknown", project_id)
        content = project_content(project_data)
        project_type = requested_type if isinstance(requested_type, str) and requested_type in TEMPLATES else None
        project_type = project_type or classify_project_type(content)
        template = TEMPLATES[project_type]
        phase = identify_current_phase(template, content)

        health = "unknown" if malformed else assess_timeline_health(template, phase, project_data, now)
        bottlenecks = detect_bottlenecks(project_data)

        record = LifecycleRecord(
            project_id=project_id,
            project_type=project_type,
            current_phase=phase,
            phase_progress=calculate_phase_progress(template, phase, project_data, now),
            timeline_health=health,
            bottlenecks=tuple(bottlenecks),
            completion_prediction=predict_completion(project_data, now),
            milestones=tuple(generate_milestones(template, project_data, now)),
            updated_at=now,
        )

        if self.bus is not None and user_id is not None:
            self.bus.publish(
                Notification(
                    Topic.LIFECYCLE_UPDATED,
                    user_id,
                    {"project_id": project_id, "phase": phase, "timeline_health": health},
                )
            )
        return record
