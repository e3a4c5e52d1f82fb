"""Time management analysis: meeting load, peak hours, urgency."""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import Optional

from assistant_engine.features import event_start, is_completed, task_updated
from assistant_engine.knowledge import KnowledgeSnapshot
from assistant_engine.metrics import compute_task_metrics, data_confidence

_PRIORITIES = ("high", "medium", "low")


def meeting_density(events: list[dict]) -> tuple[float, str]:
    """Events per observed day, at least a week, and its level."""

    starts = sorted(start for start in (event_start(event) for event in events) if start is not None)
    if not starts:
        return 0.0, "low"
    span_days = max(7.0, (starts[-1] - starts[0]).total_seconds() / 86400.0 + 1.0)
    per_day = len(starts) / span_days
    if per_day > 4:
        return per_day, "high"
    if per_day > 2:
        return per_day, "medium"
    return per_day, "low"


def peak_hours(snapshot: KnowledgeSnapshot, top: int = 3) -> list[int]:
    """Hours of day with the most completions, falling back to event hours."""

    hours = Counter()
    for task in snapshot.tasks:
        finished = task_updated(task)
        if is_completed(task) and finished is not None:
            hours[finished.hour] += 1
    if not hours:
        for event in snapshot.events:
            start = event_start(event)
            if start is not None:
                hours[start.hour] += 1
    return [hour for hour, _ in hours.most_common(top)]


def priority_distribution(tasks: list[dict]) -> dict[str, int]:
    counts = Counter(str(task.get("priority") or "medium").lower() for task in tasks)
    return {priority: counts.get(priority, 0) for priority in _PRIORITIES}


class TimeManagementEngine:
    name = "time_management"

    def analyze(self, snapshot: KnowledgeSnapshot, now: Optional[datetime] = None) -> dict:
        now = now or datetime.now(timezone.utc)
        metrics = compute_task_metrics(snapshot.tasks, now)
        density, density_level = meeting_density(snapshot.events)
        peaks = peak_hours(snapshot)
        urgent_share = metrics["urgent_tasks"] / metrics["total_tasks"] if metrics["total_tasks"] else 0.0
        pressure = "high_pressure" if urgent_share > 0.3 else "manageable"

        recommendations = []
        if pressure == "high_pressure":
            recommendations.append(
                {
                    "title": "Triage urgent tasks",
                    "priority": "high",
                    "detail": f"{metrics['urgent_tasks']} tasks are due within three days.",
                }
            )
        if density_level == "high":
            recommendations.append(
                {
                    "title": "Decline or shorten meetings",
                    "priority": "high",
                    "detail": f"{density:.1f} events per day leaves little time for deep work.",
                }
            )
        if peaks:
            recommendations.append(
                {
                    "title": "Schedule hard work at peak hours",
                    "priority": "low",
                    "detail": "Most productive hours: " + ", ".join(f"{hour:02d}:00" for hour in peaks) + ".",
                }
            )

        return {
            "engine": self.name,
            "meeting_density": round(density, 2),
            "meeting_density_level": density_level,
            "peak_hours": peaks,
            "priority_distribution": priority_distribution(snapshot.tasks),
            "urgency": {"urgent_tasks": metrics["urgent_tasks"], "share": round(urgent_share, 3), "level": pressure},
            "recommendations": recommendations,
            "confidence": data_confidence(len(snapshot.tasks) + len(snapshot.events)),
        }
