"""Task outcome metrics shared by the lifecycle tracker and analysis engines."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import numpy as np

from assistant_engine.features import is_completed, task_created, task_due, task_updated

URGENT_WINDOW = timedelta(days=3)


def average_task_days(tasks: list[dict]) -> Optional[float]:
    """Mean created-to-due span of completed tasks, in days."""

    spans = []
    for task in tasks:
        if not is_completed(task):
            continue
        created = task_created(task)
        due = task_due(task)
        if created is not None and due is not None and due >= created:
            spans.append((due - created).total_seconds() / 86400.0)
    return float(np.mean(spans)) if spans else None


def compute_task_metrics(tasks: list[dict], now: Optional[datetime] = None) -> dict:
    """Compute completion, on-time, overdue and urgency metrics."""

    now = now or datetime.now(timezone.utc)
    if not tasks:
        return {
            "total_tasks": 0,
            "completed_tasks": 0,
            "completion_rate": 0.0,
            "on_time_rate": 0.0,
            "overdue_tasks": 0,
            "urgent_tasks": 0,
            "avg_task_days": None,
        }

    completed = [task for task in tasks if is_completed(task)]
    open_tasks = [task for task in tasks if not is_completed(task)]

    on_time = 0
    judged = 0
    for task in completed:
        due = task_due(task)
        finished = task_updated(task)
        if due is None or finished is None:
            continue
        judged += 1
        on_time += 1 if finished <= due else 0

    overdue = 0
    urgent = 0
    for task in open_tasks:
        due = task_due(task)
        if due is None:
            continue
        if due < now:
            overdue += 1
        if due - now <= URGENT_WINDOW:
            urgent += 1

    return {
        "total_tasks": len(tasks),
        "completed_tasks": len(completed),
        "completion_rate": len(completed) / len(tasks),
        "on_time_rate": on_time / judged if judged else 0.0,
        "overdue_tasks": overdue,
        "urgent_tasks": urgent,
        "avg_task_days": average_task_days(tasks),
    }


def data_confidence(item_count: int) -> float:
    """Confidence that grows with observed items, from 0.3 up to 0.9."""

    return round(min(0.9, 0.3 + 0.04 * max(0, item_count)), 3)


def meeting_ratio(events: list[dict]) -> float:
    if not events:
        return 0.0
    meetings = sum(1 for event in events if event.get("attendees") or "meeting" in str(event.get("summary", "")).lower())
    return meetings / len(events)
