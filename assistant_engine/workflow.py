"""Workflow analysis: collaboration style, efficiency and context switching."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from typing import Optional

import numpy as np

from assistant_engine.features import record_timestamp
from assistant_engine.knowledge import KnowledgeSnapshot
from assistant_engine.metrics import compute_task_metrics, data_confidence, meeting_ratio


def workflow_type(ratio: float) -> str:
    if ratio > 0.6:
        return "collaborative"
    if ratio > 0.3:
        return "mixed"
    return "focused"


def context_switching(snapshot: KnowledgeSnapshot) -> float:
    """Mean number of distinct projects touched per active day."""

    projects_by_day: dict = defaultdict(set)
    for record in (*snapshot.tasks, *snapshot.events):
        stamp = record_timestamp(record)
        if stamp is None:
            continue
        projects_by_day[stamp.date()].add(str(record.get("project") or "unassigned"))
    if not projects_by_day:
        return 0.0
    return float(np.mean([len(projects) for projects in projects_by_day.values()]))


class WorkflowAnalyzer:
    name = "workflow"

    def analyze(self, snapshot: KnowledgeSnapshot, now: Optional[datetime] = None) -> dict:
        now = now or datetime.now(timezone.utc)
        metrics = compute_task_metrics(snapshot.tasks, now)
        ratio = meeting_ratio(snapshot.events)
        kind = workflow_type(ratio)
        efficiency = (metrics["completion_rate"] + metrics["on_time_rate"]) / 2.0
        switching = context_switching(snapshot)

        recommendations = []
        if kind == "collaborative":
            recommendations.append(
                {
                    "title": "Protect focus blocks",
                    "priority": "high",
                    "detail": f"{ratio:.0%} of calendar events are meetings; reserve meeting-free mornings.",
                }
            )
        if switching > 2.5:
            recommendations.append(
                {
                    "title": "Batch work by project",
                    "priority": "medium",
                    "detail": f"You touch {switching:.1f} projects per active day on average.",
                }
            )
        if metrics["total_tasks"] and efficiency < 0.5:
            recommendations.append(
                {
                    "title": "Review how work flows to done",
                    "priority": "medium",
                    "detail": f"Workflow efficiency is {efficiency:.0%}; look for tasks stuck in progress.",
                }
            )

        return {
            "engine": self.name,
            "workflow_type": kind,
            "meeting_ratio": round(ratio, 3),
            "efficiency": round(efficiency, 3),
            "on_time_rate": metrics["on_time_rate"],
            "context_switching": round(switching, 2),
            "recommendations": recommendations,
            "confidence": data_confidence(len(snapshot.tasks) + len(snapshot.events)),
        }
