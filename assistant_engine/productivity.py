"""Productivity optimizer: completion, workload and focus recommendations."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from assistant_engine.knowledge import KnowledgeSnapshot
from assistant_engine.metrics import compute_task_metrics, data_confidence


def workload_level(open_items: int) -> str:
    if open_items > 20:
        return "high"
    if open_items > 10:
        return "medium"
    return "low"


def productivity_score(metrics: dict) -> Optional[float]:
    """Blend of completion and on-time rates on a 0-100 scale, minus overdue drag."""

    if not metrics["total_tasks"]:
        return None
    overdue_share = metrics["overdue_tasks"] / metrics["total_tasks"]
    score = 70.0 * metrics["completion_rate"] + 30.0 * metrics["on_time_rate"] - 20.0 * overdue_share
    return round(max(0.0, min(100.0, score)), 1)


class ProductivityOptimizer:
    name = "productivity"

    def analyze(self, snapshot: KnowledgeSnapshot, now: Optional[datetime] = None) -> dict:
        now = now or datetime.now(timezone.utc)
        metrics = compute_task_metrics(snapshot.tasks, now)
        open_items = metrics["total_tasks"] - metrics["completed_tasks"]
        workload = workload_level(open_items + len(snapshot.events))
        score = productivity_score(metrics)

        recommendations = []
        if metrics["overdue_tasks"]:
            recommendations.append(
                {
                    "title": "Clear overdue tasks",
                    "priority": "high",
                    "detail": f"{metrics['overdue_tasks']} open tasks are past due; renegotiate or finish them first.",
                }
            )
        if workload == "high":
            recommendations.append(
                {
                    "title": "Reduce work in progress",
                    "priority": "high",
                    "detail": "More than twenty open commitments; defer or delegate the lowest-value items.",
                }
            )
        if metrics["total_tasks"] and metrics["completion_rate"] < 0.5:
            recommendations.append(
                {
                    "title": "Break tasks into smaller steps",
                    "priority": "medium",
                    "detail": f"Only {metrics['completion_rate']:.0%} of tasks are complete.",
                }
            )
        if metrics["completed_tasks"] and metrics["on_time_rate"] < 0.6:
            recommendations.append(
                {
                    "title": "Pad due dates",
                    "priority": "medium",
                    "detail": f"{metrics['on_time_rate']:.0%} of completed tasks finished on time.",
                }
            )

        return {
            "engine": self.name,
            "score": score,
            "workload": workload,
            "metrics": metrics,
            "recommendations": recommendations,
            "confidence": data_confidence(len(snapshot.tasks) + len(snapshot.events)),
        }
