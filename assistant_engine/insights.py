"""Cross-engine insight synthesis and recommendation ranking."""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Optional

from assistant_engine.schema import LifecycleRecord

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}
LOW_CONFIDENCE = 0.6
STRONG_LINKAGE_CONFIDENCE = 0.6
BOTTLENECK_RISK_COUNT = 2
PRODUCTIVITY_TARGET = 70.0
_LEVELS = ("very-low", "low", "medium", "high")


def correlation_insights(correlations: dict) -> dict:
    records = correlations["correlations"]
    distribution = Counter(record["confidence_level"] for record in records)
    high = distribution.get("high", 0)
    average = correlations["overall_confidence"]
    if records:
        summary = f"{len(records)} event-task links, {high} with high confidence (average {average:.0%})."
    else:
        summary = "No event-task links found yet."
    return {
        "total": len(records),
        "high_confidence": high,
        "average_confidence": average,
        "distribution": {level: distribution.get(level, 0) for level in _LEVELS},
        "summary": summary,
    }


def lifecycle_insights(records: list[LifecycleRecord]) -> dict:
    by_phase = Counter(record.current_phase for record in records)
    by_health = Counter(record.timeline_health for record in records)
    bottlenecks = sum(len(record.bottlenecks) for record in records)
    at_risk = [record.project_id for record in records if record.timeline_health in ("at-risk", "behind")]
    if records:
        summary = f"{len(records)} active projects, {len(at_risk)} needing attention, {bottlenecks} bottlenecks."
    else:
        summary = "No projects tracked yet."
    return {
        "active_projects": len(records),
        "by_phase": dict(by_phase),
        "by_health": dict(by_health),
        "total_bottlenecks": bottlenecks,
        "at_risk_projects": at_risk,
        "summary": summary,
    }


def productivity_insights(analysis: Optional[dict]) -> dict:
    if analysis is None or analysis.get("score") is None:
        return {"score": None, "workload": None, "completion_rate": None, "summary": "Not enough task data yet."}
    metrics = analysis["metrics"]
    return {
        "score": analysis["score"],
        "workload": analysis["workload"],
        "completion_rate": metrics["completion_rate"],
        "summary": f"Productivity score {analysis['score']:.0f}/100 with {analysis['workload']} workload.",
    }


def cross_engine_insights(correlation: dict, lifecycle: dict, productivity: dict) -> list[dict]:
    insights = []
    if correlation["average_confidence"] >= STRONG_LINKAGE_CONFIDENCE and lifecycle["active_projects"]:
        insights.append(
            {
                "type": "strong_linkage",
                "severity": "info",
                "message": "Calendar and tasks are well linked across your active projects.",
            }
        )
    if lifecycle["total_bottlenecks"] > BOTTLENECK_RISK_COUNT:
        insights.append(
            {
                "type": "productivity_risk",
                "severity": "warning",
                "message": f"{lifecycle['total_bottlenecks']} activity gaps across projects put delivery at risk.",
            }
        )
    if productivity["score"] is not None and lifecycle["at_risk_projects"] and productivity["score"] < PRODUCTIVITY_TARGET:
        insights.append(
            {
                "type": "schedule_pressure",
                "severity": "warning",
                "message": "Low throughput while projects fall behind plan.",
            }
        )
    return insights


def build_recommendations(correlation: dict, lifecycle: dict, productivity: dict) -> list[dict]:
    """Recommendations ordered high, medium, low."""

    recommendations = []
    if correlation["total"] and correlation["average_confidence"] < LOW_CONFIDENCE:
        recommendations.append(
            {
                "type": "correlation",
                "priority": "high",
                "title": "Describe events and tasks more specifically",
                "detail": "Shared keywords and due dates let meetings and their follow-ups be linked.",
            }
        )
    if lifecycle["total_bottlenecks"] > BOTTLENECK_RISK_COUNT:
        recommendations.append(
            {
                "type": "lifecycle",
                "priority": "medium",
                "title": "Address project bottlenecks",
                "detail": "Schedule a small step on stalled projects to close the activity gaps.",
            }
        )
    for project_id in lifecycle["at_risk_projects"]:
        recommendations.append(
            {
                "type": "lifecycle",
                "priority": "medium",
                "title": f"Re-plan project {project_id}",
                "detail": "Its current phase has run past the planned window.",
            }
        )
    if productivity["score"] is not None and productivity["score"] < PRODUCTIVITY_TARGET:
        recommendations.append(
            {
                "type": "productivity",
                "priority": "high",
                "title": "Raise completion rate",
                "detail": f"Score {productivity['score']:.0f} is under {PRODUCTIVITY_TARGET:.0f}; focus on finishing open tasks.",
            }
        )
    return sorted(recommendations, key=lambda rec: PRIORITY_ORDER[rec["priority"]])


def data_freshness(last_update: Optional[datetime], now: datetime) -> dict:
    if last_update is None:
        return {"last_update": None, "age_seconds": None, "status": "none"}
    age = (now - last_update).total_seconds()
    if age < 300:
        status = "fresh"
    elif age < 3600:
        status = "recent"
    else:
        status = "stale"
    return {"last_update": last_update.isoformat(), "age_seconds": round(age, 1), "status": status}
