"""Core records shared by the delegation and intelligence layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union


class Recipient(str, Enum):
    """Who serves a delegated request."""

    SELF = "self"
    CALENDAR = "calendar"
    TASK = "task"


@dataclass(frozen=True)
class DelegationDescriptor:
    """Classifier output naming the handler, operation and payload."""

    recipient: Union[Recipient, str]
    request_type: str
    message: Union[str, dict]


class CorrelationAlgorithm(str, Enum):
    KEYWORD = "keyword"
    TIMELINE = "timeline"
    CONTEXTUAL = "contextual"
    BEHAVIORAL = "behavioral"


PairId = tuple[str, str]


@dataclass(frozen=True)
class CorrelationRecord:
    """Scored link between one calendar event and one task."""

    pair_id: PairId
    event: dict
    task: dict
    score: float
    algorithm: CorrelationAlgorithm
    computed_at: datetime
    components: dict[str, Optional[float]] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "event_id": self.pair_id[0],
            "task_id": self.pair_id[1],
            "event_summary": self.event.get("summary", ""),
            "task_title": self.task.get("title", ""),
            "score": self.score,
            "confidence_level": confidence_level(self.score),
            "algorithm": self.algorithm.value,
            "components": dict(self.components),
            "computed_at": self.computed_at.isoformat(),
        }


def confidence_level(score: float) -> str:
    """Map a [0, 1] score onto its confidence band."""

    if score < 0.3:
        return "very-low"
    if score < 0.6:
        return "low"
    if score < 0.8:
        return "medium"
    return "high"


@dataclass(frozen=True)
class Bottleneck:
    kind: str
    start: datetime
    end: datetime
    gap_days: float
    severity: str


@dataclass(frozen=True)
class Milestone:
    name: str
    phase: str
    target_date: datetime
    critical: bool


@dataclass(frozen=True)
class CompletionPrediction:
    predicted_date: Optional[datetime]
    confidence: float
    remaining_tasks: int
    average_task_days: float
    scenarios: dict[str, dict[str, Any]]
    factors: list[str]


@dataclass(frozen=True)
class LifecycleRecord:
    """Snapshot of one project's lifecycle; replaced wholesale on every update."""

    project_id: str
    project_type: str
    current_phase: str
    phase_progress: float
    timeline_health: str
    bottlenecks: tuple[Bottleneck, ...]
    completion_prediction: CompletionPrediction
    milestones: tuple[Milestone, ...]
    updated_at: datetime

    def as_dict(self) -> dict:
        prediction = self.completion_prediction
        return {
            "project_id": self.project_id,
            "project_type": self.project_type,
            "current_phase": self.current_phase,
            "phase_progress": self.phase_progress,
            "timeline_health": self.timeline_health,
            "bottlenecks": [
                {
                    "type": b.kind,
                    "start": b.start.isoformat(),
                    "end": b.end.isoformat(),
                    "gap_days": b.gap_days,
                    "severity": b.severity,
                }
                for b in self.bottlenecks
            ],
            "completion_prediction": {
                "predicted_date": prediction.predicted_date.isoformat() if prediction.predicted_date else None,
                "confidence": prediction.confidence,
                "remaining_tasks": prediction.remaining_tasks,
                "average_task_days": prediction.average_task_days,
                "scenarios": prediction.scenarios,
                "factors": list(prediction.factors),
            },
            "milestones": [
                {"name": m.name, "phase": m.phase, "target_date": m.target_date.isoformat(), "critical": m.critical}
                for m in self.milestones
            ],
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class Classification:
    """Either a direct reply or a delegation, plus which correction fired."""

    direct_reply: Optional[str] = None
    descriptor: Optional[DelegationDescriptor] = None
    rule: Optional[str] = None
    confidence: float = 0.0
    fallback: bool = False
