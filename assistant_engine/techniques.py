"""Technique matrix: match productivity techniques to observed needs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from assistant_engine.features import event_text, task_text
from assistant_engine.knowledge import KnowledgeSnapshot
from assistant_engine.metrics import compute_task_metrics, data_confidence, meeting_ratio

_LEARNING_WORDS = ("learn", "study", "course", "exam", "read", "research")
_CREATIVE_WORDS = ("design", "brainstorm", "write", "draft", "idea", "sketch")


@dataclass(frozen=True)
class Technique:
    key: str
    name: str
    difficulty: str
    effectiveness: dict[str, float]
    addresses: tuple[str, ...]


TECHNIQUES: tuple[Technique, ...] = (
    Technique("time_blocking", "Time Blocking", "easy", {"focus": 0.9, "creativity": 0.8, "efficiency": 0.85}, ("meeting_load", "focus")),
    Technique("pomodoro", "Pomodoro Technique", "easy", {"focus": 0.95, "creativity": 0.6, "efficiency": 0.9}, ("focus", "procrastination")),
    Technique("eat_that_frog", "Eat That Frog", "easy", {"focus": 0.8, "creativity": 0.7, "efficiency": 0.9}, ("procrastination", "urgency")),
    Technique("mind_mapping", "Mind Mapping", "easy", {"focus": 0.7, "creativity": 0.95, "efficiency": 0.8}, ("creative",)),
    Technique("pareto", "Pareto Analysis (80/20 Rule)", "medium", {"focus": 0.85, "creativity": 0.5, "efficiency": 0.95}, ("overload", "urgency")),
    Technique("kanban", "Kanban Board", "medium", {"focus": 0.75, "creativity": 0.6, "efficiency": 0.9}, ("overload",)),
    Technique("spaced_repetition", "Spaced Repetition", "medium", {"focus": 0.8, "creativity": 0.4, "efficiency": 0.9}, ("learning",)),
    Technique("feynman", "Feynman Technique", "medium", {"focus": 0.9, "creativity": 0.8, "efficiency": 0.85}, ("learning",)),
    Technique("gtd", "Getting Things Done (GTD)", "hard", {"focus": 0.85, "creativity": 0.7, "efficiency": 0.95}, ("overload", "procrastination")),
    Technique("two_minute_rule", "Two Minute Rule", "easy", {"focus": 0.6, "creativity": 0.5, "efficiency": 0.9}, ("overload",)),
    Technique("batch_processing", "Batch Processing", "medium", {"focus": 0.8, "creativity": 0.6, "efficiency": 0.95}, ("meeting_load", "overload")),
)


def _keyword_share(texts: list[str], words: tuple[str, ...]) -> float:
    if not texts:
        return 0.0
    return sum(1 for text in texts if any(word in text for word in words)) / len(texts)


def assess_needs(snapshot: KnowledgeSnapshot, now: datetime) -> dict[str, float]:
    """Strength of each need in [0, 1], derived from the snapshot."""

    metrics = compute_task_metrics(snapshot.tasks, now)
    total = metrics["total_tasks"]
    open_tasks = total - metrics["completed_tasks"]
    texts = [task_text(t) for t in snapshot.tasks] + [event_text(e) for e in snapshot.events]
    return {
        "procrastination": metrics["overdue_tasks"] / total if total else 0.0,
        "urgency": metrics["urgent_tasks"] / total if total else 0.0,
        "overload": min(1.0, open_tasks / 20.0),
        "meeting_load": meeting_ratio(snapshot.events),
        "focus": 1.0 - metrics["completion_rate"] if total else 0.0,
        "learning": _keyword_share(texts, _LEARNING_WORDS),
        "creative": _keyword_share(texts, _CREATIVE_WORDS),
    }


def score_technique(technique: Technique, needs: dict[str, float]) -> float:
    fit = max(needs.get(need, 0.0) for need in technique.addresses)
    strength = sum(technique.effectiveness.values()) / len(technique.effectiveness)
    return round(fit * 0.7 + strength * 0.3, 3)


class TechniqueMatrix:
    name = "techniques"

    def analyze(self, snapshot: KnowledgeSnapshot, now: Optional[datetime] = None, top: int = 3) -> dict:
        now = now or datetime.now(timezone.utc)
        needs = assess_needs(snapshot, now)
        ranked = sorted(TECHNIQUES, key=lambda t: score_technique(t, needs), reverse=True)

        recommendations = []
        for technique in ranked[:top]:
            driver = max(technique.addresses, key=lambda need: needs.get(need, 0.0))
            recommendations.append(
                {
                    "title": technique.name,
                    "technique": technique.key,
                    "priority": "high" if needs.get(driver, 0.0) >= 0.5 else "medium",
                    "difficulty": technique.difficulty,
                    "score": score_technique(technique, needs),
                    "detail": f"Addresses {driver.replace('_', ' ')} ({needs.get(driver, 0.0):.0%}).",
                }
            )

        return {
            "engine": self.name,
            "needs": {need: round(value, 3) for need, value in needs.items()},
            "recommendations": recommendations,
            "confidence": data_confidence(len(snapshot.tasks) + len(snapshot.events)),
        }
