"""Conversation entry point wiring classification, routing and intelligence."""

from __future__ import annotations

import re
from typing import Optional

from assistant_engine.bus import MessageBus
from assistant_engine.config import Settings, load_settings
from assistant_engine.context import ConversationContext
from assistant_engine.coordinator import IntelligenceCoordinator
from assistant_engine.intent import IntentClassifier
from assistant_engine.knowledge import InMemoryKnowledgeStore, KnowledgeSource
from assistant_engine.llm import ClassificationBackend, OpenAIClassificationBackend
from assistant_engine.logs import get_logger
from assistant_engine.router import CalendarHandler, DelegationRouter, TaskHandler
from assistant_engine.schema import Recipient
from assistant_engine.store import IntelligenceStore

logger = get_logger(__name__)

TOPIC_KEYWORDS: dict[str, tuple[str, ...]] = {
    "productivity": ("productive", "productivity", "efficient", "output", "get more done"),
    "task": ("tasks", "to-do", "todo", "backlog", "workload", "overdue"),
    "time": ("time management", "my time", "busy", "schedule", "meetings", "calendar load"),
    "technique": ("technique", "method", "pomodoro", "procrastinat", "focus", "habit"),
    "project": ("project", "milestone", "deadline", "phase", "progress"),
    "workflow": ("workflow", "process", "context switch", "batch", "routine"),
}
TOPIC_ENGINES: dict[str, tuple[str, ...]] = {
    "productivity": ("productivity",),
    "task": ("productivity", "time_management"),
    "time": ("time_management",),
    "technique": ("techniques",),
    "project": ("productivity", "workflow"),
    "workflow": ("workflow",),
}
_QUESTION = re.compile(r"\?|\b(?:how|what|why|should|can you|could you|help me|any tips|advice)\b")
FAILED_ROUTE_CONFIDENCE = 0.3
MAX_SUGGESTIONS = 3


def detect_topics(message: str) -> list[str]:
    """Productivity topics a message asks about, in catalogue order."""

    text = message.lower()
    if not _QUESTION.search(text):
        return []
    return [topic for topic, keywords in TOPIC_KEYWORDS.items() if any(keyword in text for keyword in keywords)]


def engines_for(topics: list[str]) -> list[str]:
    names: dict[str, None] = {}
    for topic in topics:
        for name in TOPIC_ENGINES[topic]:
            names.setdefault(name, None)
    return list(names)


class Assistant:
    def __init__(self, classifier: IntentClassifier, router: DelegationRouter, coordinator: IntelligenceCoordinator):
        self.classifier = classifier
        self.router = router
        self.coordinator = coordinator

    def _suggestions(self, user_id: str) -> list[str]:
        if not self.coordinator.is_active(user_id):
            return []
        intelligence = self.coordinator.get_user_intelligence(user_id)
        return [rec["title"] for rec in intelligence["recommendations"][:MAX_SUGGESTIONS]]

    def _engine_reply(self, user_id: str, topics: list[str]) -> Optional[dict]:
        if not topics or not self.coordinator.is_active(user_id):
            return None
        results = self.coordinator.run_engines(user_id, engines_for(topics))
        if not results:
            return None
        lines = []
        suggestions = []
        for result in results.values():
            for rec in result["recommendations"]:
                if rec["title"] not in suggestions:
                    suggestions.append(rec["title"])
                    lines.append(f"- {rec['title']}: {rec['detail']}")
        if not lines:
            lines.append("- Nothing needs attention right now; keep the current rhythm.")
        confidence = sum(result["confidence"] for result in results.values()) / len(results)
        return {
            "message": "Here's what your tasks and calendar suggest:\n" + "\n".join(lines[:5]),
            "suggestions": suggestions[:MAX_SUGGESTIONS],
            "engines": list(results),
            "confidence": round(confidence, 3),
            "agent": "assistant",
        }

    async def process_message(self, user_id: str, message: str, context: Optional[ConversationContext] = None) -> dict:
        """Answer one user message; always returns a reply."""

        context = context or ConversationContext(user_id)
        classification = await self.classifier.classify(message, context)

        if classification.descriptor is not None:
            descriptor = classification.descriptor
            route = await self.router.route(descriptor, context)
            domain = descriptor.recipient if descriptor.recipient in (Recipient.CALENDAR, Recipient.TASK) else None
            context.add_turn("user", message, Recipient(domain) if domain else None)
            context.add_turn("assistant", route.message, Recipient(domain) if domain else None)
            confidence = FAILED_ROUTE_CONFIDENCE if route.error else classification.confidence
            return {
                "message": route.message,
                "suggestions": self._suggestions(user_id),
                "engines": [],
                "confidence": confidence,
                "agent": route.agent,
                "side_channel_ids": route.side_channel_ids,
            }

        reply = None
        if not classification.fallback:
            try:
                reply = self._engine_reply(user_id, detect_topics(message))
            except Exception:
                logger.exception("Analysis engines failed for %s", user_id)
        if reply is None:
            reply = {
                "message": classification.direct_reply or "",
                "suggestions": [] if classification.fallback else self._suggestions(user_id),
                "engines": [],
                "confidence": classification.confidence,
                "agent": "assistant",
            }
        context.add_turn("user", message)
        context.add_turn("assistant", reply["message"])
        return reply


def build_assistant(
    calendar: CalendarHandler,
    tasks: TaskHandler,
    knowledge: Optional[KnowledgeSource] = None,
    backend: Optional[ClassificationBackend] = None,
    settings: Optional[Settings] = None,
    bus: Optional[MessageBus] = None,
) -> Assistant:
    """Wire the full object graph; missing backend credentials raise ConfigurationError."""

    settings = settings or load_settings(require_llm=backend is None)
    bus = bus or MessageBus()
    if backend is None:
        backend = OpenAIClassificationBackend.from_settings(settings)
    store = IntelligenceStore(queue_capacity=settings.queue_capacity).open()
    coordinator = IntelligenceCoordinator(
        store=store,
        bus=bus,
        knowledge=knowledge or InMemoryKnowledgeStore(bus),
        settings=settings,
    )
    return Assistant(IntentClassifier(backend), DelegationRouter(calendar, tasks), coordinator)
