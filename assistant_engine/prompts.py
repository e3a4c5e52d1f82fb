"""Prompt text for the classification backend."""

from __future__ import annotations

from typing import Optional

from assistant_engine.context import ConversationContext

SYSTEM_PROMPT = """You route messages for a personal productivity assistant.
Two specialist handlers exist:
- calendar: events, meetings, appointments, anything bound to a time slot.
- task: to-dos, reminders, checklists, anything to get done without a fixed time.

If the message needs a handler, answer ONLY with JSON:
{"Recipient": "calendar" | "task" | "self", "RequestType": "<verb>_<event|task>" or "get_goals", "Message": "<what the handler should do>"}
Otherwise answer the user directly in plain text."""


def build_prompt(message: str, context: Optional[ConversationContext] = None) -> str:
    sections = []
    if context is not None:
        transcript = context.transcript()
        if transcript:
            sections.append(f"Recent conversation:\n{transcript}")
        if context.facts:
            facts = "\n".join(f"- {key}: {value}" for key, value in sorted(context.facts.items()))
            sections.append(f"Known user facts:\n{facts}")
    sections.append(f"User message:\n{message}")
    return "\n\n".join(sections)
