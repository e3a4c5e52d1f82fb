"""What each handler can do, phrased for the user."""

from __future__ import annotations

from assistant_engine.schema import Recipient

CAPABILITIES: dict[Recipient, dict] = {
    Recipient.SELF: {
        "name": "Assistant",
        "role": "Orchestrator",
        "summary": "I read your requests and hand them to the right specialist.",
        "capabilities": [
            "Understand requests and route them to the calendar or task handler",
            "Answer productivity questions from your own tasks and calendar",
            "Link calendar events to related tasks",
            "Track project phases, bottlenecks and completion estimates",
        ],
        "examples": [
            "Schedule a meeting with John tomorrow at 2pm",
            "Remind me to call the bank",
            "How productive was my week?",
        ],
    },
    Recipient.CALENDAR: {
        "name": "Calendar handler",
        "role": "Time keeper",
        "summary": "I manage your calendar and keep your time slots sane.",
        "capabilities": [
            "Create single or recurring events",
            "Look up events across your calendars",
            "Move, rename or otherwise update events",
            "Delete events you no longer need",
        ],
        "examples": ["Book a dentist appointment Friday at 9am", "Move it to 3pm"],
    },
    Recipient.TASK: {
        "name": "Task handler",
        "role": "Executor",
        "summary": "I keep your to-dos, lists and reminders in order.",
        "capabilities": [
            "Create tasks and reminders",
            "List and search your tasks",
            "Update due dates, notes and priorities",
            "Mark tasks complete or delete them",
        ],
        "examples": ["Add buy groceries to my list", "Mark the report task done"],
    },
}


def describe(recipient: Recipient) -> str:
    """User-facing capability text for one handler."""

    entry = CAPABILITIES[recipient]
    lines = [f"{entry['name']} ({entry['role']}): {entry['summary']}", "", "I can:"]
    lines.extend(f"- {item}" for item in entry["capabilities"])
    lines.append("")
    lines.append("Try:")
    lines.extend(f'- "{example}"' for example in entry["examples"])
    if recipient is Recipient.SELF:
        lines.append("")
        lines.append("Specialists: " + "; ".join(
            f"{CAPABILITIES[r]['name']} - {CAPABILITIES[r]['summary']}" for r in (Recipient.CALENDAR, Recipient.TASK)
        ))
    return "\n".join(lines)
