"""Deterministic rules that override noisy classifier output."""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Optional

from assistant_engine.context import ConversationContext
from assistant_engine.logs import get_logger
from assistant_engine.schema import Classification, DelegationDescriptor, Recipient

logger = get_logger(__name__)

RULE_CAPABILITY = "capability_question"
RULE_REFERENCE = "reference_mutation"
RULE_BOOKING = "booking_with_time"
RULE_REMINDER = "reminder_without_time"

RULE_CONFIDENCE = 0.9

_CAPABILITY_PATTERNS = (
    re.compile(r"\bwhat\s+(?:can|does)\s+(?P<subject>[\w\s'-]+?)\s+do\b"),
    re.compile(r"\b(?P<subject>[\w\s'-]+?)(?:'s)?\s+capabilit(?:y|ies)\b"),
    re.compile(r"\bcapabilit(?:y|ies)\s+of\s+(?P<subject>[\w\s'-]+)"),
)
_HANDLER_ALIASES = (
    (Recipient.CALENDAR, ("calendar", "grim", "scheduler", "schedule")),
    (Recipient.TASK, ("task", "todo", "to-do", "murphy")),
    (Recipient.SELF, ("you", "assistant", "jarvi")),
)

_REFERENCE_NOUN = re.compile(
    r"\b(?:the|that|this|my)\s+(?P<noun>event|meeting|appointment|call|task|todo|to-do|reminder)s?\b"
)
_REFERENCE_BARE = re.compile(r"\b(?:it|that|this)\b")
_NOUN_DOMAINS = {
    "event": Recipient.CALENDAR,
    "meeting": Recipient.CALENDAR,
    "appointment": Recipient.CALENDAR,
    "call": Recipient.CALENDAR,
    "task": Recipient.TASK,
    "todo": Recipient.TASK,
    "to-do": Recipient.TASK,
    "reminder": Recipient.TASK,
}
_MUTATION = re.compile(r"\b(?:change|move|update|modify|reschedule|shift)\b")

_CLOCK_TIME = re.compile(
    r"\b(?:[01]?\d|2[0-3])(?::[0-5]\d)?\s*(?:am|pm)\b|\b(?:[01]?\d|2[0-3]):[0-5]\d\b|\bnoon\b|\bmidnight\b"
)
_BOOKING = re.compile(r"\b(?:book|schedule|set up|arrange|meeting|appointment|call with|lunch with)\b")
_REMINDER = re.compile(
    r"\b(?:remind(?:er)?|remember to|to-?do|action item|don't forget)\b|\badd\b.*\bto my (?:list|tasks)\b"
)


def _normalize(message: str) -> str:
    return " ".join(message.lower().split())


def _request_parts(request_type: str) -> set[str]:
    return set(request_type.lower().split("_"))


def recipient_for_request(request_type: str) -> Optional[Recipient]:
    """Handler implied by an event or task token in the request type."""

    parts = _request_parts(request_type)
    if parts & {"event", "events"}:
        return Recipient.CALENDAR
    if parts & {"task", "tasks"}:
        return Recipient.TASK
    return None


def retarget_request(request_type: str, recipient: Recipient) -> str:
    """Rewrite a request type so its domain token matches the recipient."""

    source, target = ("task", "event") if recipient is Recipient.CALENDAR else ("event", "task")
    words = request_type.lower().split("_")
    if target in words or f"{target}s" in words:
        return request_type
    if source in words or f"{source}s" in words:
        return "_".join(target if w == source else f"{target}s" if w == f"{source}s" else w for w in words)
    return f"create_{target}"


def capability_subject(message: str) -> Optional[Recipient]:
    text = _normalize(message)
    for pattern in _CAPABILITY_PATTERNS:
        match = pattern.search(text)
        if match is None:
            continue
        subject = match.group("subject")
        for recipient, aliases in _HANDLER_ALIASES:
            if any(re.search(rf"\b{re.escape(alias)}s?\b", subject) for alias in aliases):
                return recipient
    return None


def reference_domain(message: str, context: Optional[ConversationContext] = None) -> Optional[Recipient]:
    """Handler a referring phrase points at.

    A named noun ("that task", "the meeting") decides the handler; a bare
    "it"/"that"/"this" falls back to the most recent domain in the conversation.
    """

    text = _normalize(message)
    match = _REFERENCE_NOUN.search(text)
    if match is not None:
        return _NOUN_DOMAINS[match.group("noun")]
    if _REFERENCE_BARE.search(text) and context is not None:
        return context.recent_domain()
    return None


def has_clock_time(message: str) -> bool:
    return _CLOCK_TIME.search(_normalize(message)) is not None


def _forced(recipient: Recipient, request_type: str, message: str, rule: str) -> Classification:
    logger.info("Correction %s forced %s/%s", rule, recipient.value, request_type)
    return Classification(
        descriptor=DelegationDescriptor(recipient, request_type, message),
        rule=rule,
        confidence=RULE_CONFIDENCE,
    )


def enforce_recipient_invariant(result: Classification) -> Classification:
    """Event requests go to the calendar handler and task requests to the task handler."""

    descriptor = result.descriptor
    if descriptor is None:
        return result
    implied = recipient_for_request(descriptor.request_type)
    if implied is None or descriptor.recipient == implied:
        return result
    logger.info("Recipient %s contradicts %s, rerouting to %s", descriptor.recipient, descriptor.request_type, implied.value)
    return replace(result, descriptor=replace(descriptor, recipient=implied))


def apply_corrections(result: Classification, message: str, context: Optional[ConversationContext] = None) -> Classification:
    """Apply the first matching rule, then the recipient invariant."""

    text = _normalize(message)

    subject = capability_subject(text)
    if subject is not None:
        return _forced(subject, "get_goals", message, RULE_CAPABILITY)

    domain = reference_domain(text, context) if _MUTATION.search(text) else None
    if domain is not None:
        request_type = "update_event" if domain is Recipient.CALENDAR else "update_task"
        return _forced(domain, request_type, message, RULE_REFERENCE)

    descriptor = result.descriptor
    if descriptor is not None and descriptor.request_type != "get_goals":
        clock = has_clock_time(text)
        target = None
        rule = None
        if _BOOKING.search(text) and clock:
            target, rule = Recipient.CALENDAR, RULE_BOOKING
        elif _REMINDER.search(text) and not clock:
            target, rule = Recipient.TASK, RULE_REMINDER
        if target is not None and (descriptor.recipient != target or recipient_for_request(descriptor.request_type) not in (None, target)):
            return _forced(target, retarget_request(descriptor.request_type, target), descriptor.message, rule)

    return enforce_recipient_invariant(result)
