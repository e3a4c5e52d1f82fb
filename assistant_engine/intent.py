"""Intent classification: backend call, output parsing and corrections."""

from __future__ import annotations

import json
import re
from typing import Optional, Union

from assistant_engine.context import ConversationContext
from assistant_engine.corrections import apply_corrections
from assistant_engine.errors import ClassificationError
from assistant_engine.llm import ClassificationBackend
from assistant_engine.logs import get_logger
from assistant_engine.prompts import build_prompt
from assistant_engine.schema import Classification, DelegationDescriptor, Recipient

logger = get_logger(__name__)

FALLBACK_REPLY = "Sorry, I couldn't work out what you need just now. Could you rephrase that?"
UPSTREAM_CONFIDENCE = 0.75
DIRECT_REPLY_CONFIDENCE = 0.7
FALLBACK_CONFIDENCE = 0.3

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_RECIPIENT_ALIASES = {
    "calendar": Recipient.CALENDAR,
    "calendarhandler": Recipient.CALENDAR,
    "grim": Recipient.CALENDAR,
    "task": Recipient.TASK,
    "tasks": Recipient.TASK,
    "taskhandler": Recipient.TASK,
    "murphy": Recipient.TASK,
    "self": Recipient.SELF,
    "assistant": Recipient.SELF,
    "jarvi": Recipient.SELF,
}


def parse_recipient(value: object) -> Union[Recipient, str]:
    """Known handler names become a Recipient; anything else is kept verbatim."""

    raw = str(value or "").strip()
    key = re.sub(r"[\s_-]+", "", raw.lower())
    return _RECIPIENT_ALIASES.get(key, raw)


def _lookup(payload: dict, name: str):
    for key, value in payload.items():
        if str(key).replace("_", "").lower() == name:
            return value
    return None


def _load_json_object(text: str) -> Optional[dict]:
    candidates = [text]
    match = _JSON_OBJECT.search(text)
    if match is not None and match.group(0) != text:
        candidates.append(match.group(0))
    for candidate in candidates:
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            return payload
    return None


def parse_backend_output(text: str) -> Classification:
    """Turn raw backend text into a delegation or a direct reply."""

    cleaned = _FENCE.sub("", (text or "").strip()).strip()
    if not cleaned:
        raise ClassificationError("Classification backend returned empty output")

    payload = _load_json_object(cleaned)
    if payload is not None and _lookup(payload, "recipient") is not None:
        message = _lookup(payload, "message")
        descriptor = DelegationDescriptor(
            recipient=parse_recipient(_lookup(payload, "recipient")),
            request_type=str(_lookup(payload, "requesttype") or "").strip().lower(),
            message=message if isinstance(message, (str, dict)) else json.dumps(message),
        )
        return Classification(descriptor=descriptor, confidence=UPSTREAM_CONFIDENCE)
    if payload is not None:
        raise ClassificationError("Classification JSON has no recipient")
    return Classification(direct_reply=cleaned, confidence=DIRECT_REPLY_CONFIDENCE)


class IntentClassifier:
    """Classify a message and never raise; failures become a generic reply."""

    def __init__(self, backend: ClassificationBackend):
        self.backend = backend

    async def classify(self, message: str, context: Optional[ConversationContext] = None) -> Classification:
        upstream: Optional[Classification] = None
        try:
            raw = await self.backend.classify(build_prompt(message, context))
            upstream = parse_backend_output(raw)
        except ClassificationError as exc:
            logger.warning("Classification failed, using fallback: %s", exc)
        except Exception:
            logger.exception("Unexpected classification backend failure")

        if upstream is None:
            corrected = apply_corrections(Classification(), message, context)
            if corrected.descriptor is not None:
                return corrected
            return Classification(direct_reply=FALLBACK_REPLY, confidence=FALLBACK_CONFIDENCE, fallback=True)

        return apply_corrections(upstream, message, context)
