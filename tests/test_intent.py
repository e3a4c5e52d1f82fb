import json

import pytest

from assistant_engine.context import ConversationContext
from assistant_engine.errors import ClassificationError
from assistant_engine.intent import FALLBACK_REPLY, IntentClassifier, parse_backend_output, parse_recipient
from assistant_engine.schema import Recipient


class StubBackend:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    async def classify(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


def test_parse_json_descriptor():
    result = parse_backend_output(
        json.dumps({"Recipient": "Calendar", "RequestType": "Create_Event", "Message": "Lunch with Sam"})
    )
    assert result.descriptor.recipient is Recipient.CALENDAR
    assert result.descriptor.request_type == "create_event"
    assert result.descriptor.message == "Lunch with Sam"


def test_parse_fenced_json_with_structured_message():
    text = '```json\n{"recipient": "task", "request_type": "create_task", "message": {"title": "Pay rent"}}\n```'
    result = parse_backend_output(text)
    assert result.descriptor.recipient is Recipient.TASK
    assert result.descriptor.message == {"title": "Pay rent"}


def test_parse_plain_text_is_direct_reply():
    result = parse_backend_output("Hello! How can I help?")
    assert result.descriptor is None
    assert result.direct_reply == "Hello! How can I help?"


def test_parse_unknown_recipient_is_kept_verbatim():
    result = parse_backend_output('{"Recipient": "Weather", "RequestType": "get_forecast", "Message": "rain?"}')
    assert result.descriptor.recipient == "Weather"


def test_parse_empty_output_raises():
    with pytest.raises(ClassificationError):
        parse_backend_output("   ")


def test_parse_recipient_aliases():
    assert parse_recipient("CalendarHandler") is Recipient.CALENDAR
    assert parse_recipient("murphy") is Recipient.TASK
    assert parse_recipient("") == ""


@pytest.mark.asyncio
async def test_classifier_applies_corrections():
    backend = StubBackend(json.dumps({"Recipient": "calendar", "RequestType": "create_event", "Message": "x"}))
    result = await IntentClassifier(backend).classify("what can the task handler do?")
    assert result.descriptor.recipient is Recipient.TASK
    assert result.descriptor.request_type == "get_goals"


@pytest.mark.asyncio
async def test_classifier_falls_back_on_backend_error():
    backend = StubBackend(error=ClassificationError("timeout"))
    result = await IntentClassifier(backend).classify("hello there")
    assert result.fallback
    assert result.direct_reply == FALLBACK_REPLY


@pytest.mark.asyncio
async def test_classifier_never_raises_on_unexpected_errors():
    backend = StubBackend(error=RuntimeError("socket closed"))
    result = await IntentClassifier(backend).classify("hello there")
    assert result.direct_reply == FALLBACK_REPLY


@pytest.mark.asyncio
async def test_classifier_rules_still_apply_when_backend_fails():
    context = ConversationContext("u1")
    context.add_turn("user", "Book dinner at 7pm", Recipient.CALENDAR)
    backend = StubBackend(reply="")
    result = await IntentClassifier(backend).classify("move it to 8pm", context)
    assert result.descriptor.request_type == "update_event"


@pytest.mark.asyncio
async def test_prompt_includes_recent_turns():
    context = ConversationContext("u1")
    context.add_turn("user", "Book dinner at 7pm", Recipient.CALENDAR)
    backend = StubBackend(reply="Sure.")
    await IntentClassifier(backend).classify("thanks", context)
    assert "Book dinner at 7pm" in backend.prompts[0]
    assert backend.prompts[0].endswith("User message:\nthanks")
