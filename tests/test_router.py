import json

import pytest

from assistant_engine.context import ConversationContext
from assistant_engine.router import FALLBACK_AGENT, DelegationRouter, operation_for, serialize_message
from assistant_engine.schema import DelegationDescriptor, Recipient


class FakeHandler:
    def __init__(self, result=None, error=None):
        self.result = result if result is not None else {"message": "ok"}
        self.error = error
        self.calls = []

    async def _serve(self, operation, detail, user_id):
        self.calls.append((operation, detail, user_id))
        if self.error is not None:
            raise self.error
        return self.result

    async def create(self, detail, user_id):
        return await self._serve("create", detail, user_id)

    async def get(self, detail, user_id):
        return await self._serve("get", detail, user_id)

    async def update(self, detail, user_id):
        return await self._serve("update", detail, user_id)

    async def delete(self, detail, user_id):
        return await self._serve("delete", detail, user_id)


def make_router(calendar=None, tasks=None):
    return DelegationRouter(calendar or FakeHandler(), tasks or FakeHandler())


@pytest.mark.asyncio
async def test_unknown_recipient_returns_fallback():
    router = make_router()
    result = await router.route(DelegationDescriptor("weather", "get_forecast", "rain?"), ConversationContext("u1"))
    assert result.agent == FALLBACK_AGENT
    assert "weather" in result.message
    assert result.error


@pytest.mark.asyncio
async def test_empty_recipient_returns_fallback():
    result = await make_router().route(DelegationDescriptor("", "create_event", "x"), ConversationContext("u1"))
    assert result.agent == FALLBACK_AGENT


@pytest.mark.asyncio
async def test_routes_to_calendar_create_with_user_facing_message():
    calendar = FakeHandler({"message_to_user": "Booked lunch.", "response": "raw", "id": "evt-9"})
    router = make_router(calendar=calendar)
    result = await router.route(
        DelegationDescriptor(Recipient.CALENDAR, "create_event", "Lunch"), ConversationContext("u1")
    )
    assert result.message == "Booked lunch."
    assert result.agent == "calendar"
    assert result.side_channel_ids == ["evt-9"]
    assert calendar.calls[0][0] == "create"
    assert calendar.calls[0][2] == "u1"


@pytest.mark.asyncio
async def test_structured_message_is_serialized():
    tasks = FakeHandler()
    router = make_router(tasks=tasks)
    payload = {"title": "Pay rent", "due": "2025-03-01"}
    await router.route(DelegationDescriptor(Recipient.TASK, "create_task", payload), ConversationContext("u1"))
    detail = tasks.calls[0][1]
    assert isinstance(detail["message"], str)
    assert json.loads(detail["message"]) == payload


@pytest.mark.asyncio
async def test_complete_maps_to_update_with_status():
    tasks = FakeHandler()
    await make_router(tasks=tasks).route(
        DelegationDescriptor(Recipient.TASK, "complete_task", "report"), ConversationContext("u1")
    )
    operation, detail, _ = tasks.calls[0]
    assert operation == "update"
    assert detail["status"] == "completed"


@pytest.mark.asyncio
async def test_handler_exception_becomes_failure_reply():
    calendar = FakeHandler(error=RuntimeError("token expired"))
    result = await make_router(calendar=calendar).route(
        DelegationDescriptor(Recipient.CALENDAR, "delete_event", "standup"), ConversationContext("u1")
    )
    assert result.agent == "calendar"
    assert "token expired" in result.message
    assert "token expired" in result.error


@pytest.mark.asyncio
async def test_get_goals_answers_from_capabilities():
    calendar = FakeHandler()
    result = await make_router(calendar=calendar).route(
        DelegationDescriptor(Recipient.TASK, "get_goals", "what can you do"), ConversationContext("u1")
    )
    assert result.agent == "task"
    assert "Task handler" in result.message
    assert calendar.calls == []


@pytest.mark.asyncio
async def test_unsupported_operation_is_reported():
    result = await make_router().route(
        DelegationDescriptor(Recipient.CALENDAR, "teleport_event", "x"), ConversationContext("u1")
    )
    assert result.agent == "calendar"
    assert result.error


def test_operation_aliases():
    assert operation_for("schedule_event") == ("create", {})
    assert operation_for("reschedule_event") == ("update", {})
    assert operation_for("list_tasks") == ("get", {})
    assert serialize_message("plain") == "plain"
