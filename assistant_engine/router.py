"""Dispatch delegation descriptors to domain handlers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from assistant_engine.capabilities import describe
from assistant_engine.context import ConversationContext
from assistant_engine.errors import HandlerError, InvalidDelegation
from assistant_engine.logs import get_logger
from assistant_engine.schema import DelegationDescriptor, Recipient

logger = get_logger(__name__)

FALLBACK_AGENT = "fallback"
AGENT_NAMES = {Recipient.SELF: "assistant", Recipient.CALENDAR: "calendar", Recipient.TASK: "task"}
_OPERATIONS = ("create", "get", "update", "delete")
_VERB_ALIASES = {
    "add": "create",
    "schedule": "create",
    "book": "create",
    "list": "get",
    "find": "get",
    "search": "get",
    "show": "get",
    "check": "get",
    "move": "update",
    "reschedule": "update",
    "modify": "update",
    "edit": "update",
    "remove": "delete",
    "cancel": "delete",
}
_MESSAGE_FIELDS = ("message_to_user", "messageToUser", "message")


class DomainHandler(Protocol):
    async def create(self, detail: dict, user_id: str) -> dict: ...

    async def get(self, detail: dict, user_id: str) -> dict: ...

    async def update(self, detail: dict, user_id: str) -> dict: ...

    async def delete(self, detail: dict, user_id: str) -> dict: ...


class CalendarHandler(DomainHandler, Protocol):
    """Serves event requests."""


class TaskHandler(DomainHandler, Protocol):
    """Serves task requests."""


@dataclass(frozen=True)
class RouteResult:
    message: str
    agent: str
    side_channel_ids: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def as_dict(self) -> dict:
        return {"message": self.message, "agent": self.agent, "side_channel_ids": list(self.side_channel_ids)}


def serialize_message(message: Any) -> str:
    if isinstance(message, str):
        return message
    return json.dumps(message, default=str, sort_keys=True)


def operation_for(request_type: str) -> tuple[str, dict]:
    """Handler operation and extra detail fields for a request type."""

    verb = request_type.lower().split("_", 1)[0]
    if verb == "complete":
        return "update", {"status": "completed"}
    verb = _VERB_ALIASES.get(verb, verb)
    return verb, {}


def _user_message(result: Any) -> str:
    if isinstance(result, str):
        return result
    if isinstance(result, dict):
        for key in _MESSAGE_FIELDS:
            if result.get(key):
                return str(result[key])
        if result.get("response"):
            return str(result["response"])
    return "Done."


def _side_channel_ids(result: Any) -> list[str]:
    if not isinstance(result, dict):
        return []
    ids = result.get("ids") or ([result["id"]] if result.get("id") else [])
    return [str(i) for i in ids]


class DelegationRouter:
    """Routes descriptors to the injected calendar and task handlers."""

    def __init__(self, calendar: CalendarHandler, tasks: TaskHandler):
        self.handlers: dict[Recipient, DomainHandler] = {Recipient.CALENDAR: calendar, Recipient.TASK: tasks}

    def _resolve(self, descriptor: DelegationDescriptor) -> Recipient:
        try:
            return Recipient(descriptor.recipient)
        except ValueError as exc:
            raise InvalidDelegation(f"Unknown recipient {descriptor.recipient!r}") from exc

    async def route(self, descriptor: DelegationDescriptor, context: ConversationContext) -> RouteResult:
        try:
            recipient = self._resolve(descriptor)
        except InvalidDelegation as exc:
            logger.warning("Rejected delegation: %s", exc)
            return RouteResult(
                message=f"I couldn't find anyone to handle that request ({exc}).",
                agent=FALLBACK_AGENT,
                error=str(exc),
            )

        agent = AGENT_NAMES[recipient]
        body = serialize_message(descriptor.message)
        if descriptor.request_type == "get_goals":
            return RouteResult(message=describe(recipient), agent=agent)
        if recipient is Recipient.SELF:
            return RouteResult(
                message=f"I can't do '{descriptor.request_type}' myself yet. Ask me what I can do for options.",
                agent=agent,
                error=f"unsupported request {descriptor.request_type!r}",
            )

        operation, extra = operation_for(descriptor.request_type)
        handler = self.handlers[recipient]
        if operation not in _OPERATIONS:
            return RouteResult(
                message=f"The {agent} handler doesn't support '{descriptor.request_type}'.",
                agent=agent,
                error=f"unsupported operation {operation!r}",
            )

        detail = {"message": body, "request_type": descriptor.request_type, **extra}
        try:
            result = await getattr(handler, operation)(detail, context.user_id)
        except Exception as exc:
            failure = HandlerError(agent, exc)
            logger.warning("Delegation to %s failed for %s: %s", agent, context.user_id, exc)
            return RouteResult(
                message=f"Sorry, the {agent} handler ran into a problem: {exc}",
                agent=agent,
                error=str(failure),
            )

        error = result.get("error") if isinstance(result, dict) else None
        return RouteResult(
            message=_user_message(result),
            agent=agent,
            side_channel_ids=_side_channel_ids(result),
            error=str(error) if error else None,
        )
