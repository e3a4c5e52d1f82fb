"""Field extraction helpers for calendar events and tasks."""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any, Optional

_TOKEN_SPLIT = re.compile(r"[^\w]+")
_COMPLETED_STATUSES = {"completed", "done", "complete"}


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse ISO strings, {"dateTime"|"date": ...} objects and datetimes into aware UTC datetimes."""

    if value is None:
        return None
    if isinstance(value, dict):
        value = value.get("dateTime") or value.get("date")
        if value is None:
            return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def event_start(event: dict) -> Optional[datetime]:
    return parse_datetime(event.get("start"))


def task_due(task: dict) -> Optional[datetime]:
    return parse_datetime(task.get("due"))


def task_created(task: dict) -> Optional[datetime]:
    return parse_datetime(task.get("created"))


def task_updated(task: dict) -> Optional[datetime]:
    return parse_datetime(task.get("updated"))


def is_completed(task: dict) -> bool:
    return str(task.get("status", "")).strip().lower() in _COMPLETED_STATUSES


def event_text(event: dict) -> str:
    parts = (event.get("summary"), event.get("description"), event.get("location"))
    return " ".join(str(part) for part in parts if part).lower()


def task_text(task: dict) -> str:
    parts = (task.get("title"), task.get("notes"), task.get("description"), task.get("location"))
    return " ".join(str(part) for part in parts if part).lower()


def tokenize(text: str) -> set[str]:
    """Lowercased word tokens longer than two characters."""

    return {token for token in _TOKEN_SPLIT.split(text.lower()) if len(token) > 2}


def activity_dates(events: list[dict], tasks: list[dict]) -> list[datetime]:
    """Every parseable activity timestamp, sorted ascending."""

    dates = [event_start(event) for event in events]
    for task in tasks:
        dates.append(task_due(task) or task_updated(task) or task_created(task))
    return sorted(d for d in dates if d is not None)


def record_timestamp(record: dict) -> Optional[datetime]:
    """Best timestamp for either an event or a task."""

    return event_start(record) or task_due(record) or task_updated(record) or task_created(record)
