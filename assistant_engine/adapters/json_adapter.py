"""JSON adapter for knowledge snapshots."""

from __future__ import annotations

import json

from assistant_engine.features import parse_datetime
from assistant_engine.knowledge import KnowledgeSnapshot

_EVENT_DATE_FIELDS = ("start", "end")
_TASK_DATE_FIELDS = ("due", "created", "updated")


def _check_dates(item: dict, fields: tuple[str, ...], label: str) -> None:
    for name in fields:
        value = item.get(name)
        if value in (None, "", {}):
            continue
        if parse_datetime(value) is None:
            raise ValueError(f"{label}: malformed {name} {value!r}")


def _parse_event(item: dict, index: int) -> dict:
    label = f"Event {index}"
    if not isinstance(item, dict):
        raise ValueError(f"{label}: expected an object")
    if not item.get("id"):
        raise ValueError(f"{label}: missing required field 'id'")
    if not item.get("summary"):
        raise ValueError(f"{label}: missing required field 'summary'")
    _check_dates(item, _EVENT_DATE_FIELDS, label)
    return {**item, "id": str(item["id"]).strip()}


def _parse_task(item: dict, index: int) -> dict:
    label = f"Task {index}"
    if not isinstance(item, dict):
        raise ValueError(f"{label}: expected an object")
    if not item.get("id"):
        raise ValueError(f"{label}: missing required field 'id'")
    if not item.get("title"):
        raise ValueError(f"{label}: missing required field 'title'")
    _check_dates(item, _TASK_DATE_FIELDS, label)
    status = str(item.get("status") or "needsAction").strip()
    return {**item, "id": str(item["id"]).strip(), "status": status}


def parse(file_path: str) -> KnowledgeSnapshot:
    """Parse a {"tasks": [...], "events": [...]} JSON file into a snapshot."""

    with open(file_path, encoding="utf-8") as handle:
        payload = json.load(handle)

    if not isinstance(payload, dict):
        raise ValueError("JSON payload must be an object with 'tasks' and 'events' lists")
    tasks = payload.get("tasks", [])
    events = payload.get("events", [])
    if not isinstance(tasks, list) or not isinstance(events, list):
        raise ValueError("'tasks' and 'events' must be lists")

    return KnowledgeSnapshot(
        tasks=[_parse_task(item, i) for i, item in enumerate(tasks, start=1)],
        events=[_parse_event(item, i) for i, item in enumerate(events, start=1)],
    )
