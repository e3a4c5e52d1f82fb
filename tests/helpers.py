from datetime import datetime, timedelta, timezone

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def iso(moment):
    return moment.isoformat()


def sample_event(event_id="e1", summary="Website redesign meeting", start=NOW, **extra):
    event = {"id": event_id, "summary": summary}
    if start is not None:
        event["start"] = {"dateTime": iso(start)}
    event.update(extra)
    return event


def sample_task(task_id="t1", title="Create website redesign mockups", due=NOW, status="needsAction", **extra):
    task = {"id": task_id, "title": title, "status": status}
    if due is not None:
        task["due"] = iso(due)
    task.update(extra)
    return task


def days(n):
    return timedelta(days=n)


class FixedClock:
    def __init__(self, moment=NOW):
        self.moment = moment

    def __call__(self):
        return self.moment

    def advance(self, delta):
        self.moment = self.moment + delta
