"""Selection of todos that are about to start, for client-side notifications."""
from datetime import datetime, timedelta
from typing import Iterable

from models import Todo, UpcomingNotification
from timeutils import parse_instant, to_local

NOTIFICATION_TITLE = "Task Starting Soon!"
DEFAULT_WINDOW_SECONDS = 35


def upcoming_notifications(
    todos: Iterable[Todo],
    now: datetime,
    within_seconds: int = DEFAULT_WINDOW_SECONDS,
) -> list[UpcomingNotification]:
    """Incomplete todos and subtasks starting in [now, now + within_seconds]."""
    window_end = now + timedelta(seconds=within_seconds)
    result = []
    for todo in todos:
        if todo.completed or not todo.start_time:
            continue
        start = parse_instant(todo.start_time)
        if start is None or not (now <= start <= window_end):
            continue

        is_subtask = todo.parent_id is not None
        prefix = "Subtask: " if is_subtask else ""
        at = to_local(start).strftime("%I:%M %p")
        result.append(UpcomingNotification(
            todo_id=todo.id,
            title=NOTIFICATION_TITLE,
            body=f"{prefix}{todo.text} at {at}",
            start_time=todo.start_time,
            is_subtask=is_subtask,
        ))
    result.sort(key=lambda n: n.start_time)
    return result
