from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Literal, Optional
import logging
import sqlite3
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from breakdown import break_down_task
from config import get_settings
from logging_config import configure_logging
from models import (
    OptimalTimeRequest,
    Reminder,
    ReminderCreate,
    TimeSlot,
    Todo,
    TodoCreate,
    TodoUpdate,
    TodoWithSubtasks,
    UpcomingNotification,
)
from notifications import DEFAULT_WINDOW_SECONDS, upcoming_notifications
from scheduling import determine_optimal_time, slots_for_date
from timeutils import local_date_of, normalize_instant, parse_instant, today_local
from database import (
    init_db,
    create_todo_db,
    create_subtasks_db,
    get_todo_db,
    get_all_todos,
    get_todos_with_subtasks,
    get_todos_for_date,
    get_subtasks_db,
    update_todo_db,
    delete_subtasks_db,
    delete_todo_db,
    create_reminder_db,
    get_reminder_db,
    get_all_reminders,
    update_reminder_db,
    delete_reminder_db,
    delete_all_reminders_db,
)

load_dotenv()

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    configure_logging(log_level=get_settings().log_level)
    init_db()
    yield
    # Shutdown (nothing to do)

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _instant_or_422(value: Optional[str], field: str) -> Optional[str]:
    """Normalize an input time to a canonical instant; empty means unset."""
    if not value:
        return None
    instant = normalize_instant(value)
    if instant is None:
        raise HTTPException(status_code=422, detail=f"Invalid {field}: {value!r}")
    return instant


def _with_subtasks(todo: Todo) -> TodoWithSubtasks:
    return TodoWithSubtasks(**todo.model_dump(), subtasks=get_subtasks_db(todo.id))


async def _persist_breakdown(todo: Todo) -> None:
    """Break a todo down and store the subtasks; failures only get logged."""
    subtasks = await break_down_task(todo.text, todo.start_time, todo.end_time, todo.note)
    logger.info("Received %d subtasks for todo %s", len(subtasks), todo.id)
    if not subtasks:
        return
    try:
        create_subtasks_db(todo.id, subtasks)
    except sqlite3.Error:
        logger.exception("Error adding subtasks for todo %s", todo.id)


@app.get("/todos")
def get_todos(
    day: Optional[date] = Query(default=None, alias="date"),
    view: Literal["all", "today", "pending", "completed"] = Query(default="all", alias="filter"),
) -> list[TodoWithSubtasks]:
    """Top-level todos with nested subtasks, optionally limited to one day."""
    todos = get_todos_for_date(day) if day else get_todos_with_subtasks()

    if view == "today":
        today = today_local()
        todos = [
            t for t in todos
            if t.start_time and local_date_of(parse_instant(t.start_time)) == today
        ]
    elif view == "pending":
        todos = [t for t in todos if not t.completed]
    elif view == "completed":
        todos = [t for t in todos if t.completed]
    return todos


@app.post("/todos")
async def create_todo(todo_data: TodoCreate) -> TodoWithSubtasks:
    """
    Create a todo. Duration-only todos get an automatically chosen slot and
    breakdown requests add generated subtasks; neither can fail the creation.
    """
    start_time = _instant_or_422(todo_data.start_time, "start_time")
    end_time = _instant_or_422(todo_data.end_time, "end_time")

    if todo_data.duration_minutes and not start_time and not end_time:
        target_date = todo_data.target_date or today_local()
        slots = slots_for_date(get_all_todos(), target_date)
        slot = await determine_optimal_time(
            todo_data.text, todo_data.duration_minutes, slots, todo_data.note, target_date
        )
        if slot:
            start_time, end_time = slot.start_time, slot.end_time
        else:
            logger.info("No optimal time found for %r, creating without times", todo_data.text)

    todo = create_todo_db(
        todo_data.text,
        start_time=start_time,
        end_time=end_time,
        note=todo_data.note,
        duration_minutes=todo_data.duration_minutes,
        should_breakdown=todo_data.should_breakdown,
    )

    if todo_data.should_breakdown:
        await _persist_breakdown(todo)

    return _with_subtasks(todo)


@app.patch("/todos/{todo_id}")
def update_todo(todo_id: str, todo_data: TodoUpdate) -> Todo:
    updates = todo_data.model_dump(exclude_unset=True)
    if "text" in updates:
        updates["text"] = (updates["text"] or "").strip()
        if not updates["text"]:
            raise HTTPException(status_code=422, detail="text must not be empty")
    for field in ("start_time", "end_time"):
        if field in updates:
            updates[field] = _instant_or_422(updates[field], field)

    result = update_todo_db(todo_id, **updates)
    if not result:
        raise HTTPException(status_code=404, detail="Todo not found")
    return result


@app.post("/todos/{todo_id}/toggle")
def toggle_todo(todo_id: str) -> Todo:
    todo = get_todo_db(todo_id)
    if not todo:
        raise HTTPException(status_code=404, detail="Todo not found")
    return update_todo_db(todo_id, completed=not todo.completed)


@app.delete("/todos/{todo_id}")
def delete_todo(todo_id: str) -> dict:
    if not delete_todo_db(todo_id):
        raise HTTPException(status_code=404, detail="Todo not found")
    return {"status": "deleted"}


@app.post("/todos/{todo_id}/breakdown")
async def rerun_breakdown(todo_id: str) -> TodoWithSubtasks:
    """Regenerate subtasks; existing ones are replaced only by a non-empty result."""
    todo = get_todo_db(todo_id)
    if not todo:
        raise HTTPException(status_code=404, detail="Todo not found")

    subtasks = await break_down_task(todo.text, todo.start_time, todo.end_time, todo.note)
    if subtasks:
        delete_subtasks_db(todo.id)
        create_subtasks_db(todo.id, subtasks)
    return _with_subtasks(todo)


@app.post("/schedule/optimal-time")
async def optimal_time(request: OptimalTimeRequest) -> Optional[TimeSlot]:
    target_date = request.target_date or today_local()
    if request.schedule is None:
        slots = slots_for_date(get_all_todos(), target_date)
    else:
        slots = request.schedule
    return await determine_optimal_time(
        request.text, request.duration_minutes, slots, request.note, target_date
    )


@app.get("/notifications/upcoming")
def get_upcoming_notifications(
    within_seconds: int = Query(default=DEFAULT_WINDOW_SECONDS, gt=0),
) -> list[UpcomingNotification]:
    return upcoming_notifications(get_all_todos(), datetime.now(timezone.utc), within_seconds)


# Reminders
@app.get("/reminders")
def get_reminders() -> list[Reminder]:
    return get_all_reminders()


@app.post("/reminders")
def create_reminder(reminder_data: ReminderCreate) -> Reminder:
    return create_reminder_db(reminder_data.text)


@app.post("/reminders/{reminder_id}/toggle")
def toggle_reminder(reminder_id: str) -> Reminder:
    reminder = get_reminder_db(reminder_id)
    if not reminder:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return update_reminder_db(reminder_id, completed=not reminder.completed)


@app.delete("/reminders/{reminder_id}")
def delete_reminder(reminder_id: str) -> dict:
    if not delete_reminder_db(reminder_id):
        raise HTTPException(status_code=404, detail="Reminder not found")
    return {"status": "deleted"}


@app.delete("/reminders")
def delete_all_reminders() -> dict:
    return {"status": "deleted", "count": delete_all_reminders_db()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
