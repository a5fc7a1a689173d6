import os
import sqlite3
import uuid
from datetime import date, datetime, timezone
from typing import Optional
from contextlib import contextmanager

from config import get_settings
from models import Reminder, SubtaskProposal, Todo, TodoWithSubtasks
from timeutils import local_date_of, parse_instant, to_instant_string

def _resolve_path(path: str) -> str:
    """Relative paths are taken from the backend directory, as alembic does."""
    if os.path.isabs(path):
        return path
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), path)

DATABASE_PATH = _resolve_path(get_settings().database_path)

TODO_FIELDS = {"text", "completed", "start_time", "end_time", "note", "order_index"}
REMINDER_FIELDS = {"text", "completed"}

@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()

def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess

    # Run alembic upgrade from the backend directory
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=backend_dir,
        check=True
    )

def _now() -> str:
    return to_instant_string(datetime.now(timezone.utc))

def _row_to_todo(row) -> Todo:
    """Convert a database row to a Todo model."""
    return Todo(
        id=row["id"],
        text=row["text"],
        completed=bool(row["completed"]),
        parent_id=row["parent_id"],
        order_index=row["order_index"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        note=row["note"],
        duration_minutes=row["duration_minutes"],
        should_breakdown=bool(row["should_breakdown"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )

def _row_to_reminder(row) -> Reminder:
    return Reminder(
        id=row["id"],
        text=row["text"],
        completed=bool(row["completed"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )

def _with_subtasks(todos: list[Todo]) -> list[TodoWithSubtasks]:
    """Nest children under their parents; orphans are dropped."""
    children: dict[str, list[Todo]] = {}
    for todo in todos:
        if todo.parent_id:
            children.setdefault(todo.parent_id, []).append(todo)

    result = []
    for todo in todos:
        if todo.parent_id:
            continue
        subtasks = sorted(children.get(todo.id, []), key=lambda t: t.order_index)
        result.append(TodoWithSubtasks(**todo.model_dump(), subtasks=subtasks))
    return result


# Todo operations
def create_todo_db(
    text: str,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    note: Optional[str] = None,
    duration_minutes: Optional[int] = None,
    should_breakdown: bool = False,
    parent_id: Optional[str] = None,
    order_index: int = 0,
    todo_id: Optional[str] = None,
) -> Todo:
    """Insert a todo. Times must already be canonical instant strings."""
    todo_id = todo_id or str(uuid.uuid4())
    now = _now()
    with get_db() as conn:
        conn.execute(
            """INSERT INTO todos
               (id, text, completed, parent_id, order_index, start_time, end_time, note, duration_minutes, should_breakdown, created_at, updated_at)
               VALUES (?, ?, 0, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (todo_id, text, parent_id, order_index, start_time, end_time, note, duration_minutes, int(should_breakdown), now, now)
        )
        conn.commit()

    return Todo(
        id=todo_id,
        text=text,
        completed=False,
        parent_id=parent_id,
        order_index=order_index,
        start_time=start_time,
        end_time=end_time,
        note=note,
        duration_minutes=duration_minutes,
        should_breakdown=should_breakdown,
        created_at=now,
        updated_at=now,
    )

def create_subtasks_db(parent_id: str, proposals: list[SubtaskProposal]) -> list[Todo]:
    """Persist breakdown proposals as children of parent_id in one transaction."""
    now = _now()
    created = []
    with get_db() as conn:
        for proposal in proposals:
            todo = Todo(
                id=str(uuid.uuid4()),
                text=proposal.text,
                parent_id=parent_id,
                order_index=proposal.order_index,
                start_time=proposal.start_time,
                end_time=proposal.end_time,
                created_at=now,
                updated_at=now,
            )
            conn.execute(
                """INSERT INTO todos
                   (id, text, completed, parent_id, order_index, start_time, end_time, should_breakdown, created_at, updated_at)
                   VALUES (?, ?, 0, ?, ?, ?, ?, 0, ?, ?)""",
                (todo.id, todo.text, parent_id, todo.order_index, todo.start_time, todo.end_time, now, now)
            )
            created.append(todo)
        conn.commit()
    return created

def get_todo_db(todo_id: str) -> Optional[Todo]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM todos WHERE id = ?", (todo_id,)).fetchone()
        return _row_to_todo(row) if row else None

def get_all_todos() -> list[Todo]:
    with get_db() as conn:
        rows = conn.execute("""
            SELECT * FROM todos
            ORDER BY
                CASE WHEN start_time IS NULL THEN 1 ELSE 0 END,
                start_time,
                order_index,
                created_at,
                rowid
        """).fetchall()
        return [_row_to_todo(row) for row in rows]

def get_subtasks_db(parent_id: str) -> list[Todo]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM todos WHERE parent_id = ? ORDER BY order_index",
            (parent_id,)
        ).fetchall()
        return [_row_to_todo(row) for row in rows]

def get_todos_with_subtasks() -> list[TodoWithSubtasks]:
    return _with_subtasks(get_all_todos())

def get_todos_for_date(target_date: date) -> list[TodoWithSubtasks]:
    """
    Top-level todos whose start_time falls on target_date (local calendar day),
    with their subtasks.
    """
    result = []
    for todo in get_todos_with_subtasks():
        start = parse_instant(todo.start_time) if todo.start_time else None
        if start and local_date_of(start) == target_date:
            result.append(todo)
    return result

def update_todo_db(todo_id: str, **updates) -> Optional[Todo]:
    """
    Update a todo with any fields provided.
    Only updates fields that differ from current values; bumps updated_at.

    Args:
        todo_id: Todo ID to update
        **updates: Field names and values (text, completed, start_time, end_time, note, order_index)
    """
    with get_db() as conn:
        row = conn.execute("SELECT * FROM todos WHERE id = ?", (todo_id,)).fetchone()
        if not row:
            return None

        changes = {}
        for field, new_value in updates.items():
            if field not in TODO_FIELDS:
                continue
            # Convert bool to int for comparison with SQLite storage
            if isinstance(new_value, bool):
                new_value = int(new_value)
            if new_value != row[field]:
                changes[field] = new_value

        if changes:
            changes["updated_at"] = _now()
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            values = list(changes.values()) + [todo_id]
            conn.execute(f"UPDATE todos SET {set_clause} WHERE id = ?", values)
            conn.commit()

        updated_row = conn.execute("SELECT * FROM todos WHERE id = ?", (todo_id,)).fetchone()
        return _row_to_todo(updated_row)

def delete_subtasks_db(parent_id: str) -> int:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM todos WHERE parent_id = ?", (parent_id,))
        conn.commit()
        return cursor.rowcount

def delete_todo_db(todo_id: str) -> bool:
    """Delete a todo and its subtasks."""
    with get_db() as conn:
        conn.execute("DELETE FROM todos WHERE parent_id = ?", (todo_id,))
        cursor = conn.execute("DELETE FROM todos WHERE id = ?", (todo_id,))
        conn.commit()
        return cursor.rowcount > 0


# Reminder operations
def create_reminder_db(text: str) -> Reminder:
    reminder_id = str(uuid.uuid4())
    now = _now()
    with get_db() as conn:
        conn.execute(
            "INSERT INTO reminders (id, text, completed, created_at, updated_at) VALUES (?, ?, 0, ?, ?)",
            (reminder_id, text, now, now)
        )
        conn.commit()
    return Reminder(id=reminder_id, text=text, completed=False, created_at=now, updated_at=now)

def get_reminder_db(reminder_id: str) -> Optional[Reminder]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM reminders WHERE id = ?", (reminder_id,)).fetchone()
        return _row_to_reminder(row) if row else None

def get_all_reminders() -> list[Reminder]:
    with get_db() as conn:
        rows = conn.execute("SELECT * FROM reminders ORDER BY created_at, rowid").fetchall()
        return [_row_to_reminder(row) for row in rows]

def update_reminder_db(reminder_id: str, **updates) -> Optional[Reminder]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM reminders WHERE id = ?", (reminder_id,)).fetchone()
        if not row:
            return None

        changes = {
            field: int(value) if isinstance(value, bool) else value
            for field, value in updates.items()
            if field in REMINDER_FIELDS
        }
        if changes:
            changes["updated_at"] = _now()
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            conn.execute(f"UPDATE reminders SET {set_clause} WHERE id = ?", list(changes.values()) + [reminder_id])
            conn.commit()

        updated_row = conn.execute("SELECT * FROM reminders WHERE id = ?", (reminder_id,)).fetchone()
        return _row_to_reminder(updated_row)

def delete_reminder_db(reminder_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM reminders WHERE id = ?", (reminder_id,))
        conn.commit()
        return cursor.rowcount > 0

def delete_all_reminders_db() -> int:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM reminders")
        conn.commit()
        return cursor.rowcount
