from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, field_validator

class Todo(BaseModel):
    id: str
    text: str
    completed: bool = False
    parent_id: Optional[str] = None
    order_index: int = 0
    start_time: Optional[str] = None  # UTC instant: YYYY-MM-DDTHH:MM:SS.sssZ
    end_time: Optional[str] = None
    note: Optional[str] = None
    duration_minutes: Optional[int] = None
    should_breakdown: bool = False
    created_at: str  # ISO format datetime string
    updated_at: str

class TodoWithSubtasks(Todo):
    subtasks: list[Todo] = []

class TodoCreate(BaseModel):
    text: str
    start_time: Optional[str] = None  # ISO instant, or local civil time without offset
    end_time: Optional[str] = None
    note: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    target_date: Optional[date] = None  # Day to place a duration-only task on
    should_breakdown: bool = False

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("text must not be empty")
        return value

class TodoUpdate(BaseModel):
    text: Optional[str] = None
    completed: Optional[bool] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    note: Optional[str] = None

class Reminder(BaseModel):
    id: str
    text: str
    completed: bool = False
    created_at: str
    updated_at: str

class ReminderCreate(BaseModel):
    text: str

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("text must not be empty")
        return value

class SubtaskProposal(BaseModel):
    """Candidate child task produced by a breakdown; not persisted by the planner."""
    text: str
    start_time: str  # canonical UTC instant
    end_time: str
    order_index: int

class ScheduleSlot(BaseModel):
    """An existing commitment the scheduler must keep clear of."""
    start_time: str
    end_time: str
    text: str = ""

class TimeSlot(BaseModel):
    start_time: str
    end_time: str

class OptimalTimeRequest(BaseModel):
    text: str
    duration_minutes: int = Field(gt=0)
    schedule: Optional[list[ScheduleSlot]] = None  # None: derive from stored todos
    note: Optional[str] = None
    target_date: Optional[date] = None

class UpcomingNotification(BaseModel):
    todo_id: str
    title: str
    body: str
    start_time: str
    is_subtask: bool = False
