"""Prompt templates for task breakdown and optimal time selection."""
from datetime import date, datetime
from typing import Optional

from timeutils import format_human, format_local, parse_instant

# Task breakdown prompt
# Times are requested as local civil time stamped with {base_date}; the model
# is not trusted to apply a UTC offset, so the offset is only given as context.
BREAKDOWN_PROMPT = """Break down the following task into smaller sequential subtasks with specific start and end times.

Task: "{task_text}"{time_context}{note_context}

Timezone: {timezone_name} (UTC{timezone_offset})
Date for all subtasks: {base_date}

Rules:
- Return between 5 and 15 subtasks.
- Each subtask must be a meaningful, self-contained action, not a single physical motion.
  Good: "Pack gym bag and water bottle", "Travel to the gym", "Warm up and stretch".
  Bad: "Stand up", "Open the door", "Pick up keys", "Walk to the car".
- Subtasks must be sequential and must not overlap: each start_time is at or after the previous end_time.
- Every start_time must be strictly before its end_time.
{schedule_rules}
Date/time formatting:
- Use local time in {timezone_name}, formatted exactly as YYYY-MM-DDTHH:MM:SS (e.g., "{base_date}T14:30:00").
- Do NOT add "Z" or any timezone offset to the times.
- Use the date {base_date} unless a subtask genuinely falls on another day.

Respond with this exact JSON format:
{{
    "subtasks": [
        {{"text": "subtask description", "start_time": "{base_date}T13:30:00", "end_time": "{base_date}T13:45:00", "order_index": 1}},
        {{"text": "next subtask", "start_time": "{base_date}T13:45:00", "end_time": "{base_date}T14:00:00", "order_index": 2}}
    ]
}}

order_index starts at 1 and increases by 1 for each subtask.
Only respond with valid JSON, no other text."""

BOTH_TIMES_RULES = """- Preparation subtasks (getting ready, gathering materials, travel) must end at or before the start time {start}.
- Execution subtasks must lie within {start} and {end}.
- Nothing may be scheduled after the end time {end}.
"""

START_ONLY_RULES = """- Preparation subtasks must end at or before the start time {start}.
- Execution of the task itself begins at {start}.
"""

END_ONLY_RULES = """- Preparation subtasks come before execution subtasks.
- Nothing may be scheduled after the end time {end}; work backwards from it.
"""

NO_TIME_RULES = """- Start the first subtask at a realistic time on {base_date}.
"""

NOTE_CONTEXT = """

Important Note: {note}

Consider this note when breaking down the task. For example, if the note mentions travel, add subtasks for the travel time."""

# Optimal time prompt
OPTIMAL_TIME_PROMPT = """Find the best time slot for the following task.

Task: "{task_text}"
Duration: exactly {duration_minutes} minutes
Date: {target_date}
Timezone: {timezone_name} (UTC{timezone_offset}){note_context}

Existing schedule for {target_date} (busy, do not overlap):
{schedule_list}

Rules:
- The slot must be exactly {duration_minutes} minutes long.
- The slot must be on {target_date}.
- The slot must not overlap any busy interval above.
- Prefer a gap between existing tasks that is long enough.
- If no gap fits, use the earliest available time after the last task.
- Choose a realistic time of day for this kind of task.

Date/time formatting:
- Use local time in {timezone_name}, formatted exactly as YYYY-MM-DDTHH:MM:SS.
- Do NOT add "Z" or any timezone offset to the times.

Respond with this exact JSON format:
{{
    "start_time": "{target_date}T09:00:00",
    "end_time": "{target_date}T10:00:00"
}}

Only respond with valid JSON, no other text."""

EMPTY_SCHEDULE = "- (no existing tasks, the whole day is free)"


def _time_context(start: Optional[datetime], end: Optional[datetime]) -> str:
    if start and end:
        return f"\n\nTask Schedule:\n- Start: {format_human(start)}\n- End: {format_human(end)}"
    if start:
        return f"\n\nTask Start Time: {format_human(start)}"
    if end:
        return f"\n\nTask End Time: {format_human(end)}"
    return ""


def _schedule_rules(start: Optional[datetime], end: Optional[datetime], base_date: date) -> str:
    if start and end:
        return BOTH_TIMES_RULES.format(start=format_local(start), end=format_local(end))
    if start:
        return START_ONLY_RULES.format(start=format_local(start))
    if end:
        return END_ONLY_RULES.format(end=format_local(end))
    return NO_TIME_RULES.format(base_date=base_date.isoformat())


def _note_context(note: Optional[str]) -> str:
    if note and note.strip():
        return NOTE_CONTEXT.format(note=note.strip())
    return ""


def build_breakdown_prompt(
    task_text: str,
    start_time: Optional[str],
    end_time: Optional[str],
    note: Optional[str],
    timezone_name: str,
    timezone_offset: str,
    base_date: date,
) -> str:
    """Build the decompose-mode prompt; unparseable times are left out."""
    start = parse_instant(start_time) if start_time else None
    end = parse_instant(end_time) if end_time else None

    return BREAKDOWN_PROMPT.format(
        task_text=task_text,
        time_context=_time_context(start, end),
        note_context=_note_context(note),
        timezone_name=timezone_name,
        timezone_offset=timezone_offset,
        base_date=base_date.isoformat(),
        schedule_rules=_schedule_rules(start, end, base_date),
    )


def format_schedule(schedule_slots: list[dict]) -> str:
    """Format busy slots as prompt lines, skipping any whose times do not parse."""
    lines = []
    for slot in schedule_slots:
        start = parse_instant(slot.get("start_time"))
        end = parse_instant(slot.get("end_time"))
        if not start or not end:
            continue
        label = slot.get("text") or "Busy"
        lines.append(f"- {format_local(start)} to {format_local(end)}: {label}")
    return "\n".join(lines) if lines else EMPTY_SCHEDULE


def build_optimal_time_prompt(
    task_text: str,
    duration_minutes: int,
    schedule_slots: list[dict],
    note: Optional[str],
    target_date: date,
    timezone_name: str,
    timezone_offset: str,
) -> str:
    return OPTIMAL_TIME_PROMPT.format(
        task_text=task_text,
        duration_minutes=duration_minutes,
        target_date=target_date.isoformat(),
        timezone_name=timezone_name,
        timezone_offset=timezone_offset,
        note_context=_note_context(note),
        schedule_list=format_schedule(schedule_slots),
    )
