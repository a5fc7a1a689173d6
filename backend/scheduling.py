"""Optimal time slot selection for duration-only tasks."""
import logging
from datetime import date, datetime
from typing import Iterable, Optional, Union

import model_gateway
from models import ScheduleSlot, TimeSlot, Todo
from parsing import parse_optimal_time_response
from prompts import build_optimal_time_prompt
from timeutils import (
    combine_date_and_time,
    local_date_of,
    parse_instant,
    timezone_name,
    timezone_offset,
    today_local,
)

logger = logging.getLogger(__name__)

SlotLike = Union[ScheduleSlot, dict]


def _slot_dict(slot: SlotLike) -> dict:
    if isinstance(slot, ScheduleSlot):
        return slot.model_dump()
    return {
        "start_time": slot.get("start_time"),
        "end_time": slot.get("end_time"),
        "text": slot.get("text") or "",
    }


def slots_for_date(todos: Iterable[Todo], target_date: date) -> list[ScheduleSlot]:
    """
    Busy slots for target_date: top-level, incomplete todos with both times
    whose start falls on that local date. Sorted by start.
    """
    slots = []
    for todo in todos:
        if todo.parent_id or todo.completed or not todo.start_time or not todo.end_time:
            continue
        start = parse_instant(todo.start_time)
        if start is None or local_date_of(start) != target_date:
            continue
        slots.append(ScheduleSlot(start_time=todo.start_time, end_time=todo.end_time, text=todo.text))
    slots.sort(key=lambda slot: parse_instant(slot.start_time))
    return slots


def find_conflicts(interval: TimeSlot, slots: Iterable[SlotLike]) -> list[dict]:
    """Return the slots that overlap interval (half-open, touching is fine)."""
    start = parse_instant(interval.start_time)
    end = parse_instant(interval.end_time)
    conflicts = []
    for slot in slots:
        slot = _slot_dict(slot)
        slot_start = parse_instant(slot["start_time"])
        slot_end = parse_instant(slot["end_time"])
        if slot_start is None or slot_end is None:
            continue
        if start < slot_end and slot_start < end:
            conflicts.append(slot)
    return conflicts


async def determine_optimal_time(
    task_text: str,
    duration_minutes: int,
    schedule_slots: Iterable[SlotLike],
    note: Optional[str] = None,
    target_date: Optional[date] = None,
) -> Optional[TimeSlot]:
    """
    Ask the model for a slot of exactly duration_minutes on target_date
    (default: today) that avoids the given busy slots.

    Returns None when the model is unavailable or its answer cannot be
    validated. Overlap with busy slots is logged, not rejected.
    """
    target_date = target_date or today_local()
    slots = [_slot_dict(slot) for slot in schedule_slots]
    logger.info(
        "Determining optimal time for %r (%d min) on %s against %d busy slots",
        task_text, duration_minutes, target_date, len(slots),
    )

    # Offset at local midnight of the target day, not today
    reference = combine_date_and_time(target_date, datetime.min.time())
    prompt_text = build_optimal_time_prompt(
        task_text,
        duration_minutes,
        slots,
        note,
        target_date,
        timezone_name(reference),
        timezone_offset(reference),
    )

    try:
        raw_text = await model_gateway.generate(prompt_text, want_json=True)
    except model_gateway.ConfigurationMissing:
        logger.warning("ANTHROPIC_API_KEY not set, skipping optimal time selection")
        return None
    except model_gateway.ModelGatewayError as e:
        logger.error("Optimal time generation failed: %s", e)
        return None
    except Exception:
        logger.exception("Unexpected error during optimal time generation")
        return None

    interval = parse_optimal_time_response(raw_text, duration_minutes, target_date)
    if interval is None:
        return None

    conflicts = find_conflicts(interval, slots)
    if conflicts:
        logger.warning(
            "Proposed slot %s-%s overlaps %d busy slot(s): %s",
            interval.start_time, interval.end_time, len(conflicts),
            ", ".join(slot["text"] or "Busy" for slot in conflicts),
        )

    logger.info("Optimal time: %s - %s", interval.start_time, interval.end_time)
    return interval
