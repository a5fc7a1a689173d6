"""
Validation and normalization of model output.

Both parse functions never raise: malformed input yields an empty list or
None, and individual bad entries are dropped with a log line.
"""
import json
import logging
import re
from datetime import date, timedelta, timezone
from typing import Any, Optional

from models import SubtaskProposal, TimeSlot
from timeutils import combine_date_and_time, parse_instant, to_instant_string, to_local

logger = logging.getLogger(__name__)

DURATION_TOLERANCE = timedelta(minutes=1)
PREVIEW_CHARS = 200

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class MalformedResponse(ValueError):
    """Response body is not JSON or lacks the expected structure."""


class InvalidEntry(ValueError):
    """A single subtask entry fails presence or type checks."""


def _load_json_object(raw_text: str) -> dict:
    try:
        parsed = json.loads(raw_text)
    except (TypeError, json.JSONDecodeError) as e:
        raise MalformedResponse(f"Not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise MalformedResponse(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


def coerce_order_index(value: Any) -> Optional[int]:
    """
    Integer-prefix coercion: 3 -> 3, 2.9 -> 2, "4th" -> 4.
    Returns None for booleans and anything without a leading integer.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value and abs(value) != float("inf") else None
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else None
    return None


def _extract_subtasks(parsed: dict) -> list:
    subtasks = parsed["subtasks"] if "subtasks" in parsed else parsed.get("tasks")
    if not isinstance(subtasks, list):
        raise MalformedResponse(f"Subtasks is not an array, got {type(subtasks).__name__}")
    return subtasks


def _normalize_entry(entry: Any) -> SubtaskProposal:
    if not isinstance(entry, dict):
        raise InvalidEntry("entry is not an object")

    missing = [key for key in ("text", "start_time", "end_time", "order_index") if not entry.get(key)]
    if missing or not str(entry["text"]).strip():
        raise InvalidEntry(f"missing required fields: {', '.join(missing) or 'text'}")

    start = parse_instant(entry["start_time"])
    end = parse_instant(entry["end_time"])
    if start is None or end is None:
        raise InvalidEntry("start_time/end_time is not a valid datetime")
    if end <= start:
        raise InvalidEntry("end_time is not after start_time")

    order_index = coerce_order_index(entry["order_index"])
    if order_index is None or order_index < 1:
        raise InvalidEntry(f"order_index {entry['order_index']!r} is not a positive integer")

    try:
        start_text = to_instant_string(start)
        end_text = to_instant_string(end)
    except (OverflowError, ValueError) as e:
        raise InvalidEntry(f"start_time/end_time out of range: {e}") from e

    return SubtaskProposal(
        text=str(entry["text"]).strip(),
        start_time=start_text,
        end_time=end_text,
        order_index=order_index,
    )


def parse_breakdown_response(raw_text: str) -> list[SubtaskProposal]:
    """Parse a breakdown answer into proposals sorted by order_index."""
    try:
        subtasks = _extract_subtasks(_load_json_object(raw_text))
    except MalformedResponse as e:
        logger.error("Malformed breakdown response: %s. Content: %s", e, str(raw_text)[:PREVIEW_CHARS])
        return []

    logger.info("Found %d subtasks in response", len(subtasks))

    valid: list[SubtaskProposal] = []
    for entry in subtasks:
        try:
            valid.append(_normalize_entry(entry))
        except InvalidEntry as e:
            logger.warning("Dropping invalid subtask (%s): %s", e, json.dumps(entry, default=str)[:PREVIEW_CHARS])

    # sorted() is stable, so equal order_index values keep first-seen order
    return sorted(valid, key=lambda proposal: proposal.order_index)


def parse_optimal_time_response(raw_text: str, duration_minutes: int, target_date: date) -> Optional[TimeSlot]:
    """
    Parse an optimal-time answer, forcing the date to target_date and the
    length to duration_minutes. Only the model's time of day is trusted.
    """
    try:
        parsed = _load_json_object(raw_text)
    except MalformedResponse as e:
        logger.error("Malformed optimal time response: %s. Content: %s", e, str(raw_text)[:PREVIEW_CHARS])
        return None

    if not parsed.get("start_time") or not parsed.get("end_time"):
        logger.error("Optimal time response missing start_time/end_time: %s", str(raw_text)[:PREVIEW_CHARS])
        return None

    start = parse_instant(parsed["start_time"])
    end = parse_instant(parsed["end_time"])
    if start is None or end is None:
        logger.error("Optimal time response has unparseable times: %s", str(raw_text)[:PREVIEW_CHARS])
        return None

    try:
        local_start = to_local(start)
        local_end = to_local(end)
        if local_start.date() != target_date or local_end.date() != target_date:
            logger.warning(
                "Model returned date %s/%s, forcing %s",
                local_start.date(), local_end.date(), target_date,
            )
        # Work in UTC so DST transitions cannot skew the duration
        start = combine_date_and_time(target_date, local_start.time()).astimezone(timezone.utc)
        end = combine_date_and_time(target_date, local_end.time()).astimezone(timezone.utc)

        expected = timedelta(minutes=duration_minutes)
        if abs((end - start) - expected) > DURATION_TOLERANCE:
            logger.warning(
                "Model returned %.1f minutes instead of %d, recomputing end_time",
                (end - start).total_seconds() / 60, duration_minutes,
            )
            end = start + expected

        return TimeSlot(start_time=to_instant_string(start), end_time=to_instant_string(end))
    except (OverflowError, ValueError) as e:
        logger.error("Optimal time out of range (%s): %s", e, str(raw_text)[:PREVIEW_CHARS])
        return None
