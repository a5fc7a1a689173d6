"""
Tests for scheduling.py - optimal time selection and busy-slot helpers.
"""
import pytest
import sys
import os
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import model_gateway
from models import ScheduleSlot, TimeSlot, Todo
from scheduling import determine_optimal_time, find_conflicts, slots_for_date

MEETING = {"start_time": "2024-01-15T09:00:00Z", "end_time": "2024-01-15T10:00:00Z", "text": "Meeting"}


def _todo(todo_id, start, end, text="Task", parent_id=None, completed=False):
    return Todo(
        id=todo_id,
        text=text,
        parent_id=parent_id,
        completed=completed,
        start_time=start,
        end_time=end,
        created_at="2024-01-01T00:00:00.000Z",
        updated_at="2024-01-01T00:00:00.000Z",
    )


class TestDetermineOptimalTime:
    """Tests for determine_optimal_time."""

    @pytest.mark.asyncio
    async def test_gym_overlapping_answer_forwarded(self, stub_generate):
        """An overlapping proposal is forwarded with date/duration corrections applied."""
        stub_generate.return_value = {"start_time": "2024-01-20T09:30:00", "end_time": "2024-01-20T10:00:00"}

        result = await determine_optimal_time("Gym", 60, [MEETING], None, date(2024, 1, 15))

        assert result == TimeSlot(start_time="2024-01-15T09:30:00.000Z", end_time="2024-01-15T10:30:00.000Z")

    @pytest.mark.asyncio
    async def test_prompt_lists_busy_slots(self, stub_generate):
        stub_generate.return_value = {"start_time": "2024-01-15T10:00:00", "end_time": "2024-01-15T11:00:00"}

        await determine_optimal_time("Gym", 60, [ScheduleSlot(**MEETING)], "After work", date(2024, 1, 15))

        prompt_text = stub_generate.call_args.args[0]
        assert "- 2024-01-15T09:00:00 to 2024-01-15T10:00:00: Meeting" in prompt_text
        assert "Duration: exactly 60 minutes" in prompt_text
        assert "Important Note: After work" in prompt_text

    @pytest.mark.asyncio
    async def test_target_date_defaults_to_today(self, stub_generate, monkeypatch):
        import scheduling

        monkeypatch.setattr(scheduling, "today_local", lambda: date(2025, 3, 9))
        stub_generate.return_value = {"start_time": "2024-01-15T07:00:00", "end_time": "2024-01-15T07:45:00"}

        result = await determine_optimal_time("Run", 45, [])

        assert result.start_time == "2025-03-09T07:00:00.000Z"
        assert result.end_time == "2025-03-09T07:45:00.000Z"

    @pytest.mark.asyncio
    async def test_missing_key_returns_none(self):
        assert await determine_optimal_time("Gym", 60, [MEETING], None, date(2024, 1, 15)) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        model_gateway.ModelUnavailable("timeout"),
        ValueError("boom"),
    ])
    async def test_generation_errors_return_none(self, stub_generate, error):
        stub_generate.side_effect = error

        assert await determine_optimal_time("Gym", 60, [], None, date(2024, 1, 15)) is None

    @pytest.mark.asyncio
    async def test_unusable_answer_returns_none(self, stub_generate):
        stub_generate.return_value = {"start": "09:00"}

        assert await determine_optimal_time("Gym", 60, [], None, date(2024, 1, 15)) is None


class TestFindConflicts:
    """Tests for find_conflicts."""

    def test_overlap_detected(self):
        interval = TimeSlot(start_time="2024-01-15T09:30:00.000Z", end_time="2024-01-15T10:30:00.000Z")
        assert find_conflicts(interval, [MEETING]) == [MEETING]

    def test_touching_is_not_conflict(self):
        interval = TimeSlot(start_time="2024-01-15T10:00:00.000Z", end_time="2024-01-15T11:00:00.000Z")
        assert find_conflicts(interval, [MEETING, ScheduleSlot(**MEETING)]) == []

    def test_unparseable_slots_ignored(self):
        interval = TimeSlot(start_time="2024-01-15T09:30:00.000Z", end_time="2024-01-15T10:30:00.000Z")
        assert find_conflicts(interval, [{"start_time": "bad", "end_time": None}]) == []


class TestSlotsForDate:
    """Tests for slots_for_date."""

    def test_filters_and_sorts(self):
        todos = [
            _todo("late", "2024-01-15T15:00:00.000Z", "2024-01-15T16:00:00.000Z", "Late"),
            _todo("early", "2024-01-15T08:00:00.000Z", "2024-01-15T09:00:00.000Z", "Early"),
            _todo("other-day", "2024-01-16T08:00:00.000Z", "2024-01-16T09:00:00.000Z"),
            _todo("child", "2024-01-15T10:00:00.000Z", "2024-01-15T10:30:00.000Z", parent_id="late"),
            _todo("done", "2024-01-15T11:00:00.000Z", "2024-01-15T12:00:00.000Z", completed=True),
            _todo("no-end", "2024-01-15T12:00:00.000Z", None),
        ]

        slots = slots_for_date(todos, date(2024, 1, 15))

        assert [slot.text for slot in slots] == ["Early", "Late"]
        assert slots[0].start_time == "2024-01-15T08:00:00.000Z"

    def test_uses_local_day(self, monkeypatch, clear_settings):
        monkeypatch.setenv("TIMEZONE", "America/New_York")
        clear_settings()
        todos = [_todo("evening", "2024-01-16T01:00:00.000Z", "2024-01-16T02:00:00.000Z", "Evening")]

        assert [s.text for s in slots_for_date(todos, date(2024, 1, 15))] == ["Evening"]
        assert slots_for_date(todos, date(2024, 1, 16)) == []
