"""
Tests for prompts.py - the rules and context encoded in each prompt.
"""
import pytest
import sys
import os
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from prompts import EMPTY_SCHEDULE, build_breakdown_prompt, build_optimal_time_prompt, format_schedule


def _breakdown(start=None, end=None, note=None, base=date(2024, 1, 15)):
    return build_breakdown_prompt("Study session", start, end, note, "UTC", "+00:00", base)


class TestBreakdownPrompt:
    """Tests for build_breakdown_prompt."""

    def test_both_times_rules(self):
        """Preparation before start, execution within window, nothing after end."""
        prompt = _breakdown("2024-01-15T14:00:00Z", "2024-01-15T16:00:00Z")

        assert 'Task: "Study session"' in prompt
        assert "- Start: Mon, Jan 15, 14:00" in prompt
        assert "- End: Mon, Jan 15, 16:00" in prompt
        assert "Preparation subtasks (getting ready, gathering materials, travel) must end at or before the start time 2024-01-15T14:00:00" in prompt
        assert "Execution subtasks must lie within 2024-01-15T14:00:00 and 2024-01-15T16:00:00" in prompt
        assert "Nothing may be scheduled after the end time 2024-01-15T16:00:00" in prompt

    def test_start_only_rules(self):
        prompt = _breakdown(start="2024-01-15T14:00:00Z")

        assert "Task Start Time: Mon, Jan 15, 14:00" in prompt
        assert "Execution of the task itself begins at 2024-01-15T14:00:00" in prompt
        assert "Nothing may be scheduled after" not in prompt

    def test_end_only_rules(self):
        prompt = _breakdown(end="2024-01-15T16:00:00Z")

        assert "Task End Time: Mon, Jan 15, 16:00" in prompt
        assert "Preparation subtasks come before execution subtasks" in prompt
        assert "Nothing may be scheduled after the end time 2024-01-15T16:00:00" in prompt

    def test_no_times(self):
        prompt = _breakdown()

        assert "Task Schedule" not in prompt
        assert "Start the first subtask at a realistic time on 2024-01-15" in prompt

    def test_note_included(self):
        prompt = _breakdown(note="  Gym is 20 minutes away by bike  ")

        assert "Important Note: Gym is 20 minutes away by bike" in prompt
        assert "travel" in prompt

    def test_blank_note_omitted(self):
        assert "Important Note" not in _breakdown(note="   ")

    def test_local_time_format_and_date(self):
        """Times must be offset-free local strings stamped with the base date."""
        prompt = _breakdown(base=date(2024, 3, 2))

        assert "Date for all subtasks: 2024-03-02" in prompt
        assert "YYYY-MM-DDTHH:MM:SS" in prompt
        assert 'Do NOT add "Z"' in prompt
        assert "Timezone: UTC (UTC+00:00)" in prompt

    def test_granularity_and_output_contract(self):
        prompt = _breakdown()

        assert "between 5 and 15 subtasks" in prompt
        assert "Good:" in prompt and "Bad:" in prompt
        assert '"subtasks"' in prompt
        for field in ("text", "start_time", "end_time", "order_index"):
            assert f'"{field}"' in prompt

    def test_braces_in_task_text(self):
        """User text with braces does not break formatting."""
        prompt = build_breakdown_prompt("Fix {config} bug", None, None, "use {x}", "UTC", "+00:00", date(2024, 1, 15))

        assert 'Task: "Fix {config} bug"' in prompt
        assert "Important Note: use {x}" in prompt


class TestOptimalTimePrompt:
    """Tests for build_optimal_time_prompt."""

    def test_contains_constraints(self):
        slots = [{"start_time": "2024-01-15T09:00:00Z", "end_time": "2024-01-15T10:00:00Z", "text": "Meeting"}]

        prompt = build_optimal_time_prompt("Gym", 60, slots, None, date(2024, 1, 15), "UTC", "+00:00")

        assert 'Task: "Gym"' in prompt
        assert "Duration: exactly 60 minutes" in prompt
        assert "Date: 2024-01-15" in prompt
        assert "- 2024-01-15T09:00:00 to 2024-01-15T10:00:00: Meeting" in prompt
        assert "must not overlap" in prompt
        assert "gap between existing tasks" in prompt
        assert "earliest available time after the last task" in prompt

    def test_empty_schedule(self):
        prompt = build_optimal_time_prompt("Gym", 30, [], "Bring shoes", date(2024, 1, 15), "UTC", "+00:00")

        assert EMPTY_SCHEDULE in prompt
        assert "Important Note: Bring shoes" in prompt


class TestFormatSchedule:
    """Tests for format_schedule."""

    def test_unparseable_slots_skipped(self):
        slots = [
            {"start_time": "bad", "end_time": "2024-01-15T10:00:00Z", "text": "Broken"},
            {"start_time": "2024-01-15T11:00:00Z", "end_time": "2024-01-15T12:00:00Z", "text": ""},
        ]

        result = format_schedule(slots)

        assert "Broken" not in result
        assert result == "- 2024-01-15T11:00:00 to 2024-01-15T12:00:00: Busy"

    def test_all_invalid_means_empty(self):
        assert format_schedule([{"start_time": None, "end_time": None}]) == EMPTY_SCHEDULE
