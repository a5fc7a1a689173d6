"""Entry point for breaking a task into time-boxed subtasks."""
import logging
from typing import Optional

import model_gateway
from models import SubtaskProposal
from parsing import parse_breakdown_response
from prompts import build_breakdown_prompt
from timeutils import local_date_of, now_local, parse_instant, timezone_name, timezone_offset

logger = logging.getLogger(__name__)


async def break_down_task(
    task_text: str,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    note: Optional[str] = None,
) -> list[SubtaskProposal]:
    """
    Break a task into ordered subtask proposals.

    Never raises: a missing API key, provider error or unusable answer all
    yield an empty list so task creation can carry on without subtasks.
    """
    logger.info(
        "Starting task breakdown for %r (start=%s, end=%s, note=%s)",
        task_text, start_time, end_time, "yes" if note else "none",
    )

    start = parse_instant(start_time) if start_time else None
    reference = start or now_local()
    base_date = local_date_of(reference)

    prompt_text = build_breakdown_prompt(
        task_text,
        start_time,
        end_time,
        note,
        timezone_name(reference),
        timezone_offset(reference),
        base_date,
    )

    try:
        raw_text = await model_gateway.generate(prompt_text, want_json=True)
    except model_gateway.ConfigurationMissing:
        logger.warning("ANTHROPIC_API_KEY not set, skipping task breakdown")
        return []
    except model_gateway.ModelGatewayError as e:
        logger.error("Task breakdown generation failed: %s", e)
        return []
    except Exception:
        logger.exception("Unexpected error during task breakdown")
        return []

    subtasks = parse_breakdown_response(raw_text)
    logger.info("Returning %d valid subtasks", len(subtasks))
    if subtasks:
        logger.info("First subtask: %s", subtasks[0].model_dump())
    return subtasks
