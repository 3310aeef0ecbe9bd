import asyncio
import json
from typing import Any

from loguru import logger

from companion.grades.models import ExtractedRecord, ExtractGradesResponse
from companion.llm import ResilientInvoker

from .base import render_prompt, run_flow


async def extract_grades(
    raw_rows: list[dict[str, Any]],
    *,
    invoker: ResilientInvoker | None = None,
    cancel: asyncio.Event | None = None,
) -> list[ExtractedRecord]:
    """Let the model pick out name / roll number / marks from loosely structured sheet rows."""
    if not raw_rows:
        raise ValueError("No rows to extract grades from")

    prompt: str = render_prompt("extract_grades", raw_rows=json.dumps(raw_rows, ensure_ascii=False, default=str, indent=1))
    response: ExtractGradesResponse = await run_flow("extract_grades", prompt, ExtractGradesResponse, invoker=invoker, cancel=cancel)

    logger.info(f"Extracted {len(response.grades)} grade rows from {len(raw_rows)} sheet rows")
    return response.grades
