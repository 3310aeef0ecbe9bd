import asyncio

from loguru import logger

from companion.flows.extract_grades import extract_grades
from companion.llm import ResilientInvoker

from .models import ExtractedRecord, ReconciliationResult, RosterEntry
from .reconcile import reconcile_roster
from .spreadsheet import read_spreadsheet
from .store import RosterSource


async def preview_grades(
    content: bytes,
    filename: str,
    classroom_id: str,
    *,
    roster_source: RosterSource,
    invoker: ResilientInvoker | None = None,
    cancel: asyncio.Event | None = None,
) -> ReconciliationResult:
    """Uploaded sheet -> extracted rows -> reconciled against the classroom roster. Nothing is saved."""
    if not classroom_id:
        raise ValueError("A classroom must be selected before uploading grades")

    rows = read_spreadsheet(content, filename)
    roster: list[RosterEntry] = await roster_source.fetch_roster(classroom_id)
    if not roster:
        logger.warning(f"Classroom {classroom_id} has no students; nothing can be matched")

    extracted: list[ExtractedRecord] = await extract_grades(rows, invoker=invoker, cancel=cancel)
    result: ReconciliationResult = reconcile_roster(extracted, roster)

    logger.info(f"Grade preview for {filename}: {result.summary}")
    return result
