import asyncio
from datetime import datetime, timezone
from typing import Iterable

from loguru import logger

from .errors import GradeSubmissionError, MissingFieldsError, NothingToSaveError
from .models import GradeInfo, GradeRecord, MatchedGradeEntry, RosterEntry, StudentAcademicRecord
from .store import GradeStore


def check_grade_info(info: GradeInfo) -> None:
    missing: list[str] = [
        label
        for label, value in (("classroom", info.classroom_id), ("subject", info.subject), ("exam type", info.exam_type))
        if not (value or "").strip()
    ]
    if missing:
        raise MissingFieldsError(missing)


async def submit_grades(
    store: GradeStore,
    info: GradeInfo,
    entries: Iterable[MatchedGradeEntry],
    roster: Iterable[RosterEntry] | None = None,
) -> list[StudentAcademicRecord]:
    """Save one grade per entry as concurrent upserts.

    Entries without marks are skipped, as are students missing from `roster`
    when one is given. Raises NothingToSaveError when no entry is left, and
    the submission fails as a whole if any upsert fails.
    """
    check_grade_info(info)

    known: set[str] | None = {s.uid for s in roster} if roster is not None else None
    now: datetime = datetime.now(timezone.utc)

    pending: list[MatchedGradeEntry] = []
    skipped: int = 0
    for entry in entries:
        if entry.marks_obtained is None:
            continue
        if known is not None and entry.student_id not in known:
            logger.warning(f"Skipping grade for unknown student {entry.student_id} in classroom {info.classroom_id}")
            skipped += 1
            continue
        pending.append(entry)

    if not pending:
        raise NothingToSaveError(info.classroom_id, skipped)

    upserts = [
        store.upsert_grade(
            student_id=entry.student_id,
            student_name=entry.student_name,
            classroom_id=info.classroom_id,
            grade=GradeRecord(
                subject=info.subject,
                exam_type=info.exam_type,
                marks_obtained=entry.marks_obtained,
                total_marks=info.total_marks,
                date=now,
                teacher_id=info.teacher_id,
            ),
        )
        for entry in pending
    ]

    results = await asyncio.gather(*upserts, return_exceptions=True)

    failures: list[BaseException] = [r for r in results if isinstance(r, BaseException)]
    if failures:
        logger.error(f"Failed to save {len(failures)} of {len(results)} grades for {info.subject}/{info.exam_type}: {failures[0]}")
        raise GradeSubmissionError(f"Failed to save grades ({len(failures)} of {len(results)} failed)", failures=failures) from failures[0]

    logger.info(f"Saved {len(results)} grades for {info.subject}/{info.exam_type} in classroom {info.classroom_id}")
    return list(results)
