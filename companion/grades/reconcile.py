"""
Alignment of AI-extracted grade rows with a classroom roster.

Each extracted record is matched by roll number first (exact comparison of the
textual identifiers) and otherwise by name (case-insensitive exact comparison).
The first roster entry that satisfies the comparison wins, and a student gets
at most one grade per pass. Records that match nothing are kept aside; no fuzzy
matching is attempted and scores are passed through unvalidated.
"""

from typing import Iterable

from loguru import logger

from .models import ExtractedRecord, MatchedGradeEntry, ReconciliationResult, RosterEntry, normalize_identifier


def _names_equal(a: str | None, b: str | None) -> bool:
    if a is None or b is None:
        return False
    return a.strip().lower() == b.strip().lower()


def find_roster_entry(record: ExtractedRecord, roster: list[RosterEntry]) -> RosterEntry | None:
    """Return the roster entry `record` refers to, or None"""
    roll_number: str | None = normalize_identifier(record.roll_number)
    if roll_number is not None:
        for student in roster:
            if normalize_identifier(student.roll_number) == roll_number:
                return student

    if record.student_name:
        for student in roster:
            if _names_equal(student.name, record.student_name):
                return student

    return None


def reconcile_roster(extracted: Iterable[ExtractedRecord], roster: Iterable[RosterEntry]) -> ReconciliationResult:
    """Partition extracted records into matched grade entries and unmatched records, preserving input order."""
    students: list[RosterEntry] = list(roster)
    result: ReconciliationResult = ReconciliationResult()
    seen: set[str] = set()

    for record in extracted:
        student: RosterEntry | None = find_roster_entry(record, students)
        if student is None:
            result.unmatched.append(record)
            continue
        if student.uid in seen:
            logger.warning(f"Ignoring second grade row for student {student.uid} ({student.name}); first match wins")
            result.duplicates.append(record)
            continue
        seen.add(student.uid)
        result.matched.append(
            MatchedGradeEntry(student_id=student.uid, student_name=student.name, marks_obtained=record.marks_obtained)
        )

    logger.info(f"Reconciled {result.total} extracted records against {len(students)} students: {len(result.matched)} matched")
    return result


def reconcile(extracted: Iterable[ExtractedRecord], roster: Iterable[RosterEntry]) -> list[MatchedGradeEntry]:
    """Matched grade entries only; unmatched records are dropped."""
    return reconcile_roster(extracted, roster).matched
