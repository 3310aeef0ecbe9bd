"""
Roster and grade storage collaborators.

`RosterSource` supplies the students of a classroom; `GradeStore` persists
grades onto per-student academic records. `InMemoryClassroomStore` implements
both and can be seeded from a YAML file.
"""

from abc import ABC, abstractmethod
from functools import cmp_to_key
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from companion.configuration import Config, get_config

from .models import GradeRecord, RosterEntry, StudentAcademicRecord


def _compare_students(a: RosterEntry, b: RosterEntry) -> int:
    if a.roll_number and b.roll_number:
        return (a.roll_number > b.roll_number) - (a.roll_number < b.roll_number)
    return (a.name > b.name) - (a.name < b.name)


def sort_roster(entries: list[RosterEntry]) -> list[RosterEntry]:
    """Order by roll number when both students have one, else by name"""
    return sorted(entries, key=cmp_to_key(_compare_students))


class RosterSource(ABC):

    @abstractmethod
    async def fetch_roster(self, classroom_id: str) -> list[RosterEntry]:
        """Return the students of a classroom"""


class GradeStore(ABC):

    @abstractmethod
    async def upsert_grade(self, *, student_id: str, student_name: str, classroom_id: str, grade: GradeRecord) -> StudentAcademicRecord:
        """Create or merge the student's record and add the grade to it"""

    @abstractmethod
    async def fetch_record(self, student_id: str) -> StudentAcademicRecord | None:
        """Return the student's academic record, if any"""


class InMemoryClassroomStore(RosterSource, GradeStore):
    """Students, classrooms and academic records held in memory"""

    def __init__(self, students: list[dict[str, Any]] | None = None, classrooms: dict[str, dict[str, Any]] | None = None) -> None:
        self.students: dict[str, dict[str, Any]] = {str(s["uid"]): s for s in (students or [])}
        self.classrooms: dict[str, dict[str, Any]] = classrooms or {}
        self.records: dict[str, StudentAcademicRecord] = {}

    @classmethod
    def from_yaml(cls, filename: str | Path) -> "InMemoryClassroomStore":
        data: dict[str, Any] = yaml.safe_load(Path(filename).read_text(encoding="utf-8")) or {}
        store = cls(students=data.get("students"), classrooms=data.get("classrooms"))
        logger.info(f"Loaded {len(store.students)} students in {len(store.classrooms)} classrooms from {filename}")
        return store

    def _as_entry(self, uid: str, data: dict[str, Any]) -> RosterEntry:
        return RosterEntry(uid=uid, name=data.get("name") or "", roll_number=data.get("roll_number"))

    async def fetch_roster(self, classroom_id: str) -> list[RosterEntry]:
        entries: list[RosterEntry] = [
            self._as_entry(uid, data) for uid, data in self.students.items() if data.get("classroom_id") == classroom_id
        ]

        if not entries:
            # Fall back on the classroom's own list of student ids
            student_ids: list[str] = (self.classrooms.get(classroom_id) or {}).get("student_ids") or []
            entries = [self._as_entry(str(uid), self.students[str(uid)]) for uid in student_ids if str(uid) in self.students]

        return sort_roster(entries)

    async def upsert_grade(self, *, student_id: str, student_name: str, classroom_id: str, grade: GradeRecord) -> StudentAcademicRecord:
        record: StudentAcademicRecord | None = self.records.get(student_id)
        if record is None:
            record = StudentAcademicRecord(student_id=student_id, student_name=student_name, classroom_id=classroom_id)
            self.records[student_id] = record
        else:
            record.student_name = student_name
            record.classroom_id = classroom_id
        record.add_grade(grade)
        return record

    async def fetch_record(self, student_id: str) -> StudentAcademicRecord | None:
        return self.records.get(student_id)


def get_classroom_store() -> InMemoryClassroomStore:
    """Return the store held in the runtime config, creating it on first use"""
    cfg: Config = get_config()
    store: InMemoryClassroomStore | None = cfg.get("runtime:classroom_store")
    if store is None:
        filename: str | None = cfg.get("options:classroom_data")
        store = InMemoryClassroomStore.from_yaml(filename) if filename else InMemoryClassroomStore()
        cfg.update({"runtime:classroom_store": store})
    return store
