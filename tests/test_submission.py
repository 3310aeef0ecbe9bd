from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from companion.configuration import MockConfigProvider
from companion.grades import (
    GradeInfo,
    GradeRecord,
    GradeSubmissionError,
    InMemoryClassroomStore,
    MatchedGradeEntry,
    MissingFieldsError,
    NothingToSaveError,
    RosterEntry,
    StudentAcademicRecord,
    get_classroom_store,
    sort_roster,
    submit_grades,
)
from tests.decorators import with_test_config

# pylint: disable=unused-argument


def grade_info(**overrides) -> GradeInfo:
    return GradeInfo(**({"classroom_id": "class-5a", "subject": "Math", "exam_type": "Unit Test 1", "total_marks": 100} | overrides))


class TestSortRoster:

    def test_by_roll_number_when_both_have_one(self):
        entries = [RosterEntry(uid="b", name="B", roll_number="2"), RosterEntry(uid="a", name="Z", roll_number="1")]
        assert [e.uid for e in sort_roster(entries)] == ["a", "b"]

    def test_by_name_otherwise(self):
        entries = [RosterEntry(uid="z", name="Zara"), RosterEntry(uid="m", name="Mohan", roll_number="9")]
        assert [e.uid for e in sort_roster(entries)] == ["m", "z"]


class TestInMemoryClassroomStore:

    @pytest.mark.asyncio
    async def test_roster_by_classroom_id(self, classroom_store: InMemoryClassroomStore):
        roster = await classroom_store.fetch_roster("class-5a")
        assert roster == [
            RosterEntry(uid="s-1", name="Alice Smith", roll_number="101"),
            RosterEntry(uid="s-2", name="Bob Jones", roll_number="102"),
        ]

    @pytest.mark.asyncio
    async def test_roster_falls_back_on_classroom_student_ids(self, classroom_store: InMemoryClassroomStore):
        roster = await classroom_store.fetch_roster("class-4b")
        assert [s.name for s in roster] == ["Arjun Mehta", "Chitra Rao"]

    @pytest.mark.asyncio
    async def test_unknown_classroom(self, classroom_store: InMemoryClassroomStore):
        assert await classroom_store.fetch_roster("nope") == []

    @pytest.mark.asyncio
    async def test_upsert_merges_into_existing_record(self):
        store = InMemoryClassroomStore()
        grade = GradeRecord(subject="Math", exam_type="UT1", marks_obtained=10)

        await store.upsert_grade(student_id="s-1", student_name="Old Name", classroom_id="c1", grade=grade)
        record = await store.upsert_grade(student_id="s-1", student_name="New Name", classroom_id="c2", grade=grade)

        assert record.student_name == "New Name"
        assert record.classroom_id == "c2"
        assert record.grades == [grade]

    @with_test_config
    def test_store_seeded_from_config(self, test_provider: MockConfigProvider):
        store = get_classroom_store()
        assert "s-1" in store.students
        assert get_classroom_store() is store


class TestGradeRecord:

    def test_percentage(self):
        assert GradeRecord(subject="Math", exam_type="UT", marks_obtained=17, total_marks=20).percentage == 85.0
        assert GradeRecord(subject="Math", exam_type="UT", marks_obtained=1, total_marks=3).percentage == 33.3
        assert GradeRecord(subject="Math", exam_type="UT", marks_obtained=17).percentage is None

    def test_add_grade_is_a_union(self):
        record = StudentAcademicRecord(student_id="s", student_name="S", classroom_id="c")
        grade = GradeRecord(subject="Math", exam_type="UT", marks_obtained=5, date=datetime(2024, 1, 1, tzinfo=timezone.utc))
        assert record.add_grade(grade)
        assert not record.add_grade(grade.model_copy())
        assert len(record.grades) == 1


class TestSubmitGrades:

    @pytest.mark.asyncio
    async def test_saves_one_grade_per_entry(self, classroom_store: InMemoryClassroomStore):
        entries = [
            MatchedGradeEntry(student_id="s-1", student_name="Alice Smith", marks_obtained=85),
            MatchedGradeEntry(student_id="s-2", student_name="Bob Jones", marks_obtained=91),
        ]

        records = await submit_grades(classroom_store, grade_info(teacher_id="t-1"), entries)

        assert len(records) == 2
        alice = await classroom_store.fetch_record("s-1")
        assert alice.classroom_id == "class-5a"
        [grade] = alice.grades
        assert (grade.subject, grade.exam_type, grade.marks_obtained, grade.total_marks, grade.teacher_id) == (
            "Math",
            "Unit Test 1",
            85,
            100,
            "t-1",
        )
        bob = await classroom_store.fetch_record("s-2")
        assert bob.grades[0].date == grade.date

    @pytest.mark.asyncio
    async def test_entries_without_marks_are_skipped(self, classroom_store: InMemoryClassroomStore):
        entries = [
            MatchedGradeEntry(student_id="s-1", student_name="Alice Smith", marks_obtained=None),
            MatchedGradeEntry(student_id="s-2", student_name="Bob Jones", marks_obtained=0),
        ]

        records = await submit_grades(classroom_store, grade_info(), entries)

        assert [r.student_id for r in records] == ["s-2"]
        assert await classroom_store.fetch_record("s-1") is None

    @pytest.mark.asyncio
    async def test_students_outside_roster_are_skipped(self, classroom_store: InMemoryClassroomStore):
        roster = await classroom_store.fetch_roster("class-5a")
        entries = [
            MatchedGradeEntry(student_id="s-1", student_name="Alice Smith", marks_obtained=85),
            MatchedGradeEntry(student_id="s-3", student_name="Chitra Rao", marks_obtained=60),
        ]

        records = await submit_grades(classroom_store, grade_info(), entries, roster=roster)

        assert [r.student_id for r in records] == ["s-1"]

    @pytest.mark.asyncio
    async def test_nothing_to_save_for_empty_classroom(self, classroom_store: InMemoryClassroomStore):
        roster = await classroom_store.fetch_roster("class-empty")
        entries = [MatchedGradeEntry(student_id="s-1", student_name="Alice Smith", marks_obtained=85)]

        with pytest.raises(NothingToSaveError) as exc_info:
            await submit_grades(classroom_store, grade_info(classroom_id="class-empty"), entries, roster=roster)

        assert exc_info.value.skipped == 1
        assert await classroom_store.fetch_record("s-1") is None

    @pytest.mark.asyncio
    async def test_nothing_to_save_without_marks(self, classroom_store: InMemoryClassroomStore):
        entries = [MatchedGradeEntry(student_id="s-1", student_name="Alice Smith", marks_obtained=None)]

        with pytest.raises(NothingToSaveError):
            await submit_grades(classroom_store, grade_info(), entries)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides, missing",
        [
            ({"classroom_id": ""}, ["classroom"]),
            ({"subject": " "}, ["subject"]),
            ({"subject": "", "exam_type": ""}, ["subject", "exam type"]),
        ],
    )
    async def test_missing_fields(self, overrides, missing, classroom_store: InMemoryClassroomStore):
        with pytest.raises(MissingFieldsError) as exc_info:
            await submit_grades(classroom_store, grade_info(**overrides), [])
        assert exc_info.value.fields == missing
        assert str(exc_info.value).startswith("Please provide:")

    @pytest.mark.asyncio
    async def test_any_failed_upsert_fails_the_submission(self):
        store = AsyncMock()
        store.upsert_grade.side_effect = [StudentAcademicRecord(student_id="s-1", student_name="A", classroom_id="c"), OSError("disk full")]
        entries = [
            MatchedGradeEntry(student_id="s-1", student_name="A", marks_obtained=1),
            MatchedGradeEntry(student_id="s-2", student_name="B", marks_obtained=2),
        ]

        with pytest.raises(GradeSubmissionError) as exc_info:
            await submit_grades(store, grade_info(), entries)

        assert len(exc_info.value.failures) == 1
        assert isinstance(exc_info.value.__cause__, OSError)
        assert store.upsert_grade.await_count == 2
