"""Pydantic models for extracted grades, roster entries and stored academic records"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def normalize_identifier(value: Any) -> str | None:
    """Textual form of a roll number / identifier, so 7, 7.0 and "7" compare equal."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if value != value:  # NaN
            return None
        if value.is_integer():
            value = int(value)
    text: str = str(value).strip()
    return text or None


class GradeModel(BaseModel):
    """Base model: snake_case attributes, camelCase on the wire"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExtractedRecord(GradeModel):
    """A row as understood by the extraction model; not yet tied to a real student"""

    student_name: str | None = Field(default=None, description="The name of the student found in the row.")
    roll_number: str | None = Field(default=None, description="The roll number of the student found in the row.")
    marks_obtained: float = Field(..., description="The marks obtained by the student.")

    @field_validator("roll_number", mode="before")
    @classmethod
    def validate_roll_number(cls, v: Any) -> str | None:
        return normalize_identifier(v)

    @field_validator("student_name", mode="before")
    @classmethod
    def validate_student_name(cls, v: Any) -> str | None:
        if isinstance(v, str):
            v = v.strip()
        return v or None


class ExtractGradesResponse(GradeModel):
    grades: list[ExtractedRecord] = Field(default_factory=list, description="The list of extracted grades.")


class RosterEntry(GradeModel):
    """Canonical student identity"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    uid: str
    name: str
    roll_number: str | None = None

    @field_validator("roll_number", mode="before")
    @classmethod
    def validate_roll_number(cls, v: Any) -> str | None:
        return normalize_identifier(v)


class MatchedGradeEntry(GradeModel):
    student_id: str
    student_name: str
    marks_obtained: float | None = None


class ReconciliationResult(GradeModel):
    """Both partitions of a reconciliation pass, each in input order"""

    matched: list[MatchedGradeEntry] = Field(default_factory=list)
    unmatched: list[ExtractedRecord] = Field(default_factory=list)
    duplicates: list[ExtractedRecord] = Field(default_factory=list, description="Rows for students already matched earlier in the pass")

    @property
    def total(self) -> int:
        return len(self.matched) + len(self.unmatched) + len(self.duplicates)

    @property
    def summary(self) -> str:
        if not self.matched:
            return "Could not match any students. Please check Roll Numbers/Names."
        return f"Matched {len(self.matched)} of {self.total} students."


class GradeRecord(GradeModel):
    """A single grade appended to a student's academic record"""

    subject: str
    exam_type: str
    marks_obtained: float
    total_marks: float | None = None
    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    teacher_id: str | None = None

    @property
    def percentage(self) -> float | None:
        if not self.total_marks:
            return None
        return round(self.marks_obtained / self.total_marks * 100, 1)


class StudentAcademicRecord(GradeModel):
    student_id: str
    student_name: str
    classroom_id: str
    grades: list[GradeRecord] = Field(default_factory=list)

    def add_grade(self, grade: GradeRecord) -> bool:
        """Append with array-union semantics; returns False if an identical grade exists"""
        if grade in self.grades:
            return False
        self.grades.append(grade)
        return True


class GradeInfo(GradeModel):
    """What is being graded; shared by every entry of one submission"""

    classroom_id: str = ""
    subject: str = ""
    exam_type: str = ""
    total_marks: float | None = None
    teacher_id: str | None = None
