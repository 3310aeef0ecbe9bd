from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from companion.grades.models import ExtractedRecord, GradeInfo, MatchedGradeEntry, ReconciliationResult, StudentAcademicRecord


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GradePreviewResponse(ApiModel):
    """Result of an uploaded sheet, reconciled against the roster but not yet saved"""

    matched: list[MatchedGradeEntry]
    unmatched: list[ExtractedRecord]
    duplicates: list[ExtractedRecord] = Field(default_factory=list)
    summary: str

    @classmethod
    def from_result(cls, result: ReconciliationResult) -> "GradePreviewResponse":
        return cls(matched=result.matched, unmatched=result.unmatched, duplicates=result.duplicates, summary=result.summary)


class GradeSubmissionRequest(GradeInfo):
    entries: list[MatchedGradeEntry] = Field(default_factory=list)

    def info(self) -> GradeInfo:
        return GradeInfo.model_validate(self.model_dump(exclude={"entries"}))


class GradeSubmissionResponse(ApiModel):
    saved: int
    message: str


class GradeView(ApiModel):
    subject: str
    exam_type: str
    marks_obtained: float
    total_marks: float | None = None
    percentage: float | None = None
    date: datetime
    teacher_id: str | None = None


class StudentGradesResponse(ApiModel):
    student_id: str
    student_name: str
    classroom_id: str
    grades: list[GradeView]

    @classmethod
    def from_record(cls, record: StudentAcademicRecord) -> "StudentGradesResponse":
        """Grades are listed newest first"""
        return cls(
            student_id=record.student_id,
            student_name=record.student_name,
            classroom_id=record.classroom_id,
            grades=[
                GradeView(**grade.model_dump(), percentage=grade.percentage)
                for grade in sorted(record.grades, key=lambda g: g.date, reverse=True)
            ],
        )
