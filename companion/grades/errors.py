class GradeWorkflowError(Exception):
    """Base class for grade upload and submission errors"""


class MissingFieldsError(GradeWorkflowError, ValueError):
    """Classroom, subject or exam type missing from a submission"""

    def __init__(self, fields: list[str]) -> None:
        super().__init__(f"Please provide: {', '.join(fields)}")
        self.fields: list[str] = fields


class GradeSubmissionError(GradeWorkflowError):
    """At least one upsert of a submission failed; the submission as a whole failed"""

    def __init__(self, message: str, failures: list[BaseException] | None = None) -> None:
        super().__init__(message)
        self.failures: list[BaseException] = failures or []


class NothingToSaveError(GradeWorkflowError, ValueError):
    """No entry of a submission had marks for a student of the classroom"""

    def __init__(self, classroom_id: str, skipped: int = 0) -> None:
        message: str = f"No grades to save for classroom {classroom_id}"
        if skipped:
            message += f": {skipped} entries do not belong to its students"
        super().__init__(message)
        self.classroom_id: str = classroom_id
        self.skipped: int = skipped
