from .errors import GradeSubmissionError, GradeWorkflowError, MissingFieldsError, NothingToSaveError
from .models import (
    ExtractedRecord,
    GradeInfo,
    GradeRecord,
    MatchedGradeEntry,
    ReconciliationResult,
    RosterEntry,
    StudentAcademicRecord,
    normalize_identifier,
)
from .reconcile import find_roster_entry, reconcile, reconcile_roster
from .store import GradeStore, InMemoryClassroomStore, RosterSource, get_classroom_store, sort_roster
from .submission import submit_grades
