"""
FastAPI router for the teacher companion service.
"""

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError

from companion.api.model import GradePreviewResponse, GradeSubmissionRequest, GradeSubmissionResponse, StudentGradesResponse
from companion.configuration import Config, get_config_provider, setup_config_store
from companion.flows.advice import (
    AdviceInput,
    AdviceOutput,
    SnapshotImageInput,
    SnapshotImageOutput,
    SnapshotInput,
    SnapshotOutput,
    analyze_snapshot_image,
    generate_companion_advice,
    generate_snapshot_advice,
)
from companion.flows.visual_aid import VisualAidInput, VisualAidOutput, generate_visual_aid
from companion.grades.errors import GradeSubmissionError
from companion.grades.models import ReconciliationResult, RosterEntry, StudentAcademicRecord
from companion.grades.store import InMemoryClassroomStore, get_classroom_store
from companion.grades.submission import submit_grades
from companion.grades.workflow import preview_grades
from companion.llm import CandidatesExhaustedError, InvocationCancelledError, InvocationError, ResilientInvoker

# pylint: disable=unused-argument

RETRY_LATER: str = "The AI service is busy right now. Please try again in a minute."


async def get_config_dependency() -> Config:
    if not get_config_provider().is_configured():
        logger.info("Config Store is not configured, setting up...")
        await setup_config_store()
    return get_config_provider().get_config()


async def get_store_dependency(config: Config = Depends(get_config_dependency)) -> InMemoryClassroomStore:
    return get_classroom_store()


async def get_invoker_dependency(config: Config = Depends(get_config_dependency)) -> ResilientInvoker:
    return ResilientInvoker()


def error_response(e: Exception, action: str) -> JSONResponse:
    """Map workflow and invocation errors onto HTTP responses"""
    if isinstance(e, CandidatesExhaustedError):
        logger.error(f"{action}: model service overloaded: {e}")
        return JSONResponse({"error": RETRY_LATER}, status_code=503)
    if isinstance(e, InvocationCancelledError):
        logger.info(f"{action}: cancelled")
        return JSONResponse({"error": "Request cancelled"}, status_code=499)
    if isinstance(e, ValidationError):
        logger.error(f"{action}: model output did not match the expected shape: {e}")
        return JSONResponse({"error": f"{action} failed. Please try again later."}, status_code=502)
    if isinstance(e, ValueError):
        logger.warning(f"{action}: {e}")
        return JSONResponse({"error": str(e)}, status_code=400)
    if isinstance(e, GradeSubmissionError):
        logger.error(f"{action}: {e}")
        return JSONResponse({"error": "Failed to save grades."}, status_code=500)
    logger.exception(f"{action} failed: {e}")
    if isinstance(e, InvocationError):
        return JSONResponse({"error": str(e)}, status_code=502)
    return JSONResponse({"error": f"{action} failed. Please try again later."}, status_code=502)


router = APIRouter()


@router.get("/is_alive")
async def is_alive(config: Config = Depends(get_config_dependency)) -> dict[str, str]:
    """Health check endpoint"""
    return {"status": "alive"}


@router.post("/grades/preview", response_model=GradePreviewResponse, response_model_by_alias=True)
async def grades_preview(
    file: UploadFile = File(...),
    classroom_id: str = Form(..., alias="classroomId"),
    store: InMemoryClassroomStore = Depends(get_store_dependency),
    invoker: ResilientInvoker = Depends(get_invoker_dependency),
):
    """
    Extract grades from an uploaded sheet (xlsx or csv) and match them to the
    classroom roster. Returns matched entries, the rows that could not be
    matched and a "Matched N of M students." summary. Nothing is saved.
    """
    try:
        content: bytes = await file.read()
        result: ReconciliationResult = await preview_grades(
            content, file.filename or "", classroom_id, roster_source=store, invoker=invoker
        )
        return GradePreviewResponse.from_result(result)
    except Exception as e:  # pylint: disable=broad-exception-caught
        return error_response(e, "Grade extraction")


@router.post("/grades/submit", response_model=GradeSubmissionResponse, response_model_by_alias=True)
async def grades_submit(request: GradeSubmissionRequest, store: InMemoryClassroomStore = Depends(get_store_dependency)):
    """Save reconciled or manually entered grades; all-or-nothing from the caller's point of view"""
    try:
        roster: list[RosterEntry] = await store.fetch_roster(request.classroom_id) if request.classroom_id else []
        records: list[StudentAcademicRecord] = await submit_grades(store, request.info(), request.entries, roster=roster)
        return GradeSubmissionResponse(saved=len(records), message="Grades saved successfully.")
    except Exception as e:  # pylint: disable=broad-exception-caught
        return error_response(e, "Grade submission")


@router.get("/grades/{student_id}", response_model=StudentGradesResponse, response_model_by_alias=True)
async def student_grades(student_id: str, store: InMemoryClassroomStore = Depends(get_store_dependency)):
    record: StudentAcademicRecord | None = await store.fetch_record(student_id)
    if record is None:
        return JSONResponse({"error": f"No grades recorded for student {student_id}"}, status_code=404)
    return StudentGradesResponse.from_record(record)


@router.post("/visual-aids", response_model=VisualAidOutput, response_model_by_alias=True)
async def visual_aids(data: VisualAidInput, invoker: ResilientInvoker = Depends(get_invoker_dependency)):
    try:
        return await generate_visual_aid(data, invoker=invoker)
    except Exception as e:  # pylint: disable=broad-exception-caught
        return error_response(e, "Visual aid generation")


@router.post("/companion/advice", response_model=AdviceOutput, response_model_by_alias=True)
async def companion_advice(data: AdviceInput, invoker: ResilientInvoker = Depends(get_invoker_dependency)):
    try:
        return await generate_companion_advice(data, invoker=invoker)
    except Exception as e:  # pylint: disable=broad-exception-caught
        return error_response(e, "Companion advice")


@router.post("/companion/snapshot", response_model=SnapshotOutput, response_model_by_alias=True)
async def companion_snapshot(data: SnapshotInput, invoker: ResilientInvoker = Depends(get_invoker_dependency)):
    try:
        return await generate_snapshot_advice(data, invoker=invoker)
    except Exception as e:  # pylint: disable=broad-exception-caught
        return error_response(e, "Snapshot advice")


@router.post("/companion/snapshot-image", response_model=SnapshotImageOutput, response_model_by_alias=True)
async def companion_snapshot_image(data: SnapshotImageInput, invoker: ResilientInvoker = Depends(get_invoker_dependency)):
    try:
        return await analyze_snapshot_image(data, invoker=invoker)
    except Exception as e:  # pylint: disable=broad-exception-caught
        return error_response(e, "Snapshot image analysis")
