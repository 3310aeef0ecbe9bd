"""
Classroom companion flows: just-in-time advice for a classroom problem, for a
described classroom snapshot, and for a photo of the classroom.
"""

import asyncio
import base64
import binascii
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from companion.llm import Attachment, ResilientInvoker

from .base import render_prompt, run_flow


class CompanionModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Language(str, Enum):
    ENGLISH = "English"
    HINDI = "Hindi"


class Subject(str, Enum):
    MATH = "Math"
    HINDI = "Hindi"
    EVS = "EVS"


class ProblemType(str, Enum):
    CONCEPT_CONFUSION = "concept_confusion"
    CLASSROOM_CHAOS = "classroom_chaos"
    MIXED_ABILITY = "mixed_ability"
    BEHAVIORAL_ISSUE = "behavioral_issue"


class ClassLevel(str, Enum):
    THREE = "3"
    FOUR = "4"
    FIVE = "5"


class AdviceInput(CompanionModel):
    class_level: ClassLevel
    subject: Subject
    problem_type: ProblemType
    language: Language = Language.ENGLISH
    context_note: str | None = None

    @field_validator("class_level", mode="before")
    @classmethod
    def validate_class_level(cls, v):
        return str(v) if isinstance(v, int) else v


class AdviceOutput(CompanionModel):
    headline: str
    quick_read: str
    just_in_time_steps: list[str]
    grouping_plan: list[str] | None = None
    activity_tweak: str | None = None
    follow_up: list[str] | None = None


class SnapshotInput(CompanionModel):
    language: Language = Language.ENGLISH
    description: str = Field(..., min_length=10)


class SnapshotOutput(CompanionModel):
    strategy: str
    grouping: list[str]
    activity_tweak: str
    follow_up_check: list[str]


class SnapshotImageInput(CompanionModel):
    language: Language = Language.ENGLISH
    description: str | None = None
    image_data: str = Field(..., min_length=50, description="Base64 image, optionally as a data URI")

    def image_bytes(self) -> bytes:
        """Decode the payload after the last comma, so both data URIs and bare base64 work"""
        payload: str = self.image_data.split(",")[-1].strip()
        try:
            return base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Image data is not valid base64: {e}") from e


class FocusArea(CompanionModel):
    label: str
    score: float = Field(..., ge=0, le=100)


class SnapshotImageOutput(CompanionModel):
    summary: str
    engagement_score: float = Field(..., ge=0, le=100)
    focus_areas: list[FocusArea]
    grouping: list[str]
    strategies: list[str]
    activity_tweak: str


async def generate_companion_advice(
    data: AdviceInput, *, invoker: ResilientInvoker | None = None, cancel: asyncio.Event | None = None
) -> AdviceOutput:
    prompt: str = render_prompt(
        "companion_advice",
        language=data.language.value,
        class_level=data.class_level.value,
        subject=data.subject.value,
        problem_type=data.problem_type.value,
        context_note=data.context_note or "None",
    )
    return await run_flow("companion_advice", prompt, AdviceOutput, invoker=invoker, cancel=cancel)


async def generate_snapshot_advice(
    data: SnapshotInput, *, invoker: ResilientInvoker | None = None, cancel: asyncio.Event | None = None
) -> SnapshotOutput:
    prompt: str = render_prompt("snapshot_advice", language=data.language.value, description=data.description)
    return await run_flow("snapshot_advice", prompt, SnapshotOutput, invoker=invoker, cancel=cancel)


async def analyze_snapshot_image(
    data: SnapshotImageInput, *, invoker: ResilientInvoker | None = None, cancel: asyncio.Event | None = None
) -> SnapshotImageOutput:
    attachment: Attachment = Attachment(mime_type="image/png", data=data.image_bytes())
    prompt: str = render_prompt("snapshot_image", language=data.language.value, description=data.description or "None")
    return await run_flow("snapshot_image", prompt, SnapshotImageOutput, attachments=[attachment], invoker=invoker, cancel=cancel)
