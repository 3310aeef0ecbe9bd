"""Pydantic models describing a generative invocation and its attempts"""

import base64
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Attachment(BaseModel):
    """Inline binary payload sent along with the prompt (e.g. an image)"""

    mime_type: str = Field(default="image/png", description="MIME type of the payload")
    data: bytes = Field(..., description="Raw payload bytes")

    def as_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def as_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.as_base64()}"


class InvocationRequest(BaseModel):
    """A prompt, its attachments, the expected output shape and the candidate models to try"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    prompt: str = Field(..., min_length=1)
    response_model: type[BaseModel]
    attachments: list[Attachment] = Field(default_factory=list)
    models: list[str | None] = Field(default_factory=lambda: [None], description="Preferred model first; None means provider default")
    roles: dict[str, str] = Field(default_factory=dict, description="Extra chat roles, e.g. {'system': '...'}")

    @field_validator("models")
    @classmethod
    def validate_models(cls, v: list[str | None]) -> list[str | None]:
        if not v:
            raise ValueError("At least one candidate model is required")
        return [m or None for m in v]

    @field_validator("response_model")
    @classmethod
    def validate_response_model(cls, v: Any) -> type[BaseModel]:
        if not (isinstance(v, type) and issubclass(v, BaseModel)):
            raise ValueError("response_model must be a pydantic BaseModel subclass")
        return v


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    TRANSIENT_FAILURE = "transient_failure"
    FATAL_FAILURE = "fatal_failure"


class AttemptRecord(BaseModel):
    """One attempt against one candidate model (never persisted)"""

    model: str | None
    candidate_index: int
    attempt: int
    outcome: AttemptOutcome
    delay: float = 0.0
    error: str | None = None
