"""
Request and response schemas for the generation pipeline.
"""

from datetime import date, datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from app.exceptions import InputIncomplete


class BirthDetails(BaseModel):
    """Birth details captured by the quiz. Only the date is mandatory."""

    date: str
    time: Optional[str] = None
    city: Optional[str] = None

    @field_validator("date")
    @classmethod
    def check_date(cls, value: str) -> str:
        value = str(value).strip()
        try:
            date.fromisoformat(value)
        except ValueError:
            raise ValueError("birthDetails.date must be YYYY-MM-DD")
        return value

    @field_validator("time", "city", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @property
    def birth_date(self) -> date:
        return date.fromisoformat(self.date)


class QuizSubmission(BaseModel):
    """Answers plus birth details, as stored on a generation request."""

    answers: Dict[str, Any]
    birth_details: BirthDetails = Field(alias="birthDetails")

    model_config = {"populate_by_name": True}

    @field_validator("answers")
    @classmethod
    def check_answers(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        if not value:
            raise ValueError("answers are required")
        return value


def normalize_owner(email: Optional[str]) -> str:
    """Owner identity is the trimmed, lower-cased email."""
    owner = (email or "").strip().lower()
    if not owner or "@" not in owner:
        raise InputIncomplete("email: a valid email is required")
    return owner


def parse_submission(payload: Optional[Dict[str, Any]]) -> QuizSubmission:
    """
    Validate raw quiz data.

    Raises InputIncomplete with a short reason when answers or the
    birth date are missing.
    """
    if not isinstance(payload, dict):
        raise InputIncomplete("Invalid payload")
    try:
        return QuizSubmission.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise InputIncomplete(f"{field}: {first.get('msg')}") from e


# === API bodies ===


class CreateRequestBody(BaseModel):
    email: str
    answers: Dict[str, Any] = Field(default_factory=dict)
    birthDetails: Dict[str, Any] = Field(default_factory=dict)


class CreateRequestResponse(BaseModel):
    request_id: str
    eta_hours: int


class RequestStatusResponse(BaseModel):
    id: str
    status: str
    artifact_id: Optional[str] = None
    error: Optional[str] = None


class VisibilityResponse(BaseModel):
    ready: bool
    artifact_id: str
    release_at: datetime
    time_remaining_seconds: int
    content_ref: Optional[str] = None


class ReadingResponse(BaseModel):
    kind: str
    period_key: str
    guidance: str
    emotion_score: Optional[int] = None
    energy_score: Optional[int] = None
