"""Session content, one variant per content type.

Each variant carries its own typed payload; ``SessionContent`` is a
discriminated union on ``type`` so a raw mapping parses straight into the
right variant with ``parse_session_content``.
"""
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, HttpUrl, TypeAdapter

from .models import Exercise


class BaseSessionContent(BaseModel):
    id: str
    session_id: str
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    order: int = 0
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    is_free: bool = False


class VideoContent(BaseSessionContent):
    type: Literal["VIDEO"] = "VIDEO"
    youtube_url: HttpUrl
    start_seconds: int = Field(default=0, ge=0)
    end_seconds: Optional[int] = Field(default=None, ge=0)
    transcript: Optional[str] = None


class DocumentContent(BaseSessionContent):
    type: Literal["DOCUMENT"] = "DOCUMENT"
    file_url: HttpUrl
    file_name: str
    file_size_bytes: Optional[int] = Field(default=None, ge=0)
    is_downloadable: bool = True


class QuizContent(BaseSessionContent):
    type: Literal["QUIZ"] = "QUIZ"
    quiz_id: str
    passing_score: int = Field(default=70, ge=0, le=100)
    max_attempts: Optional[int] = Field(default=None, ge=1)
    time_limit_minutes: Optional[int] = Field(default=None, ge=1)


class LiveSessionContent(BaseSessionContent):
    type: Literal["LIVE_SESSION"] = "LIVE_SESSION"
    meeting_url: HttpUrl
    scheduled_at: datetime
    meeting_password: Optional[str] = None
    recording_url: Optional[HttpUrl] = None


class AssignmentContent(BaseSessionContent):
    type: Literal["ASSIGNMENT"] = "ASSIGNMENT"
    instructions: str
    due_date: Optional[datetime] = None
    max_points: int = Field(default=100, ge=1)
    allowed_file_types: List[str] = Field(default_factory=list)
    allow_late_submission: bool = False


class InteractiveCodeContent(BaseSessionContent):
    type: Literal["INTERACTIVE_CODE"] = "INTERACTIVE_CODE"
    exercise: Exercise
    due_date: Optional[datetime] = None


SessionContent = Annotated[
    Union[
        VideoContent,
        DocumentContent,
        QuizContent,
        LiveSessionContent,
        AssignmentContent,
        InteractiveCodeContent,
    ],
    Field(discriminator="type"),
]

_session_content_adapter = TypeAdapter(SessionContent)


def parse_session_content(data: dict) -> SessionContent:
    return _session_content_adapter.validate_python(data)
