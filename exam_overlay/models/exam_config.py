"""
models/exam_config.py

Pre-session configuration models.
ExamConfiguration is the freely editable draft of the setup form;
ActiveConfiguration is the frozen copy that governs one chat session.
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field

from exam_overlay.errors import ConfigValidationError


class SubjectMode(str, Enum):
    GENERAL = "general"
    MATH = "math"
    PHYSICS = "physics"
    CHEMISTRY = "chemistry"
    BIOLOGY = "biology"
    GEOGRAPHY = "geography"
    CODING = "coding"
    HISTORY = "history"
    SCIENCE = "science"
    ETHICS = "ethics"
    PHILOSOPHY = "philosophy"
    CUSTOM = "custom"


class ExamType(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    MIXED = "mixed"


class ResponseStyle(str, Enum):
    SHORT = "short"
    DETAILED = "detailed"
    OPTION_ONLY = "option_only"
    MIXED_SHORT = "mixed_short"
    MIXED_DETAILED = "mixed_detailed"


class AcademicLevel(str, Enum):
    HIGH_SCHOOL = "high_school"
    UNIVERSITY = "university"
    EXPERT = "expert"


class Language(str, Enum):
    AUTO = "auto"
    ES = "es"
    EN = "en"


SUBJECT_LABELS: Dict[SubjectMode, str] = {
    SubjectMode.GENERAL: "General",
    SubjectMode.MATH: "Mathematics",
    SubjectMode.PHYSICS: "Physics",
    SubjectMode.CHEMISTRY: "Chemistry",
    SubjectMode.BIOLOGY: "Biology",
    SubjectMode.GEOGRAPHY: "Geography",
    SubjectMode.CODING: "Programming",
    SubjectMode.HISTORY: "History",
    SubjectMode.SCIENCE: "Science (General)",
    SubjectMode.ETHICS: "Ethics",
    SubjectMode.PHILOSOPHY: "Philosophy",
}

VALID_STYLES: Dict[ExamType, FrozenSet[ResponseStyle]] = {
    ExamType.OPEN: frozenset({ResponseStyle.SHORT, ResponseStyle.DETAILED}),
    ExamType.CLOSED: frozenset({ResponseStyle.OPTION_ONLY, ResponseStyle.DETAILED}),
    ExamType.MIXED: frozenset({ResponseStyle.MIXED_SHORT, ResponseStyle.MIXED_DETAILED}),
}

_DEFAULT_STYLES: Dict[ExamType, ResponseStyle] = {
    ExamType.OPEN: ResponseStyle.SHORT,
    ExamType.CLOSED: ResponseStyle.OPTION_ONLY,
    ExamType.MIXED: ResponseStyle.MIXED_SHORT,
}


def default_style_for(exam_type: ExamType) -> ResponseStyle:
    """Style the setup form falls back to whenever exam_type changes."""
    return _DEFAULT_STYLES[ExamType(exam_type)]


def is_valid_style(exam_type: str, response_style: str) -> bool:
    try:
        return ResponseStyle(response_style) in VALID_STYLES[ExamType(exam_type)]
    except ValueError:
        return False


def check_style(exam_type: str, response_style: str) -> None:
    """Raise ConfigValidationError unless the pair is in VALID_STYLES."""
    if not is_valid_style(exam_type, response_style):
        raise ConfigValidationError(str(_value(exam_type)), str(_value(response_style)))


def _value(v):
    return v.value if isinstance(v, Enum) else v


class ExamConfiguration(BaseModel):
    """
    Draft configuration edited on the setup screen.

    The style/exam-type pair is not validated here: a draft may be
    momentarily inconsistent. ActiveConfiguration.from_draft() and the
    config translator both check it.
    """

    subject: SubjectMode = Field(
        default=SubjectMode.GENERAL,
        description="Subject of the exam, or 'custom' for free text",
    )
    custom_subject: Optional[str] = Field(
        default=None,
        description="Free-text subject, used only when subject is 'custom'",
    )
    exam_type: ExamType = Field(
        default=ExamType.MIXED,
        description="open / closed (multiple choice) / mixed",
    )
    response_style: ResponseStyle = Field(
        default=ResponseStyle.MIXED_SHORT,
        description="Answer format; must belong to VALID_STYLES[exam_type]",
    )
    academic_level: AcademicLevel = Field(
        default=AcademicLevel.UNIVERSITY,
        description="Audience level",
    )
    language: Language = Field(
        default=Language.ES,
        description="Answer language; 'auto' adds no language directive",
    )

    @property
    def subject_label(self) -> str:
        if self.subject == SubjectMode.CUSTOM:
            label = (self.custom_subject or "").strip()
        else:
            label = SUBJECT_LABELS.get(self.subject, "")
        return label or "General"


class ActiveConfiguration(ExamConfiguration):
    """Confirmed configuration. Immutable for the lifetime of the session."""

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_draft(cls, draft: ExamConfiguration) -> "ActiveConfiguration":
        check_style(draft.exam_type, draft.response_style)
        data = draft.model_dump()
        if draft.subject != SubjectMode.CUSTOM:
            data["custom_subject"] = None
        return cls(**data)
