"""
models/session_state.py

Transcript and session snapshot models.
Pydantic BaseModel based, no UI code.
"""

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from exam_overlay.models.exam_config import ActiveConfiguration, ExamConfiguration

IMAGE_ONLY_PLACEHOLDER = "[Image]"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class SessionMode(str, Enum):
    SETUP = "setup"
    CHAT = "chat"


class SessionPhase(str, Enum):
    IDLE = "idle"
    PENDING = "pending"


class TranscriptEntry(BaseModel):
    """
    One exchanged message. Entries are created once and never mutated.

    Attributes:
        id:          Monotonically increasing within a controller, never reused.
        role:        user / assistant.
        text:        Message text (placeholder for image-only questions).
        attachments: Display references (data URLs) in capture order.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1, description="Monotonically increasing entry id")
    role: Role = Field(..., description="user / assistant")
    text: str = Field(..., description="Message text")
    attachments: Tuple[str, ...] = Field(
        default=(),
        description="Display-only data URLs of the images sent with this entry",
    )


class Attachment(BaseModel):
    """A captured image waiting in the staging buffer."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(..., description="Data URL as captured")
    mime_type: str = Field(..., description="Detected mime type")
    size: int = Field(..., ge=0, description="Decoded payload size in bytes")


class SessionState(BaseModel):
    """
    Snapshot of a SessionController.

    Attributes:
        mode:          setup while drafting, chat once a configuration is active.
        configuration: Active configuration (None in setup mode).
        draft:         Draft being edited (None in chat mode).
        transcript:    Ordered transcript.
        pending:       True while exactly one request is outstanding.
    """

    mode: SessionMode = Field(default=SessionMode.SETUP)
    configuration: Optional[ActiveConfiguration] = Field(default=None)
    draft: Optional[ExamConfiguration] = Field(default=None)
    transcript: List[TranscriptEntry] = Field(default_factory=list)
    pending: bool = Field(default=False)
