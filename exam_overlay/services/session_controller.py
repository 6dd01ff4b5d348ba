"""
services/session_controller.py

Session state machine: setup/chat modes, the ordered transcript and
single-flight submission.

  setup ──confirm()──▶ chat ──reconfigure() / sign-out──▶ setup

  Idle ──submit()──▶ Pending ──answer resolved──▶ Idle

Only this class mutates the transcript. Everything except the generation
call runs synchronously on the event loop; completions are consumed one at
a time, so no lock is needed.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

from exam_overlay.errors import SessionStateError
from exam_overlay.models.exam_config import (
    ActiveConfiguration,
    ExamConfiguration,
    default_style_for,
)
from exam_overlay.models.session_state import (
    IMAGE_ONLY_PLACEHOLDER,
    Role,
    SessionMode,
    SessionPhase,
    SessionState,
    TranscriptEntry,
)
from exam_overlay.services.answer_service import SENTINEL_TEXT

logger = logging.getLogger(__name__)

# Draft fields where None is a value rather than "no change"
_CLEARABLE_FIELDS = frozenset({"custom_subject"})


class SessionEventKind(str, Enum):
    ENTRY_APPENDED = "entry_appended"
    TRANSCRIPT_CLEARED = "transcript_cleared"
    PHASE_CHANGED = "phase_changed"
    MODE_CHANGED = "mode_changed"


@dataclass(frozen=True)
class SessionEvent:
    kind: SessionEventKind
    entry: Optional[TranscriptEntry] = None
    phase: Optional[SessionPhase] = None
    mode: Optional[SessionMode] = None


Listener = Callable[[SessionEvent], None]


class SessionController:
    """
    Owns one user's session.

    Args:
        answer_service: Object with `async ask(prompt, attachments, config) -> str`.
        draft:          Initial draft configuration (setup form defaults if None).
    """

    def __init__(self, answer_service, draft: Optional[ExamConfiguration] = None):
        self._answer_service = answer_service
        self._draft: Optional[ExamConfiguration] = draft or ExamConfiguration()
        self._active: Optional[ActiveConfiguration] = None
        self._transcript: List[TranscriptEntry] = []
        self._phase = SessionPhase.IDLE
        self._ids = itertools.count(1)
        self._epoch = 0
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[Listener] = []

    # ── Read-only views ─────────────────────────────────────────────────────

    @property
    def mode(self) -> SessionMode:
        return SessionMode.CHAT if self._active is not None else SessionMode.SETUP

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def pending(self) -> bool:
        return self._phase == SessionPhase.PENDING

    @property
    def configuration(self) -> Optional[ActiveConfiguration]:
        return self._active

    @property
    def draft(self) -> Optional[ExamConfiguration]:
        return self._draft

    @property
    def transcript(self) -> List[TranscriptEntry]:
        return list(self._transcript)

    @property
    def epoch(self) -> int:
        return self._epoch

    def snapshot(self) -> SessionState:
        return SessionState(
            mode=self.mode,
            configuration=self._active,
            draft=self._draft,
            transcript=list(self._transcript),
            pending=self.pending,
        )

    # ── Events ──────────────────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Session listener failed on {event.kind.value}")

    def _set_phase(self, phase: SessionPhase) -> None:
        if phase != self._phase:
            self._phase = phase
            self._emit(SessionEvent(SessionEventKind.PHASE_CHANGED, phase=phase))

    def _append(self, role: Role, text: str, attachments: Sequence[str] = ()) -> TranscriptEntry:
        entry = TranscriptEntry(
            id=next(self._ids), role=role, text=text, attachments=tuple(attachments)
        )
        self._transcript.append(entry)
        self._emit(SessionEvent(SessionEventKind.ENTRY_APPENDED, entry=entry))
        return entry

    def _clear_transcript(self) -> None:
        self._epoch += 1
        self._transcript = []
        self._emit(SessionEvent(SessionEventKind.TRANSCRIPT_CLEARED))

    # ── Configuration lifecycle ─────────────────────────────────────────────

    def update_draft(self, **changes: Any) -> ExamConfiguration:
        """
        Edit the draft configuration (setup mode only).

        A change of exam_type without an explicit response_style re-derives
        the style with default_style_for(). None leaves a field unchanged,
        except for custom_subject where it clears the value.

        Raises:
            SessionStateError: not in setup mode.
            TypeError:         unknown configuration field.
        """
        if self.mode != SessionMode.SETUP:
            raise SessionStateError("The configuration can only be edited before the session starts.")

        unknown = set(changes) - set(ExamConfiguration.model_fields)
        if unknown:
            raise TypeError(f"Unknown configuration field(s): {', '.join(sorted(unknown))}")

        changes = {k: v for k, v in changes.items() if v is not None or k in _CLEARABLE_FIELDS}
        if "exam_type" in changes and "response_style" not in changes:
            changes["response_style"] = default_style_for(changes["exam_type"])

        data = self._draft.model_dump()
        data.update(changes)
        self._draft = ExamConfiguration.model_validate(data)
        return self._draft

    def confirm(self) -> ActiveConfiguration:
        """
        Promote the draft to the immutable ActiveConfiguration.

        Raises:
            SessionStateError:     A session is already active.
            ConfigValidationError: response_style does not fit exam_type.
        """
        if self.mode != SessionMode.SETUP:
            raise SessionStateError("A session is already active.")

        self._active = ActiveConfiguration.from_draft(self._draft)
        self._draft = None
        logger.info(
            f"Session started: subject={self._active.subject.value} "
            f"exam_type={self._active.exam_type.value} style={self._active.response_style.value}"
        )
        self._emit(SessionEvent(SessionEventKind.MODE_CHANGED, mode=SessionMode.CHAT))
        return self._active

    def reconfigure(self) -> None:
        """Drop the active configuration and the transcript; back to setup."""
        was_chat = self.mode == SessionMode.CHAT
        self._active = None
        self._draft = ExamConfiguration()
        self._clear_transcript()
        if was_chat:
            self._emit(SessionEvent(SessionEventKind.MODE_CHANGED, mode=SessionMode.SETUP))

    def on_identity_changed(self, user: Optional[Any]) -> None:
        """Identity listener: signing out forces setup mode and clears the transcript."""
        if user is None:
            logger.info("Signed out, returning to setup.")
            self.reconfigure()

    # ── Submission ──────────────────────────────────────────────────────────

    def can_submit(self, text: str, attachments: Sequence[str] = ()) -> bool:
        if self._active is None or self.pending:
            return False
        return bool((text or "").strip()) or len(attachments) > 0

    def submit(self, text: str, attachments: Sequence[str] = ()) -> Optional[asyncio.Task]:
        """
        Start one submission.

        Appends the user entry immediately, switches to Pending and spawns
        exactly one task that resolves into the assistant entry.

        Returns:
            The spawned task, or None when the submission was ignored
            (no active session, already pending, or nothing to send).
        """
        text = text or ""
        attachments = list(attachments)
        if self._active is None:
            logger.debug("submit ignored: no active session")
            return None
        if self.pending:
            logger.info("submit ignored: a request is already pending")
            return None
        if not text.strip() and not attachments:
            return None

        loop = asyncio.get_running_loop()
        config = self._active
        epoch = self._epoch

        self._append(
            Role.USER,
            text if text.strip() else IMAGE_ONLY_PLACEHOLDER,
            attachments,
        )
        self._set_phase(SessionPhase.PENDING)
        self._task = loop.create_task(self._run(text, attachments, config, epoch))
        return self._task

    async def _run(
        self,
        text: str,
        attachments: List[str],
        config: ActiveConfiguration,
        epoch: int,
    ) -> str:
        try:
            answer = await self._answer_service.ask(text, attachments, config)
        except asyncio.CancelledError:
            self._task = None
            self._set_phase(SessionPhase.IDLE)
            raise
        except Exception as e:
            logger.error(f"Answer service raised: {type(e).__name__}: {e}")
            answer = SENTINEL_TEXT

        self._resolve(answer, epoch)
        return answer

    def _resolve(self, answer: str, epoch: int) -> None:
        if epoch == self._epoch:
            self._append(Role.ASSISTANT, answer)
        else:
            logger.info("Dropping answer for a transcript that was cleared.")
        self._task = None
        self._set_phase(SessionPhase.IDLE)

    def reset(self) -> None:
        """
        Clear the transcript.

        A pending request is not cancelled; it keeps the session Pending
        until it resolves, and its answer is dropped.
        """
        self._clear_transcript()
