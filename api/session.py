"""
api/session.py — per-user in-memory overlay sessions (cookie based)

Every browser gets a UUID session ID. Each session holds its own identity
monitor, session controller, capture buffer and shortcut dispatcher.
Sessions expire after SESSION_TTL without access.
"""

import threading
import time
import uuid
from dataclasses import dataclass
from typing import Optional

from config import SESSION_TTL
from exam_overlay.services.capture import CaptureBuffer
from exam_overlay.services.identity import IdentityMonitor
from exam_overlay.services.session_controller import SessionController
from exam_overlay.services.shortcuts import ShortcutDispatcher

_lock = threading.Lock()
_sessions: dict[str, "OverlaySession"] = {}
_timestamps: dict[str, float] = {}


@dataclass
class OverlaySession:
    identity: IdentityMonitor
    controller: SessionController
    capture: CaptureBuffer
    shortcuts: ShortcutDispatcher


def _new_state(answer_service, identity_provider) -> OverlaySession:
    identity = IdentityMonitor(identity_provider)
    controller = SessionController(answer_service)
    capture = CaptureBuffer()

    identity.subscribe(controller.on_identity_changed)
    identity.subscribe(lambda user: capture.clear() if user is None else None)

    return OverlaySession(
        identity=identity,
        controller=controller,
        capture=capture,
        shortcuts=ShortcutDispatcher(controller, identity),
    )


def create_session(answer_service, identity_provider) -> str:
    """Create a new session and return its ID."""
    sid = uuid.uuid4().hex
    with _lock:
        _sessions[sid] = _new_state(answer_service, identity_provider)
        _timestamps[sid] = time.time()
    return sid


def get_session(sid: str) -> Optional[OverlaySession]:
    """Look up a session. Returns None if it does not exist or has expired."""
    with _lock:
        if sid not in _sessions:
            return None
        if time.time() - _timestamps[sid] > SESSION_TTL:
            del _sessions[sid]
            del _timestamps[sid]
            return None
        _timestamps[sid] = time.time()  # refresh on access
        return _sessions[sid]


def cleanup_expired() -> int:
    """Drop expired sessions. Returns how many were removed."""
    now = time.time()
    removed = 0
    with _lock:
        expired = [sid for sid, ts in _timestamps.items() if now - ts > SESSION_TTL]
        for sid in expired:
            del _sessions[sid]
            del _timestamps[sid]
            removed += 1
    return removed
