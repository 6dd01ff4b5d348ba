"""
api/routes.py — FastAPI endpoints
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from pydantic import BaseModel, ValidationError

import api.session as session
from exam_overlay.errors import ConfigValidationError, SessionStateError
from exam_overlay.models.exam_config import (
    AcademicLevel,
    ExamType,
    Language,
    ResponseStyle,
    SubjectMode,
)
from exam_overlay.services.capture import ClipboardItem
from exam_overlay.services.shortcuts import KeyEvent, ShortcutAction

router = APIRouter()

# ── Pydantic request bodies ──────────────────────────────────────────────────

class LoginBody(BaseModel):
    email: str = ""
    password: str = ""

class PasswordResetBody(BaseModel):
    email: str = ""

class DraftBody(BaseModel):
    subject: Optional[SubjectMode] = None
    custom_subject: Optional[str] = None
    exam_type: Optional[ExamType] = None
    response_style: Optional[ResponseStyle] = None
    academic_level: Optional[AcademicLevel] = None
    language: Optional[Language] = None

class SubmitBody(BaseModel):
    text: str = ""
    wait: bool = False

class KeyEventBody(BaseModel):
    key: str = ""
    code: str = ""
    ctrl: bool = False
    alt: bool = False
    shift: bool = False


# ── Helpers ──────────────────────────────────────────────────────────────────

def _current(request: Request) -> session.OverlaySession:
    state = session.get_session(request.state.session_id)
    if state is None:
        raise HTTPException(status_code=440, detail="Session expired.")
    return state


def _signed_in(request: Request) -> session.OverlaySession:
    state = _current(request)
    if not state.identity.is_authenticated:
        raise HTTPException(status_code=401, detail="Not signed in.")
    return state


def _state_to_dict(state: session.OverlaySession) -> dict:
    d = state.controller.snapshot().model_dump(mode="json")
    d["authenticated"] = state.identity.is_authenticated
    d["staged"] = [
        {"index": i, "mime_type": a.mime_type, "size": a.size}
        for i, a in enumerate(state.capture.staged)
    ]
    return d


# ── Identity ─────────────────────────────────────────────────────────────────

@router.post("/api/login")
async def login(request: Request, body: LoginBody):
    state = _current(request)
    # Blocking HTTP call to the identity provider
    result = await asyncio.to_thread(state.identity.sign_in, body.email, body.password)
    if not result.ok:
        raise HTTPException(status_code=401, detail=result.message)
    return {"ok": True}


@router.post("/api/logout")
async def logout(request: Request):
    state = _current(request)
    state.identity.sign_out()
    return {"ok": True}


@router.post("/api/password-reset")
async def password_reset(request: Request, body: PasswordResetBody):
    state = _current(request)
    result = await asyncio.to_thread(state.identity.password_reset, body.email)
    if not result.ok:
        raise HTTPException(status_code=400, detail=result.message)
    return {"ok": True, "message": result.message}


# ── Session ──────────────────────────────────────────────────────────────────

@router.get("/api/state")
async def get_state(request: Request):
    return _state_to_dict(_current(request))


@router.put("/api/config")
async def update_config(request: Request, body: DraftBody):
    state = _signed_in(request)
    try:
        draft = state.controller.update_draft(**body.model_dump(exclude_unset=True))
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return draft.model_dump(mode="json")


@router.post("/api/config/confirm")
async def confirm_config(request: Request):
    state = _signed_in(request)
    try:
        active = state.controller.confirm()
    except ConfigValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return active.model_dump(mode="json")


@router.post("/api/reconfigure")
async def reconfigure(request: Request):
    state = _signed_in(request)
    state.controller.reconfigure()
    state.capture.clear()
    return {"ok": True}


@router.post("/api/attachments")
async def paste_attachments(request: Request, files: list[UploadFile] = File(...)):
    state = _signed_in(request)
    items = [ClipboardItem(mime_type=f.content_type or "", data=await f.read()) for f in files]
    suppress = state.capture.handle_paste(items)
    outcome = state.capture.last_paste
    if outcome.skipped and not outcome.staged:
        raise HTTPException(status_code=413, detail=outcome.reason)
    return {
        "suppress_default": suppress,
        "staged": len(state.capture),
        "skipped": outcome.skipped,
    }


@router.delete("/api/attachments/{index}")
async def discard_attachment(request: Request, index: int):
    state = _signed_in(request)
    try:
        state.capture.discard(index)
    except IndexError:
        raise HTTPException(status_code=404, detail="Attachment not found.")
    return {"staged": len(state.capture)}


@router.post("/api/submit")
async def submit(request: Request, body: SubmitBody):
    state = _signed_in(request)
    controller = state.controller

    if controller.configuration is None:
        raise HTTPException(status_code=409, detail="No active session.")
    if controller.pending:
        raise HTTPException(status_code=409, detail="A question is already being answered.")
    if not controller.can_submit(body.text, state.capture.staged):
        return {"accepted": False}

    task = controller.submit(body.text, state.capture.take())
    if body.wait and task is not None:
        answer = await task
        return {"accepted": True, "answer": answer}
    return {"accepted": task is not None}


@router.post("/api/reset")
async def reset_transcript(request: Request):
    state = _signed_in(request)
    state.controller.reset()
    return {"ok": True}


@router.post("/api/shortcut")
async def shortcut(request: Request, body: KeyEventBody):
    state = _current(request)
    action, handled = state.shortcuts.handle_key(KeyEvent(**body.model_dump()))
    return {
        "action": action.value if action else None,
        "handled": handled,
        # The browser window closes itself; the server only reports it.
        "close": action == ShortcutAction.PANIC,
    }
