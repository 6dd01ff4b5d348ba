"""
Tests for the HTTP surface
"""
import asyncio

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from exam_overlay.services.answer_service import SENTINEL_TEXT

from conftest import FakeIdentityProvider, InstantAnswerService

PNG_BYTES = b"\x89PNG\r\n\x1a\n"


@pytest.fixture
def answer_service():
    return InstantAnswerService(answer="**B**")


@pytest.fixture
def client(answer_service):
    app = create_app(
        answer_service=answer_service,
        identity_provider=FakeIdentityProvider(),
        cleanup=False,
    )
    with TestClient(app) as c:
        yield c


@pytest.fixture
def signed_in(client):
    response = client.post("/api/login", json={"email": "alumno@example.com", "password": "secret"})
    assert response.status_code == 200
    return client


@pytest.fixture
def chatting(signed_in):
    signed_in.put("/api/config", json={"subject": "math", "exam_type": "closed"})
    response = signed_in.post("/api/config/confirm")
    assert response.status_code == 200
    return signed_in


def test_state_before_login(client):
    data = client.get("/api/state").json()
    assert data["authenticated"] is False
    assert data["mode"] == "setup"
    assert data["transcript"] == []


def test_login_failure_message(client):
    response = client.post("/api/login", json={"email": "alumno@example.com", "password": "bad"})
    assert response.status_code == 401
    assert response.json()["detail"] == "CREDENCIALES INVÁLIDAS"


def test_login_missing_fields(client):
    response = client.post("/api/login", json={"email": "alumno@example.com"})
    assert response.status_code == 401
    assert response.json()["detail"] == "FALTAN DATOS"


def test_password_reset(client):
    ok = client.post("/api/password-reset", json={"email": "alumno@example.com"})
    assert ok.json()["message"] == "ENVIADO (REVISA SPAM)"

    missing = client.post("/api/password-reset", json={"email": "nadie@example.com"})
    assert missing.status_code == 400
    assert missing.json()["detail"] == "EMAIL NO REGISTRADO"


def test_config_requires_sign_in(client):
    assert client.put("/api/config", json={"exam_type": "open"}).status_code == 401


def test_exam_type_change_resets_style(signed_in):
    draft = signed_in.put("/api/config", json={"exam_type": "open"}).json()
    assert draft["response_style"] == "short"


def test_null_clears_custom_subject(signed_in):
    signed_in.put("/api/config", json={"subject": "custom", "custom_subject": "Quimica"})
    draft = signed_in.put("/api/config", json={"custom_subject": None}).json()
    assert draft["custom_subject"] is None
    assert draft["subject"] == "custom"


def test_confirm_rejects_invalid_pair(signed_in):
    signed_in.put("/api/config", json={"exam_type": "open", "response_style": "option_only"})
    response = signed_in.post("/api/config/confirm")
    assert response.status_code == 400


def test_submit_and_transcript(chatting, answer_service):
    response = chatting.post("/api/submit", json={"text": "2+2=? A)3 B)4 C)5", "wait": True})
    assert response.json() == {"accepted": True, "answer": "**B**"}

    state = chatting.get("/api/state").json()
    assert state["pending"] is False
    assert [e["role"] for e in state["transcript"]] == ["user", "assistant"]
    assert state["configuration"]["subject"] == "math"
    assert answer_service.calls[0][0] == "2+2=? A)3 B)4 C)5"


def test_empty_submit_is_not_accepted(chatting):
    assert chatting.post("/api/submit", json={"text": "  "}).json() == {"accepted": False}
    assert chatting.get("/api/state").json()["transcript"] == []


def test_pasted_images_are_sent_with_submission(chatting, answer_service):
    files = [
        ("files", ("a.png", PNG_BYTES, "image/png")),
        ("files", ("b.png", PNG_BYTES, "image/png")),
    ]
    pasted = chatting.post("/api/attachments", files=files).json()
    assert pasted == {"suppress_default": True, "staged": 2, "skipped": 0}

    chatting.delete("/api/attachments/0")
    chatting.post("/api/submit", json={"text": "", "wait": True})

    state = chatting.get("/api/state").json()
    assert state["staged"] == []
    assert state["transcript"][0]["text"] == "[Image]"
    assert len(state["transcript"][0]["attachments"]) == 1
    assert len(answer_service.calls[0][1]) == 1


def test_paste_over_the_staging_cap(chatting):
    files = [("files", (f"{i}.png", PNG_BYTES, "image/png")) for i in range(9)]
    pasted = chatting.post("/api/attachments", files=files).json()
    assert pasted == {"suppress_default": True, "staged": 8, "skipped": 1}

    full = chatting.post("/api/attachments", files=[("files", ("x.png", PNG_BYTES, "image/png"))])
    assert full.status_code == 413
    assert "8" in full.json()["detail"]
    assert len(chatting.get("/api/state").json()["staged"]) == 8


def test_discard_unknown_attachment(chatting):
    assert chatting.delete("/api/attachments/3").status_code == 404


def test_reset_and_reconfigure(chatting):
    chatting.post("/api/submit", json={"text": "hola", "wait": True})

    chatting.post("/api/reset")
    state = chatting.get("/api/state").json()
    assert state["transcript"] == []
    assert state["mode"] == "chat"

    chatting.post("/api/reconfigure")
    state = chatting.get("/api/state").json()
    assert state["mode"] == "setup"
    assert state["configuration"] is None


def test_shortcuts(chatting):
    chatting.post("/api/submit", json={"text": "hola", "wait": True})

    clear = chatting.post("/api/shortcut", json={"key": "l", "code": "KeyL", "ctrl": True}).json()
    assert clear == {"action": "clear_transcript", "handled": True, "close": False}
    assert chatting.get("/api/state").json()["transcript"] == []

    panic = chatting.post("/api/shortcut", json={"key": "Escape"}).json()
    assert panic["close"] is True

    chatting.post("/api/shortcut", json={"key": "q", "code": "KeyQ", "ctrl": True, "alt": True})
    state = chatting.get("/api/state").json()
    assert state["authenticated"] is False
    assert state["mode"] == "setup"


def test_logout_clears_session(chatting):
    chatting.post("/api/submit", json={"text": "hola", "wait": True})
    chatting.post("/api/logout")

    state = chatting.get("/api/state").json()
    assert state["authenticated"] is False
    assert state["transcript"] == []
    assert chatting.post("/api/submit", json={"text": "hola"}).status_code == 401


def test_failed_generation_is_a_normal_answer():
    class Failing:
        async def ask(self, prompt_text, attachments, config):
            return SENTINEL_TEXT

    app = create_app(answer_service=Failing(), identity_provider=FakeIdentityProvider(), cleanup=False)
    with TestClient(app) as c:
        c.post("/api/login", json={"email": "alumno@example.com", "password": "secret"})
        c.post("/api/config/confirm")
        answer = c.post("/api/submit", json={"text": "hola", "wait": True}).json()
        transcript = c.get("/api/state").json()["transcript"]

    assert answer == {"accepted": True, "answer": "Error."}
    assert transcript[-1] == {"id": 2, "role": "assistant", "text": "Error.", "attachments": []}


class LoopRecordingProvider(FakeIdentityProvider):
    """Records whether each provider call ran on the event loop thread."""

    def __init__(self):
        super().__init__()
        self.on_loop = []

    def _record(self):
        try:
            asyncio.get_running_loop()
            self.on_loop.append(True)
        except RuntimeError:
            self.on_loop.append(False)

    def sign_in(self, identifier, secret):
        self._record()
        return super().sign_in(identifier, secret)

    def password_reset(self, identifier):
        self._record()
        return super().password_reset(identifier)


def test_identity_calls_run_off_the_event_loop():
    provider = LoopRecordingProvider()
    app = create_app(answer_service=InstantAnswerService(), identity_provider=provider, cleanup=False)
    with TestClient(app) as c:
        assert c.post("/api/password-reset", json={"email": "alumno@example.com"}).status_code == 200
        assert c.post("/api/login", json={"email": "alumno@example.com", "password": "secret"}).status_code == 200

    assert provider.on_loop == [False, False]
