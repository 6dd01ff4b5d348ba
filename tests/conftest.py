"""
Pytest configuration and fixtures
"""
import asyncio
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

# Make the project root importable (config, api, exam_overlay)
root_dir = Path(__file__).parent.parent
if str(root_dir) not in sys.path:
    sys.path.insert(0, str(root_dir))

from exam_overlay.errors import AuthFailure
from exam_overlay.models.exam_config import ExamConfiguration
from exam_overlay.services.identity import AuthFailureKind, User, failure_message

PNG_DATA_URL = "data:image/png;base64,iVBORw0KGgo="
JPEG_DATA_URL = "data:image/jpeg;base64,/9j/4AAQSkZJRg=="


class FakeCompletions:
    """Stands in for client.chat.completions."""

    def __init__(self, content="**B**", error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAI:
    def __init__(self, content="**B**", error=None):
        self.completions = FakeCompletions(content, error)
        self.chat = SimpleNamespace(completions=self.completions)


class GatedAnswerService:
    """Answer service whose answers are held until release() is called."""

    def __init__(self, answer="**B**"):
        self.answer = answer
        self.calls = []
        self._gate = None

    def _event(self) -> asyncio.Event:
        if self._gate is None:
            self._gate = asyncio.Event()
        return self._gate

    def release(self) -> None:
        self._event().set()

    async def ask(self, prompt_text, attachments, config):
        self.calls.append((prompt_text, list(attachments), config))
        await self._event().wait()
        return self.answer


class InstantAnswerService:
    def __init__(self, answer="**B**"):
        self.answer = answer
        self.calls = []

    async def ask(self, prompt_text, attachments, config):
        self.calls.append((prompt_text, list(attachments), config))
        return self.answer


class FakeIdentityProvider:
    """Accepts one email/password pair."""

    def __init__(self, email="alumno@example.com", password="secret"):
        self.email = email
        self.password = password
        self.sign_outs = 0
        self.resets = []

    def sign_in(self, identifier, secret):
        if identifier == self.email and secret == self.password:
            return User(uid="uid-1", email=identifier, id_token="token")
        raise AuthFailure(
            AuthFailureKind.INVALID_CREDENTIALS,
            failure_message(AuthFailureKind.INVALID_CREDENTIALS),
        )

    def sign_out(self):
        self.sign_outs += 1

    def password_reset(self, identifier):
        if identifier != self.email:
            raise AuthFailure(
                AuthFailureKind.IDENTIFIER_NOT_FOUND,
                failure_message(AuthFailureKind.IDENTIFIER_NOT_FOUND, reset=True),
            )
        self.resets.append(identifier)


@pytest.fixture
def math_closed_config():
    """Math, closed exam, option-only answers in Spanish."""
    return ExamConfiguration(
        subject="math",
        exam_type="closed",
        response_style="option_only",
        language="es",
    )


@pytest.fixture
def fake_client():
    return FakeOpenAI()


@pytest.fixture
def identity_provider():
    return FakeIdentityProvider()
