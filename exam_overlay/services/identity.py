"""
services/identity.py

Email/password identity for the overlay.

Public API:
  - FirebaseIdentityProvider : Firebase Identity Toolkit REST client
  - IdentityMonitor          : current user + change listeners
  - failure_message(kind)    : fixed user-facing message per failure kind
                               (reset=True for the password-reset surface)

Every failure kind maps to exactly one message. Failures never touch an
active session; only a sign-out does (through the listeners).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol

import requests

import config as settings
from exam_overlay.errors import AuthFailure

logger = logging.getLogger(__name__)

_IDENTITY_BASE_URL = "https://identitytoolkit.googleapis.com/v1/accounts"

RESET_SENT_MESSAGE = "ENVIADO (REVISA SPAM)"


class AuthFailureKind(str, Enum):
    # sign-in
    INVALID_CREDENTIALS = "invalid_credentials"
    MISSING_SECRET = "missing_secret"
    RATE_LIMITED = "rate_limited"
    ACCOUNT_DISABLED = "account_disabled"
    UNKNOWN = "unknown"
    # password reset
    IDENTIFIER_NOT_FOUND = "identifier_not_found"
    INVALID_IDENTIFIER = "invalid_identifier"


_MESSAGES: Dict[AuthFailureKind, str] = {
    AuthFailureKind.INVALID_CREDENTIALS: "CREDENCIALES INVÁLIDAS",
    AuthFailureKind.MISSING_SECRET: "FALTAN DATOS",
    AuthFailureKind.RATE_LIMITED: "DEMASIADOS INTENTOS",
    AuthFailureKind.ACCOUNT_DISABLED: "CUENTA DESHABILITADA",
    AuthFailureKind.UNKNOWN: "ERROR DE CONEXIÓN",
    AuthFailureKind.IDENTIFIER_NOT_FOUND: "EMAIL NO REGISTRADO",
    AuthFailureKind.INVALID_IDENTIFIER: "EMAIL INVÁLIDO",
}

# Identity Toolkit error codes → failure kinds
_SIGN_IN_CODES: Dict[str, AuthFailureKind] = {
    "INVALID_LOGIN_CREDENTIALS": AuthFailureKind.INVALID_CREDENTIALS,
    "EMAIL_NOT_FOUND": AuthFailureKind.INVALID_CREDENTIALS,
    "INVALID_PASSWORD": AuthFailureKind.INVALID_CREDENTIALS,
    "MISSING_PASSWORD": AuthFailureKind.MISSING_SECRET,
    "TOO_MANY_ATTEMPTS_TRY_LATER": AuthFailureKind.RATE_LIMITED,
    "USER_DISABLED": AuthFailureKind.ACCOUNT_DISABLED,
}
_RESET_CODES: Dict[str, AuthFailureKind] = {
    "EMAIL_NOT_FOUND": AuthFailureKind.IDENTIFIER_NOT_FOUND,
    "INVALID_EMAIL": AuthFailureKind.INVALID_IDENTIFIER,
    "MISSING_EMAIL": AuthFailureKind.INVALID_IDENTIFIER,
}


_RESET_UNKNOWN_MESSAGE = "ERROR AL ENVIAR"


def failure_message(kind: AuthFailureKind, reset: bool = False) -> str:
    kind = AuthFailureKind(kind)
    if reset and kind == AuthFailureKind.UNKNOWN:
        return _RESET_UNKNOWN_MESSAGE
    return _MESSAGES[kind]


def _fail(kind: AuthFailureKind, reset: bool = False) -> AuthFailure:
    return AuthFailure(kind, failure_message(kind, reset))


@dataclass(frozen=True)
class User:
    uid: str
    email: str
    id_token: str = ""


@dataclass(frozen=True)
class AuthResult:
    ok: bool
    kind: Optional[AuthFailureKind] = None
    message: str = ""


class IdentityProvider(Protocol):
    def sign_in(self, identifier: str, secret: str) -> User: ...
    def sign_out(self) -> None: ...
    def password_reset(self, identifier: str) -> None: ...


def _error_code(response: requests.Response) -> str:
    """Identity Toolkit errors look like {"error": {"message": "CODE : detail"}}."""
    try:
        message = response.json().get("error", {}).get("message", "")
    except ValueError:
        return ""
    return message.split(":", 1)[0].strip()


class FirebaseIdentityProvider:
    """Firebase Identity Toolkit over its REST API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        http: Optional[requests.Session] = None,
        timeout: float = settings.IDENTITY_TIMEOUT,
    ):
        self.api_key = settings.FIREBASE_API_KEY if api_key is None else api_key
        self.http = http or requests.Session()
        self.timeout = timeout

    def _post(self, action: str, body: dict) -> requests.Response:
        return self.http.post(
            f"{_IDENTITY_BASE_URL}:{action}",
            params={"key": self.api_key},
            json=body,
            timeout=self.timeout,
        )

    def sign_in(self, identifier: str, secret: str) -> User:
        try:
            response = self._post(
                "signInWithPassword",
                {"email": identifier, "password": secret, "returnSecureToken": True},
            )
        except requests.RequestException as e:
            logger.error(f"Sign-in request failed: {e}")
            raise _fail(AuthFailureKind.UNKNOWN)

        if response.status_code != 200:
            code = _error_code(response)
            logger.warning(f"Sign-in rejected: {code or response.status_code}")
            raise _fail(_SIGN_IN_CODES.get(code, AuthFailureKind.UNKNOWN))

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Sign-in response was not JSON: {e}")
            raise _fail(AuthFailureKind.UNKNOWN)
        return User(
            uid=data.get("localId", ""),
            email=data.get("email", identifier),
            id_token=data.get("idToken", ""),
        )

    def sign_out(self) -> None:
        # Tokens are held client-side only; nothing to revoke remotely.
        return None

    def password_reset(self, identifier: str) -> None:
        try:
            response = self._post(
                "sendOobCode", {"requestType": "PASSWORD_RESET", "email": identifier}
            )
        except requests.RequestException as e:
            logger.error(f"Password reset request failed: {e}")
            raise _fail(AuthFailureKind.UNKNOWN, reset=True)

        if response.status_code != 200:
            code = _error_code(response)
            logger.warning(f"Password reset rejected: {code or response.status_code}")
            raise _fail(_RESET_CODES.get(code, AuthFailureKind.UNKNOWN), reset=True)


IdentityListener = Callable[[Optional[User]], None]


class IdentityMonitor:
    """
    Holds the signed-in user and notifies listeners on every change.

    Created once per session holder; the SessionController and any
    presentation layer register through subscribe().
    """

    def __init__(self, provider: IdentityProvider):
        self.provider = provider
        self._user: Optional[User] = None
        self._listeners: List[IdentityListener] = []

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_user(self, user: Optional[User]) -> None:
        self._user = user
        for listener in list(self._listeners):
            try:
                listener(user)
            except Exception:
                logger.exception("Identity listener failed")

    def sign_in(self, identifier: str, secret: str) -> AuthResult:
        identifier = (identifier or "").strip()
        if not identifier or not secret:
            return AuthResult(False, AuthFailureKind.MISSING_SECRET,
                              failure_message(AuthFailureKind.MISSING_SECRET))
        try:
            user = self.provider.sign_in(identifier, secret)
        except AuthFailure as e:
            return AuthResult(False, e.kind, e.message)

        logger.info(f"Signed in: {user.email}")
        self._set_user(user)
        return AuthResult(True)

    def sign_out(self) -> None:
        self.provider.sign_out()
        if self._user is not None:
            logger.info(f"Signed out: {self._user.email}")
        self._set_user(None)

    def password_reset(self, identifier: str) -> AuthResult:
        identifier = (identifier or "").strip()
        if not identifier:
            return AuthResult(False, AuthFailureKind.INVALID_IDENTIFIER,
                              failure_message(AuthFailureKind.INVALID_IDENTIFIER))
        try:
            self.provider.password_reset(identifier)
        except AuthFailure as e:
            return AuthResult(False, e.kind, e.message)
        return AuthResult(True, message=RESET_SENT_MESSAGE)
