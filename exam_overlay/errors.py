"""
errors.py

Domain exceptions. Answer-service failures and attachment decode problems
are absent on purpose: both degrade to a value instead of raising.
"""

class OverlayError(Exception):
    """Base class for every error raised by the overlay core."""


class ConfigValidationError(OverlayError, ValueError):
    """response_style is not valid for the configured exam_type."""

    def __init__(self, exam_type: str, response_style: str):
        self.exam_type = exam_type
        self.response_style = response_style
        super().__init__(
            f"response_style '{response_style}' is not allowed for exam_type '{exam_type}'"
        )


class CaptureLimitError(OverlayError):
    """The attachment staging buffer is full."""


class SessionStateError(OverlayError):
    """The operation is not available in the controller's current mode."""


class AuthFailure(OverlayError):
    """
    Identity provider failure.

    Attributes:
        kind:    AuthFailureKind value.
        message: fixed user-facing message for that kind.
    """

    def __init__(self, kind, message: str):
        self.kind = kind
        self.message = message
        super().__init__(message)
