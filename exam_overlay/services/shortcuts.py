"""
Process-wide keyboard shortcuts for the overlay.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from exam_overlay.models.session_state import SessionMode

logger = logging.getLogger(__name__)


class ShortcutAction(Enum):
    """Semantic actions a key press can trigger."""
    PANIC = "panic"
    CLEAR_TRANSCRIPT = "clear_transcript"
    SIGN_OUT = "sign_out"


@dataclass(frozen=True)
class KeyEvent:
    """Browser-style key event: `key` is the logical key, `code` the physical one."""
    key: str = ""
    code: str = ""
    ctrl: bool = False
    alt: bool = False
    shift: bool = False


def resolve_shortcut(event: KeyEvent) -> Optional[ShortcutAction]:
    """Map a key event to an action. Returns None if it is not a shortcut."""
    if event.key == "Escape":
        return ShortcutAction.PANIC
    if event.ctrl and event.alt and event.code == "KeyQ":
        return ShortcutAction.SIGN_OUT
    if event.ctrl and not event.alt and event.code == "KeyL":
        return ShortcutAction.CLEAR_TRANSCRIPT
    return None


class ShortcutDispatcher:
    """
    Dispatch shortcut actions to the session and identity.

    Args:
        controller: SessionController of the current user.
        identity:   IdentityMonitor of the current user.
        terminate:  Closes the presentation surface; best effort.
    """

    def __init__(self, controller, identity, terminate: Optional[Callable[[], None]] = None):
        self.controller = controller
        self.identity = identity
        self.terminate = terminate

    def dispatch(self, action: ShortcutAction) -> bool:
        """Run an action. Returns True when it had an effect."""
        if action == ShortcutAction.PANIC:
            if self.terminate is None:
                return False
            try:
                self.terminate()
            except Exception as e:
                logger.debug(f"Close blocked: {e}")
                return False
            return True

        if action == ShortcutAction.CLEAR_TRANSCRIPT:
            if self.controller.mode != SessionMode.CHAT:
                return False
            self.controller.reset()
            return True

        if action == ShortcutAction.SIGN_OUT:
            self.identity.sign_out()
            return True

        return False

    def handle_key(self, event: KeyEvent) -> tuple[Optional[ShortcutAction], bool]:
        """
        Handle a key press. Returns (action, handled).
        If the key is not a shortcut, returns (None, False).
        """
        action = resolve_shortcut(event)
        if action is None:
            return (None, False)
        return (action, self.dispatch(action))
