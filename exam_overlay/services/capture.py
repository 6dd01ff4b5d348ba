"""
services/capture.py

Paste capture and the attachment staging buffer.
The buffer is bounded by count and by total decoded size.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

import config as settings
from exam_overlay.errors import CaptureLimitError
from exam_overlay.models.session_state import Attachment
from exam_overlay.services import attachment_codec

logger = logging.getLogger(__name__)


@dataclass
class ClipboardItem:
    """One item of a paste event."""
    mime_type: str
    data: Optional[bytes] = None

    @property
    def is_image(self) -> bool:
        return "image" in (self.mime_type or "")


@dataclass
class PasteOutcome:
    """What the last paste event did with its image items."""
    staged: int = 0
    skipped: int = 0
    reason: str = ""


class CaptureBuffer:
    """Staged images waiting for the next submission."""

    def __init__(
        self,
        max_count: int = settings.MAX_STAGED_ATTACHMENTS,
        max_bytes: int = settings.MAX_STAGED_BYTES,
    ):
        self.max_count = max_count
        self.max_bytes = max_bytes
        self._staged: List[Attachment] = []
        self.last_paste = PasteOutcome()

    @property
    def staged(self) -> List[Attachment]:
        return list(self._staged)

    @property
    def total_bytes(self) -> int:
        return sum(a.size for a in self._staged)

    def __len__(self) -> int:
        return len(self._staged)

    def stage(self, source: str) -> Attachment:
        """
        Stage one captured image (data URL).

        Raises:
            CaptureLimitError: count or size cap would be exceeded.
        """
        decoded = attachment_codec.decode(source)
        attachment = Attachment(
            source=source,
            mime_type=decoded.mime,
            size=attachment_codec.payload_size(decoded.payload),
        )
        if len(self._staged) >= self.max_count:
            raise CaptureLimitError(f"At most {self.max_count} images can be attached.")
        if self.total_bytes + attachment.size > self.max_bytes:
            raise CaptureLimitError(
                f"Attached images exceed {self.max_bytes // (1024 * 1024)}MB."
            )
        self._staged.append(attachment)
        return attachment

    def handle_paste(self, items: Iterable[ClipboardItem]) -> bool:
        """
        Stage every image item of a paste event.

        Returns:
            True when at least one image item was present, meaning the
            default paste action must be suppressed. Counts of staged and
            skipped images are kept in last_paste.
        """
        found_image = False
        outcome = PasteOutcome()
        for item in items:
            if not item.is_image:
                continue
            found_image = True
            if not item.data:
                continue
            try:
                self.stage(attachment_codec.encode(item.mime_type, item.data))
                outcome.staged += 1
            except CaptureLimitError as e:
                logger.warning(f"Pasted image skipped: {e}")
                outcome.skipped += 1
                outcome.reason = str(e)
        self.last_paste = outcome
        return found_image

    def discard(self, index: int) -> Attachment:
        """Drop a staged image before sending. Raises IndexError for a bad index."""
        if not 0 <= index < len(self._staged):
            raise IndexError(f"No staged attachment at index {index}")
        return self._staged.pop(index)

    def take(self) -> List[str]:
        """Hand the staged sources to a submission and empty the buffer."""
        sources = [a.source for a in self._staged]
        self._staged.clear()
        return sources

    def clear(self) -> None:
        self._staged.clear()
