import logging
from abc import ABC, abstractmethod
from typing import Hashable, Optional, Tuple

from clipstash.models.clipboarditem import ClipboardEntry, ContentKind

logger = logging.getLogger(__name__)


class ClipboardSource(ABC):
    """Platform clipboard access.

    ``change_token`` is cheap and polled every cycle; ``read`` fetches the
    contents as ``(text, image_bytes)`` and is only called once the token
    moved.
    """

    @abstractmethod
    def change_token(self) -> Hashable:
        pass

    @abstractmethod
    def read(self) -> Tuple[Optional[str], Optional[bytes]]:
        pass

    @abstractmethod
    def _write_text(self, text: str) -> bool:
        pass

    @abstractmethod
    def _write_image(self, png: bytes) -> bool:
        pass

    def write(self, entry: ClipboardEntry) -> bool:
        """Put ``entry`` back on the system clipboard."""
        try:
            if entry.kind is ContentKind.TEXT:
                return self._write_text(entry.text_payload)
            return self._write_image(entry.image_payload)
        except Exception:
            logger.exception("Failed to write %s entry %s to clipboard", entry.kind.value, entry.item_id)
            return False
