"""Turns clipboard snapshots into history entries.

Text takes precedence over images. Images are re-encoded to PNG before they
are compared or stored so the same picture offered in different formats is
recognised as a repeat of the previous entry.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from clipstash.clipboard.imaging import to_png
from clipstash.models.clipboarditem import ClipboardEntry, ClipboardSnapshot

logger = logging.getLogger(__name__)


class CaptureOutcome(enum.Enum):
    STORED = "stored"
    DUPLICATE = "duplicate"
    EMPTY = "empty"


@dataclass(frozen=True)
class CaptureResult:
    outcome: CaptureOutcome
    entry: Optional[ClipboardEntry] = None


def classify(snapshot: ClipboardSnapshot) -> Optional[ClipboardEntry]:
    # text is stored untrimmed; trimming only happens for display
    if snapshot.text:
        return ClipboardEntry.text(snapshot.text)

    if snapshot.image:
        png = to_png(snapshot.image)
        if png is not None:
            return ClipboardEntry.image(png)
        logger.debug("Ignoring undecodable image on clipboard (token=%r)", snapshot.token)

    return None


class CapturePolicy:

    def __init__(self, store) -> None:
        self.store = store

    def process(self, snapshot: ClipboardSnapshot) -> CaptureResult:
        """Store ``snapshot`` unless it is empty or repeats the latest entry.

        ``WriteFailed`` from the store propagates; nothing is retried.
        """
        candidate = classify(snapshot)
        if candidate is None:
            return CaptureResult(CaptureOutcome.EMPTY)

        if self.store.is_duplicate_of_most_recent(candidate):
            logger.debug("Skipping duplicate %s clipboard content", candidate.kind.value)
            return CaptureResult(CaptureOutcome.DUPLICATE)

        self.store.insert(candidate)
        logger.info("Clipboard captured: %s", candidate.kind.value)
        return CaptureResult(CaptureOutcome.STORED, candidate)
