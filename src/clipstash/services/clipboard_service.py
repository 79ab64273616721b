"""Clipboard polling service.

Polls the platform change token at a fixed interval and hands every new
clipboard state to the capture policy.
"""

import logging
import threading
from typing import Callable, Optional

from clipstash.clipboard.base import ClipboardSource
from clipstash.models.clipboarditem import ClipboardEntry, ClipboardSnapshot
from clipstash.models.errors import WriteFailed
from clipstash.services.capture_policy import CaptureOutcome, CapturePolicy, CaptureResult

logger = logging.getLogger(__name__)

_UNSET = object()


class ClipboardService:
    """Background poller feeding clipboard changes into the history store."""

    def __init__(
        self,
        source: ClipboardSource,
        policy: CapturePolicy,
        on_capture: Optional[Callable[[ClipboardEntry], None]] = None,
        poll_interval: float = 0.5,
        auto_register: bool = False,
    ) -> None:
        """Initialise the service.

        Args:
            source: Platform clipboard to poll.
            policy: Decides what gets stored.
            on_capture: Optional callback receiving each newly stored entry.
            poll_interval: Seconds between change-token checks.
            auto_register: When ``True`` polling starts immediately.
        """
        self._source = source
        self._policy = policy
        self._on_capture = on_capture or self._default_handler
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._poll_thread: Optional[threading.Thread] = None
        self._is_running = False
        self._last_token = _UNSET
        self.poll_interval = poll_interval

        if auto_register:
            self.start()

    # ---------------------------------------------------------------------
    # Lifecycle management
    # ---------------------------------------------------------------------
    @property
    def is_running(self) -> bool:
        return self._is_running

    def start(self) -> None:
        """Start background polling of the clipboard.

        Whatever is on the clipboard at start-up is treated as already seen.
        """
        with self._lock:
            if self._is_running:
                logger.debug("ClipboardService already running")
                return

            logger.info("Starting ClipboardService polling (interval=%ss)", self.poll_interval)
            self._stop_event.clear()
            self._is_running = True
            self.prime()
            self._poll_thread = threading.Thread(
                target=self._poll_loop, name="clipstash-poller", daemon=True)
            self._poll_thread.start()

    def stop(self) -> None:
        """Stop the background polling thread."""
        with self._lock:
            if not self._is_running:
                return

            logger.info("Stopping ClipboardService polling")
            self._is_running = False
            self._stop_event.set()

        # join thread outside the lock
        if self._poll_thread is not None:
            self._poll_thread.join(timeout=max(1.0, self.poll_interval * 2))
            self._poll_thread = None

    def run_forever(self) -> None:
        """Poll in the foreground until `stop()` is called or Ctrl+C is pressed."""
        try:
            if not self._is_running:
                self.start()

            while not self._stop_event.wait(timeout=self.poll_interval):
                continue
        except KeyboardInterrupt:
            logger.info("ClipboardService interrupted by user")
        finally:
            self.stop()

    # ---------------------------------------------------------------------
    # Polling
    # ---------------------------------------------------------------------
    def prime(self) -> None:
        """Record the current change token without capturing anything."""
        try:
            self._last_token = self._source.change_token()
        except Exception:
            logger.debug("Could not read initial clipboard token", exc_info=True)
            self._last_token = _UNSET

    def poll_once(self) -> Optional[CaptureResult]:
        """Check the clipboard once.

        Returns None when nothing changed or the clipboard could not be read.
        ``WriteFailed`` from the store propagates to the caller.
        """
        with self._lock:
            try:
                token = self._source.change_token()
            except Exception:
                logger.debug("Clipboard token unavailable; skipping cycle", exc_info=True)
                return None

            if self._last_token is _UNSET:
                self._last_token = token
                return None
            if token == self._last_token:
                return None
            self._last_token = token

            try:
                text, image = self._source.read()
            except Exception:
                logger.debug("Clipboard read failed; skipping cycle", exc_info=True)
                return None

            result = self._policy.process(ClipboardSnapshot(token=token, text=text, image=image))

        if result.outcome is CaptureOutcome.STORED:
            try:
                self._on_capture(result.entry)
            except Exception:
                logger.exception("Error while calling on_capture")
        return result

    def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except WriteFailed as exc:
                # the next distinct clipboard change will try again
                logger.error("Clipboard entry not saved: %s", exc)
            except Exception:
                logger.exception("Unexpected error in clipboard poll loop")

            self._stop_event.wait(self.poll_interval)

    @staticmethod
    def _default_handler(entry: ClipboardEntry) -> None:
        logger.debug("Stored %s | preview=%r", entry.item_id, entry.display_text[:60])

    # ---------------------------------------------------------------------
    # Context manager helpers
    # ---------------------------------------------------------------------
    def __enter__(self) -> "ClipboardService":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
