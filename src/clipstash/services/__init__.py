"""Service layer for clipstash."""

from .capture_policy import CaptureOutcome, CapturePolicy, CaptureResult, classify
from .clipboard_service import ClipboardService
from .hotkey_service import HotkeyService

__all__ = [
    "CaptureOutcome",
    "CapturePolicy",
    "CaptureResult",
    "classify",
    "ClipboardService",
    "HotkeyService",
]
