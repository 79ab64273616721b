import logging
from typing import Optional, Tuple

try:
    from AppKit import NSPasteboard, NSPasteboardTypePNG, NSPasteboardTypeString, NSPasteboardTypeTIFF
    from Foundation import NSData
    HAS_APPKIT = True
except ImportError:
    HAS_APPKIT = False

from clipstash.clipboard.base import ClipboardSource

logger = logging.getLogger(__name__)


class MacOSClipboard(ClipboardSource):
    """NSPasteboard access; ``changeCount`` is the change token."""

    def __init__(self) -> None:
        if not HAS_APPKIT:
            raise RuntimeError("pyobjc (AppKit) is required for clipboard access on macOS")
        self._pasteboard = NSPasteboard.generalPasteboard()

    def change_token(self) -> int:
        return int(self._pasteboard.changeCount())

    def read(self) -> Tuple[Optional[str], Optional[bytes]]:
        types = self._pasteboard.types() or []

        if NSPasteboardTypeString in types:
            text = self._pasteboard.stringForType_(NSPasteboardTypeString)
            if text:
                return str(text), None

        for pb_type in (NSPasteboardTypePNG, NSPasteboardTypeTIFF):
            if pb_type in types:
                data = self._pasteboard.dataForType_(pb_type)
                if data:
                    return None, bytes(data)

        return None, None

    def _write_text(self, text: str) -> bool:
        self._pasteboard.clearContents()
        return bool(self._pasteboard.setString_forType_(text, NSPasteboardTypeString))

    def _write_image(self, png: bytes) -> bool:
        data = NSData.dataWithBytes_length_(png, len(png))
        self._pasteboard.clearContents()
        return bool(self._pasteboard.setData_forType_(data, NSPasteboardTypePNG))
