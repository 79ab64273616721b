import io
import logging
import time
from typing import Optional, Tuple

import win32clipboard as wc
import win32con
from PIL import Image, ImageGrab

from clipstash.clipboard.base import ClipboardSource

logger = logging.getLogger(__name__)


class WindowsClipboard(ClipboardSource):

    def change_token(self) -> int:
        return wc.GetClipboardSequenceNumber()

    def _open(self) -> bool:
        for _ in range(3):
            try:
                wc.OpenClipboard()
                return True
            except Exception:
                time.sleep(0.05)
        logger.debug("Clipboard is locked by another process")
        return False

    def read(self) -> Tuple[Optional[str], Optional[bytes]]:
        text = self._read_text()
        if text:
            return text, None
        return None, self._from_imagegrab()

    def _read_text(self) -> Optional[str]:
        if not self._open():
            return None
        try:
            if wc.IsClipboardFormatAvailable(wc.CF_UNICODETEXT):
                return wc.GetClipboardData(wc.CF_UNICODETEXT)
            return None
        finally:
            wc.CloseClipboard()

    def _from_imagegrab(self) -> Optional[bytes]:
        try:
            clipboard_data = ImageGrab.grabclipboard()
        except OSError as exc:
            logger.debug("ImageGrab failed: %s", exc)
            return None

        # a list means copied files, which are not history content
        if clipboard_data is None or isinstance(clipboard_data, (list, tuple)):
            return None

        output = io.BytesIO()
        clipboard_data.save(output, format="PNG")
        return output.getvalue()

    def _write_text(self, text: str) -> bool:
        if not self._open():
            return False
        try:
            wc.EmptyClipboard()
            wc.SetClipboardText(text, wc.CF_UNICODETEXT)
            return True
        finally:
            wc.CloseClipboard()

    def _write_image(self, png: bytes) -> bool:
        output = io.BytesIO()
        Image.open(io.BytesIO(png)).convert("RGB").save(output, format="BMP")
        # CF_DIB takes the bitmap without its 14 byte file header
        dib = output.getvalue()[14:]

        if not self._open():
            return False
        try:
            wc.EmptyClipboard()
            wc.SetClipboardData(win32con.CF_DIB, dib)
            return True
        finally:
            wc.CloseClipboard()
