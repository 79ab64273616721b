import hashlib
import logging
import os
import shutil
import subprocess
from typing import Callable, List, Optional, Tuple

from clipstash.clipboard.base import ClipboardSource

logger = logging.getLogger(__name__)


class LinuxClipboard(ClipboardSource):
    """Clipboard access through ``wl-paste``/``wl-copy`` or ``xclip``.

    Neither tool exposes a change counter, so the token is a digest of the
    current contents and re-copying identical content does not register as
    a change here.
    """

    _IMAGE_TARGETS = (
        "image/png",
        "image/jpeg",
        "image/jpg",
        "image/bmp",
        "image/x-ms-bmp",
        "image/webp",
        "image/tiff",
    )
    _TEXT_TARGETS = (
        "text/plain;charset=utf-8",
        "utf8_string",
        "text/plain",
        "string",
    )

    def __init__(self) -> None:
        self._cached: Optional[Tuple[Optional[str], Optional[bytes]]] = None

    def change_token(self) -> str:
        self._cached = self._read_clipboard()
        text, image = self._cached
        digest = hashlib.sha1()
        if text:
            digest.update(b"text:" + text.encode("utf-8"))
        elif image:
            digest.update(b"image:" + image)
        return digest.hexdigest()

    def read(self) -> Tuple[Optional[str], Optional[bytes]]:
        cached, self._cached = self._cached, None
        if cached is not None:
            return cached
        return self._read_clipboard()

    def _read_clipboard(self) -> Tuple[Optional[str], Optional[bytes]]:
        strategies = (
            self._from_wayland,
            self._from_xclip,
        )

        for strategy in strategies:
            text, image = strategy() or (None, None)
            if text is not None or image is not None:
                return text, image
        return None, None

    def _from_wayland(self) -> Optional[Tuple[Optional[str], Optional[bytes]]]:
        if not os.environ.get("WAYLAND_DISPLAY") or not shutil.which("wl-paste"):
            return None

        types = self._parse_type_list(
            self._run_command(["wl-paste", "--list-types"], timeout=1.5)
        )

        def reader(target: str) -> Optional[bytes]:
            command = ["wl-paste", "--type", target]
            if target.lower().startswith("text/"):
                command.append("--no-newline")
            return self._run_command(command, timeout=1.5)

        return self._extract_from_types(types, reader)

    def _from_xclip(self) -> Optional[Tuple[Optional[str], Optional[bytes]]]:
        if not shutil.which("xclip"):
            return None

        types = self._parse_type_list(
            self._run_command(
                ["xclip", "-selection", "clipboard", "-t", "TARGETS", "-o"],
                timeout=1.5,
            )
        )

        def reader(target: str) -> Optional[bytes]:
            return self._run_command(
                ["xclip", "-selection", "clipboard", "-t", target, "-o"],
                timeout=1.5,
            )

        return self._extract_from_types(types, reader)

    def _extract_from_types(
        self,
        types: List[str],
        reader: Callable[[str], Optional[bytes]],
    ) -> Tuple[Optional[str], Optional[bytes]]:
        available = {target.lower(): target for target in types}

        # text wins over images when both are offered
        for target in self._TEXT_TARGETS:
            if target in available:
                data = reader(available[target])
                if data:
                    text = data.decode("utf-8", errors="replace")
                    if text:
                        return text, None

        for target in self._IMAGE_TARGETS:
            if target in available:
                data = reader(available[target])
                if data:
                    return None, data

        return None, None

    def _parse_type_list(self, data: Optional[bytes]) -> List[str]:
        if not data:
            return []
        text = data.decode("utf-8", errors="ignore")
        return [line.strip() for line in text.splitlines() if line.strip()]

    def _run_command(self, command: List[str], timeout: float) -> Optional[bytes]:
        try:
            result = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=True,
                timeout=timeout,
            )
            return result.stdout
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError) as exc:
            logger.debug("Clipboard command %s failed: %s", command[0], exc)
            return None

    def _copy(self, mime: str, payload: bytes) -> bool:
        if os.environ.get("WAYLAND_DISPLAY") and shutil.which("wl-copy"):
            command = ["wl-copy", "--type", mime]
        elif shutil.which("xclip"):
            command = ["xclip", "-selection", "clipboard", "-t", mime, "-i"]
        else:
            logger.warning("Neither wl-copy nor xclip is available")
            return False
        try:
            # both tools fork to keep serving the selection, so do not hold their pipes
            subprocess.run(
                command,
                input=payload,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=True,
                timeout=2.0,
            )
            return True
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError) as exc:
            logger.warning("Could not set clipboard with %s: %s", command[0], exc)
            return False

    def _write_text(self, text: str) -> bool:
        return self._copy("text/plain;charset=utf-8", text.encode("utf-8"))

    def _write_image(self, png: bytes) -> bool:
        return self._copy("image/png", png)
