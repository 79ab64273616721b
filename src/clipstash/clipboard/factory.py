import platform
from typing import Type

from clipstash.clipboard.base import ClipboardSource


def get_clipboard_class() -> Type[ClipboardSource]:
    system = platform.system()

    if system == "Windows":
        from clipstash.clipboard.windows import WindowsClipboard
        return WindowsClipboard
    elif system == "Linux":
        from clipstash.clipboard.linux import LinuxClipboard
        return LinuxClipboard
    elif system == "Darwin":
        from clipstash.clipboard.macos import MacOSClipboard
        return MacOSClipboard
    else:
        raise NotImplementedError(f"Platform '{system}' is not supported")


def get_clipboard_source() -> ClipboardSource:
    clipboard_class = get_clipboard_class()
    return clipboard_class()
