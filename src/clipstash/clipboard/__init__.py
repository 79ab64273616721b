from clipstash.clipboard.base import ClipboardSource
from clipstash.clipboard.factory import get_clipboard_class, get_clipboard_source
from clipstash.clipboard.imaging import to_png

__all__ = [
    'ClipboardSource',
    'get_clipboard_class',
    'get_clipboard_source',
    'to_png',
]
