from clipstash.models.clipboarditem import ClipboardEntry, ClipboardSnapshot, ContentKind
from clipstash.models.errors import InitFailed, ReadFailed, StorageError, WriteFailed

__all__ = [
    'ClipboardEntry',
    'ClipboardSnapshot',
    'ContentKind',
    'StorageError',
    'InitFailed',
    'WriteFailed',
    'ReadFailed',
]
