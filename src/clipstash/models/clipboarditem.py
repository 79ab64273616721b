import dataclasses
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Hashable, Optional

from ulid import ULID


class ContentKind(str, enum.Enum):
    TEXT = "text"
    IMAGE = "image"


def new_item_id() -> str:
    return f"i_{ULID()}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ClipboardEntry:
    """Immutable clipboard history entry.

    Exactly one of ``text_payload``/``image_payload`` is set and it matches
    ``kind``. The only mutable attribute, ``favorite``, is changed by
    producing a copy via :meth:`with_favorite`.
    """
    kind: ContentKind
    text_payload: Optional[str] = None
    image_payload: Optional[bytes] = None
    favorite: bool = False
    item_id: str = field(default_factory=new_item_id)
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        kind = ContentKind(self.kind)
        object.__setattr__(self, "kind", kind)

        if kind is ContentKind.TEXT:
            if not isinstance(self.text_payload, str) or self.image_payload is not None:
                raise ValueError("text entries carry a str payload and no image data")
        else:
            if not isinstance(self.image_payload, (bytes, bytearray)) or self.text_payload is not None:
                raise ValueError("image entries carry a bytes payload and no text")
            object.__setattr__(self, "image_payload", bytes(self.image_payload))

    @classmethod
    def text(cls, content: str, **kwargs: Any) -> "ClipboardEntry":
        return cls(kind=ContentKind.TEXT, text_payload=content, **kwargs)

    @classmethod
    def image(cls, data: bytes, **kwargs: Any) -> "ClipboardEntry":
        return cls(kind=ContentKind.IMAGE, image_payload=data, **kwargs)

    @property
    def payload(self):
        if self.kind is ContentKind.TEXT:
            return self.text_payload
        return self.image_payload

    @property
    def display_text(self) -> str:
        if self.kind is ContentKind.TEXT:
            return self.text_payload.strip()
        return "[Image]"

    def same_content(self, other: "ClipboardEntry") -> bool:
        return self.kind is other.kind and self.payload == other.payload

    def with_favorite(self, value: bool) -> "ClipboardEntry":
        return dataclasses.replace(self, favorite=bool(value))


@dataclass(frozen=True)
class ClipboardSnapshot:
    """Raw clipboard contents as read from a source, tagged with its change token.

    ``image`` holds the bytes exactly as the platform exposed them; they are
    normalized before an entry is built.
    """
    token: Hashable
    text: Optional[str] = None
    image: Optional[bytes] = None

    @property
    def is_empty(self) -> bool:
        return not self.text and not self.image
