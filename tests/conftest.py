"""Shared fixtures for clipstash tests."""

import io
import itertools
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from PIL import Image

# ensure src is importable without installing the package
REPO_ROOT = Path(__file__).resolve().parent.parent
SRC = REPO_ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from clipstash.clipboard.base import ClipboardSource  # noqa: E402
from clipstash.database import HistoryStore  # noqa: E402
from clipstash.models import ClipboardEntry  # noqa: E402

BASE_TIME = datetime(2026, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


class FakeClipboard(ClipboardSource):
    """In-memory clipboard whose change counter moves on every copy."""

    def __init__(self, text=None, image=None):
        self._counter = itertools.count(1)
        self.token = 0
        self.text = text
        self.image = image
        self.written = []
        self.fail_reads = False

    def copy_text(self, text):
        self.text, self.image = text, None
        self.token = next(self._counter)

    def copy_image(self, data):
        self.text, self.image = None, data
        self.token = next(self._counter)

    def change_token(self):
        if self.fail_reads:
            raise OSError("clipboard locked")
        return self.token

    def read(self):
        if self.fail_reads:
            raise OSError("clipboard locked")
        return self.text, self.image

    def _write_text(self, text):
        self.written.append(text)
        self.copy_text(text)
        return True

    def _write_image(self, png):
        self.written.append(png)
        self.copy_image(png)
        return True


def make_image_bytes(fmt="PNG", color=(255, 0, 0), size=(4, 4)):
    output = io.BytesIO()
    Image.new("RGB", size, color).save(output, format=fmt)
    return output.getvalue()


@pytest.fixture
def store(tmp_path):
    """File-backed history store with the default capacity."""
    s = HistoryStore(tmp_path / "history.sqlite3")
    yield s
    s.close()


@pytest.fixture
def small_store(tmp_path):
    s = HistoryStore(tmp_path / "small.sqlite3", max_items=2)
    yield s
    s.close()


@pytest.fixture
def text_entry():
    """Factory for text entries ``minutes`` after a fixed base time."""
    def factory(content, minutes=0, favorite=False):
        return ClipboardEntry.text(
            content,
            favorite=favorite,
            created_at=BASE_TIME + timedelta(minutes=minutes),
        )
    return factory


@pytest.fixture
def fake_clipboard():
    return FakeClipboard()
