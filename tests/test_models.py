"""Tests for the entry and snapshot models."""

import dataclasses

import pytest

from clipstash.models import ClipboardEntry, ClipboardSnapshot, ContentKind


class TestClipboardEntry:
    def test_text_factory(self):
        entry = ClipboardEntry.text("hello")
        assert entry.kind is ContentKind.TEXT
        assert entry.payload == "hello"
        assert entry.image_payload is None
        assert entry.favorite is False
        assert entry.created_at.tzinfo is not None

    def test_ids_are_unique_item_ids(self):
        ids = {ClipboardEntry.text("x").item_id for _ in range(50)}
        assert len(ids) == 50
        assert all(i.startswith("i_") for i in ids)

    def test_kind_accepts_string_value(self):
        entry = ClipboardEntry(kind="image", image_payload=b"\x89PNG")
        assert entry.kind is ContentKind.IMAGE

    @pytest.mark.parametrize("kwargs", [
        {"kind": ContentKind.TEXT},
        {"kind": ContentKind.TEXT, "text_payload": "a", "image_payload": b"b"},
        {"kind": ContentKind.IMAGE, "text_payload": "a"},
        {"kind": ContentKind.IMAGE},
    ])
    def test_payload_must_match_kind(self, kwargs):
        with pytest.raises(ValueError):
            ClipboardEntry(**kwargs)

    def test_immutable(self):
        entry = ClipboardEntry.text("a")
        with pytest.raises(dataclasses.FrozenInstanceError):
            entry.favorite = True

    def test_with_favorite_copies(self):
        entry = ClipboardEntry.text("a")
        fav = entry.with_favorite(True)
        assert fav.favorite is True
        assert entry.favorite is False
        assert fav.item_id == entry.item_id
        assert fav.created_at == entry.created_at

    def test_display_text(self):
        assert ClipboardEntry.text("  spaced out \n\n").display_text == "spaced out"
        assert ClipboardEntry.image(b"data").display_text == "[Image]"

    def test_same_content_ignores_identity(self):
        a = ClipboardEntry.text("same")
        b = ClipboardEntry.text("same", favorite=True)
        assert a.same_content(b)
        assert not a.same_content(ClipboardEntry.text("other"))


class TestClipboardSnapshot:
    def test_empty(self):
        assert ClipboardSnapshot(token=1).is_empty
        assert ClipboardSnapshot(token=1, text="").is_empty
        assert not ClipboardSnapshot(token=1, text="x").is_empty
        assert not ClipboardSnapshot(token=1, image=b"x").is_empty
