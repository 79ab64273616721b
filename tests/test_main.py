"""Tests for the app wiring and the command line."""

import time

import pytest
from dotenv import dotenv_values

from clipstash.database import HistoryStore, NullHistoryStore
from clipstash.main import ClipStashApp, format_entry, main, parse_args
from clipstash.models import ClipboardEntry
from clipstash.utils.config import Settings

from test_hotkey_service import FakeKeyboard


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    for name in Settings.model_fields:
        monkeypatch.delenv("CLIPSTASH_" + name.upper(), raising=False)
    return tmp_path / "data"


@pytest.fixture
def seeded(data_dir, text_entry):
    entries = [
        text_entry("alpha", 0),
        text_entry("Beta release", 1, favorite=True),
        text_entry("gamma", 2),
    ]
    with HistoryStore(data_dir / "clipboard.sqlite3") as store:
        for entry in entries:
            store.insert(entry)
    return entries


def run_cli(data_dir, *args):
    return main(["--data-dir", str(data_dir), *args])


def test_format_entry():
    line = format_entry(ClipboardEntry.text("  multi\nline   text ", favorite=True))
    assert line.startswith("* i_")
    assert line.endswith("multi line text")


def test_format_entry_truncates():
    line = format_entry(ClipboardEntry.text("x" * 200), width=20)
    assert line.endswith("x" * 17 + "...")


def test_default_command_is_run():
    assert parse_args([]).command == "run"


def test_recent(seeded, data_dir, capsys):
    assert run_cli(data_dir, "recent", "-n", "2") == 0
    out = capsys.readouterr().out.splitlines()
    assert len(out) == 2
    assert out[0].endswith("gamma")
    assert out[1].endswith("Beta release")


def test_search(seeded, data_dir, capsys):
    assert run_cli(data_dir, "search", "BETA") == 0
    out = capsys.readouterr().out.splitlines()
    assert len(out) == 1 and out[0].endswith("Beta release")


def test_search_favorites_only(seeded, data_dir, capsys):
    assert run_cli(data_dir, "search", "a", "--favorites") == 0
    out = capsys.readouterr().out.splitlines()
    assert [line.split()[-1] for line in out] == ["release"]


def test_favorite_and_clear(seeded, data_dir, capsys):
    alpha = seeded[0]
    assert run_cli(data_dir, "favorite", alpha.item_id) == 0
    assert run_cli(data_dir, "clear") == 0
    assert "Removed 1 entries" in capsys.readouterr().out
    with HistoryStore(data_dir / "clipboard.sqlite3") as store:
        assert {e.text_payload for e in store.all_items()} == {"alpha", "Beta release"}


def test_favorite_unknown_id(seeded, data_dir):
    assert run_cli(data_dir, "favorite", "i_missing") == 1


def test_toggle(seeded, data_dir, capsys):
    assert run_cli(data_dir, "toggle", seeded[1].item_id) == 0
    assert capsys.readouterr().out.strip() == "not favorite"
    assert run_cli(data_dir, "toggle", "i_missing") == 1


def test_unusable_data_dir(tmp_path, monkeypatch):
    for name in Settings.model_fields:
        monkeypatch.delenv("CLIPSTASH_" + name.upper(), raising=False)
    blocker = tmp_path / "file"
    blocker.write_text("x")
    assert main(["--data-dir", str(blocker), "recent"]) == 1


def test_invalid_setting(data_dir):
    assert main(["--data-dir", str(data_dir), "--max-items", "0", "recent"]) == 2


class TestApp:
    def make_app(self, data_dir, fake_clipboard, **kwargs):
        settings = Settings(data_dir=data_dir, poll_interval=0.01, popup_limit=5)
        return ClipStashApp(settings, source=fake_clipboard, **kwargs)

    def test_capture_and_popup(self, data_dir, fake_clipboard):
        shown = []
        keyboard = FakeKeyboard()
        app = self.make_app(data_dir, fake_clipboard, hotkey_backend=keyboard, on_popup=shown.append)
        app.start()
        try:
            fake_clipboard.copy_text("from the app")
            deadline = time.monotonic() + 3
            while app.store.count() == 0 and time.monotonic() < deadline:
                time.sleep(0.01)
            keyboard.press("ctrl+`")
        finally:
            app.stop()

        assert [e.text_payload for e in shown[0]] == ["from the app"]
        assert keyboard.hotkeys == {}

    def test_runs_without_hotkey(self, data_dir, fake_clipboard):
        app = self.make_app(data_dir, fake_clipboard, hotkey_backend=FakeKeyboard(fail_with=ImportError("root")))
        app.start()
        try:
            assert app.clipboard_service.is_running
            assert not app.hotkey_service.registered
        finally:
            app.stop()

    def test_falls_back_to_empty_store(self, tmp_path, fake_clipboard):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        app = self.make_app(blocker, fake_clipboard, enable_hotkey=False)
        app.start()
        try:
            assert isinstance(app.store, NullHistoryStore)
            assert app.popup_items() == []
        finally:
            app.stop()

    def test_restore(self, data_dir, fake_clipboard):
        store = HistoryStore(data_dir / "clipboard.sqlite3")
        entry = ClipboardEntry.text("bring me back")
        store.insert(entry)
        app = self.make_app(data_dir, fake_clipboard, store=store, enable_hotkey=False)
        try:
            assert app.restore(entry.item_id) is True
            assert app.restore("i_missing") is False
        finally:
            store.close()
        assert fake_clipboard.written == ["bring me back"]

    def test_change_hotkey_rebinds_and_saves(self, data_dir, fake_clipboard, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        shown = []
        keyboard = FakeKeyboard()
        app = self.make_app(data_dir, fake_clipboard, hotkey_backend=keyboard, on_popup=shown.append)
        app.start()
        try:
            assert app.change_hotkey("alt+v") is True
            keyboard.press("ctrl+`")
            keyboard.press("alt+v")
        finally:
            app.stop()

        assert len(shown) == 1
        assert dotenv_values(tmp_path / ".env") == {"CLIPSTASH_HOTKEY": "alt+v"}


def test_set_hotkey_is_saved(data_dir, tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert run_cli(data_dir, "set-hotkey", "ctrl+shift+v") == 0
    assert "Hotkey saved" in capsys.readouterr().out
    assert dotenv_values(tmp_path / ".env") == {"CLIPSTASH_HOTKEY": "ctrl+shift+v"}
