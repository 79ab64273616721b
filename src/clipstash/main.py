#!/usr/bin/env python3

import argparse
import logging
import signal
import sys
import time
from typing import Callable, List, Optional

from pydantic import ValidationError

from clipstash.clipboard import ClipboardSource, get_clipboard_source
from clipstash.database import HistoryStore, open_history_store
from clipstash.models import ClipboardEntry, StorageError
from clipstash.services import CapturePolicy, ClipboardService, HotkeyService
from clipstash.utils.config import Settings, save_setting

logger = logging.getLogger(__name__)


def format_entry(entry: ClipboardEntry, width: int = 70) -> str:
    star = "*" if entry.favorite else " "
    preview = " ".join(entry.display_text.split())
    if len(preview) > width:
        preview = preview[: width - 3] + "..."
    stamp = entry.created_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")
    return f"{star} {entry.item_id}  {stamp}  {preview}"


class ClipStashApp:
    """Owns the history store and wires the poller and hotkey to it."""

    def __init__(
        self,
        settings: Settings,
        store=None,
        source: Optional[ClipboardSource] = None,
        enable_hotkey: bool = True,
        hotkey_backend=None,
        on_popup: Optional[Callable[[List[ClipboardEntry]], None]] = None,
    ):
        self.settings = settings
        self.store = store
        self.source = source
        self.enable_hotkey = enable_hotkey
        self.hotkey_backend = hotkey_backend
        self.on_popup = on_popup or self._log_popup
        self.clipboard_service: Optional[ClipboardService] = None
        self.hotkey_service: Optional[HotkeyService] = None
        self.running = False

    def start(self):
        if self.running:
            return

        self.running = True
        if self.store is None:
            self.store = open_history_store(self.settings)

        if self.source is None:
            try:
                self.source = get_clipboard_source()
            except (NotImplementedError, RuntimeError) as e:
                logger.warning(f"Clipboard capture unavailable: {e}")

        if self.source is not None:
            self.clipboard_service = ClipboardService(
                source=self.source,
                policy=CapturePolicy(self.store),
                poll_interval=self.settings.poll_interval,
            )
            self.clipboard_service.start()

        if self.enable_hotkey:
            self.hotkey_service = HotkeyService(
                callback=self.show_popup,
                hotkey=self.settings.hotkey,
                backend=self.hotkey_backend,
            )
            if not self.hotkey_service.register():
                logger.warning("Running without a global shortcut")

        logger.info("clipstash running (history at %s)", self.settings.db_path)

    def stop(self):
        if not self.running:
            return

        self.running = False
        if self.hotkey_service:
            self.hotkey_service.unregister()
        if self.clipboard_service:
            self.clipboard_service.stop()
        if self.store is not None:
            self.store.close()
        logger.info("clipstash stopped")

    def run_forever(self):
        self.start()

        try:
            while self.running:
                time.sleep(1.0)
        except KeyboardInterrupt:
            logger.info("Stopping...")
        finally:
            self.stop()

    # ------------------------------------------------------------------
    # Popup consumer
    # ------------------------------------------------------------------
    def popup_items(self, query: str = "", favorites_only: bool = False) -> List[ClipboardEntry]:
        return self.store.search(query, self.settings.popup_limit, favorites_only=favorites_only)

    def show_popup(self):
        self.on_popup(self.popup_items())

    @staticmethod
    def _log_popup(entries: List[ClipboardEntry]):
        if not entries:
            logger.info("Clipboard history is empty")
            return
        for entry in entries:
            logger.info(format_entry(entry))

    def restore(self, item_id: str) -> bool:
        """Copy a stored entry back onto the system clipboard."""
        entry = self.store.get(item_id)
        if entry is None:
            logger.warning(f"No clipboard entry with id {item_id}")
            return False
        if self.source is None:
            self.source = get_clipboard_source()
        return self.source.write(entry)

    def change_hotkey(self, hotkey: str) -> bool:
        """Rebind the popup shortcut and save it for the next start."""
        if self.hotkey_service is None:
            save_setting("hotkey", hotkey)
            return True
        return self.hotkey_service.update(hotkey, persist=True)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="clipstash",
        description="clipstash - clipboard history with favorites and search"
    )

    parser.add_argument(
        "--data-dir",
        default=None,
        help="Directory holding the history database (default: ~/.clipstash)"
    )
    parser.add_argument(
        "--max-items",
        type=int,
        default=None,
        help="Non-favorite entries to keep (default: 100)"
    )
    parser.add_argument(
        "-i", "--poll-interval",
        type=float,
        default=None,
        help="Clipboard polling interval in seconds (default: 0.5)"
    )
    parser.add_argument(
        "--hotkey",
        default=None,
        help="Global shortcut that shows the history (default: ctrl+`)"
    )
    parser.add_argument(
        "--no-hotkey",
        action="store_true",
        help="Do not register the global shortcut"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose debug logging"
    )

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Watch the clipboard (default)")

    recent = sub.add_parser("recent", help="List the newest entries")
    recent.add_argument("-n", "--limit", type=int, default=10)

    search = sub.add_parser("search", help="Search text entries")
    search.add_argument("query")
    search.add_argument("-n", "--limit", type=int, default=10)
    search.add_argument("--favorites", action="store_true", help="Only search favorites")

    sub.add_parser("favorites", help="List favorite entries")

    for name, text in (
        ("favorite", "Mark an entry as favorite"),
        ("unfavorite", "Remove the favorite mark"),
        ("toggle", "Flip the favorite mark"),
        ("copy", "Copy an entry back to the clipboard"),
    ):
        cmd = sub.add_parser(name, help=text)
        cmd.add_argument("item_id")

    sub.add_parser("clear", help="Delete all non-favorite entries")

    set_hotkey = sub.add_parser("set-hotkey", help="Save a new global shortcut")
    set_hotkey.add_argument("combo", help="keyboard combination, e.g. ctrl+shift+v")

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "run"
    return args


def run_command(args, settings: Settings) -> int:
    if args.command == "run":
        app = ClipStashApp(settings, enable_hotkey=not args.no_hotkey)

        def signal_handler(signum, frame):
            app.stop()
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)
        app.run_forever()
        return 0

    if args.command == "set-hotkey":
        path = save_setting("hotkey", args.combo)
        print(f"Hotkey saved to {path}")
        return 0

    with HistoryStore(settings.db_path, max_items=settings.max_items,
                      write_timeout=settings.write_timeout) as store:
        if args.command == "recent":
            entries = store.recent(args.limit)
        elif args.command == "search":
            entries = store.search(args.query, args.limit, favorites_only=args.favorites)
        elif args.command == "favorites":
            entries = store.favorites()
        elif args.command in ("favorite", "unfavorite"):
            if store.get(args.item_id) is None:
                print(f"No entry {args.item_id}")
                return 1
            store.set_favorite(args.item_id, args.command == "favorite")
            return 0
        elif args.command == "toggle":
            value = store.toggle_favorite(args.item_id)
            if value is None:
                print(f"No entry {args.item_id}")
                return 1
            print("favorite" if value else "not favorite")
            return 0
        elif args.command == "copy":
            app = ClipStashApp(settings, store=store, enable_hotkey=False)
            return 0 if app.restore(args.item_id) else 1
        elif args.command == "clear":
            removed = store.clear_history()
            print(f"Removed {removed} entries")
            return 0
        else:
            raise ValueError(f"Unknown command {args.command!r}")

    for entry in entries:
        print(format_entry(entry))
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s: %(message)s'
    )

    try:
        settings = Settings.from_env(
            data_dir=args.data_dir,
            max_items=args.max_items,
            poll_interval=args.poll_interval,
            hotkey=args.hotkey,
        )
        if not args.verbose:
            logging.getLogger().setLevel(settings.log_level)
        return run_command(args, settings)
    except StorageError as e:
        logger.error(f"Fatal error: {e}")
        return 1
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    except (NotImplementedError, OSError, RuntimeError, ValueError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
