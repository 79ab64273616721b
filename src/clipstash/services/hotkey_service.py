"""Global shortcut that opens the history popup."""

import logging
from pathlib import Path
from typing import Any, Callable, Optional

from clipstash.utils.config import DEFAULT_HOTKEY, save_setting

logger = logging.getLogger(__name__)


def describe_hotkey(hotkey: str) -> str:
    """Human readable form of a ``keyboard`` combination, e.g. ``Ctrl+Shift+V``."""
    parts = [part.strip() for part in hotkey.split("+") if part.strip()]
    return "+".join(part.capitalize() if len(part) > 1 else part.upper() for part in parts)


class HotkeyService:
    """Registers a global hotkey that invokes a zero-argument callback.

    The ``keyboard`` module is the default backend. It needs elevated
    permissions on some platforms, in which case registration reports
    ``False`` and the rest of the app runs without the shortcut.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        hotkey: str = DEFAULT_HOTKEY,
        backend: Optional[Any] = None,
    ) -> None:
        self.hotkey = hotkey
        self._callback = callback
        self._backend = backend
        self._handle: Optional[Any] = None

    @property
    def registered(self) -> bool:
        return self._handle is not None

    @property
    def description(self) -> str:
        return describe_hotkey(self.hotkey)

    def _get_backend(self) -> Any:
        if self._backend is None:
            import keyboard
            self._backend = keyboard
        return self._backend

    def register(self) -> bool:
        if self._handle is not None:
            return True
        try:
            backend = self._get_backend()
            self._handle = backend.add_hotkey(self.hotkey, self._fire)
        except (ImportError, OSError, ValueError) as exc:
            logger.warning("Could not register hotkey %s: %s", self.description, exc)
            return False

        logger.info("Hotkey %s registered", self.description)
        return True

    def unregister(self) -> None:
        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        try:
            self._backend.remove_hotkey(handle)
        except (KeyError, ValueError) as exc:
            logger.debug("Hotkey already removed: %s", exc)

    def update(self, hotkey: str, persist: bool = False, env_path: Optional[Path] = None) -> bool:
        """Swap the shortcut, re-registering it if it was active.

        With ``persist`` the new combination is also written to the ``.env``
        file so it survives a restart. Nothing is saved when the new
        combination cannot be registered.
        """
        was_registered = self.registered
        self.unregister()
        self.hotkey = hotkey
        if was_registered and not self.register():
            return False

        if persist:
            path = save_setting("hotkey", hotkey, env_path)
            logger.info("Hotkey %s saved to %s", self.description, path)
        return True

    def _fire(self) -> None:
        try:
            self._callback()
        except Exception:
            logger.exception("Hotkey callback failed")
