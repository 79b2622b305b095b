"""Global practice hotkeys based on pynput."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Mapping, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)


class PracticeHotkeyAdapter:
    """Maps key names (pynput ``str(key)`` form, e.g. ``Key.space``) to actions.

    Each action fires once per physical press; auto-repeat while the key is
    held is ignored.
    """

    def __init__(self, bindings: Mapping[str, str]) -> None:
        # action name -> key name
        self._bindings = dict(bindings)
        self._listener: Optional[object] = None
        self._held: set[str] = set()
        self._lock = threading.Lock()

    def start(self, actions: Mapping[str, Callable[[], None]]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        by_key = {
            key_name: actions[action]
            for action, key_name in self._bindings.items()
            if action in actions
        }

        def _on_press(key: object) -> None:
            name = str(key)
            callback = by_key.get(name)
            if callback is None:
                return
            with self._lock:
                if name in self._held:
                    return
                self._held.add(name)
            logger.debug("Hotkey %s pressed", name)
            callback()

        def _on_release(key: object) -> None:
            with self._lock:
                self._held.discard(str(key))

        self._listener = keyboard.Listener(on_press=_on_press, on_release=_on_release)
        self._listener.start()

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None
