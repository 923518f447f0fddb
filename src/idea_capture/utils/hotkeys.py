"""Global hotkeys: press-and-hold for capture, single shot for commands"""

import logging
from typing import Callable, Dict, Optional, Set
from pynput import keyboard

logger = logging.getLogger(__name__)

SPECIAL_KEYS = {
    "escape": "<esc>",
    "esc": "<esc>",
    "enter": "<enter>",
    "return": "<enter>",
    "space": "<space>",
    "tab": "<tab>",
    "backspace": "<backspace>",
    "delete": "<delete>",
}


def convert_hotkey(hotkey: str) -> str:
    """Convert 'ctrl+shift+space' to pynput format '<ctrl>+<shift>+<space>'"""
    parts = []
    for part in hotkey.lower().split('+'):
        part = part.strip()
        if part in ("ctrl", "alt", "shift", "cmd"):
            parts.append(f"<{part}>")
        elif part == "comma":
            parts.append(",")
        elif part in SPECIAL_KEYS:
            parts.append(SPECIAL_KEYS[part])
        else:
            parts.append(part)
    return "+".join(parts)


class HoldHotkey:
    """
    Reports press and release of a key combination.

    on_press fires once when every key of the combination is down,
    on_release once when any of them comes up. Both run on the pynput
    listener thread.
    """

    def __init__(self, hotkey: str, on_press: Callable[[], None], on_release: Callable[[], None]):
        self.hotkey = hotkey
        self._on_press = on_press
        self._on_release = on_release
        self._required: Set = set(keyboard.HotKey.parse(convert_hotkey(hotkey)))
        self._pressed: Set = set()
        self._held = False
        self._listener: Optional[keyboard.Listener] = None

    def _canonical(self, key):
        return self._listener.canonical(key) if self._listener else key

    def _handle_press(self, key) -> None:
        key = self._canonical(key)
        self._pressed.add(key)
        if not self._held and self._required <= self._pressed:
            self._held = True
            self._on_press()

    def _handle_release(self, key) -> None:
        key = self._canonical(key)
        self._pressed.discard(key)
        if self._held and key in self._required:
            self._held = False
            self._on_release()

    def start(self):
        if self._listener:
            return
        self._listener = keyboard.Listener(
            on_press=self._handle_press,
            on_release=self._handle_release,
        )
        self._listener.start()
        logger.info(f"Hold-to-talk listening on {self.hotkey}")

    def stop(self):
        if self._listener:
            self._listener.stop()
            self._listener = None
        self._pressed.clear()
        self._held = False

    @property
    def is_held(self) -> bool:
        return self._held


class HotkeyManager:
    """Manages global hotkey registration and handling"""

    def __init__(self):
        self._hotkeys: Dict[str, Callable] = {}
        self._listener: Optional[keyboard.GlobalHotKeys] = None
        self._running = False

    def register(self, hotkey: str, callback: Callable):
        """
        Register a hotkey with a callback.

        Args:
            hotkey: Hotkey string (e.g., "ctrl+shift+o")
            callback: Function to call when hotkey is pressed
        """
        pynput_key = convert_hotkey(hotkey)
        self._hotkeys[pynput_key] = callback
        logger.debug(f"Registered hotkey: {hotkey} -> {pynput_key}")

    def start(self):
        """Start listening for hotkeys"""
        if self._running:
            return

        if not self._hotkeys:
            logger.warning("No hotkeys registered")
            return

        self._listener = keyboard.GlobalHotKeys(self._hotkeys)
        self._listener.start()
        self._running = True
        logger.info(f"Hotkey listener started with {len(self._hotkeys)} hotkeys")

    def stop(self):
        """Stop listening for hotkeys"""
        if self._listener:
            self._listener.stop()
            self._listener = None
        self._running = False
        logger.info("Hotkey listener stopped")

    @property
    def is_running(self) -> bool:
        return self._running
