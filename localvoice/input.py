"""
Input controller for the recording hotkey.

Translates raw pynput key events into start/stop signals. The Recorder
decides what a signal means in its current state; a signal that doesn't
apply is simply ignored there.
"""

import threading
from typing import Callable, Literal, Optional


TriggerMode = Literal["toggle", "hold"]


class InputController:
    """
    Hotkey handling.

    Modes:
    - toggle: press once to start, press again to stop (default)
    - hold: press and hold to record, release to stop

    Usage:
        controller = InputController("f9", mode="toggle", is_idle=recorder_is_idle)
        controller.on_start_recording = recorder.start
        controller.on_stop_recording = recorder.stop

        listener = keyboard.Listener(
            on_press=controller.on_key_press,
            on_release=controller.on_key_release
        )
    """

    def __init__(
        self,
        trigger_key: str = "f9",
        mode: TriggerMode = "toggle",
        is_idle: Optional[Callable[[], bool]] = None,
    ):
        self.trigger_key = trigger_key
        self.mode = mode
        self.is_idle = is_idle or (lambda: True)
        self._lock = threading.Lock()
        self._trigger_key_pressed = False

        # Callbacks
        self.on_start_recording: Optional[Callable[[], object]] = None
        self.on_stop_recording: Optional[Callable[[], object]] = None

    def on_key_press(self, key) -> None:
        """
        Handle key press events.

        Args:
            key: pynput key object
        """
        if not self._is_trigger_key(key):
            return

        with self._lock:
            if self._trigger_key_pressed:
                return  # Auto-repeat while held
            self._trigger_key_pressed = True

            if self.mode == "hold" or self.is_idle():
                callback = self.on_start_recording
            else:
                callback = self.on_stop_recording

        if callback:
            callback()

    def on_key_release(self, key) -> None:
        """
        Handle key release events.

        Args:
            key: pynput key object
        """
        if not self._is_trigger_key(key):
            return

        with self._lock:
            self._trigger_key_pressed = False
            callback = self.on_stop_recording if self.mode == "hold" else None

        if callback:
            callback()

    def _is_trigger_key(self, key) -> bool:
        """Check if key is the recording trigger."""
        from pynput.keyboard import Key, KeyCode

        trigger_name = self.trigger_key.lower()

        # Named keys: "f9", "alt_r", "scroll_lock"
        if hasattr(Key, trigger_name):
            return key == getattr(Key, trigger_name)

        # Single characters
        if len(trigger_name) == 1 and isinstance(key, KeyCode):
            return key.char is not None and key.char.lower() == trigger_name

        return False
