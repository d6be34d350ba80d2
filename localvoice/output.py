"""
Output functions for typing text and notifications.

Uses xdotool for keystroke injection and notify-send for desktop
notifications (X11 / XWayland).
"""

import subprocess
import threading
from typing import List, Sequence


TYPE_DELAY_MS = 12


def type_text(text: str) -> bool:
    """
    Type text at the current cursor position.

    Args:
        text: Text to type

    Returns:
        True if xdotool ran successfully
    """
    if not text:
        return True

    try:
        # "--" stops option parsing so text starting with "-" is typed
        result = subprocess.run(
            ["xdotool", "type", "--delay", str(TYPE_DELAY_MS), "--", text],
            capture_output=True,
            timeout=30.0,
        )
        if result.returncode != 0:
            print(f"[Output] xdotool failed: {result.stderr.decode('utf-8', 'replace').strip()}")
            return False
        return True
    except FileNotFoundError:
        print("[Output] xdotool not found. Install it with: sudo apt install xdotool")
    except subprocess.TimeoutExpired:
        print("[Output] xdotool timed out")
    return False


def notify(message: str, title: str = "LocalVoice") -> None:
    """
    Show a desktop notification.

    Args:
        message: Notification body
        title: Notification title
    """
    try:
        subprocess.run(
            ["notify-send", title, message],
            capture_output=True,
            timeout=2.0,
        )
    except (OSError, subprocess.SubprocessError) as e:
        print(f"[Output] notify error: {e}")


class TypingSink:
    """
    Types committed words into the focused application.

    Each emit() types the words joined by spaces plus a trailing space, so
    successive batches read as continuous text. Called at most once per
    committed word; nothing is ever replayed.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.typed: List[str] = []  # Everything sent this process, for diagnostics

    def emit(self, words: Sequence[str]) -> None:
        words = [w for w in words if w]
        if not words:
            return

        text = " ".join(words) + " "
        with self._lock:
            type_text(text)
            self.typed.append(text)
