"""
Main entry point for LocalVoice.

Run with: python -m localvoice
"""

import signal
import sys
import threading
from typing import List, Optional

from pynput import keyboard

from . import __version__
from .audio import AudioEngine
from .config import Config
from .errors import ConfigError
from .input import InputController
from .metrics import MetricsWriter, get_metrics
from .output import TypingSink, notify
from .recognizers import Recognizer, create_recognizer
from .recordings import RecordingArchive
from .session import Recorder, Session
from .types import SessionState, StateEvent


WAVEFORM_CHARS = "▁▂▃▄▅▆▇█"

STATUS_LABELS = {
    SessionState.IDLE: "IDLE",
    SessionState.RECORDING: "REC",
    SessionState.DRAINING: "REC (finishing)",
    SessionState.PROCESSING: "PROC",
}


# Global state
config: Config
metrics: MetricsWriter
recognizer: Recognizer
recorder: Recorder
_keyboard_listener: Optional[keyboard.Listener] = None
_shutdown_done = threading.Event()


class StatusPrinter:
    """Console status line driven by recorder events."""

    def __init__(self, trigger_key: str):
        self.trigger_key = trigger_key.upper()
        self.state = SessionState.IDLE
        self.level = 0

    def on_state_change(self, event: StateEvent) -> None:
        self.state = event.state
        if event.state == SessionState.IDLE:
            self.level = 0
        self._render("")

    def on_level(self, level: int) -> None:
        self.level = level

    def on_waveform(self, amplitudes: List[float]) -> None:
        self._render(render_waveform(amplitudes))

    def on_error(self, message: str) -> None:
        sys.stdout.write("\n")
        print(f"[Error] {message}")
        notify(message, title="LocalVoice error")

    def _render(self, waveform: str) -> None:
        label = STATUS_LABELS[self.state]
        line = f"\r\033[K[{label}] Mic {self.level:3d}%  {waveform}  ({self.trigger_key}: start/stop)"
        sys.stdout.write(line)
        sys.stdout.flush()


def render_waveform(amplitudes: List[float]) -> str:
    """Map amplitudes (0.0-1.0) to block characters."""
    top = len(WAVEFORM_CHARS) - 1
    chars = []
    for amp in amplitudes:
        index = min(int(amp * 8 * len(WAVEFORM_CHARS)), top)
        chars.append(WAVEFORM_CHARS[max(0, index)])
    return "".join(chars)


def main():
    """Main entry point."""
    global config, metrics, recognizer, recorder, _keyboard_listener

    print(f"LocalVoice v{__version__} starting...")

    # Load configuration
    config = Config.load()
    snapshot = config.snapshot()
    print(f"  Engine: {snapshot.engine}")
    print(f"  Min confidence: {snapshot.min_confidence}")
    print(f"  Buffer after stop: {snapshot.buffer_time_ms}ms")

    # Initialize metrics
    metrics = get_metrics(config.metrics_file)

    try:
        recognizer = create_recognizer(snapshot)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    archive = None
    if snapshot.save_recordings:
        archive = RecordingArchive(config.recordings_dir, sample_rate=snapshot.sample_rate)
        print(f"  Recordings: {config.recordings_dir}")

    recorder = Recorder(
        config_snapshot_fn=config.snapshot,
        recognizer=recognizer,
        audio_source=AudioEngine(snapshot),
        sink=TypingSink(),
        metrics=metrics,
        archive=archive,
    )

    status = StatusPrinter(config.trigger_key)
    recorder.on_state_change = status.on_state_change
    recorder.on_level = status.on_level
    recorder.on_waveform = status.on_waveform
    recorder.on_error = status.on_error
    recorder.on_complete = on_session_complete

    # Hotkey
    input_controller = InputController(
        config.trigger_key,
        mode=config.trigger_mode,
        is_idle=lambda: not recorder.is_busy(),
    )
    input_controller.on_start_recording = recorder.start
    input_controller.on_stop_recording = recorder.stop

    # Setup signal handlers
    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    _keyboard_listener = keyboard.Listener(
        on_press=input_controller.on_key_press,
        on_release=input_controller.on_key_release,
    )
    _keyboard_listener.start()
    print("  Keyboard listener started")

    print(f"Ready! Press {config.trigger_key.upper()} to start/stop dictation.")
    print("Press Ctrl+C to quit.")

    try:
        _keyboard_listener.join()
    finally:
        shutdown()


def on_session_complete(session: Session) -> None:
    """Called after each finalized session."""
    sys.stdout.write("\n")
    text = session.final_text.strip()
    print(f"[Session] {len(session.reconciler)} words in {session.chunk_count} chunks: \"{text}\"")


def shutdown() -> None:
    """Clean shutdown."""
    if _shutdown_done.is_set():
        return
    _shutdown_done.set()

    print("\nShutting down...")

    if _keyboard_listener:
        _keyboard_listener.stop()

    recorder.shutdown()
    recognizer.shutdown()
    metrics.shutdown()

    print("Goodbye!")


def _signal_handler(signum, frame):
    """Handle SIGINT/SIGTERM."""
    shutdown()
    sys.exit(0)


if __name__ == "__main__":
    main()
