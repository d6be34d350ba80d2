"""
Audio engine for microphone capture and level metering.

Opens one sounddevice input stream per recording session and delivers raw
16-bit PCM blocks to a callback. Unexpected stream termination while
recording is reported as an AudioStreamError.
"""

import threading
from collections import deque
from typing import Callable, List, Optional

import numpy as np

from .errors import AudioStreamError
from .types import AudioChunk, ConfigSnapshot


# Constants
DEFAULT_BLOCKSIZE = 4000  # 250ms at 16kHz
LEVEL_GAIN = 8  # RMS of normal speech sits around 0.05-0.1
MAX_WAVEFORM_POINTS = 50


def pcm_to_float(chunk: AudioChunk) -> np.ndarray:
    """Convert 16-bit little-endian PCM bytes to float32 in [-1, 1]."""
    if not chunk:
        return np.array([], dtype=np.float32)
    usable = len(chunk) - (len(chunk) % 2)
    samples = np.frombuffer(chunk[:usable], dtype="<i2")
    return samples.astype(np.float32) / 32768.0


def float_to_pcm(audio: np.ndarray) -> bytes:
    """Convert float32 audio in [-1, 1] to 16-bit PCM bytes."""
    clipped = np.clip(audio, -1.0, 1.0)
    return (clipped * 32767).astype("<i2").tobytes()


def calculate_audio_level(chunk: AudioChunk) -> int:
    """
    Audio level for display, 0-100.

    RMS of the normalized samples, scaled by LEVEL_GAIN and clipped.
    """
    audio = pcm_to_float(chunk)
    if len(audio) == 0:
        return 0
    rms = float(np.sqrt(np.mean(audio ** 2)))
    return min(100, int(rms * 100 * LEVEL_GAIN))


def calculate_amplitude(chunk: AudioChunk) -> float:
    """Mean absolute amplitude, 0.0-1.0 (waveform display)."""
    audio = pcm_to_float(chunk)
    if len(audio) == 0:
        return 0.0
    return float(np.mean(np.abs(audio)))


class LevelMeter:
    """
    Current level plus a rolling window of recent amplitudes.

    Thread-safe: updated from the audio callback, read by the display.
    """

    def __init__(self, max_points: int = MAX_WAVEFORM_POINTS):
        self._lock = threading.Lock()
        self._amplitudes: deque = deque(maxlen=max_points)
        self.level: int = 0

    def update(self, chunk: AudioChunk) -> int:
        level = calculate_audio_level(chunk)
        amplitude = calculate_amplitude(chunk)
        with self._lock:
            self.level = level
            self._amplitudes.append(amplitude)
        return level

    def waveform(self) -> List[float]:
        with self._lock:
            return list(self._amplitudes)

    def reset(self) -> None:
        with self._lock:
            self.level = 0
            self._amplitudes.clear()


class AudioEngine:
    """
    Captures one microphone into raw PCM chunks.

    Thread-safe: all public methods can be called from any thread.

    Usage:
        engine = AudioEngine(snapshot)
        engine.start(on_chunk=recorder.on_audio_chunk, on_error=recorder.on_audio_error)
        # ... user speaks ...
        engine.stop()
    """

    def __init__(self, snapshot: ConfigSnapshot, blocksize: int = DEFAULT_BLOCKSIZE):
        self.sample_rate = snapshot.sample_rate
        self.input_device = snapshot.input_device
        self.blocksize = blocksize

        self.stream = None
        self.is_recording: bool = False
        self._lock = threading.Lock()

        self.on_chunk: Optional[Callable[[AudioChunk], None]] = None
        self.on_error: Optional[Callable[[Exception], None]] = None

    def start(
        self,
        on_chunk: Callable[[AudioChunk], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        """
        Open the input stream and begin delivering chunks.

        Raises:
            AudioStreamError: if the device can't be opened
        """
        with self._lock:
            if self.is_recording:
                return

            self.on_chunk = on_chunk
            self.on_error = on_error

            try:
                import sounddevice as sd

                device = self._find_device(self.input_device) if self.input_device else None
                stream = sd.RawInputStream(
                    device=device,
                    samplerate=self.sample_rate,
                    channels=1,
                    dtype="int16",
                    blocksize=self.blocksize,
                    callback=self._audio_callback,
                    finished_callback=self._finished_callback,
                )
                stream.start()
            except Exception as e:
                self.on_chunk = None
                self.on_error = None
                raise AudioStreamError(f"Failed to open audio input: {e}") from e

            self.stream = stream
            self.is_recording = True
            print(f"[Audio] Recording from {self.input_device or 'default input'}")

    def stop(self) -> None:
        """
        Stop capture and close the stream.

        IMPORTANT: Disconnects callbacks immediately to prevent races.
        """
        # Collect stream while holding lock, then close outside lock
        # to avoid deadlock with audio callback
        with self._lock:
            self.is_recording = False
            self.on_chunk = None
            self.on_error = None
            stream = self.stream
            self.stream = None

        if stream is not None:
            try:
                stream.stop()
                stream.close()
            except Exception as e:
                print(f"[Audio] Error closing stream: {e}")

    def _find_device(self, mic_name: str) -> Optional[int]:
        """Find device index by name (fuzzy matching)."""
        import sounddevice as sd

        devices = sd.query_devices()
        mic_lower = mic_name.lower()

        # Exact match first
        for i, d in enumerate(devices):
            if d["max_input_channels"] > 0:
                if d["name"].lower() == mic_lower:
                    return i

        # Substring match
        for i, d in enumerate(devices):
            if d["max_input_channels"] > 0:
                if mic_lower in d["name"].lower():
                    return i

        print(f"[Audio] Mic not found: {mic_name}, using default input")
        return None

    def _audio_callback(self, indata, frames: int, time_info, status) -> None:
        """Called by sounddevice for each audio block."""
        if status:
            print(f"[Audio] Callback status: {status}")

        chunk = bytes(indata)

        with self._lock:
            if not self.is_recording:
                return
            callback = self.on_chunk

        # Call outside the lock; the consumer serializes on its own lock
        if callback:
            callback(chunk)

    def _finished_callback(self) -> None:
        """Called by sounddevice when the stream ends for any reason."""
        with self._lock:
            unexpected = self.is_recording
            callback = self.on_error
            self.is_recording = False

        if unexpected and callback:
            callback(AudioStreamError("Audio stream closed unexpectedly"))
