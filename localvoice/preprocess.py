"""
Audio preprocessing for batch recognition.

Band-pass filtering, noise gate and peak normalization applied to a
complete buffered recording before it is handed to a batch engine.
"""

import numpy as np
from scipy import signal

from .types import ConfigSnapshot


TARGET_PEAK = 0.8  # Normalize to 80% of full scale to avoid clipping
FILTER_ORDER = 4


class AudioPreprocessor:
    """
    Filter chain over float32 audio in [-1, 1].

    Usage:
        preprocessor = AudioPreprocessor.from_snapshot(snapshot)
        cleaned = preprocessor.process(audio)
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        high_pass_hz: float = 80.0,
        low_pass_hz: float = 3000.0,
        volume_normalization: bool = True,
        noise_gate: float = 0.0,
    ):
        self.sample_rate = sample_rate
        self.high_pass_hz = high_pass_hz
        self.low_pass_hz = low_pass_hz
        self.volume_normalization = volume_normalization
        self.noise_gate = noise_gate

    @classmethod
    def from_snapshot(cls, snapshot: ConfigSnapshot) -> "AudioPreprocessor":
        return cls(
            sample_rate=snapshot.sample_rate,
            high_pass_hz=snapshot.high_pass_hz,
            low_pass_hz=snapshot.low_pass_hz,
            volume_normalization=snapshot.volume_normalization,
            noise_gate=snapshot.noise_gate,
        )

    def process(self, audio: np.ndarray) -> np.ndarray:
        """Run the full chain: high-pass, low-pass, noise gate, normalization."""
        audio = np.asarray(audio, dtype=np.float32)
        if len(audio) == 0:
            return audio

        audio = self._filter(audio)

        if self.noise_gate > 0:
            audio = apply_noise_gate(audio, self.noise_gate)

        if self.volume_normalization:
            audio = normalize(audio)

        return audio.astype(np.float32)

    def _filter(self, audio: np.ndarray) -> np.ndarray:
        nyquist = self.sample_rate / 2

        # sosfiltfilt needs more samples than its padding
        min_length = 3 * (2 * FILTER_ORDER + 1)
        if len(audio) <= min_length:
            return audio

        if self.high_pass_hz and 0 < self.high_pass_hz < nyquist:
            sos = signal.butter(FILTER_ORDER, self.high_pass_hz, btype="highpass",
                                fs=self.sample_rate, output="sos")
            audio = signal.sosfiltfilt(sos, audio)

        if self.low_pass_hz and 0 < self.low_pass_hz < nyquist:
            sos = signal.butter(FILTER_ORDER, self.low_pass_hz, btype="lowpass",
                                fs=self.sample_rate, output="sos")
            audio = signal.sosfiltfilt(sos, audio)

        return audio


def normalize(audio: np.ndarray) -> np.ndarray:
    """
    Scale so the peak sits at TARGET_PEAK.

    Left untouched when already within 10% of the target.
    """
    peak = float(np.max(np.abs(audio))) if len(audio) else 0.0
    if peak == 0:
        return audio

    factor = TARGET_PEAK / peak
    if 0.9 <= factor <= 1.1:
        return audio

    return np.clip(audio * factor, -1.0, 1.0)


def apply_noise_gate(audio: np.ndarray, threshold: float = 0.02) -> np.ndarray:
    """Zero samples whose magnitude is below threshold (fraction of full scale)."""
    gated = audio.copy()
    gated[np.abs(gated) < threshold] = 0.0
    return gated
