"""
Shared type definitions for LocalVoice.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class SessionState(str, Enum):
    """Recording lifecycle states. IDLE is both initial and terminal."""
    IDLE = "idle"
    RECORDING = "recording"
    DRAINING = "draining"
    PROCESSING = "processing"


@dataclass(frozen=True)
class WordConfidence:
    """One recognized word with the engine's confidence (0.0 - 1.0), if it reported one."""
    word: str
    confidence: Optional[float] = None


@dataclass
class HypothesisUpdate:
    """
    A recognizer output event.

    `text` is the whole session transcript so far (whitespace separated).
    `word_confidences` is aligned 1:1 with the words of `text` when present.
    """
    text: str
    is_final: bool = False
    word_confidences: Optional[List[WordConfidence]] = None

    def words(self) -> List[str]:
        """Split text into words, discarding empty tokens."""
        return split_words(self.text)


@dataclass(frozen=True)
class StateEvent:
    """State transition notification for the presentation layer."""
    state: SessionState
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ConfigSnapshot:
    """
    Immutable snapshot of configuration for a session.
    Ensures config changes mid-session don't cause inconsistency.
    """
    # Recognition
    min_confidence: float = 0.7
    sample_rate: int = 16000
    buffer_time_ms: int = 2000

    # Engine
    engine: str = "vosk"
    vosk_model_path: str = "models/vosk-model-en-us-0.22"
    whisper_model: str = "base.en"
    whisper_language: str = "en"
    whisper_device: str = "cpu"

    # Audio
    input_device: str = ""
    level_interval_ms: int = 100
    high_pass_hz: float = 80.0
    low_pass_hz: float = 3000.0
    volume_normalization: bool = True
    noise_gate: float = 0.0

    # Post-processing
    auto_capitalize: bool = True
    error_corrections: bool = True
    remove_duplicates: bool = True
    corrections: Tuple[Tuple[str, str], ...] = ()
    proper_nouns: Tuple[str, ...] = ()

    # Session audio archive (local only)
    save_recordings: bool = False
    recordings_dir: str = ""


def split_words(text) -> List[str]:
    """
    Split hypothesis text on whitespace.

    Accepts a string or a sequence of strings. Anything else (None,
    numbers, mixed sequences) yields no words.
    """
    if isinstance(text, str):
        return text.split()
    if isinstance(text, (list, tuple)) and all(isinstance(w, str) for w in text):
        return " ".join(text).split()
    return []


# Type aliases
AudioChunk = bytes  # 16-bit little-endian mono PCM
