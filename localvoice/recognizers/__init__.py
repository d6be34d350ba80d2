"""
Speech recognizers with scoped lifecycle management.

Each recognizer wraps an opaque engine behind one interface:
acquire() -> submit(chunk)... -> request_final() -> release().
Streaming engines report partial hypotheses through `on_hypothesis`;
batch engines report nothing until request_final().
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from ..errors import ConfigError
from ..types import AudioChunk, ConfigSnapshot, HypothesisUpdate


class Recognizer(ABC):
    """
    Base class for speech recognizers.

    Subclasses must implement:
    - acquire(): Create the per-session recognition context
    - submit(): Feed one PCM chunk (may call on_hypothesis)
    - request_final(): Flush and return the final hypothesis
    - release(): Free the recognition context
    """

    name: str = "base"

    def __init__(self):
        self.on_hypothesis: Optional[Callable[[HypothesisUpdate], None]] = None

    @abstractmethod
    def acquire(self) -> None:
        """
        Open a recognition context for one session.

        Raises:
            RecognizerError: if the engine or model can't be loaded
        """
        pass

    @abstractmethod
    def submit(self, chunk: AudioChunk) -> None:
        """
        Feed raw audio (16-bit mono PCM). Fire-and-forget.

        Triggers zero or one on_hypothesis call.
        """
        pass

    @abstractmethod
    def request_final(self) -> HypothesisUpdate:
        """Return the final hypothesis (is_final=True) for all audio submitted."""
        pass

    @abstractmethod
    def release(self) -> None:
        """Free the recognition context. Safe to call more than once."""
        pass

    def shutdown(self) -> None:
        """Free engine resources (model weights). Called once on exit."""
        self.release()

    def _publish(self, update: HypothesisUpdate) -> None:
        callback = self.on_hypothesis
        if callback:
            callback(update)


@contextmanager
def recognition_context(recognizer: Recognizer) -> Iterator[Recognizer]:
    """
    Acquire a recognizer for the duration of a block.

    The context is released on every exit path.
    """
    recognizer.acquire()
    try:
        yield recognizer
    finally:
        recognizer.release()


def create_recognizer(snapshot: ConfigSnapshot) -> Recognizer:
    """
    Build the recognizer selected by configuration.

    Raises:
        ConfigError: for an unknown engine name
    """
    engine = snapshot.engine.lower()

    if engine == "vosk":
        from .vosk import VoskRecognizer
        return VoskRecognizer(snapshot.vosk_model_path, sample_rate=snapshot.sample_rate)

    if engine == "whisper":
        from .whisper import WhisperRecognizer
        from ..preprocess import AudioPreprocessor
        return WhisperRecognizer(
            snapshot.whisper_model,
            language=snapshot.whisper_language,
            device=snapshot.whisper_device,
            sample_rate=snapshot.sample_rate,
            preprocessor=AudioPreprocessor.from_snapshot(snapshot),
        )

    raise ConfigError(f"Unknown engine: {snapshot.engine!r} (expected 'vosk' or 'whisper')")
