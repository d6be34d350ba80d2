"""
faster-whisper recognizer for batch transcription.

Whisper has no streaming mode: audio is buffered for the whole session and
transcribed once in request_final(). No partial hypotheses are produced,
so nothing is committed until finalization.
"""

import threading
import time
from typing import List, Optional

from . import Recognizer
from ..audio import pcm_to_float
from ..errors import RecognizerError
from ..preprocess import AudioPreprocessor
from ..types import AudioChunk, HypothesisUpdate, WordConfidence


class WhisperRecognizer(Recognizer):
    """
    Local transcription using faster-whisper (CTranslate2).

    The model is loaded once on first acquire() and kept in memory.
    """

    name = "whisper"

    def __init__(
        self,
        model_name: str = "base.en",
        language: str = "en",
        device: str = "cpu",
        sample_rate: int = 16000,
        preprocessor: Optional[AudioPreprocessor] = None,
    ):
        super().__init__()
        self.model_name = model_name
        self.language = language
        self.device = device
        self.sample_rate = sample_rate
        self.preprocessor = preprocessor or AudioPreprocessor(sample_rate=sample_rate)
        self.model = None
        self._lock = threading.Lock()
        self._chunks: List[bytes] = []
        self._active = False

    def _load_model(self):
        if self.model is not None:
            return self.model

        try:
            from faster_whisper import WhisperModel

            compute_type = "float32" if self.device == "cuda" else "int8"
            print(f"[{self.name}] Loading {self.model_name} on {self.device}...")
            self.model = WhisperModel(self.model_name, device=self.device, compute_type=compute_type)
            print(f"[{self.name}] Model loaded")
        except Exception as e:
            raise RecognizerError(f"Failed to load Whisper model {self.model_name}: {e}") from e

        return self.model

    def acquire(self) -> None:
        with self._lock:
            if self._active:
                raise RecognizerError("Recognition context already acquired")
            self._load_model()
            self._chunks = []
            self._active = True

    def submit(self, chunk: AudioChunk) -> None:
        """Buffer audio; batch engines report nothing until request_final()."""
        with self._lock:
            if self._active and chunk:
                self._chunks.append(bytes(chunk))

    def request_final(self) -> HypothesisUpdate:
        with self._lock:
            if not self._active or not self._chunks:
                return HypothesisUpdate(text="", is_final=True, word_confidences=[])
            audio = pcm_to_float(b"".join(self._chunks))
            model = self.model

        start = time.time()
        audio = self.preprocessor.process(audio)

        segments, _info = model.transcribe(
            audio,
            beam_size=5,
            language=self.language,
            word_timestamps=True,
            condition_on_previous_text=False,
        )

        words: List[WordConfidence] = []
        for segment in segments:
            for word in segment.words or []:
                text = word.word.strip()
                if text:
                    words.append(WordConfidence(word=text, confidence=float(word.probability)))

        latency_ms = int((time.time() - start) * 1000)
        duration_s = len(audio) / self.sample_rate
        print(f"[{self.name}] Transcribed {duration_s:.1f}s of audio in {latency_ms/1000:.2f}s")

        return HypothesisUpdate(
            text=" ".join(w.word for w in words),
            is_final=True,
            word_confidences=words,
        )

    def release(self) -> None:
        with self._lock:
            self._chunks = []
            self._active = False

    def shutdown(self) -> None:
        """Unload model weights."""
        self.release()
        with self._lock:
            self.model = None
        print(f"[{self.name}] Shutdown")
