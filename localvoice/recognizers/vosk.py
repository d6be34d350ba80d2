"""
Vosk recognizer for local streaming transcription.

Vosk segments speech into utterances: after an endpoint, Result() returns
the finished utterance and the next partial starts from empty. This
adapter stitches finished utterances together so every hypothesis covers
the whole session and only grows.
"""

import json
import threading
from pathlib import Path
from typing import List, Optional

from . import Recognizer
from ..errors import RecognizerError
from ..types import AudioChunk, HypothesisUpdate, WordConfidence


class VoskRecognizer(Recognizer):
    """
    Streaming recognition with Vosk/Kaldi.

    The model is loaded once on first acquire() and kept in memory; each
    session gets its own KaldiRecognizer, freed on release().
    """

    name = "vosk"

    def __init__(self, model_path: str, sample_rate: int = 16000):
        super().__init__()
        self.model_path = model_path
        self.sample_rate = sample_rate
        self.model = None
        self.recognizer = None
        self._lock = threading.Lock()

        # Finished utterances this session
        self._words: List[WordConfidence] = []
        self._last_text: Optional[str] = None

    def _load_model(self):
        """Load Vosk model weights (slow, done once)."""
        if self.model is not None:
            return self.model

        if not Path(self.model_path).exists():
            raise RecognizerError(
                f"Vosk model not found at {self.model_path}. Download one from "
                "https://alphacephei.com/vosk/models"
            )

        try:
            import vosk

            vosk.SetLogLevel(-1)
            print(f"[{self.name}] Loading model from {self.model_path}...")
            self.model = vosk.Model(self.model_path)
            print(f"[{self.name}] Model loaded")
        except Exception as e:
            raise RecognizerError(f"Failed to load Vosk model: {e}") from e

        return self.model

    def _create_recognizer(self):
        """Create a per-session KaldiRecognizer with word-level output."""
        import vosk

        recognizer = vosk.KaldiRecognizer(self._load_model(), self.sample_rate)
        recognizer.SetWords(True)
        return recognizer

    def acquire(self) -> None:
        with self._lock:
            if self.recognizer is not None:
                raise RecognizerError("Recognition context already acquired")
            try:
                self.recognizer = self._create_recognizer()
            except RecognizerError:
                raise
            except Exception as e:
                raise RecognizerError(f"Failed to create recognizer: {e}") from e
            self._words = []
            self._last_text = None

    def submit(self, chunk: AudioChunk) -> None:
        """
        Feed audio. Publishes the cumulative transcript when it changes.

        Malformed engine output is treated as an empty update.
        """
        with self._lock:
            if self.recognizer is None or not chunk:
                return

            if self.recognizer.AcceptWaveform(chunk):
                # Endpoint: utterance is finished, partials restart from empty
                self._words.extend(_parse_words(self.recognizer.Result(), "text"))
                text = _join(self._words)
            else:
                partial = _parse_partial(self.recognizer.PartialResult())
                text = _join(self._words, partial)

            if text == self._last_text:
                return
            self._last_text = text

        self._publish(HypothesisUpdate(text=text, is_final=False))

    def request_final(self) -> HypothesisUpdate:
        """Flush the last utterance and return the whole session with confidences."""
        with self._lock:
            if self.recognizer is None:
                return HypothesisUpdate(text="", is_final=True, word_confidences=[])

            self._words.extend(_parse_words(self.recognizer.FinalResult(), "text"))
            words = list(self._words)

        return HypothesisUpdate(
            text=_join(words),
            is_final=True,
            word_confidences=words,
        )

    def release(self) -> None:
        with self._lock:
            # Dropping the wrapper frees the native recognizer
            self.recognizer = None
            self._words = []
            self._last_text = None

    def shutdown(self) -> None:
        """Unload model weights."""
        self.release()
        with self._lock:
            self.model = None
        print(f"[{self.name}] Shutdown")


def _parse_words(raw: str, text_key: str) -> List[WordConfidence]:
    """
    Parse a Vosk result into words with confidences.

    Uses the per-word "result" list when present, else splits "text"
    (words then carry no confidence).
    """
    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    except (TypeError, ValueError) as e:
        print(f"[vosk] Malformed result ignored: {e}")
        return []

    if not isinstance(data, dict):
        return []

    words: List[WordConfidence] = []
    result = data.get("result")
    if isinstance(result, list) and result:
        for item in result:
            if not isinstance(item, dict) or not isinstance(item.get("word"), str):
                continue
            conf = item.get("conf")
            words.append(WordConfidence(
                word=item["word"],
                confidence=float(conf) if isinstance(conf, (int, float)) else None,
            ))
        return words

    text = data.get(text_key)
    if isinstance(text, str):
        words = [WordConfidence(word=w) for w in text.split()]
    return words


def _parse_partial(raw: str) -> List[str]:
    """Words of a Vosk PartialResult ({"partial": "..."})."""
    return [w.word for w in _parse_words(raw, "partial")]


def _join(words: List[WordConfidence], partial: Optional[List[str]] = None) -> str:
    parts = [w.word for w in words]
    if partial:
        parts.extend(partial)
    return " ".join(parts)
