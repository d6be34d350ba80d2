"""
Session management for the recording lifecycle.

A Session represents one dictation from start signal to finalization.
The Recorder owns at most one Session and moves it through

    IDLE -> RECORDING -> DRAINING -> PROCESSING -> IDLE

Words are typed as soon as the reconciler commits them; the uncommitted
tail is enhanced and typed once, after the post-stop buffer window.
"""

import functools
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import Callable, List, Optional, TYPE_CHECKING
from uuid import UUID, uuid4

from .audio import LevelMeter
from .config import validate_snapshot
from .errors import ConfigError
from .postprocess import PostProcessor
from .reconciler import WordReconciler
from .recognizers import Recognizer, recognition_context
from .types import (
    AudioChunk, ConfigSnapshot, HypothesisUpdate, SessionState, StateEvent, WordConfidence,
)

if TYPE_CHECKING:
    from .metrics import MetricsWriter
    from .recordings import RecordingArchive


ACTIVE_STATES = (SessionState.RECORDING, SessionState.DRAINING)


@dataclass
class Session:
    """
    Represents one recording session.

    Created on IDLE -> RECORDING, discarded on return to IDLE.
    """
    id: UUID
    config_snapshot: ConfigSnapshot
    postprocessor: PostProcessor

    # Runtime state
    state: SessionState = SessionState.RECORDING
    reconciler: WordReconciler = field(default_factory=WordReconciler)
    start_time: float = 0.0
    chunk_count: int = 0
    final_text: str = ""

    # Buffers (cleared on return to IDLE)
    audio_chunks: List[bytes] = field(default_factory=list)
    confidences: List[WordConfidence] = field(default_factory=list)

    @property
    def committed_words(self) -> List[str]:
        return list(self.reconciler.log)

    def clear(self) -> None:
        """Drop transient buffers."""
        self.audio_chunks = []
        self.confidences = []


class Recorder:
    """
    Recording state machine. One session at a time, enforced by state.

    Threads:
    - audio callback: on_audio_chunk() only updates counters and queues the
      chunk; it never decodes, types or waits on output
    - worker (single thread): recognizer.submit(), reconciliation, typing,
      finalization and error teardown, strictly in arrival order
    - timers: grace window and level tick

    `_lock` guards session state and is held only briefly. `_output_lock`
    keeps reconcile-then-emit atomic so words reach the sink in log order.
    Lock order is `_output_lock` before `_lock`. The audio source is never
    stopped while `_lock` is held: stopping waits for an in-flight audio
    callback, and that callback needs `_lock`.

    Usage:
        recorder = Recorder(config.snapshot, recognizer, audio_engine, TypingSink())
        recorder.on_state_change = ui.show_state
        recorder.start()   # hotkey pressed
        recorder.stop()    # hotkey pressed again; finalizes after the buffer window
    """

    def __init__(
        self,
        config_snapshot_fn: Callable[[], ConfigSnapshot],
        recognizer: Recognizer,
        audio_source,
        sink,
        metrics: Optional["MetricsWriter"] = None,
        archive: Optional["RecordingArchive"] = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
        executor: Optional[Executor] = None,
    ):
        self.config_snapshot_fn = config_snapshot_fn
        self.recognizer = recognizer
        self.audio_source = audio_source
        self.sink = sink
        self.metrics = metrics
        self.archive = archive
        self.timer_factory = timer_factory

        self.session: Optional[Session] = None
        self.level_meter = LevelMeter()
        self._lock = threading.RLock()
        self._output_lock = threading.Lock()
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="recorder")
        self._context: Optional[ExitStack] = None
        self._drain_timer = None
        self._level_timer = None

        # Presentation callbacks (observational only)
        self.on_state_change: Optional[Callable[[StateEvent], None]] = None
        self.on_level: Optional[Callable[[int], None]] = None
        self.on_waveform: Optional[Callable[[List[float]], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None
        self.on_complete: Optional[Callable[[Session], None]] = None

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self.session.state if self.session else SessionState.IDLE

    def is_busy(self) -> bool:
        return self.state != SessionState.IDLE

    def start(self) -> bool:
        """
        IDLE -> RECORDING.

        Returns:
            True if recording started. False if busy (no-op) or if the
            configuration, recognizer or audio device failed.
        """
        with self._lock:
            if self.session is not None:
                print(f"[Recorder] Start ignored: {self.session.state.value}")
                return False

            snapshot = self.config_snapshot_fn()
            try:
                validate_snapshot(snapshot)
                postprocessor = PostProcessor(snapshot)
            except ConfigError as e:
                self._report_error(f"Configuration error: {e}", event="config_error")
                return False

            context = ExitStack()
            try:
                self.recognizer.on_hypothesis = self.on_hypothesis
                context.enter_context(recognition_context(self.recognizer))
            except Exception as e:
                context.close()
                self.recognizer.on_hypothesis = None
                self._report_error(f"Recognizer unavailable: {e}", event="session_error")
                return False

            session = Session(
                id=uuid4(),
                config_snapshot=snapshot,
                postprocessor=postprocessor,
                start_time=time.time(),
            )
            self.session = session
            self._context = context
            self.level_meter.reset()
            self._emit_state(SessionState.RECORDING)

        try:
            self.audio_source.start(on_chunk=self.on_audio_chunk, on_error=self.on_audio_error)
        except Exception as e:
            self._fail(session, e)
            return False

        with self._lock:
            abandoned = self.session is not session
            if not abandoned and session.state in ACTIVE_STATES:
                self._schedule_level_tick(session)

        if abandoned:
            # Shut down while the device was opening
            self._stop_audio()
            return False

        if self.metrics:
            self.metrics.log(
                "session_start",
                session_id=str(session.id),
                engine=snapshot.engine,
                min_confidence=snapshot.min_confidence,
                buffer_time_ms=snapshot.buffer_time_ms,
            )
        return True

    def stop(self) -> bool:
        """
        RECORDING -> DRAINING. Capture continues for the buffer window.

        Returns:
            True if the session started draining, False otherwise (no-op).
        """
        with self._lock:
            session = self.session
            if session is None or session.state != SessionState.RECORDING:
                return False

            self._set_state(session, SessionState.DRAINING)

            delay = session.config_snapshot.buffer_time_ms / 1000.0
            timer = self.timer_factory(delay, functools.partial(self._on_grace_elapsed, session))
            timer.daemon = True
            self._drain_timer = timer
            timer.start()
            return True

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until work queued so far (chunks, finalization) has run."""
        self._executor.submit(lambda: None).result(timeout)

    def shutdown(self) -> None:
        """Abandon any session (process exit). The uncommitted tail is lost."""
        with self._lock:
            session = self.session
            if session is not None:
                print("[Recorder] Shutdown: abandoning active session")
                self._detach(session)

        if session is not None:
            self._stop_audio()
        self._executor.shutdown(wait=False)

    def on_audio_chunk(self, chunk: AudioChunk) -> None:
        """
        Accept one audio chunk (RECORDING or DRAINING only).

        Runs on the audio thread: recognition is queued to the worker.
        """
        with self._lock:
            session = self.session
            if session is None or session.state not in ACTIVE_STATES:
                return
            session.chunk_count += 1
            index = session.chunk_count
            if session.config_snapshot.save_recordings:
                session.audio_chunks.append(bytes(chunk))

        self._submit(self._recognize_chunk, session, chunk, index)

        level = self.level_meter.update(chunk)
        if self.on_level:
            self.on_level(level)

    def on_hypothesis(self, update: HypothesisUpdate) -> None:
        """Commit and emit any new words from a hypothesis."""
        with self._output_lock:
            with self._lock:
                session = self.session
                if session is None or session.state not in ACTIVE_STATES:
                    return
                words = session.reconciler.reconcile(update)
                committed = len(session.reconciler)

            if not words:
                return

            self.sink.emit(words)

        if self.metrics:
            self.metrics.log(
                "words_committed",
                session_id=str(session.id),
                words=words,
                committed=committed,
            )

    def on_audio_error(self, error: Exception) -> None:
        """Fatal I/O error: abandon the session."""
        with self._lock:
            session = self.session
            if session is None or session.state not in ACTIVE_STATES:
                return
        # Called from the audio backend's thread; tear down from the worker
        self._submit(self._fail, session, error)

    def _recognize_chunk(self, session: Session, chunk: AudioChunk, index: int) -> None:
        with self._lock:
            if self.session is not session:
                return
        try:
            self.recognizer.submit(chunk)
        except Exception as e:
            # Adapter error: skip this chunk, session continues
            print(f"[Recorder] Recognizer error on chunk {index} (ignored): {e}")

    def _on_grace_elapsed(self, session: Session) -> None:
        """DRAINING -> PROCESSING; finalization is queued behind pending chunks."""
        with self._lock:
            if self.session is not session or session.state != SessionState.DRAINING:
                return  # Stale timer
            self._drain_timer = None
            self._cancel_timers()
            self._set_state(session, SessionState.PROCESSING)

        self._stop_audio()
        self._submit(self._complete, session)

    def _complete(self, session: Session) -> None:
        """PROCESSING -> IDLE. Runs on the worker."""
        try:
            finalized = self._finalize(session)
        except Exception as e:
            self._fail(session, e)
            return
        if not finalized:
            return

        with self._lock:
            if self.session is not session:
                return
            self._detach(session)

        if self.metrics:
            self.metrics.log(
                "session_complete",
                session_id=str(session.id),
                total_duration_ms=(time.time() - session.start_time) * 1000,
                chunks=session.chunk_count,
                words=len(session.reconciler),
            )

        if self.on_complete:
            self.on_complete(session)

    def _finalize(self, session: Session) -> bool:
        """
        Request the final hypothesis and emit the enhanced tail.

        Returns:
            False if the session was abandoned meanwhile
        """
        finalize_start = time.time()
        final = self._request_final()

        with self._output_lock:
            with self._lock:
                if self.session is not session:
                    return False
                session.confidences = list(final.word_confidences or [])
                tail = session.postprocessor.finalize(final, session.reconciler)
                tail_words = tail.split()
                session.reconciler.commit_final(tail_words, len(final.words()))
                session.final_text = session.reconciler.committed_text()

            if tail_words:
                self.sink.emit(tail_words)

        elapsed_ms = (time.time() - finalize_start) * 1000
        print(f"[Recorder] Finalized in {elapsed_ms:.0f}ms, tail: \"{tail}\"")

        if self.metrics:
            self.metrics.log(
                "session_finalized",
                session_id=str(session.id),
                tail=tail,
                final_words=len(final.words()),
                latency_ms=elapsed_ms,
            )

        if session.config_snapshot.save_recordings and self.archive and session.audio_chunks:
            self.archive.save(session.id, b"".join(session.audio_chunks), session.final_text.strip())
        return True

    def _request_final(self) -> HypothesisUpdate:
        """Final hypothesis; adapter errors degrade to an empty result."""
        try:
            final = self.recognizer.request_final()
        except Exception as e:
            print(f"[Recorder] Final result unavailable (treated as empty): {e}")
            return HypothesisUpdate(text="", is_final=True)
        if not isinstance(final, HypothesisUpdate):
            return HypothesisUpdate(text="", is_final=True)
        return final

    def _fail(self, session: Session, error: Exception) -> None:
        """Any state -> IDLE after a fatal error. No retry."""
        with self._lock:
            if self.session is not session:
                return
            print(f"[Recorder] Session {session.id} failed in {session.state.value}: {error}")
            self._detach(session)

        self._stop_audio()
        self._report_error(str(error), event="session_error", session_id=str(session.id))

    def _detach(self, session: Session) -> None:
        """Release everything the session holds and return to IDLE. Caller holds _lock."""
        self._cancel_timers()
        self._release_context()
        session.clear()
        self.level_meter.reset()
        self.session = None
        session.state = SessionState.IDLE
        self._emit_state(SessionState.IDLE)

    def _stop_audio(self) -> None:
        """Stop capture. Must not be called with _lock held."""
        try:
            self.audio_source.stop()
        except Exception as e:
            print(f"[Recorder] Error stopping audio: {e}")

    def _release_context(self) -> None:
        context, self._context = self._context, None
        self.recognizer.on_hypothesis = None
        if context is None:
            return
        try:
            context.close()
        except Exception as e:
            print(f"[Recorder] Error releasing recognizer: {e}")

    def _cancel_timers(self) -> None:
        for timer in (self._drain_timer, self._level_timer):
            if timer is not None:
                timer.cancel()
        self._drain_timer = None
        self._level_timer = None

    def _submit(self, fn, *args) -> None:
        try:
            future = self._executor.submit(fn, *args)
        except RuntimeError as e:
            print(f"[Recorder] Worker unavailable, dropped {fn.__name__}: {e}")
            return
        future.add_done_callback(_log_worker_error)

    def _schedule_level_tick(self, session: Session) -> None:
        interval_ms = session.config_snapshot.level_interval_ms
        if interval_ms <= 0:
            return
        timer = self.timer_factory(interval_ms / 1000.0, functools.partial(self._on_level_tick, session))
        timer.daemon = True
        self._level_timer = timer
        timer.start()

    def _on_level_tick(self, session: Session) -> None:
        with self._lock:
            if self.session is not session or session.state not in ACTIVE_STATES:
                return
            self._schedule_level_tick(session)
        if self.on_waveform:
            self.on_waveform(self.level_meter.waveform())

    def _set_state(self, session: Session, state: SessionState) -> None:
        session.state = state
        self._emit_state(state)

    def _emit_state(self, state: SessionState) -> None:
        print(f"[Recorder] State: {state.value}")
        if self.on_state_change:
            self.on_state_change(StateEvent(state=state))

    def _report_error(self, message: str, event: str, **fields) -> None:
        print(f"[Recorder] Error: {message}")
        if self.metrics:
            self.metrics.log(event, error=message, **fields)
        if self.on_error:
            self.on_error(message)


def _log_worker_error(future: Future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        print(f"[Recorder] Worker task failed: {error!r}")
