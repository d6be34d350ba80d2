"""
Shared fakes for LocalVoice tests.
"""

from concurrent.futures import Executor, Future
import threading

import pytest

from localvoice.recognizers import Recognizer
from localvoice.types import HypothesisUpdate


class FakeTimer:
    """threading.Timer stand-in; fires only when the test says so."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


class FakeTimerFactory:
    """Records every timer the recorder creates."""

    def __init__(self):
        self.timers = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    def with_interval(self, interval):
        return [t for t in self.timers if t.interval == interval]


class FakeRecognizer(Recognizer):
    """Scripted recognizer: tests publish hypotheses and set the final result."""

    name = "fake"

    def __init__(self, final=None):
        super().__init__()
        self.final = final or HypothesisUpdate(text="", is_final=True)
        self.submitted = []
        self.acquired = 0
        self.released = 0
        self.active = False
        self.acquire_error = None
        self.submit_error = None

    def acquire(self):
        if self.acquire_error:
            raise self.acquire_error
        self.acquired += 1
        self.active = True

    def submit(self, chunk):
        if self.submit_error:
            raise self.submit_error
        self.submitted.append(chunk)

    def request_final(self):
        return self.final

    def release(self):
        self.released += 1
        self.active = False

    def publish(self, text):
        self._publish(HypothesisUpdate(text=text))


@pytest.fixture
def timer_factory():
    return FakeTimerFactory()


@pytest.fixture
def fake_recognizer():
    return FakeRecognizer()


class ImmediateExecutor(Executor):
    """Runs submitted work on the calling thread, for deterministic tests."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class ListSink:
    """Thread-safe sink that records every emitted batch."""

    def __init__(self):
        self._lock = threading.Lock()
        self.batches = []

    def emit(self, words):
        with self._lock:
            self.batches.append(list(words))

    @property
    def words(self):
        with self._lock:
            return [w for batch in self.batches for w in batch]
