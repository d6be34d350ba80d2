"""
Structured session event log (JSON lines).

Every recording session leaves a trail in ~/.localvoice/metrics.jsonl:
start, each batch of committed words, finalization, errors, completion.
Writes are queued and appended by one background thread so the audio and
recognizer threads never touch the disk.

Usage:
    metrics = MetricsWriter(config.metrics_file)
    metrics.log("words_committed", session_id=sid, words=["four"])
"""

import json
import threading
import time
from pathlib import Path
from queue import Empty, Queue
from typing import Any, List, Optional


class MetricsWriter:
    """
    Thread-safe JSONL event writer.

    log() never blocks; a daemon thread drains the queue in batches.
    """

    def __init__(self, metrics_file: Path):
        self.metrics_file = Path(metrics_file)
        self._queue: "Queue[dict]" = Queue()
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._drain_loop, daemon=True)
        self._thread.start()

    def log(self, event: str, **fields: Any) -> None:
        """
        Queue an event.

        Args:
            event: Event name (e.g., "session_start", "session_error")
            **fields: Extra JSON-serializable fields
        """
        self._queue.put({"ts": time.time(), "event": event, **fields})

    def _drain_loop(self) -> None:
        while not self._stopped.is_set():
            try:
                batch = [self._queue.get(timeout=1.0)]
            except Empty:
                continue
            batch.extend(self._take_pending())
            self._append(batch)

    def _take_pending(self) -> List[dict]:
        pending = []
        while True:
            try:
                pending.append(self._queue.get_nowait())
            except Empty:
                return pending

    def _append(self, entries: List[dict]) -> None:
        try:
            self.metrics_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.metrics_file, "a") as f:
                for entry in entries:
                    f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            print(f"[Metrics] Failed to write {self.metrics_file}: {e}")

    def flush(self) -> None:
        """Write anything still queued, synchronously."""
        pending = self._take_pending()
        if pending:
            self._append(pending)

    def shutdown(self) -> None:
        """Stop the writer thread after flushing."""
        self._stopped.set()
        self._thread.join(timeout=2.0)
        self.flush()


# Global instance (initialized lazily)
_metrics: Optional[MetricsWriter] = None


def get_metrics(metrics_file: Path) -> MetricsWriter:
    """Get or create the global metrics writer."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsWriter(metrics_file)
    return _metrics
