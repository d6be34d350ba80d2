"""
Tests for the metrics event log and text output.
"""

import json
import subprocess
from unittest.mock import Mock, patch


class TestMetricsWriter:
    """Tests for MetricsWriter."""

    def test_events_written_as_json_lines(self, tmp_path):
        from localvoice.metrics import MetricsWriter

        metrics_file = tmp_path / "sub" / "metrics.jsonl"
        writer = MetricsWriter(metrics_file)
        writer.log("session_start", session_id="abc", engine="vosk")
        writer.log("words_committed", session_id="abc", words=["four"])
        writer.shutdown()

        entries = [json.loads(line) for line in metrics_file.read_text().splitlines()]
        assert [e["event"] for e in entries] == ["session_start", "words_committed"]
        assert entries[1]["words"] == ["four"]
        assert "ts" in entries[0]

    def test_non_json_values_stringified(self, tmp_path):
        from uuid import uuid4
        from localvoice.metrics import MetricsWriter

        metrics_file = tmp_path / "metrics.jsonl"
        session_id = uuid4()
        writer = MetricsWriter(metrics_file)
        writer.log("session_error", session_id=session_id)
        writer.shutdown()

        entry = json.loads(metrics_file.read_text())
        assert entry["session_id"] == str(session_id)

    def test_write_failure_does_not_raise(self, tmp_path):
        from localvoice.metrics import MetricsWriter

        blocker = tmp_path / "file"
        blocker.write_text("")
        writer = MetricsWriter(blocker / "metrics.jsonl")
        writer.log("session_start")
        writer.shutdown()


class TestTypeText:
    """Tests for type_text()."""

    def test_runs_xdotool(self):
        from localvoice.output import type_text

        with patch("localvoice.output.subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0)

            assert type_text("-dash first") is True

        args = mock_run.call_args.args[0]
        assert args[:2] == ["xdotool", "type"]
        assert args[-2:] == ["--", "-dash first"]

    def test_missing_xdotool(self):
        from localvoice.output import type_text

        with patch("localvoice.output.subprocess.run", side_effect=FileNotFoundError):
            assert type_text("hello") is False

    def test_timeout(self):
        from localvoice.output import type_text

        with patch("localvoice.output.subprocess.run",
                   side_effect=subprocess.TimeoutExpired("xdotool", 30)):
            assert type_text("hello") is False

    def test_empty_text_not_typed(self):
        from localvoice.output import type_text

        with patch("localvoice.output.subprocess.run") as mock_run:
            assert type_text("") is True

        mock_run.assert_not_called()


class TestTypingSink:
    """Tests for TypingSink."""

    def test_emit_types_words_with_trailing_space(self):
        from localvoice.output import TypingSink

        sink = TypingSink()
        with patch("localvoice.output.type_text") as mock_type:
            sink.emit(["four", "score"])
            sink.emit(["and"])

        assert [c.args[0] for c in mock_type.call_args_list] == ["four score ", "and "]
        assert sink.typed == ["four score ", "and "]

    def test_emit_nothing(self):
        from localvoice.output import TypingSink

        sink = TypingSink()
        with patch("localvoice.output.type_text") as mock_type:
            sink.emit([])
            sink.emit([""])

        mock_type.assert_not_called()
