"""
Optional local archive of session audio.

When `save_recordings` is enabled, each finished session's raw audio is
written as a 16 kHz mono PCM_16 WAV next to a small JSON sidecar with the
committed transcript. Useful for checking recognition accuracy offline.

Saves to: {recordings_dir}/{date}/{session_id}.wav (+ .json)
"""

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional
from uuid import UUID

import numpy as np
import soundfile as sf

from .audio import pcm_to_float


MIN_AUDIO_DURATION_MS = 500  # Don't save very short recordings


class RecordingArchive:
    """
    Writes session audio to disk.

    Usage:
        archive = RecordingArchive(recordings_dir, sample_rate=16000)
        path = archive.save(session_id, pcm_bytes, transcript)
    """

    def __init__(self, recordings_dir: Path, sample_rate: int = 16000):
        self.recordings_dir = Path(recordings_dir)
        self.sample_rate = sample_rate

    def save(self, session_id: UUID, pcm: bytes, transcript: str = "") -> Optional[Path]:
        """
        Save one session.

        Args:
            session_id: Session identifier (file name)
            pcm: Raw 16-bit mono PCM for the whole session
            transcript: Committed text, stored in the sidecar

        Returns:
            Path of the WAV file, or None if skipped or failed
        """
        audio = pcm_to_float(pcm)
        duration_ms = len(audio) / self.sample_rate * 1000
        if duration_ms < MIN_AUDIO_DURATION_MS:
            return None

        day_dir = self.recordings_dir / datetime.now().strftime("%Y-%m-%d")
        wav_path = day_dir / f"{session_id}.wav"
        meta_path = day_dir / f"{session_id}.json"

        try:
            day_dir.mkdir(parents=True, exist_ok=True)

            # Atomic write: temp file in the same directory, then replace
            fd, temp_path = tempfile.mkstemp(dir=day_dir, suffix=".wav.tmp")
            os.close(fd)
            try:
                audio_int16 = (np.clip(audio, -1.0, 1.0) * 32767).astype(np.int16)
                sf.write(temp_path, audio_int16, self.sample_rate, format="WAV", subtype="PCM_16")
                os.replace(temp_path, wav_path)
            finally:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)

            with open(meta_path, "w") as f:
                json.dump({
                    "session_id": str(session_id),
                    "timestamp": datetime.now().isoformat(),
                    "duration_ms": duration_ms,
                    "sample_rate": self.sample_rate,
                    "transcript": transcript,
                }, f, indent=2)

            print(f"[Recordings] Saved {wav_path}")
            return wav_path

        except (OSError, RuntimeError) as e:
            print(f"[Recordings] Failed to save session {session_id}: {e}")
            return None
