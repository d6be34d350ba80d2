"""
Configuration management with immutable snapshots.

Loads from: environment variables > settings.json > defaults
Provides immutable snapshots for session isolation.
"""

from pathlib import Path
from typing import List, Tuple
import json
import os

from .errors import ConfigError
from .types import ConfigSnapshot


DAY_NAMES = [
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
]

MONTH_NAMES = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]

# Defaults
DEFAULT_CONFIG = {
    # Recognition
    "min_confidence": 0.7,  # Words below this are dropped at finalization
    "sample_rate": 16000,
    "buffer_time_ms": 2000,  # Keep recording this long after stop

    # Engine
    "engine": "vosk",
    "vosk_model_path": "models/vosk-model-en-us-0.22",
    "whisper_model": "base.en",
    "whisper_language": "en",
    "whisper_device": "cpu",

    # Audio
    "input_device": "",
    "level_interval_ms": 100,
    "high_pass_hz": 80.0,  # Removes rumble
    "low_pass_hz": 3000.0,  # Removes hiss
    "volume_normalization": True,
    "noise_gate": 0.0,

    # Input
    "trigger_key": "f9",
    "trigger_mode": "toggle",  # "toggle" or "hold"

    # Post-processing
    "auto_capitalize": True,
    "error_corrections": True,
    "remove_duplicates": True,
    "corrections": [
        [r"\bat that\b", "that that"],
        [r"\bfor from\b", "from"],
    ],
    "proper_nouns": DAY_NAMES + MONTH_NAMES,

    # Session audio archive (local only, opt-in)
    "save_recordings": False,
}

ENGINES = ("vosk", "whisper")

# Keys written back by save_settings()
USER_SETTINGS_KEYS = [
    "engine",
    "input_device",
    "trigger_key",
    "trigger_mode",
    "min_confidence",
    "buffer_time_ms",
    "corrections",
    "save_recordings",
]


class Config:
    """
    Single source of truth for all settings.

    Usage:
        config = Config.load()
        snapshot = config.snapshot()  # Immutable copy for session
    """

    def __init__(self):
        for key, default in DEFAULT_CONFIG.items():
            setattr(self, key, _copy_default(default))

        # Paths
        self.data_dir: Path = Path.home() / ".localvoice"
        self.metrics_file: Path = self.data_dir / "metrics.jsonl"
        self.settings_file: Path = self.data_dir / "settings.json"
        self.recordings_dir: Path = self.data_dir / "recordings"

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from all sources."""
        config = cls()
        config._ensure_data_dir()
        config._load_settings()
        config._load_env()
        return config

    def _ensure_data_dir(self) -> None:
        """Create data directory if it doesn't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _load_env(self) -> None:
        """Environment variables override file values."""
        self.vosk_model_path = os.getenv("LOCALVOICE_MODEL_PATH", self.vosk_model_path)
        self.engine = os.getenv("LOCALVOICE_ENGINE", self.engine)

        min_confidence = os.getenv("LOCALVOICE_MIN_CONFIDENCE")
        if min_confidence:
            try:
                self.min_confidence = float(min_confidence)
            except ValueError:
                print(f"[Config] Ignoring LOCALVOICE_MIN_CONFIDENCE={min_confidence!r}: not a number")

    def _load_settings(self) -> None:
        """Load settings from settings.json."""
        # Check project root first
        project_settings = Path("settings.json")
        if project_settings.exists():
            self._apply_settings_file(project_settings)

        # Then check ~/.localvoice/settings.json (overrides)
        if self.settings_file.exists():
            self._apply_settings_file(self.settings_file)

    def _apply_settings_file(self, settings_file: Path) -> None:
        """Apply settings from a JSON file."""
        try:
            with open(settings_file) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"[Config] Error loading {settings_file}: {e}")
            return

        self.apply(data)

    def apply(self, data: dict) -> None:
        """Apply a settings mapping with type coercion against the defaults."""
        for key, default in DEFAULT_CONFIG.items():
            if key not in data:
                continue
            try:
                if isinstance(default, bool):
                    value = _to_bool(data[key])
                elif isinstance(default, list):
                    value = list(data[key])
                else:
                    value = type(default)(data[key])
            except (TypeError, ValueError) as e:
                print(f"[Config] Ignoring {key}={data[key]!r}: {e}")
                continue
            setattr(self, key, value)

    def save_settings(self) -> None:
        """Save user-facing settings to settings.json."""
        data = {key: getattr(self, key) for key in USER_SETTINGS_KEYS}

        self._ensure_data_dir()
        with open(self.settings_file, "w") as f:
            json.dump(data, f, indent=2)

    def snapshot(self) -> ConfigSnapshot:
        """Return immutable copy for session isolation."""
        return ConfigSnapshot(
            min_confidence=self.min_confidence,
            sample_rate=self.sample_rate,
            buffer_time_ms=self.buffer_time_ms,
            engine=self.engine,
            vosk_model_path=self.vosk_model_path,
            whisper_model=self.whisper_model,
            whisper_language=self.whisper_language,
            whisper_device=self.whisper_device,
            input_device=self.input_device,
            level_interval_ms=self.level_interval_ms,
            high_pass_hz=self.high_pass_hz,
            low_pass_hz=self.low_pass_hz,
            volume_normalization=self.volume_normalization,
            noise_gate=self.noise_gate,
            auto_capitalize=self.auto_capitalize,
            error_corrections=self.error_corrections,
            remove_duplicates=self.remove_duplicates,
            corrections=_freeze_pairs(self.corrections),
            proper_nouns=tuple(self.proper_nouns),
            save_recordings=self.save_recordings,
            recordings_dir=str(self.recordings_dir),
        )


def validate_snapshot(snapshot: ConfigSnapshot) -> None:
    """
    Check a snapshot before a session may start.

    Raises:
        ConfigError: on an invalid threshold, window, rule or engine
    """
    threshold = snapshot.min_confidence
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise ConfigError(f"min_confidence must be a number, got {threshold!r}")
    if not 0.0 <= threshold <= 1.0:
        raise ConfigError(f"min_confidence must be between 0 and 1, got {threshold}")

    if snapshot.buffer_time_ms < 0:
        raise ConfigError(f"buffer_time_ms must not be negative, got {snapshot.buffer_time_ms}")

    if snapshot.sample_rate <= 0:
        raise ConfigError(f"sample_rate must be positive, got {snapshot.sample_rate}")

    if snapshot.engine.lower() not in ENGINES:
        raise ConfigError(f"Unknown engine {snapshot.engine!r}, expected one of {ENGINES}")

    for rule in snapshot.corrections:
        if (not isinstance(rule, tuple) or len(rule) != 2
                or not all(isinstance(part, str) for part in rule)):
            raise ConfigError(f"Correction rule must be a [pattern, replacement] pair, got {rule!r}")
        if not rule[0]:
            raise ConfigError("Correction rule has an empty pattern")

    if not all(isinstance(noun, str) for noun in snapshot.proper_nouns):
        raise ConfigError("proper_nouns must be a list of strings")


def _freeze_pairs(pairs: List) -> Tuple:
    """Convert [[pattern, replacement], ...] to a tuple of tuples, keeping bad entries for validation."""
    frozen = []
    for pair in pairs:
        if isinstance(pair, (list, tuple)):
            frozen.append(tuple(pair))
        else:
            frozen.append(pair)
    return tuple(frozen)


def _copy_default(value):
    if isinstance(value, list):
        return [list(v) if isinstance(v, list) else v for v in value]
    return value


def _to_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)
