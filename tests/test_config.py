"""
Tests for Config loading, snapshots and validation.
"""

import dataclasses
import json

import pytest


class TestConfigDefaults:
    """Tests for default values."""

    def test_defaults(self):
        from localvoice.config import Config

        config = Config()

        assert config.min_confidence == 0.7
        assert config.buffer_time_ms == 2000
        assert config.sample_rate == 16000
        assert config.engine == "vosk"
        assert config.trigger_mode == "toggle"
        assert "monday" in config.proper_nouns
        assert "december" in config.proper_nouns

    def test_default_lists_are_copies(self):
        """Mutating one config's lists doesn't leak into the defaults."""
        from localvoice.config import Config, DEFAULT_CONFIG

        config = Config()
        config.corrections.append(["x", "y"])
        config.corrections[0][1] = "changed"

        assert ["x", "y"] not in DEFAULT_CONFIG["corrections"]
        assert DEFAULT_CONFIG["corrections"][0][1] == "that that"


class TestConfigApply:
    """Tests for applying settings mappings."""

    def test_apply_coerces_types(self):
        from localvoice.config import Config

        config = Config()
        config.apply({
            "min_confidence": "0.5",
            "buffer_time_ms": "1500",
            "save_recordings": "yes",
            "auto_capitalize": "false",
        })

        assert config.min_confidence == 0.5
        assert config.buffer_time_ms == 1500
        assert config.save_recordings is True
        assert config.auto_capitalize is False

    def test_apply_ignores_bad_values_and_unknown_keys(self):
        from localvoice.config import Config

        config = Config()
        config.apply({"buffer_time_ms": "soon", "not_a_setting": 1})

        assert config.buffer_time_ms == 2000
        assert not hasattr(config, "not_a_setting")

    def test_env_overrides(self, monkeypatch):
        from localvoice.config import Config

        monkeypatch.setenv("LOCALVOICE_MIN_CONFIDENCE", "0.4")
        monkeypatch.setenv("LOCALVOICE_ENGINE", "whisper")
        monkeypatch.setenv("LOCALVOICE_MODEL_PATH", "/models/small")

        config = Config()
        config._load_env()

        assert config.min_confidence == 0.4
        assert config.engine == "whisper"
        assert config.vosk_model_path == "/models/small"

    def test_env_invalid_number_ignored(self, monkeypatch):
        from localvoice.config import Config

        monkeypatch.setenv("LOCALVOICE_MIN_CONFIDENCE", "high")

        config = Config()
        config._load_env()

        assert config.min_confidence == 0.7

    def test_load_reads_user_settings(self, tmp_path, monkeypatch):
        """Config.load() applies ~/.localvoice/settings.json."""
        from localvoice.config import Config

        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.chdir(tmp_path)
        for name in ("LOCALVOICE_MIN_CONFIDENCE", "LOCALVOICE_ENGINE", "LOCALVOICE_MODEL_PATH"):
            monkeypatch.delenv(name, raising=False)

        settings_dir = tmp_path / ".localvoice"
        settings_dir.mkdir()
        (settings_dir / "settings.json").write_text(json.dumps({"buffer_time_ms": 3000}))

        config = Config.load()

        assert config.buffer_time_ms == 3000
        assert config.data_dir == settings_dir

    def test_malformed_settings_file_ignored(self, tmp_path):
        from localvoice.config import Config

        settings = tmp_path / "settings.json"
        settings.write_text("{not json")

        config = Config()
        config._apply_settings_file(settings)

        assert config.buffer_time_ms == 2000

    def test_save_settings_round_trip(self, tmp_path):
        from localvoice.config import Config, USER_SETTINGS_KEYS

        config = Config()
        config.data_dir = tmp_path
        config.settings_file = tmp_path / "settings.json"
        config.min_confidence = 0.6
        config.save_settings()

        data = json.loads(config.settings_file.read_text())
        assert set(data) == set(USER_SETTINGS_KEYS)
        assert data["min_confidence"] == 0.6


class TestSnapshot:
    """Tests for immutable snapshots."""

    def test_snapshot_is_frozen(self):
        from localvoice.config import Config

        snapshot = Config().snapshot()

        with pytest.raises(dataclasses.FrozenInstanceError):
            snapshot.min_confidence = 0.1

    def test_snapshot_isolated_from_later_changes(self):
        from localvoice.config import Config

        config = Config()
        snapshot = config.snapshot()
        config.min_confidence = 0.2
        config.corrections.append(["a", "b"])

        assert snapshot.min_confidence == 0.7
        assert ("a", "b") not in snapshot.corrections

    def test_corrections_frozen_as_tuples(self):
        from localvoice.config import Config

        snapshot = Config().snapshot()

        assert snapshot.corrections[0] == (r"\bat that\b", "that that")


class TestValidateSnapshot:
    """Tests for validate_snapshot()."""

    def test_defaults_are_valid(self):
        from localvoice.config import Config, validate_snapshot

        validate_snapshot(Config().snapshot())

    @pytest.mark.parametrize("overrides", [
        {"min_confidence": 1.5},
        {"min_confidence": -0.1},
        {"min_confidence": "high"},
        {"buffer_time_ms": -1},
        {"sample_rate": 0},
        {"engine": "cloud"},
        {"corrections": (("only-pattern",),)},
        {"corrections": (("", "x"),)},
        {"proper_nouns": ("monday", 3)},
    ])
    def test_invalid_snapshots(self, overrides):
        from localvoice.config import validate_snapshot
        from localvoice.errors import ConfigError
        from localvoice.types import ConfigSnapshot

        with pytest.raises(ConfigError):
            validate_snapshot(ConfigSnapshot(**overrides))

    def test_zero_buffer_allowed(self):
        from localvoice.config import validate_snapshot
        from localvoice.types import ConfigSnapshot

        validate_snapshot(ConfigSnapshot(buffer_time_ms=0))
