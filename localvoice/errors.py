"""Exception hierarchy for LocalVoice."""


class LocalVoiceError(Exception):
    """Base exception for LocalVoice errors."""


class ConfigError(LocalVoiceError):
    """Invalid configuration. Raised at session start, before audio is accepted."""


class AudioStreamError(LocalVoiceError):
    """Audio capture failed. Fatal to the current session only."""


class RecognizerError(LocalVoiceError):
    """The speech recognizer could not be loaded or produced no usable result."""
