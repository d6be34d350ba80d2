"""
LocalVoice - Offline dictation that types as you speak.

This package provides:
- Streaming recognition (Vosk) or batch recognition (faster-whisper)
- Incremental word commitment: each word is typed once, never retracted
- A post-stop buffer window so trailing speech isn't cut off
- Confidence filtering, corrections and capitalization for the final tail

Main entry point: python -m localvoice
"""

__version__ = "1.0.0"
