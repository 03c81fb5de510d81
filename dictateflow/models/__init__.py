"""Data models for the DictateFlow application."""

from .transcription import Segment
from .session import Session, SessionStatus, RecordingMode
from .audio import AudioStats
from .events import AudioEvent, SessionEvent

__all__ = [
    "Segment",
    "Session",
    "SessionStatus",
    "RecordingMode",
    "AudioStats",
    "AudioEvent",
    "SessionEvent",
]
