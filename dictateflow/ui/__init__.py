"""Terminal UI for DictateFlow."""

from .display import SessionDisplay, RecordingMonitor

__all__ = [
    "SessionDisplay",
    "RecordingMonitor",
]
