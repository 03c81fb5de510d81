"""Services layer for DictateFlow application logic."""

from .recording_service import RecordingService
from .session_manager import SessionManager
from .publisher import SessionPublisher, SESSION_TOPIC

__all__ = [
    "RecordingService",
    "SessionManager",
    "SessionPublisher",
    "SESSION_TOPIC",
]
