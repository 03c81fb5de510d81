"""Session-related data models."""

import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Dict, Any

from .transcription import Segment


class SessionStatus(Enum):
    """Lifecycle state of a recording session."""
    RECORDING = "RECORDING"
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.ERROR)


class RecordingMode(Enum):
    """Whether a recording starts a new session or extends the active one."""
    NEW = "NEW"
    APPEND = "APPEND"


@dataclass
class Session:
    """One recording-to-transcript unit of work."""
    id: str
    created_at: float  # Unix timestamp, sort key for history
    status: SessionStatus
    audio: bytes = b''  # Raw LINEAR16 PCM
    segments: List[Segment] = field(default_factory=list)
    error_message: Optional[str] = None

    @classmethod
    def create(cls, status: SessionStatus = SessionStatus.RECORDING) -> "Session":
        """Create a fresh session with a new id and the current time."""
        return cls(id=uuid.uuid4().hex, created_at=time.time(), status=status)

    def copy(self) -> "Session":
        """Snapshot that shares no mutable state with this session."""
        return replace(self, segments=list(self.segments))

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match over segment text."""
        needle = query.lower()
        return any(needle in segment.text.lower() for segment in self.segments)

    def transcript_text(self) -> str:
        """Render the transcript as "[MM:SS] text" lines."""
        return "\n".join(f"[{s.timestamp}] {s.text}" for s in self.segments)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize everything but the audio payload."""
        data = {
            "id": self.id,
            "created_at": self.created_at,
            "status": self.status.value,
            "segments": [segment.to_dict() for segment in self.segments],
        }
        if self.error_message is not None:
            data["error_message"] = self.error_message
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], audio: bytes = b'') -> "Session":
        return cls(
            id=data["id"],
            created_at=float(data["created_at"]),
            status=SessionStatus(data["status"]),
            audio=audio,
            segments=[Segment.from_dict(s) for s in data.get("segments", [])],
            error_message=data.get("error_message"),
        )
