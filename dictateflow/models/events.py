"""Event models for capture callbacks and session notifications."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any


@dataclass
class AudioEvent:
    """Audio fragment delivered by the capture stream."""
    chunk_id: str
    audio_data: bytes
    timestamp: float  # Unix timestamp when fragment was captured
    sequence_number: int
    sample_rate: int = 16000
    channels: int = 1
    chunk_duration_ms: Optional[int] = None

    def __post_init__(self):
        """Calculate fragment duration if not provided."""
        if self.chunk_duration_ms is None and self.audio_data:
            # 16-bit audio, 2 bytes per sample
            bytes_per_second = self.sample_rate * self.channels * 2
            duration_seconds = len(self.audio_data) / bytes_per_second
            self.chunk_duration_ms = int(duration_seconds * 1000)


@dataclass
class SessionEvent:
    """Session lifecycle event, published after the change is durable."""
    event_type: str  # "created", "status", "segments", "edited", "cleared"
    session_id: Optional[str] = None
    session: Any = None  # Session snapshot, None when clearing
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)
