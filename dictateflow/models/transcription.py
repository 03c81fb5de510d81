"""Transcription-related data models."""

from dataclasses import dataclass, asdict
from typing import Dict, Any


@dataclass(frozen=True)
class Segment:
    """One timestamped span of transcribed text.

    ``timestamp`` is the "MM:SS" display form; use
    ``transcription.timecode.parse_time`` for the sortable offset.
    """
    timestamp: str
    text: str

    def with_text(self, text: str) -> "Segment":
        """Return a replacement record at the same time position."""
        return Segment(timestamp=self.timestamp, text=text)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Segment":
        return cls(timestamp=str(data.get('timestamp', '00:00')), text=str(data.get('text', '')))
