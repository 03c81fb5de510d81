"""Segment merger that keeps a transcript ordered by time offset."""

import logging
from typing import List, Sequence, Union

from ..models.transcription import Segment
from .timecode import parse_time, shift_time

logger = logging.getLogger(__name__)


def segment_offset(segment: Segment) -> int:
    """Sortable offset of a segment in whole seconds."""
    return parse_time(segment.timestamp)


def shift_segments(segments: Sequence[Segment], offset_seconds: Union[int, float]) -> List[Segment]:
    """Move chunk-relative segments onto the session's time axis."""
    return [Segment(timestamp=shift_time(s.timestamp, offset_seconds), text=s.text) for s in segments]


def merge_segments(existing: Sequence[Segment], incoming: Sequence[Segment]) -> List[Segment]:
    """Merge incoming segments into an existing transcript.

    The result is ``existing + incoming`` stable-sorted by decoded offset.
    Nothing is de-duplicated; overlapping ranges from late or retried chunks
    all keep a position, and equal offsets keep submission order.
    """
    merged = list(existing)
    merged.extend(incoming)
    merged.sort(key=segment_offset)
    logger.debug(f"Merged {len(incoming)} segments into {len(existing)} existing ({len(merged)} total)")
    return merged
