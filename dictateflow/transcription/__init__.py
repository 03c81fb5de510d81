"""Transcription module for DictateFlow."""

from .base import AbstractTranscriptionBackend
from .google_backend import GoogleSpeechBackend
from .local_backend import LocalWhisperBackend
from .gateway import TranscriptionGateway, create_backend
from .merger import merge_segments, shift_segments, segment_offset
from .scheduler import ChunkScheduler
from .timecode import format_time, parse_time

__all__ = [
    "AbstractTranscriptionBackend",
    "GoogleSpeechBackend",
    "LocalWhisperBackend",
    "TranscriptionGateway",
    "create_backend",
    "merge_segments",
    "shift_segments",
    "segment_offset",
    "ChunkScheduler",
    "format_time",
    "parse_time",
]
