"""WAV container helpers for raw LINEAR16 audio."""

import io
import wave
import logging
from pathlib import Path
from typing import Tuple

logger = logging.getLogger(__name__)

SAMPLE_WIDTH_BYTES = 2  # 16-bit audio


def pcm_to_wav(pcm: bytes, sample_rate: int = 16000, channels: int = 1) -> bytes:
    """Wrap raw PCM in a WAV container."""
    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(SAMPLE_WIDTH_BYTES)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buffer.getvalue()


def save_wav(path: Path, pcm: bytes, sample_rate: int = 16000, channels: int = 1) -> None:
    """Write raw PCM to a WAV file."""
    with wave.open(str(path), 'wb') as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(SAMPLE_WIDTH_BYTES)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    logger.debug(f"Audio saved to {path} ({len(pcm)} bytes)")


def load_wav(path: Path) -> Tuple[bytes, int, int]:
    """Read a WAV file.

    Returns:
        Tuple of (pcm_bytes, sample_rate, channels)
    """
    with wave.open(str(path), 'rb') as wf:
        return wf.readframes(wf.getnframes()), wf.getframerate(), wf.getnchannels()


def pcm_duration_seconds(pcm: bytes, sample_rate: int = 16000, channels: int = 1) -> float:
    return len(pcm) / float(sample_rate * channels * SAMPLE_WIDTH_BYTES)
