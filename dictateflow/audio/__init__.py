"""Audio capture and WAV helpers."""

from .capture import AudioCapture
from .wav import pcm_to_wav, save_wav, load_wav

__all__ = [
    'AudioCapture',
    'pcm_to_wav',
    'save_wav',
    'load_wav',
]
