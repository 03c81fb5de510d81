"""Audio capture module with continuous recording and fragment callbacks."""

import pyaudio
import time
import logging
from threading import Thread, Event, Lock
from typing import Optional, Callable
from datetime import datetime

import numpy as np

from ..exceptions import CaptureError
from ..models.audio import AudioStats
from ..models.events import AudioEvent

logger = logging.getLogger(__name__)


class AudioCapture:
    """Continuous microphone capture that hands each fragment to a callback."""

    def __init__(
        self,
        callback: Callable[[AudioEvent], None],
        sample_rate: int = 16000,
        chunk_size: int = 1024,
        channels: int = 1,
        format: int = pyaudio.paInt16,
    ):
        """Initialize audio capture with specified parameters.

        Args:
            callback: Receives every captured AudioEvent, on the capture thread
            sample_rate: Audio sample rate
            chunk_size: Size of each audio fragment in samples
            channels: Number of audio channels (1 for mono)
            format: Audio format (16-bit signed int)
        """
        self.audio_event_callback = callback
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.channels = channels
        self.format = format

        # Recording thread management
        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_recording = False

        # Statistics tracking
        self.start_time: Optional[datetime] = None
        self.total_chunks = 0
        self.peak_level = 0.0

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream: Optional[pyaudio.Stream] = None
        self._close_lock = Lock()

    def start_recording(self) -> None:
        """Open the input device and start recording in a background thread.

        Raises:
            CaptureError: If the input device cannot be opened
        """
        if self.is_recording:
            logger.warning("Recording already in progress")
            return

        logger.info("Starting audio recording")
        try:
            self.pyaudio_instance = pyaudio.PyAudio()
            self.stream = self.pyaudio_instance.open(
                format=self.format,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.chunk_size,
                stream_callback=None
            )
        except (OSError, IOError) as e:
            self._close_stream()
            logger.error(f"Error accessing microphone: {e}")
            raise CaptureError(f"Microphone access denied: {e}") from e

        logger.info(f"Audio stream opened: {self.sample_rate}Hz, {self.chunk_size} samples/chunk")
        self.stop_event.clear()
        self.start_time = datetime.now()
        self.total_chunks = 0
        self.peak_level = 0.0

        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "AudioCaptureThread"
        self.recording_thread.start()
        self.is_recording = True

    def stop_recording(self) -> None:
        """Stop recording and release the input device."""
        if not self.is_recording:
            self._close_stream()
            return

        logger.info("Stopping audio recording")
        self.stop_event.set()

        if self.recording_thread and self.recording_thread.is_alive():
            self.recording_thread.join(timeout=2.0)
            if self.recording_thread.is_alive():
                logger.warning("Recording thread did not stop cleanly")

        self._close_stream()
        self.is_recording = False
        logger.info(f"Recording stopped. Total chunks: {self.total_chunks}")

    def _close_stream(self) -> None:
        with self._close_lock:
            if self.stream is not None:
                try:
                    self.stream.stop_stream()
                    self.stream.close()
                except (OSError, IOError) as e:
                    logger.warning(f"Error closing audio stream: {e}")
                self.stream = None
            if self.pyaudio_instance is not None:
                try:
                    self.pyaudio_instance.terminate()
                except (OSError, IOError) as e:
                    logger.warning(f"Error terminating PyAudio: {e}")
                self.pyaudio_instance = None

    def _read_audio_chunk(self) -> bytes:
        audio_chunk = self.stream.read(self.chunk_size, exception_on_overflow=False)
        self.total_chunks += 1

        samples = np.frombuffer(audio_chunk, dtype=np.int16)
        if samples.size:
            level = float(np.abs(samples.astype(np.int32)).max()) / 32768.0
            self.peak_level = max(self.peak_level, level)
        return audio_chunk

    def _record_continuously(self) -> None:
        """Internal method: continuous recording loop in background thread."""
        try:
            while not self.stop_event.is_set():
                audio_chunk = self._read_audio_chunk()
                audio_event = AudioEvent(
                    chunk_id=f"chunk_{self.total_chunks}",
                    audio_data=audio_chunk,
                    timestamp=time.time(),
                    sequence_number=self.total_chunks,
                    sample_rate=self.sample_rate,
                    channels=self.channels,
                )
                self.audio_event_callback(audio_event)
        except Exception as e:
            logger.error(f"Audio capture loop failed: {e}", exc_info=True)

    def get_recording_stats(self) -> AudioStats:
        """Get current recording statistics."""
        duration = 0.0
        if self.start_time:
            duration = (datetime.now() - self.start_time).total_seconds()

        return AudioStats(
            is_recording=self.is_recording,
            duration_seconds=duration,
            sample_rate=self.sample_rate,
            chunk_size=self.chunk_size,
            total_chunks=self.total_chunks,
            peak_level=self.peak_level,
        )
