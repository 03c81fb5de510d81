"""Unit tests for AudioCapture class."""

import pytest
import time
from unittest.mock import Mock, patch

from dictateflow.audio.capture import AudioCapture
from dictateflow.exceptions import CaptureError
from dictateflow.models.audio import AudioStats


@pytest.mark.unit
class TestAudioCapture:
    """Test cases for AudioCapture class."""

    def test_initialization(self):
        """Test AudioCapture initialization with default parameters."""
        capture = AudioCapture(callback=Mock())

        assert capture.sample_rate == 16000
        assert capture.chunk_size == 1024
        assert capture.channels == 1
        assert capture.is_recording is False
        assert capture.total_chunks == 0
        assert capture.peak_level == 0.0

    def test_start_recording(self, mock_pyaudio):
        """Test starting audio recording."""
        capture = AudioCapture(callback=Mock())

        with patch.object(capture, '_record_continuously') as mock_record:
            capture.start_recording()

            assert capture.is_recording is True
            assert capture.start_time is not None
            assert capture.recording_thread.daemon is True
            mock_record.assert_called_once()

        mock_pyaudio['instance'].open.assert_called_once()
        assert mock_pyaudio['instance'].open.call_args.kwargs['rate'] == 16000

    def test_start_recording_already_recording(self, mock_pyaudio):
        """Test starting recording when already recording."""
        capture = AudioCapture(callback=Mock())
        capture.is_recording = True

        with patch.object(capture, '_record_continuously') as mock_record:
            capture.start_recording()
            mock_record.assert_not_called()

    def test_device_failure_raises_capture_error(self, mock_pyaudio):
        """Opening a missing or denied device raises CaptureError and releases PyAudio."""
        mock_pyaudio['instance'].open.side_effect = OSError("[Errno -9996] Invalid input device")
        capture = AudioCapture(callback=Mock())

        with pytest.raises(CaptureError, match="Microphone access denied"):
            capture.start_recording()

        assert capture.is_recording is False
        assert capture.recording_thread is None
        mock_pyaudio['instance'].terminate.assert_called_once()

    def test_stop_recording(self, mock_pyaudio):
        """Test stopping audio recording."""
        capture = AudioCapture(callback=Mock())

        with patch.object(capture, '_record_continuously'):
            capture.start_recording()
            capture.stop_recording()

        assert capture.is_recording is False
        assert capture.stop_event.is_set()
        mock_pyaudio['stream'].close.assert_called_once()
        mock_pyaudio['instance'].terminate.assert_called_once()

    def test_stop_recording_survives_terminate_failure(self, mock_pyaudio):
        """Test that a failing PyAudio terminate still releases the capture."""
        mock_pyaudio['instance'].terminate.side_effect = OSError("device vanished")
        capture = AudioCapture(callback=Mock())

        with patch.object(capture, '_record_continuously'):
            capture.start_recording()
            capture.stop_recording()

        assert capture.is_recording is False
        assert capture.pyaudio_instance is None

    def test_stop_recording_not_recording(self, mock_pyaudio):
        """Test stopping recording when not recording."""
        capture = AudioCapture(callback=Mock())
        capture.stop_recording()
        assert capture.is_recording is False

    def test_fragments_reach_callback(self, mock_pyaudio, sample_audio_chunk):
        """Every fragment read from the stream is delivered as an AudioEvent."""
        mock_pyaudio['stream'].read.return_value = sample_audio_chunk
        events = []
        capture = AudioCapture(callback=events.append)

        capture.start_recording()
        time.sleep(0.1)
        capture.stop_recording()

        assert events
        assert events[0].audio_data == sample_audio_chunk
        assert events[0].sequence_number == 1
        assert [e.sequence_number for e in events] == list(range(1, len(events) + 1))
        # A full-scale sine wave
        assert capture.peak_level > 0.9

    def test_callback_failure_ends_loop(self, mock_pyaudio):
        """A failing callback stops the capture loop without crashing the process."""
        capture = AudioCapture(callback=Mock(side_effect=RuntimeError("consumer broke")))

        capture.start_recording()
        capture.recording_thread.join(timeout=1.0)

        assert not capture.recording_thread.is_alive()
        capture.stop_recording()

    def test_get_recording_stats(self, mock_pyaudio):
        """Test getting recording statistics."""
        capture = AudioCapture(callback=Mock())

        stats = capture.get_recording_stats()

        assert isinstance(stats, AudioStats)
        assert stats.is_recording is False
        assert stats.duration_seconds == 0.0
        assert stats.total_chunks == 0
