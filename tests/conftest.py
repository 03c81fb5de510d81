"""Pytest configuration and fixtures for DictateFlow tests."""

import pytest
import tempfile
import threading
import time
import logging
from typing import Callable, List, Optional, Sequence, Union
from unittest.mock import Mock, patch
import numpy as np
from pubsub import pub

from dictateflow.config.settings import InMemorySettingsStore, Settings
from dictateflow.exceptions import CaptureError
from dictateflow.models.events import AudioEvent
from dictateflow.models.transcription import Segment
from dictateflow.services.publisher import SESSION_TOPIC, SessionPublisher
from dictateflow.services.recording_service import RecordingService
from dictateflow.services.session_manager import SessionManager
from dictateflow.storage.session_store import InMemorySessionStore
from dictateflow.transcription.base import AbstractTranscriptionBackend
from dictateflow.transcription.gateway import TranscriptionGateway


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without real hardware or network")
    config.addinivalue_line("markers", "integration: tests that exercise several components together")


Response = Union[List[Segment], Exception, Callable[[bytes], List[Segment]]]


class ScriptedBackend(AbstractTranscriptionBackend):
    """Transcription backend that answers from a script of responses.

    Each call consumes the next response: a list of segments is returned, an
    exception is raised, a callable is invoked with the audio. When the
    script runs out ``default`` is returned.
    """

    service_name = "Scripted"

    def __init__(self, responses: Sequence[Response] = (), default: Optional[List[Segment]] = None):
        super().__init__()
        self.responses = list(responses)
        self.default = default if default is not None else []
        self.calls = []
        self.initialized = False
        self.lock = threading.Lock()

    def initialize(self) -> bool:
        self.initialized = True
        return True

    def script(self, *responses: Response) -> None:
        with self.lock:
            self.responses.extend(responses)

    def transcribe(self, audio: bytes, vocabulary: Sequence[str] = ()) -> List[Segment]:
        with self.lock:
            self.calls.append((audio, list(vocabulary)))
            response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(audio)
        return list(response)


class FakeCapture:
    """Audio capture that only delivers the fragments a test emits."""

    def __init__(self, callback: Callable[[AudioEvent], None], fail: bool = False):
        self.callback = callback
        self.fail = fail
        self.is_recording = False
        self.started = False
        self.stopped = False
        self.sequence = 0

    def start_recording(self) -> None:
        if self.fail:
            raise CaptureError("Microphone access denied: no input device")
        self.started = True
        self.is_recording = True

    def stop_recording(self) -> None:
        self.is_recording = False
        self.stopped = True

    def emit(self, audio_data: bytes) -> None:
        self.sequence += 1
        self.callback(AudioEvent(
            chunk_id=f"chunk_{self.sequence}",
            audio_data=audio_data,
            timestamp=time.time(),
            sequence_number=self.sequence,
        ))

    def get_recording_stats(self):
        return None


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def sample_audio_chunk():
    """Generate a sample audio chunk for testing."""
    # Generate 1024 samples of 16-bit audio (sine wave)
    sample_rate = 16000
    duration = 1024 / sample_rate  # ~0.064 seconds
    freq = 440  # A4 note

    t = np.linspace(0, duration, 1024, False)
    wave_data = np.sin(2 * np.pi * freq * t)

    # Convert to 16-bit integers
    audio_data = (wave_data * 32767).astype(np.int16)
    return audio_data.tobytes()


@pytest.fixture
def audio_test_data():
    """Generate various audio test data patterns."""
    def generate_audio(pattern="sine", duration_seconds=1.0, sample_rate=16000):
        """Generate audio data for testing.

        Args:
            pattern: Type of audio pattern ('sine', 'silence')
            duration_seconds: Duration of audio
            sample_rate: Sample rate in Hz

        Returns:
            bytes: Audio data as bytes
        """
        samples = int(duration_seconds * sample_rate)

        if pattern == "sine":
            t = np.linspace(0, duration_seconds, samples, False)
            wave_data = np.sin(2 * np.pi * 440 * t)
        elif pattern == "silence":
            wave_data = np.zeros(samples)
        else:
            raise ValueError(f"Unknown pattern: {pattern}")

        audio_data = (wave_data * 32767).astype(np.int16)
        return audio_data.tobytes()

    return generate_audio


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        # Configure mock stream
        mock_stream.read.return_value = b'\x00' * 2048  # Silent audio
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        # Configure mock PyAudio instance
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def scripted_backend():
    return ScriptedBackend()


@pytest.fixture
def gateway(scripted_backend):
    """Gateway whose every provider resolves to the scripted backend."""
    return TranscriptionGateway(backend_factory=lambda settings, sample_rate, channels: scripted_backend)


@pytest.fixture
def captures():
    """Every FakeCapture built by ``capture_factory``, in creation order."""
    return []


@pytest.fixture
def capture_factory(captures):
    def factory(callback):
        capture = FakeCapture(callback)
        captures.append(capture)
        return capture
    return factory


@pytest.fixture
def failing_capture_factory():
    """Capture factory whose devices always refuse to open."""
    return lambda callback: FakeCapture(callback, fail=True)


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def settings_store():
    return InMemorySettingsStore()


@pytest.fixture
def make_service(session_store, settings_store, gateway, capture_factory):
    """Build a RecordingService over in-memory stores and fakes.

    Streaming tests stop the flush timer and flush chunks explicitly
    through the active scheduler.
    """
    services = []

    def build(settings: Optional[Settings] = None, store=None, factory=None, **kwargs):
        if settings is not None:
            settings_store.save(settings.model_dump(mode='json'))
        kwargs.setdefault('chunk_interval_seconds', 5.0)
        kwargs.setdefault('stop_timeout_seconds', 5.0)
        service = RecordingService(
            session_manager=SessionManager(store or session_store),
            gateway=gateway,
            settings_store=settings_store,
            capture_factory=factory or capture_factory,
            publisher=SessionPublisher(),
            **kwargs,
        )
        services.append(service)
        return service

    yield build

    for service in services:
        service.cleanup()


@pytest.fixture
def session_events():
    """Collect every published session event during a test."""
    events = []

    def listener(event):
        events.append(event)

    pub.subscribe(listener, SESSION_TOPIC)
    yield events
    pub.unsubscribe(listener, SESSION_TOPIC)
