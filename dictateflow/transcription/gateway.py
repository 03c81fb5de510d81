"""Transcription gateway: selects a backend from settings and submits audio."""

import logging
import threading
from typing import Callable, Dict, Hashable, List, Tuple

from .base import AbstractTranscriptionBackend
from .google_backend import GoogleSpeechBackend
from .local_backend import LocalWhisperBackend
from ..config.settings import Settings, TranscriptionProvider
from ..exceptions import ProviderError, TranscriptionError
from ..models.transcription import Segment

logger = logging.getLogger(__name__)

BackendFactory = Callable[[Settings, int, int], AbstractTranscriptionBackend]


def create_backend(settings: Settings, sample_rate: int = 16000, channels: int = 1) -> AbstractTranscriptionBackend:
    """Build the backend selected by ``settings.provider``."""
    if settings.provider == TranscriptionProvider.LOCAL:
        return LocalWhisperBackend(
            base_url=settings.local.base_url,
            model_name=settings.local.model_name,
            sample_rate=sample_rate,
            channels=channels,
            timeout_seconds=settings.local.timeout_seconds,
        )
    return GoogleSpeechBackend(
        credentials_path=settings.google.credentials_path,
        sample_rate=sample_rate,
        channels=channels,
        language=settings.google.language,
        use_enhanced=settings.google.use_enhanced,
        enable_automatic_punctuation=settings.google.enable_automatic_punctuation,
        timeout_seconds=settings.google.timeout_seconds,
    )


def _backend_key(settings: Settings) -> Tuple[Hashable, ...]:
    if settings.provider == TranscriptionProvider.LOCAL:
        return (settings.provider.value,) + tuple(settings.local.model_dump().values())
    return (settings.provider.value,) + tuple(settings.google.model_dump().values())


class TranscriptionGateway:
    """Submits audio to the configured provider.

    No retries happen here; a failed call raises ``ProviderError`` or
    ``ParseError`` and the caller decides what to do with it.
    """

    def __init__(self,
                 sample_rate: int = 16000,
                 channels: int = 1,
                 backend_factory: BackendFactory = create_backend):
        self.sample_rate = sample_rate
        self.channels = channels
        self.backend_factory = backend_factory
        self._backends: Dict[Tuple[Hashable, ...], AbstractTranscriptionBackend] = {}
        self._lock = threading.Lock()

    def _backend_for(self, settings: Settings) -> AbstractTranscriptionBackend:
        key = _backend_key(settings)
        with self._lock:
            backend = self._backends.get(key)
            if backend is not None:
                return backend
            backend = self.backend_factory(settings, self.sample_rate, self.channels)
            try:
                ready = backend.initialize()
            except Exception as e:
                raise ProviderError(f"{backend.service_name} failed to initialize: {e}",
                                    backend.service_name) from e
            if not ready:
                raise ProviderError(f"{backend.service_name} failed to initialize", backend.service_name)
            logger.info(f"✅ {backend.service_name} backend initialized")
            self._backends[key] = backend
            return backend

    def submit(self, audio: bytes, settings: Settings) -> List[Segment]:
        """Transcribe ``audio`` with the provider and vocabulary from ``settings``.

        Returns:
            Segments ordered by time, relative to the start of ``audio``
        """
        backend = self._backend_for(settings)
        logger.debug(f"Submitting {len(audio)} bytes to {backend.service_name}")
        try:
            return backend.transcribe(audio, settings.custom_vocabulary)
        except TranscriptionError:
            raise
        except Exception as e:
            logger.error(f"Unexpected {backend.service_name} failure: {e}", exc_info=True)
            raise ProviderError(str(e), backend.service_name) from e

    def cleanup(self) -> None:
        with self._lock:
            backends = list(self._backends.values())
            self._backends.clear()
        for backend in backends:
            try:
                backend.cleanup()
            except Exception as e:
                logger.warning(f"Error cleaning up {backend.service_name}: {e}")
