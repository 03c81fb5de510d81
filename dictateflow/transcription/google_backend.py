"""Google Speech-to-Text transcription backend."""

import time
import logging
from typing import Optional, List, Sequence

from .base import AbstractTranscriptionBackend
from .timecode import format_time
from ..audio.wav import pcm_duration_seconds
from ..exceptions import ProviderError, ParseError
from ..models.transcription import Segment

from google.cloud import speech
from google.api_core import exceptions as gax_exceptions
from google.oauth2 import service_account

logger = logging.getLogger(__name__)

# Synchronous recognize rejects audio longer than one minute
SYNC_RECOGNIZE_LIMIT_SECONDS = 55.0


class GoogleSpeechBackend(AbstractTranscriptionBackend):
    """Google Speech-to-Text API backend for transcription."""

    service_name = "Google Speech-to-Text"

    def __init__(self,
                 credentials_path: Optional[str] = None,
                 sample_rate: int = 16000,
                 channels: int = 1,
                 language: str = "en-US",
                 use_enhanced: bool = True,
                 enable_automatic_punctuation: bool = True,
                 timeout_seconds: float = 120.0):
        """Initialize Google Speech backend.

        Args:
            credentials_path: Path to a service account JSON file. If None,
                application default credentials are used.
            language: Language code (e.g., 'en-US', 'es-ES')
            use_enhanced: Whether to use enhanced model (costs more but better quality)
            enable_automatic_punctuation: Enable automatic punctuation
            timeout_seconds: Per-request deadline
        """
        super().__init__(sample_rate, channels)
        self.credentials_path = credentials_path
        self.language = language
        self.use_enhanced = use_enhanced
        self.enable_automatic_punctuation = enable_automatic_punctuation
        self.timeout_seconds = timeout_seconds
        self.client = None
        self.project_id = None

    def initialize(self) -> bool:
        """Initialize Google Speech client and verify credentials."""
        if self.credentials_path:
            logger.info(f"Loading Google credentials from: {self.credentials_path}")
            credentials = service_account.Credentials.from_service_account_file(self.credentials_path)
            self.client = speech.SpeechClient(credentials=credentials)
            self.project_id = credentials.project_id
            logger.info(f"Using Google Cloud project: {self.project_id}")
        else:
            logger.info("Using application default credentials for Google Speech")
            self.client = speech.SpeechClient()

        logger.info("Google Speech-to-Text backend initialized successfully")
        return True

    def _build_config(self, vocabulary: Sequence[str]) -> speech.RecognitionConfig:
        speech_contexts = []
        if vocabulary:
            speech_contexts.append(speech.SpeechContext(phrases=list(vocabulary)))
        return speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=self.sample_rate,
            audio_channel_count=self.channels,
            language_code=self.language,
            use_enhanced=self.use_enhanced,
            enable_automatic_punctuation=self.enable_automatic_punctuation,
            # Word offsets give each result its start time
            enable_word_time_offsets=True,
            speech_contexts=speech_contexts,
            model="latest_long",
        )

    def transcribe(self, audio: bytes, vocabulary: Sequence[str] = ()) -> List[Segment]:
        """Transcribe audio using Google Speech-to-Text."""
        if self.client is None:
            raise ProviderError("Google Speech backend is not initialized", self.service_name)

        start_time = time.time()
        duration = pcm_duration_seconds(audio, self.sample_rate, self.channels)
        logger.debug(f"Audio size: {len(audio)} bytes ({duration:.1f}s); Language: {self.language}; "
                     f"Vocabulary terms: {len(vocabulary)}")

        config = self._build_config(vocabulary)
        recognition_audio = speech.RecognitionAudio(content=audio)
        try:
            if duration > SYNC_RECOGNIZE_LIMIT_SECONDS:
                operation = self.client.long_running_recognize(config=config, audio=recognition_audio)
                response = operation.result(timeout=self.timeout_seconds)
            else:
                response = self.client.recognize(config=config, audio=recognition_audio,
                                                 timeout=self.timeout_seconds)
        except gax_exceptions.DeadlineExceeded as e:
            logger.error("Google STT deadline exceeded")
            raise ProviderError(f"Google Speech recognize timeout: {e}", self.service_name) from e
        except gax_exceptions.ServiceUnavailable as e:
            logger.error("Google STT service unavailable")
            raise ProviderError(f"Google Speech service unavailable: {e}", self.service_name) from e
        except gax_exceptions.GoogleAPICallError as e:
            logger.error(f"Google STT API call error: {e}")
            raise ProviderError(f"Google Speech API error: {e}", self.service_name) from e
        except TimeoutError as e:
            raise ProviderError(f"Google Speech operation timeout: {e}", self.service_name) from e

        segments = self.extract_segments(response)
        logger.debug(f"Transcribed {len(segments)} segments in {time.time() - start_time:.3f}s")
        return segments

    def extract_segments(self, response) -> List[Segment]:
        """Decode a recognize response into one segment per result.

        A result starts at its first word's offset; results without word
        offsets start where the previous result ended.
        """
        segments = []
        previous_end = 0.0
        try:
            for result in response.results:
                end_time = result.result_end_time.total_seconds() if result.result_end_time else previous_end
                if not result.alternatives:
                    previous_end = end_time
                    continue
                alternative = result.alternatives[0]
                text = alternative.transcript.strip()
                if alternative.words:
                    start = alternative.words[0].start_time.total_seconds()
                else:
                    start = previous_end
                previous_end = end_time
                if not text:
                    continue
                segments.append(Segment(timestamp=format_time(start), text=text))
        except (AttributeError, TypeError, IndexError) as e:
            raise ParseError(f"Malformed Google Speech response: {e}", self.service_name) from e

        if not segments:
            logger.debug("--- NO SPEECH DETECTED ---")
        return segments
