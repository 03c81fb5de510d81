"""Transcription backend for self-hosted OpenAI-compatible servers."""

import asyncio
import json
import logging
from typing import Any, List, Optional, Sequence

import aiohttp
from pydantic import BaseModel, ValidationError

from .base import AbstractTranscriptionBackend
from .timecode import format_time
from ..audio.wav import pcm_to_wav
from ..exceptions import ProviderError, ParseError
from ..models.transcription import Segment

logger = logging.getLogger(__name__)


class VerboseSegment(BaseModel):
    start: Optional[float] = None
    text: Optional[str] = None


class VerboseTranscription(BaseModel):
    """verbose_json body of /audio/transcriptions."""
    text: Optional[str] = None
    segments: Optional[List[VerboseSegment]] = None


def normalize_base_url(base_url: str) -> str:
    """Strip trailing slashes and default to http:// when no scheme is given."""
    url = base_url.strip().rstrip('/')
    if not url.startswith('http'):
        url = f"http://{url}"
    return url


def vocabulary_prompt(vocabulary: Sequence[str]) -> Optional[str]:
    """Prompt that biases Whisper towards the given terms."""
    if not vocabulary:
        return None
    return f"The transcript contains the following technical terms: {', '.join(vocabulary)}."


def map_response_to_segments(data: Any) -> List[Segment]:
    """Map an OpenAI-compatible response onto segments.

    Verbose responses carry ``segments[]``; servers that only return
    ``{"text": ...}`` yield a single segment at 00:00.
    """
    if not isinstance(data, dict):
        raise ParseError("Unknown response format from local server.", LocalWhisperBackend.service_name)
    try:
        body = VerboseTranscription.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Malformed response from local server: {e}", LocalWhisperBackend.service_name) from e

    if body.segments is not None:
        return [
            Segment(timestamp=format_time(s.start or 0), text=(s.text or "").strip())
            for s in body.segments
        ]

    if body.text:
        return [Segment(timestamp="00:00", text=body.text.strip())]

    raise ParseError("Unknown response format from local server.", LocalWhisperBackend.service_name)


class LocalWhisperBackend(AbstractTranscriptionBackend):
    """Multipart upload to ``{base_url}/audio/transcriptions``."""

    service_name = "Local Whisper"

    def __init__(self,
                 base_url: str = "http://localhost:1234/v1",
                 model_name: str = "whisper-1",
                 sample_rate: int = 16000,
                 channels: int = 1,
                 timeout_seconds: float = 120.0):
        super().__init__(sample_rate, channels)
        self.base_url = normalize_base_url(base_url)
        self.model_name = model_name or "whisper-1"
        self.timeout_seconds = timeout_seconds
        self.endpoint = f"{self.base_url}/audio/transcriptions"

    def initialize(self) -> bool:
        logger.info(f"Local transcription endpoint: {self.endpoint} (model={self.model_name})")
        return True

    def transcribe(self, audio: bytes, vocabulary: Sequence[str] = ()) -> List[Segment]:
        """Upload the audio and decode the server's segments."""
        data = asyncio.run(self.post_audio(audio, vocabulary))
        return map_response_to_segments(data)

    async def post_audio(self, audio: bytes, vocabulary: Sequence[str] = ()) -> Any:
        """POST the audio as multipart form data and return the decoded JSON body."""
        form = aiohttp.FormData()
        # The filename lets the server detect the container format
        form.add_field('file', pcm_to_wav(audio, self.sample_rate, self.channels),
                       filename='recording.wav', content_type='audio/wav')
        form.add_field('model', self.model_name)
        form.add_field('response_format', 'verbose_json')
        prompt = vocabulary_prompt(vocabulary)
        if prompt:
            form.add_field('prompt', prompt)

        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.endpoint, data=form) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise ProviderError(f"Local Server Error ({response.status}): {error_text}",
                                            self.service_name)
                    body = await response.text()
        except aiohttp.ClientError as e:
            logger.error(f"Local transcription request failed: {e}")
            raise ProviderError(f"Local server unreachable: {e}", self.service_name) from e
        except asyncio.TimeoutError as e:
            raise ProviderError(f"Local server timed out after {self.timeout_seconds}s",
                                self.service_name) from e

        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise ParseError(f"Local server returned invalid JSON: {e}", self.service_name) from e
