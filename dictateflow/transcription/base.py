"""Abstract base class for transcription backends."""

from abc import ABC, abstractmethod
from typing import List, Sequence
import logging

from ..models.transcription import Segment

logger = logging.getLogger(__name__)


class AbstractTranscriptionBackend(ABC):
    """Capability interface shared by every transcription provider."""

    service_name = "transcription"

    def __init__(self, sample_rate: int = 16000, channels: int = 1):
        """Initialize backend with the format of the audio it will receive."""
        self.sample_rate = sample_rate
        self.channels = channels
    
    @abstractmethod
    def transcribe(self, audio: bytes, vocabulary: Sequence[str] = ()) -> List[Segment]:
        """Transcribe LINEAR16 audio into segments ordered by time.
        
        Args:
            audio: Raw PCM audio
            vocabulary: Terms the provider should be biased towards
            
        Returns:
            Segments with timestamps relative to the start of ``audio``
            
        Raises:
            ProviderError: Network, authentication or request failure
            ParseError: The provider response could not be decoded
        """
        pass
    
    @abstractmethod
    def initialize(self) -> bool:
        """Initialize backend resources and verify configuration.
        
        Returns:
            True if initialization successful, False otherwise
        """
        pass
    
    def cleanup(self) -> None:
        """Clean up backend resources."""
        pass
