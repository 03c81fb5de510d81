"""Exception types for DictateFlow."""

from typing import Optional


class DictateFlowError(Exception):
    """Base class for all DictateFlow errors."""


class CaptureError(DictateFlowError):
    """The audio input device could not be acquired."""


class TranscriptionError(DictateFlowError):
    """A transcription provider call failed."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.provider = provider


class ProviderError(TranscriptionError):
    """Network, authentication or request format failure at the provider."""


class ParseError(TranscriptionError):
    """The provider answered, but the response could not be decoded."""


class FinalizeTranscriptionError(DictateFlowError):
    """Transcribing a session's full audio failed.

    The session has already been moved to ERROR and persisted when this is
    raised; ``session`` is that persisted copy.
    """

    def __init__(self, message: str, session=None):
        super().__init__(message)
        self.message = message
        self.session = session


class PersistenceError(DictateFlowError):
    """A write to the session store failed."""


class SessionStateError(DictateFlowError):
    """The requested operation is not valid in the session's current state."""


class SessionNotFoundError(DictateFlowError):
    """No session exists with the given id."""
