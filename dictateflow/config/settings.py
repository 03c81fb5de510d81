"""User settings and the store that persists them between runs."""

import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Dict, Any, List, Optional

from pydantic import BaseModel, Field, ValidationError

from . import merge_dicts

logger = logging.getLogger(__name__)


class TranscriptionProvider(str, Enum):
    """Which transcription backend a session is sent to."""
    GOOGLE = "google"
    LOCAL = "local"


class GoogleSettings(BaseModel):
    """Connection parameters for Google Speech-to-Text."""
    credentials_path: Optional[str] = None
    language: str = "en-US"
    use_enhanced: bool = True
    enable_automatic_punctuation: bool = True
    timeout_seconds: float = 120.0


class LocalSettings(BaseModel):
    """Connection parameters for an OpenAI-compatible local server."""
    base_url: str = "http://localhost:1234/v1"
    model_name: str = "whisper-1"
    timeout_seconds: float = 120.0


class Settings(BaseModel):
    """Settings consumed read-only by a recording session."""
    provider: TranscriptionProvider = TranscriptionProvider.GOOGLE
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    local: LocalSettings = Field(default_factory=LocalSettings)
    stream_chunks: bool = False
    custom_vocabulary: List[str] = Field(default_factory=list)

    @property
    def request_timeout_seconds(self) -> float:
        """Request deadline of the selected provider."""
        if self.provider == TranscriptionProvider.LOCAL:
            return self.local.timeout_seconds
        return self.google.timeout_seconds


class AbstractSettingsStore(ABC):
    """Persisted key/value blob holding the user's settings."""

    @abstractmethod
    def load(self) -> Dict[str, Any]:
        """Return the stored blob, or an empty dict if nothing is stored."""
        pass

    @abstractmethod
    def save(self, values: Dict[str, Any]) -> None:
        """Replace the stored blob."""
        pass


class InMemorySettingsStore(AbstractSettingsStore):
    """Settings store that lives only as long as the process."""

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self.values = dict(values or {})

    def load(self) -> Dict[str, Any]:
        return dict(self.values)

    def save(self, values: Dict[str, Any]) -> None:
        self.values = dict(values)


class JsonSettingsStore(AbstractSettingsStore):
    """Settings store backed by a single JSON file."""

    def __init__(self, path: str):
        self.path = Path(path)

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error reading settings from {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring settings file {self.path}: expected a JSON object")
            return {}
        return data

    def save(self, values: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(values, f, indent=2)
        logger.info(f"Settings saved: {self.path}")


def load_settings(store: AbstractSettingsStore) -> Settings:
    """Load stored settings merged over the defaults.

    A blob that fails validation is logged and replaced by the defaults.
    """
    defaults = Settings().model_dump(mode='json')
    stored = store.load()
    try:
        return Settings.model_validate(merge_dicts(defaults, stored))
    except ValidationError as e:
        logger.error(f"Stored settings are invalid, using defaults: {e}")
        return Settings()


def save_settings(store: AbstractSettingsStore, settings: Settings) -> None:
    store.save(settings.model_dump(mode='json'))
