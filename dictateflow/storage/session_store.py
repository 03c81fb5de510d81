"""Durable session stores keyed by session id."""

import os
import json
import logging
import shutil
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from ..audio.wav import save_wav, load_wav
from ..models.session import Session

logger = logging.getLogger(__name__)


class AbstractSessionStore(ABC):
    """Keyed session storage: upsert, read-all, delete-by-key, clear-all."""

    @abstractmethod
    def put(self, session: Session) -> None:
        """Insert or replace the session with ``session.id``."""
        pass

    @abstractmethod
    def get_all(self) -> List[Session]:
        """Return every stored session, newest ``created_at`` first."""
        pass

    @abstractmethod
    def get(self, session_id: str) -> Optional[Session]:
        """Return one session, or None if it is not stored."""
        pass

    @abstractmethod
    def delete(self, session_id: str) -> None:
        """Remove one session; unknown ids are ignored."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every session."""
        pass


class InMemorySessionStore(AbstractSessionStore):
    """Session store that lives only as long as the process."""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def put(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.id] = session.copy()

    def get_all(self) -> List[Session]:
        with self._lock:
            sessions = [s.copy() for s in self._sessions.values()]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(session_id)
            return session.copy() if session is not None else None

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()


class FileSessionStore(AbstractSessionStore):
    """Stores each session as ``sessions/<id>/session.json`` plus ``recording.wav``."""

    METADATA_FILE = "session.json"
    AUDIO_FILE = "recording.wav"

    def __init__(self, data_dir: str = "./data", sample_rate: int = 16000, channels: int = 1):
        """Initialize file store with data directory.

        Args:
            data_dir: Base directory for storing all data
            sample_rate: Sample rate written into stored WAV headers
            channels: Channel count written into stored WAV headers
        """
        self.data_dir = Path(data_dir)
        self.sessions_dir = self.data_dir / "sessions"
        self.sample_rate = sample_rate
        self.channels = channels
        self._lock = threading.Lock()

        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"FileSessionStore initialized with data_dir: {self.data_dir}")

    def get_session_path(self, session_id: str) -> Path:
        return self.sessions_dir / session_id

    def put(self, session: Session) -> None:
        session_path = self.get_session_path(session.id)
        with self._lock:
            session_path.mkdir(exist_ok=True)

            # Audio first, then metadata, each via rename so a crash never
            # leaves a half-written file behind
            audio_tmp = session_path / (self.AUDIO_FILE + ".tmp")
            save_wav(audio_tmp, session.audio, self.sample_rate, self.channels)
            os.replace(audio_tmp, session_path / self.AUDIO_FILE)

            info_tmp = session_path / (self.METADATA_FILE + ".tmp")
            with open(info_tmp, 'w', encoding='utf-8') as f:
                json.dump(session.to_dict(), f, indent=2, ensure_ascii=False)
            os.replace(info_tmp, session_path / self.METADATA_FILE)

        logger.debug(f"Session saved: {session.id} ({session.status.value}, {len(session.segments)} segments)")

    def _load_session(self, session_path: Path) -> Session:
        with open(session_path / self.METADATA_FILE, 'r', encoding='utf-8') as f:
            data = json.load(f)
        audio = b''
        audio_file = session_path / self.AUDIO_FILE
        if audio_file.exists():
            audio, _, _ = load_wav(audio_file)
        return Session.from_dict(data, audio=audio)

    def get_all(self) -> List[Session]:
        sessions = []
        with self._lock:
            for path in self.sessions_dir.iterdir():
                if not path.is_dir() or not (path / self.METADATA_FILE).exists():
                    continue
                try:
                    sessions.append(self._load_session(path))
                except (OSError, ValueError, KeyError) as e:
                    logger.error(f"Skipping unreadable session {path.name}: {e}")

        sessions.sort(key=lambda s: s.created_at, reverse=True)
        logger.debug(f"Found {len(sessions)} sessions")
        return sessions

    def get(self, session_id: str) -> Optional[Session]:
        session_path = self.get_session_path(session_id)
        with self._lock:
            if not (session_path / self.METADATA_FILE).exists():
                return None
            return self._load_session(session_path)

    def delete(self, session_id: str) -> None:
        session_path = self.get_session_path(session_id)
        with self._lock:
            if session_path.exists():
                shutil.rmtree(session_path)
                logger.info(f"Deleted session: {session_id}")

    def clear(self) -> None:
        with self._lock:
            for path in self.sessions_dir.iterdir():
                if path.is_dir():
                    shutil.rmtree(path)
        logger.info("Cleared all sessions")
