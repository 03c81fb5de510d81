"""Core recording service that owns the session lifecycle."""

import logging
import threading
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, List, Optional

from ..config.settings import AbstractSettingsStore, Settings, load_settings, save_settings
from ..exceptions import (
    FinalizeTranscriptionError,
    PersistenceError,
    SessionNotFoundError,
    SessionStateError,
    TranscriptionError,
)
from ..models.events import AudioEvent
from ..models.session import RecordingMode, Session, SessionStatus
from ..models.transcription import Segment
from ..transcription.gateway import TranscriptionGateway
from ..transcription.merger import merge_segments, segment_offset, shift_segments
from ..transcription.scheduler import ChunkScheduler
from .publisher import SessionPublisher
from .session_manager import SessionManager

logger = logging.getLogger(__name__)

CaptureFactory = Callable[[Callable[[AudioEvent], None]], Any]

INTERRUPTED_MESSAGE = "Recording was interrupted before transcription finished"


@dataclass
class ActiveRecording:
    """Mutable state of the one session currently recording."""
    session: Session
    mode: RecordingMode
    settings: Settings
    base_offset: float
    new_audio_start: int  # Byte index where this recording's audio begins
    audio: bytearray = field(default_factory=bytearray)
    audio_lock: threading.Lock = field(default_factory=threading.Lock)
    capture: Any = None
    scheduler: Optional[ChunkScheduler] = None
    persisted: bool = False
    stopping: bool = False

    @property
    def streaming(self) -> bool:
        return self.scheduler is not None

    def snapshot_audio(self) -> bytes:
        with self.audio_lock:
            return bytes(self.audio)

    def new_audio(self) -> bytes:
        with self.audio_lock:
            return bytes(self.audio[self.new_audio_start:])


class RecordingService:
    """Session controller: recording, transcription, retry and edits.

    Only one session records at a time. Every status change is written
    through the session manager before it is returned or published, except
    the creation of a new streaming session, which stays in memory until its
    first chunk is merged or it finalizes. Merges and edits are serialized
    on the service lock; transcription calls run outside it.
    """

    def __init__(self,
                 session_manager: SessionManager,
                 gateway: TranscriptionGateway,
                 settings_store: AbstractSettingsStore,
                 capture_factory: CaptureFactory,
                 publisher: Optional[SessionPublisher] = None,
                 chunk_interval_seconds: float = 5.0,
                 append_padding_seconds: float = 5,
                 max_concurrent_chunks: int = 4,
                 stop_timeout_seconds: float = 30.0):
        """Initialize recording service.

        Args:
            session_manager: Durable session history
            gateway: Transcription gateway used for chunks and full sessions
            settings_store: Where user settings are loaded from and saved to
            capture_factory: Builds an audio capture around a fragment callback
            publisher: Session event publisher
            chunk_interval_seconds: Streaming flush cadence
            append_padding_seconds: Gap left after the last segment when appending
            max_concurrent_chunks: Chunk transcriptions allowed in flight
            stop_timeout_seconds: How much longer than the provider request deadline
                stop waits for in-flight chunks
        """
        self.session_manager = session_manager
        self.gateway = gateway
        self.settings_store = settings_store
        self.capture_factory = capture_factory
        self.publisher = publisher or SessionPublisher()
        self.chunk_interval_seconds = chunk_interval_seconds
        self.append_padding_seconds = append_padding_seconds
        self.max_concurrent_chunks = max_concurrent_chunks
        self.stop_timeout_seconds = stop_timeout_seconds

        self._lock = threading.RLock()
        self._active: Optional[ActiveRecording] = None

        self.settings = load_settings(settings_store)
        logger.info(f"Settings loaded: provider={self.settings.provider.value}, "
                    f"streaming={self.settings.stream_chunks}, "
                    f"vocabulary={len(self.settings.custom_vocabulary)} terms")

        self._recover_interrupted_sessions()
        sessions = self.session_manager.list_sessions()
        self.active_session_id: Optional[str] = sessions[0].id if sessions else None
        logger.info(f"RecordingService ready ({len(sessions)} sessions in history)")

    def _recover_interrupted_sessions(self) -> None:
        """Move sessions left RECORDING or PENDING by a previous process to ERROR."""
        for session in self.session_manager.list_sessions():
            if session.status in (SessionStatus.RECORDING, SessionStatus.PENDING):
                logger.warning(f"Session {session.id} was left {session.status.value}, marking as failed")
                session.status = SessionStatus.ERROR
                session.error_message = INTERRUPTED_MESSAGE
                try:
                    self.session_manager.save(session)
                except PersistenceError as e:
                    logger.error(f"Could not recover session {session.id}: {e}")

    @property
    def is_recording(self) -> bool:
        with self._lock:
            return self._active is not None

    @property
    def active_session(self) -> Optional[Session]:
        """Snapshot of the session currently recording, if any."""
        with self._lock:
            return self._active.session.copy() if self._active else None

    def update_settings(self, settings: Settings) -> None:
        """Persist new settings; they apply from the next recording on."""
        save_settings(self.settings_store, settings)
        with self._lock:
            self.settings = settings
        logger.info(f"Settings updated: provider={settings.provider.value}, streaming={settings.stream_chunks}")

    def set_active_session(self, session_id: str) -> None:
        """Make ``session_id`` the target of the next APPEND recording."""
        with self._lock:
            self._require_session(session_id)
            self.active_session_id = session_id

    # -- recording -------------------------------------------------------

    def start_recording(self,
                        mode: RecordingMode = RecordingMode.NEW,
                        stream_chunks: Optional[bool] = None) -> Session:
        """Start recording a new session or append to the active one.

        APPEND falls back to NEW when there is no session to append to.
        ``stream_chunks`` overrides the saved streaming setting for this
        recording only.

        Raises:
            SessionStateError: If a session is already recording
            CaptureError: If the audio device cannot be opened
            PersistenceError: If the initial state cannot be stored
        """
        with self._lock:
            if self._active is not None:
                raise SessionStateError(
                    f"Session {self._active.session.id} is already recording; stop it first")

            settings = self.settings
            if stream_chunks is not None and stream_chunks != settings.stream_chunks:
                settings = settings.model_copy(update={'stream_chunks': stream_chunks})
            target = None
            if mode == RecordingMode.APPEND and self.active_session_id:
                target = self.session_manager.get_session(self.active_session_id)
                if target is None:
                    logger.info(f"Append target {self.active_session_id} no longer exists, starting new session")
                elif target.status == SessionStatus.PENDING:
                    raise SessionStateError(f"Session {target.id} is still being transcribed")

            if target is None:
                mode = RecordingMode.NEW
                session = Session.create()
                base_offset = 0.0
            else:
                session = target
                session.status = SessionStatus.RECORDING
                session.error_message = None
                base_offset = 0.0
                if session.segments:
                    base_offset = segment_offset(session.segments[-1]) + self.append_padding_seconds

            active = ActiveRecording(
                session=session,
                mode=mode,
                settings=settings,
                base_offset=base_offset,
                new_audio_start=len(session.audio),
                audio=bytearray(session.audio),
            )
            active.capture = self.capture_factory(partial(self._on_audio_event, active))

            if settings.stream_chunks:
                active.scheduler = ChunkScheduler(
                    session_id=session.id,
                    gateway=self.gateway,
                    settings=settings,
                    merge_callback=partial(self._merge_chunk, active),
                    start_offset=base_offset,
                    interval_seconds=self.chunk_interval_seconds,
                    max_concurrent_threads=self.max_concurrent_chunks,
                )

            # CaptureError propagates before anything is stored
            active.capture.start_recording()

            try:
                # A brand-new streaming session is held in memory until its first write
                if mode == RecordingMode.APPEND or not active.streaming:
                    self.session_manager.save(session)
                    active.persisted = True
            except PersistenceError:
                active.capture.stop_recording()
                raise

            if active.scheduler is not None:
                active.scheduler.start()

            self._active = active
            self.active_session_id = session.id
            snapshot = session.copy()

        logger.info(f"Started recording for session {session.id} (mode={mode.value}, "
                    f"streaming={active.streaming}, base offset={base_offset}s)")
        self.publisher.publish("created" if mode == RecordingMode.NEW else "status", snapshot)
        return snapshot

    def _on_audio_event(self, active: ActiveRecording, event: AudioEvent) -> None:
        """Capture thread callback: accumulate audio, feed the scheduler."""
        with active.audio_lock:
            active.audio.extend(event.audio_data)
        if active.scheduler is not None:
            active.scheduler.add_audio(event.audio_data)

    def _merge_chunk(self, active: ActiveRecording, session_id: str, segments: List[Segment]) -> None:
        """Worker thread callback: merge a transcribed chunk into its recording."""
        with self._lock:
            if self._active is not active:
                # The recording finalized without this chunk
                logger.warning(f"Dropping {len(segments)} late segments for session {session_id}")
                return
            session = active.session
            session.audio = active.snapshot_audio()
            session.segments = merge_segments(session.segments, segments)
            self.session_manager.save(session)
            active.persisted = True
            snapshot = session.copy()

        self.publisher.publish("segments", snapshot, added=len(segments))

    def stop_recording(self) -> Session:
        """Stop the current recording and finalize its transcript.

        Returns:
            The finalized session (COMPLETED)

        Raises:
            SessionStateError: If nothing is recording
            FinalizeTranscriptionError: If transcription failed; the session
                is already stored as ERROR
            PersistenceError: If a state change could not be stored
        """
        with self._lock:
            active = self._active
            if active is None:
                raise SessionStateError("No recording in progress")
            if active.stopping:
                raise SessionStateError(f"Session {active.session.id} is already stopping")
            active.stopping = True

        logger.info(f"Stopping recording for session {active.session.id}")
        try:
            active.capture.stop_recording()
        except Exception as e:
            # The audio captured so far is kept and the session still finalizes
            logger.error(f"Error releasing audio capture for session {active.session.id}: {e}", exc_info=True)
        finally:
            if active.scheduler is not None:
                active.scheduler.stop_timer()

        if active.streaming:
            return self._finalize_stream(active)
        return self._finalize_batch(active)

    def _finalize_stream(self, active: ActiveRecording) -> Session:
        # Never give up on in-flight chunks before the provider itself would
        timeout = active.settings.request_timeout_seconds + self.stop_timeout_seconds
        settled = active.scheduler.finish(timeout=timeout)
        error = active.scheduler.final_error
        if error is not None:
            message = str(error)
        elif not settled:
            message = f"Transcription did not finish within {timeout:g}s"
        else:
            message = None

        with self._lock:
            session = active.session
            session.audio = active.snapshot_audio()
            if message is not None:
                session.status = SessionStatus.ERROR
                session.error_message = message
            else:
                session.status = SessionStatus.COMPLETED
                session.error_message = None
            self._active = None
            self._persist_terminal(session)
            snapshot = session.copy()

        self.publisher.publish("status", snapshot)
        if message is not None:
            raise FinalizeTranscriptionError(message, snapshot)
        logger.info(f"Session {snapshot.id} completed with {len(snapshot.segments)} segments")
        return snapshot

    def _finalize_batch(self, active: ActiveRecording) -> Session:
        with self._lock:
            session = active.session
            session.audio = active.snapshot_audio()
            session.status = SessionStatus.PENDING
            try:
                self.session_manager.save(session)
            finally:
                self._active = None
            snapshot = session.copy()

        self.publisher.publish("status", snapshot)
        return self._transcribe_pending(
            session.id,
            active.new_audio(),
            active.base_offset,
            active.settings,
            replace=False,
        )

    def _transcribe_pending(self,
                            session_id: str,
                            audio: bytes,
                            base_offset: float,
                            settings: Settings,
                            replace: bool) -> Session:
        """Transcribe audio for a PENDING session and move it to COMPLETED or ERROR."""
        error: Optional[TranscriptionError] = None
        segments: List[Segment] = []
        try:
            segments = self.gateway.submit(audio, settings)
        except TranscriptionError as e:
            logger.error(f"Transcription failed for session {session_id}: {e}")
            error = e

        with self._lock:
            session = self._require_session(session_id)
            if error is not None:
                session.status = SessionStatus.ERROR
                session.error_message = str(error)
            else:
                shifted = shift_segments(segments, base_offset)
                if replace:
                    session.segments = merge_segments([], shifted)
                else:
                    session.segments = merge_segments(session.segments, shifted)
                session.status = SessionStatus.COMPLETED
                session.error_message = None
            self._persist_terminal(session)
            snapshot = session.copy()

        self.publisher.publish("status", snapshot)
        if error is not None:
            raise FinalizeTranscriptionError(str(error), snapshot)
        logger.info(f"Session {session_id} completed with {len(snapshot.segments)} segments")
        return snapshot

    def _persist_terminal(self, session: Session) -> None:
        self.session_manager.save(session)
        self.session_manager.evict_old_sessions()

    # -- history operations ------------------------------------------------

    def retry(self, session_id: str) -> Session:
        """Re-transcribe a failed session from its full stored audio.

        The new segments replace the old ones.

        Raises:
            SessionStateError: If the session is not in ERROR
            SessionNotFoundError: If the session does not exist
            FinalizeTranscriptionError: If transcription failed again
        """
        with self._lock:
            session = self._require_session(session_id)
            if session.status != SessionStatus.ERROR:
                raise SessionStateError(
                    f"Only failed sessions can be retried; {session_id} is {session.status.value}")
            session.status = SessionStatus.PENDING
            session.error_message = None
            self.session_manager.save(session)
            audio = session.audio
            settings = self.settings
            snapshot = session.copy()

        logger.info(f"Retrying transcription for session {session_id} ({len(audio)} bytes)")
        self.publisher.publish("status", snapshot)
        return self._transcribe_pending(session_id, audio, 0.0, settings, replace=True)

    def edit_segment(self, session_id: str, index: int, text: str) -> Session:
        """Replace the text of one segment; its timestamp and position stay.

        Raises:
            SessionNotFoundError: If the session does not exist
            IndexError: If ``index`` is out of range
        """
        with self._lock:
            active = self._active
            is_active = active is not None and active.session.id == session_id
            session = active.session if is_active else self._require_session(session_id)
            if not 0 <= index < len(session.segments):
                raise IndexError(f"Segment index {index} out of range for session {session_id} "
                                 f"({len(session.segments)} segments)")
            session.segments[index] = session.segments[index].with_text(text)
            if is_active:
                session.audio = active.snapshot_audio()
            self.session_manager.save(session)
            if is_active:
                active.persisted = True
            snapshot = session.copy()

        self.publisher.publish("edited", snapshot, index=index)
        return snapshot

    def clear_all(self) -> None:
        """Delete every stored session.

        Raises:
            SessionStateError: If a session is recording
        """
        with self._lock:
            if self._active is not None:
                raise SessionStateError("Stop the current recording before clearing history")
            self.session_manager.clear()
            self.active_session_id = None
        self.publisher.publish("cleared")

    def list_sessions(self) -> List[Session]:
        """All sessions, newest first, including an unsaved streaming session."""
        with self._lock:
            sessions = self.session_manager.list_sessions()
            if self._active is not None:
                current = self._active.session.copy()
                sessions = [s for s in sessions if s.id != current.id]
                sessions.append(current)
        sessions.sort(key=lambda s: s.created_at, reverse=True)
        return sessions

    def search(self, query: str) -> List[Session]:
        """Sessions whose segment text contains ``query``, ignoring case."""
        if not query:
            return self.list_sessions()
        return [s for s in self.list_sessions() if s.matches(query)]

    def get_session(self, session_id: str) -> Session:
        with self._lock:
            return self._require_session(session_id).copy()

    def _require_session(self, session_id: str) -> Session:
        if self._active is not None and self._active.session.id == session_id:
            return self._active.session
        session = self.session_manager.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Unknown session: {session_id}")
        return session

    def cleanup(self) -> None:
        """Stop any recording in progress and release backends."""
        if self.is_recording:
            try:
                self.stop_recording()
            except (FinalizeTranscriptionError, PersistenceError, SessionStateError) as e:
                logger.error(f"Error stopping recording during cleanup: {e}")
        self.gateway.cleanup()
        logger.info("RecordingService cleaned up")
