"""Main application entry point for DictateFlow."""

import sys
import time
import argparse
import logging
from pathlib import Path
from typing import Optional

from .audio.capture import AudioCapture
from .config import DictateFlowConfig
from .config.settings import JsonSettingsStore, TranscriptionProvider
from .exceptions import DictateFlowError, FinalizeTranscriptionError, SessionNotFoundError
from .models.session import RecordingMode, Session
from .services.publisher import SessionPublisher
from .services.recording_service import RecordingService
from .services.session_manager import SessionManager
from .storage.session_store import FileSessionStore
from .transcription.gateway import TranscriptionGateway
from .ui.display import RecordingMonitor, SessionDisplay

logger = logging.getLogger(__name__)


class Server:

    def __init__(self, config_path: Optional[str] = None, log_level: Optional[str] = None):
        # Load configuration
        self.config = DictateFlowConfig(config_path)
        # Set up logging (override config with command line if specified)
        level = log_level or self.config.get('logging.level', 'INFO')
        setup_logging(self.config, level)
        self.display = SessionDisplay()
        self.capture: Optional[AudioCapture] = None
        self.service: Optional[RecordingService] = None

    def init(self) -> None:
        logger.info("Initializing services...")

        sample_rate = self.config.get('audio.sample_rate', 16000)
        chunk_size = self.config.get('audio.chunk_size', 1024)
        channels = self.config.get('audio.channels', 1)
        logger.info(f"Audio settings: {sample_rate}Hz, {chunk_size} samples/chunk, {channels} channels")

        def capture_factory(callback):
            self.capture = AudioCapture(
                callback=callback,
                sample_rate=sample_rate,
                chunk_size=chunk_size,
                channels=channels,
            )
            return self.capture

        store = FileSessionStore(self.config.get_data_directory(), sample_rate=sample_rate, channels=channels)
        self.service = RecordingService(
            session_manager=SessionManager(store, self.config.get('history.max_sessions', 20)),
            gateway=TranscriptionGateway(sample_rate=sample_rate, channels=channels),
            settings_store=JsonSettingsStore(self.config.get_settings_path()),
            capture_factory=capture_factory,
            publisher=SessionPublisher(),
            chunk_interval_seconds=self.config.get('recording.chunk_interval_seconds', 5.0),
            append_padding_seconds=self.config.get('recording.append_padding_seconds', 5),
            max_concurrent_chunks=self.config.get('recording.max_concurrent_chunks', 4),
            stop_timeout_seconds=self.config.get('recording.stop_timeout_seconds', 30.0),
        )

    def resolve_session(self, session_ref: str) -> Session:
        """Find a session by full id or unique id prefix."""
        matches = [s for s in self.service.list_sessions() if s.id.startswith(session_ref)]
        if not matches:
            raise SessionNotFoundError(f"Unknown session: {session_ref}")
        if len(matches) > 1:
            raise SessionNotFoundError(f"Ambiguous session prefix '{session_ref}' ({len(matches)} matches)")
        return matches[0]

    def record(self, duration: Optional[int], append, stream: Optional[bool]) -> None:
        if isinstance(append, str):
            self.service.set_active_session(self.resolve_session(append).id)
        streaming = self.service.settings.stream_chunks if stream is None else stream
        mode = RecordingMode.APPEND if append else RecordingMode.NEW
        session = self.service.start_recording(mode, stream_chunks=stream)
        self.display.info(f"🔴 Recording session {session.id[:8]} "
                          f"({'streaming' if streaming else 'batch'})")

        stats = lambda: self.capture.get_recording_stats() if self.capture else None
        try:
            with RecordingMonitor(stats, console=self.display.console) as monitor:
                started = time.time()
                while duration is None or time.time() - started < duration:
                    time.sleep(0.25)
                    monitor.refresh()
        except KeyboardInterrupt:
            logger.info("Recording interrupted by user")

        # Any other failure leaves the recording to cleanup(), which stops it
        self.display.info("⏹️  Stopping, transcribing...")
        try:
            session = self.service.stop_recording()
        except FinalizeTranscriptionError as e:
            self.display.error(f"Transcription failed: {e.message}")
            if e.session is not None:
                self.display.show_session(e.session)
                self.display.info(f"Run 'dictateflow retry {e.session.id[:8]}' to try again")
            return

        self.display.show_session(session)
        self.display.success(f"Session saved: {session.id}")

    def retry(self, session_ref: str) -> None:
        session = self.resolve_session(session_ref)
        try:
            session = self.service.retry(session.id)
        except FinalizeTranscriptionError as e:
            self.display.error(f"Transcription failed again: {e.message}")
            return
        self.display.show_session(session)
        self.display.success(f"Session {session.id[:8]} transcribed")

    def edit(self, session_ref: str, index: int, text: str) -> None:
        session = self.resolve_session(session_ref)
        session = self.service.edit_segment(session.id, index, text)
        self.display.show_session(session)

    def export(self, session_ref: str, output: Optional[str]) -> None:
        text = self.resolve_session(session_ref).transcript_text()
        if output:
            Path(output).write_text(text + "\n", encoding='utf-8')
            self.display.success(f"Transcript written to {output}")
        else:
            print(text)

    def configure(self, args: argparse.Namespace) -> None:
        settings = self.service.settings
        updates = {}
        if args.provider:
            updates['provider'] = TranscriptionProvider(args.provider)
        if args.stream is not None:
            updates['stream_chunks'] = args.stream
        if args.vocabulary is not None:
            updates['custom_vocabulary'] = [term.strip() for term in args.vocabulary.split(',') if term.strip()]
        if args.local_url:
            updates['local'] = settings.local.model_copy(update={'base_url': args.local_url})
        if args.local_model:
            local = updates.get('local', settings.local)
            updates['local'] = local.model_copy(update={'model_name': args.local_model})
        if args.google_credentials:
            updates['google'] = settings.google.model_copy(update={'credentials_path': args.google_credentials})
        if args.language:
            google = updates.get('google', settings.google)
            updates['google'] = google.model_copy(update={'language': args.language})

        if updates:
            self.service.update_settings(settings.model_copy(update=updates))
            self.display.success("Settings saved")
        self.display.show_settings(self.service.settings)

    def run(self, args: argparse.Namespace) -> None:
        command = args.command or 'list'
        if command == 'record':
            self.record(args.duration, args.append, args.stream)
        elif command == 'list':
            self.display.show_sessions(self.service.list_sessions(), self.service.active_session_id, full=args.full)
        elif command == 'show':
            self.display.show_session(self.resolve_session(args.session))
        elif command == 'search':
            self.display.show_sessions(self.service.search(args.query), self.service.active_session_id,
                                       full=True, highlight=args.query)
        elif command == 'retry':
            self.retry(args.session)
        elif command == 'edit':
            self.edit(args.session, args.index, args.text)
        elif command == 'export':
            self.export(args.session, args.output)
        elif command == 'clear':
            if not args.yes:
                self.display.error("Refusing to delete all sessions without --yes")
                return
            self.service.clear_all()
            self.display.success("All sessions deleted")
        elif command == 'settings':
            self.configure(args)

    def cleanup(self) -> None:
        if self.service is not None:
            self.service.cleanup()


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/dictateflow.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - warnings and above, so the rich output stays readable
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("DictateFlow starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dictateflow",
        description="DictateFlow - record dictation and keep a searchable transcript history",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in defaults)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (overrides config)"
    )
    parser.add_argument(
        "--version",
        action="version",
        version="DictateFlow v0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command")

    record = subparsers.add_parser("record", help="Record a session (Ctrl+C to stop)")
    record.add_argument("--duration", type=int, help="Stop automatically after this many seconds")
    record.add_argument("--append", nargs="?", const=True, default=False, metavar="SESSION",
                        help="Append to the most recent session, or to SESSION")
    stream_group = record.add_mutually_exclusive_group()
    stream_group.add_argument("--stream", dest="stream", action="store_true", default=None,
                              help="Transcribe in chunks while recording (this recording only)")
    stream_group.add_argument("--batch", dest="stream", action="store_false",
                              help="Transcribe once after recording stops (this recording only)")

    list_cmd = subparsers.add_parser("list", help="List sessions, newest first")
    list_cmd.add_argument("--full", action="store_true", help="Show full transcripts")

    show = subparsers.add_parser("show", help="Show one session's transcript")
    show.add_argument("session", help="Session id or unique prefix")

    search = subparsers.add_parser("search", help="Find sessions whose transcript contains text")
    search.add_argument("query")

    retry = subparsers.add_parser("retry", help="Re-transcribe a failed session")
    retry.add_argument("session", help="Session id or unique prefix")

    edit = subparsers.add_parser("edit", help="Replace the text of one segment")
    edit.add_argument("session", help="Session id or unique prefix")
    edit.add_argument("index", type=int, help="Segment index as shown by 'show'")
    edit.add_argument("text")

    export = subparsers.add_parser("export", help="Write a transcript as plain text")
    export.add_argument("session", help="Session id or unique prefix")
    export.add_argument("--output", "-o", help="Output file (default: stdout)")

    clear = subparsers.add_parser("clear", help="Delete every session")
    clear.add_argument("--yes", action="store_true", help="Confirm deletion")

    settings = subparsers.add_parser("settings", help="Show or change transcription settings")
    settings.add_argument("--provider", choices=[p.value for p in TranscriptionProvider])
    settings_stream = settings.add_mutually_exclusive_group()
    settings_stream.add_argument("--stream", dest="stream", action="store_true", default=None)
    settings_stream.add_argument("--batch", dest="stream", action="store_false")
    settings.add_argument("--vocabulary", help="Comma-separated custom vocabulary ('' to clear)")
    settings.add_argument("--local-url", help="Base URL of the local OpenAI-compatible server")
    settings.add_argument("--local-model", help="Model name sent to the local server")
    settings.add_argument("--google-credentials", help="Path to a service account JSON key")
    settings.add_argument("--language", help="Recognition language code, e.g. en-US")

    return parser


def main() -> None:
    """Main entry point for DictateFlow."""
    args = build_parser().parse_args()

    server = Server(args.config, args.log_level)
    try:
        server.init()
        server.run(args)
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except DictateFlowError as e:
        server.display.error(str(e))
        logger.error(f"Command failed: {e}")
        sys.exit(1)
    except Exception as e:
        server.display.error(f"Error: {e}")
        logger.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        server.cleanup()


if __name__ == "__main__":
    main()
