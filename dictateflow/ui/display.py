"""Terminal rendering of sessions, transcripts and live recording status."""

import logging
import threading
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from pubsub import pub
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..config.settings import Settings
from ..models.audio import AudioStats
from ..models.events import SessionEvent
from ..models.session import Session, SessionStatus
from ..services.publisher import SESSION_TOPIC

logger = logging.getLogger(__name__)

STATUS_STYLES = {
    SessionStatus.RECORDING: "bold red",
    SessionStatus.PENDING: "bold yellow",
    SessionStatus.COMPLETED: "bold green",
    SessionStatus.ERROR: "bold magenta",
}

PREVIEW_LENGTH = 60


def format_created_at(created_at: float) -> str:
    return datetime.fromtimestamp(created_at).strftime("%Y-%m-%d %H:%M:%S")


def status_text(status: SessionStatus) -> Text:
    return Text(status.value, style=STATUS_STYLES.get(status, "white"))


def transcript_preview(session: Session, length: int = PREVIEW_LENGTH) -> str:
    text = " ".join(segment.text for segment in session.segments)
    if len(text) > length:
        return text[:length - 3] + "..."
    return text


def build_sessions_table(sessions: Iterable[Session],
                         active_session_id: Optional[str] = None,
                         title: str = "Sessions") -> Table:
    """Summary table with one row per session, newest first."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("", width=1)
    table.add_column("Session", style="cyan", no_wrap=True)
    table.add_column("Created", style="white")
    table.add_column("Status")
    table.add_column("Segments", justify="right")
    table.add_column("Transcript", style="dim white")

    for session in sessions:
        marker = "*" if session.id == active_session_id else ""
        preview = session.error_message if session.status == SessionStatus.ERROR else transcript_preview(session)
        table.add_row(
            marker,
            session.id[:8],
            format_created_at(session.created_at),
            status_text(session.status),
            str(len(session.segments)),
            preview or "",
        )
    return table


def build_transcript_table(session: Session, highlight: Optional[str] = None) -> Table:
    """Full transcript of one session with segment indexes for editing."""
    table = Table(show_header=True, header_style="bold blue", expand=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Time", style="cyan", no_wrap=True)
    table.add_column("Text", style="white")

    for index, segment in enumerate(session.segments):
        text = Text(segment.text)
        if highlight:
            text.highlight_words([highlight], style="bold yellow", case_sensitive=False)
        table.add_row(str(index), segment.timestamp, text)
    return table


def build_session_panel(session: Session, highlight: Optional[str] = None) -> Panel:
    header = Text.assemble(
        ("Session ", "bold"), (session.id, "cyan"), "  |  ",
        format_created_at(session.created_at), "  |  ",
        status_text(session.status),
    )
    parts = [header]
    if session.error_message:
        parts.append(Text(f"Error: {session.error_message}", style="bold red"))
    if session.segments:
        parts.append(build_transcript_table(session, highlight))
    else:
        parts.append(Text("No transcript yet", style="dim white italic"))
    return Panel(Group(*parts), border_style="blue")


def build_settings_table(settings: Settings) -> Table:
    table = Table(title="Settings", show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("provider", settings.provider.value)
    table.add_row("stream_chunks", str(settings.stream_chunks))
    table.add_row("custom_vocabulary", ", ".join(settings.custom_vocabulary) or "-")
    table.add_row("google.credentials_path", settings.google.credentials_path or "(application default)")
    table.add_row("google.language", settings.google.language)
    table.add_row("local.base_url", settings.local.base_url)
    table.add_row("local.model_name", settings.local.model_name)
    return table


class SessionDisplay:
    """Prints sessions and transcripts to the terminal."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def show_sessions(self, sessions: List[Session], active_session_id: Optional[str] = None,
                      full: bool = False, highlight: Optional[str] = None) -> None:
        if not sessions:
            self.console.print("No sessions found", style="dim white italic")
            return
        if full:
            for session in sessions:
                self.console.print(build_session_panel(session, highlight))
        else:
            self.console.print(build_sessions_table(sessions, active_session_id))

    def show_session(self, session: Session, highlight: Optional[str] = None) -> None:
        self.console.print(build_session_panel(session, highlight))

    def show_settings(self, settings: Settings) -> None:
        self.console.print(build_settings_table(settings))

    def success(self, message: str) -> None:
        self.console.print(f"✅ {message}", style="bold green")

    def error(self, message: str) -> None:
        self.console.print(f"❌ {message}", style="bold red")

    def info(self, message: str) -> None:
        self.console.print(message, style="bold blue")


class RecordingMonitor:
    """Live view of a recording: audio level and the transcript as it grows.

    Subscribes to session events for the duration of the ``with`` block.
    """

    def __init__(self,
                 stats_provider: Callable[[], Optional[AudioStats]],
                 console: Optional[Console] = None,
                 topic: str = SESSION_TOPIC,
                 refresh_per_second: int = 4):
        self.stats_provider = stats_provider
        self.console = console or Console()
        self.topic = topic
        self.refresh_per_second = refresh_per_second

        self.lock = threading.Lock()
        self.session: Optional[Session] = None
        self.live: Optional[Live] = None

    def on_session_event(self, event: SessionEvent) -> None:
        if event.session is None:
            return
        with self.lock:
            if self.session is None or self.session.id == event.session_id:
                self.session = event.session

    def render(self) -> Panel:
        stats = self.stats_provider()
        audio_table = Table(show_header=False, box=None)
        audio_table.add_column("Metric", style="cyan")
        audio_table.add_column("Value", style="white")
        if stats is not None:
            peak_bar = "█" * int(stats.peak_level * 20)
            audio_table.add_row("Duration", f"{stats.duration_seconds:.1f}s")
            audio_table.add_row("Chunks Captured", str(stats.total_chunks))
            audio_table.add_row("Peak Level", f"{peak_bar:<20} {stats.peak_level:.3f}")

        with self.lock:
            session = self.session
        parts = [audio_table]
        if session is not None:
            parts.append(build_transcript_table(session))
            subtitle = Text.assemble("Session ", (session.id[:8], "cyan"), "  ", status_text(session.status))
        else:
            subtitle = Text("Waiting for audio", style="dim white italic")

        return Panel(
            Group(*parts),
            title="🎙️  DictateFlow - Recording (Ctrl+C to stop)",
            subtitle=subtitle,
            border_style="green",
        )

    def refresh(self) -> None:
        if self.live is not None:
            self.live.update(self.render())

    def __enter__(self) -> "RecordingMonitor":
        pub.subscribe(self.on_session_event, self.topic)
        self.live = Live(self.render(), console=self.console,
                         refresh_per_second=self.refresh_per_second)
        self.live.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self.live is not None:
                self.live.__exit__(exc_type, exc, tb)
                self.live = None
        finally:
            pub.unsubscribe(self.on_session_event, self.topic)
