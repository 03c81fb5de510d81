"""Chunk scheduler that streams a live recording to the transcription gateway."""

import time
import logging
import threading
import queue
from typing import Callable, List, NamedTuple, Optional

from ..config.settings import Settings
from ..exceptions import TranscriptionError
from ..models.transcription import Segment
from .gateway import TranscriptionGateway
from .merger import shift_segments

logger = logging.getLogger(__name__)

MergeCallback = Callable[[str, List[Segment]], None]


class ChunkTask(NamedTuple):
    """One buffered slice of audio waiting for transcription."""
    chunk_number: int
    audio: bytes
    offset_seconds: float
    is_final: bool


class ChunkScheduler:
    """Buffers captured audio and flushes it as timed chunks.

    Every ``interval_seconds`` (and once more on ``finish``) the buffered
    fragments become one chunk. The chunk's offset is the cursor value at
    hand-off, after which the cursor advances by the nominal interval rather
    than the measured chunk length. Chunks are transcribed on a pool of
    worker threads; successful results are shifted onto the session time
    axis and handed to ``merge_callback``. A failed chunk is dropped.
    """

    def __init__(self,
                 session_id: str,
                 gateway: TranscriptionGateway,
                 settings: Settings,
                 merge_callback: MergeCallback,
                 start_offset: float = 0.0,
                 interval_seconds: float = 5.0,
                 max_concurrent_threads: int = 4):
        self.session_id = session_id
        self.gateway = gateway
        self.settings = settings
        self.merge_callback = merge_callback
        self.interval_seconds = interval_seconds
        self.max_concurrent_threads = max_concurrent_threads

        # Audio buffering, guarded by lock
        self.lock = threading.Lock()
        self.audio_buffer = bytearray()
        self.offset_cursor = float(start_offset)
        self.chunk_counter = 0

        # Failure of the final chunk is surfaced to whoever finishes the stream
        self.final_error: Optional[TranscriptionError] = None
        self.dropped_chunks = 0
        self.cancelled = threading.Event()

        self.task_queue: "queue.Queue[Optional[ChunkTask]]" = queue.Queue()
        self.worker_threads: List[threading.Thread] = []
        self.timer_thread: Optional[threading.Thread] = None
        self.stop_event = threading.Event()
        self.is_running = False

    def start(self) -> None:
        """Start the worker pool and the periodic flush timer."""
        if self.is_running:
            logger.warning("Chunk scheduler already running")
            return

        for i in range(self.max_concurrent_threads):
            thread = threading.Thread(target=self._worker_loop, daemon=True)
            thread.name = f"chunk_worker_{self.session_id[:8]}_{i}"
            thread.start()
            self.worker_threads.append(thread)

        self.stop_event.clear()
        self.timer_thread = threading.Thread(target=self._timer_loop, daemon=True)
        self.timer_thread.name = f"chunk_timer_{self.session_id[:8]}"
        self.timer_thread.start()
        self.is_running = True
        logger.info(f"Chunk scheduler started for {self.session_id}: interval={self.interval_seconds}s, "
                    f"start offset={self.offset_cursor}s, {len(self.worker_threads)} workers")

    def add_audio(self, audio_data: bytes) -> None:
        """Append a captured fragment to the pending chunk."""
        if not audio_data:
            return
        with self.lock:
            self.audio_buffer.extend(audio_data)

    def flush(self, is_final: bool = False) -> Optional[ChunkTask]:
        """Hand the buffered audio off as one chunk.

        Returns:
            The queued task, or None if nothing was buffered
        """
        with self.lock:
            if not self.audio_buffer:
                return None
            self.chunk_counter += 1
            task = ChunkTask(
                chunk_number=self.chunk_counter,
                audio=bytes(self.audio_buffer),
                offset_seconds=self.offset_cursor,
                is_final=is_final,
            )
            self.audio_buffer.clear()
            self.offset_cursor += self.interval_seconds
            # Enqueue under the lock so queue order matches offset order
            self.task_queue.put(task)

        logger.debug(f"Queued chunk {task.chunk_number} for {self.session_id}: "
                     f"{len(task.audio)} bytes at offset {task.offset_seconds}s"
                     f"{' (final)' if is_final else ''}")
        return task

    def _timer_loop(self) -> None:
        while not self.stop_event.wait(self.interval_seconds):
            try:
                self.flush()
            except Exception as e:
                logger.error(f"Periodic flush failed for {self.session_id}: {e}", exc_info=True)

    def _worker_loop(self) -> None:
        thread_name = threading.current_thread().name
        logger.debug(f"Worker thread {thread_name} starting")
        while True:
            task = self.task_queue.get()
            if task is None:
                logger.debug(f"Worker {thread_name} received sentinel, exiting.")
                self.task_queue.task_done()
                break
            try:
                self._process_chunk(task)
            except Exception as e:
                logger.error(f"Unhandled exception in chunk task for {thread_name}: {e}", exc_info=True)
            finally:
                self.task_queue.task_done()

    def _process_chunk(self, task: ChunkTask) -> None:
        if self.cancelled.is_set():
            logger.debug(f"Skipping chunk {task.chunk_number} of cancelled stream {self.session_id}")
            return
        logger.info(f"Transcribing chunk {task.chunk_number} of {self.session_id} (offset {task.offset_seconds}s)")
        try:
            segments = self.gateway.submit(task.audio, self.settings)
        except TranscriptionError as e:
            if task.is_final:
                self.final_error = e
                logger.error(f"Final chunk {task.chunk_number} of {self.session_id} failed: {e}")
            else:
                with self.lock:
                    self.dropped_chunks += 1
                logger.warning(f"Chunk {task.chunk_number} transcription failed (ignoring for stream): {e}")
            return

        if self.cancelled.is_set():
            logger.warning(f"Discarding chunk {task.chunk_number} of {self.session_id}: stream was cancelled")
            return

        shifted = shift_segments(segments, task.offset_seconds)
        if not shifted:
            logger.debug(f"Chunk {task.chunk_number} produced no segments")
            return
        logger.info(f"✅ Chunk {task.chunk_number}: {len(shifted)} segments")
        self.merge_callback(self.session_id, shifted)

    def stop_timer(self) -> None:
        """Stop periodic flushing; buffered audio stays until ``finish``."""
        self.stop_event.set()
        if self.timer_thread and self.timer_thread.is_alive():
            self.timer_thread.join(timeout=2.0)
            if self.timer_thread.is_alive():
                logger.warning("Chunk timer thread did not stop cleanly")

    def cancel(self) -> None:
        """Discard every chunk that has not been merged yet."""
        self.cancelled.set()

    def finish(self, timeout: float = 30.0) -> bool:
        """Flush the tail chunk and wait for every queued chunk to settle.

        If chunks are still in flight after ``timeout`` the scheduler is
        cancelled: their results are discarded when they arrive.

        Returns:
            True if all chunks settled before ``timeout``
        """
        self.stop_timer()
        self.flush(is_final=True)

        start_time = time.time()
        settled = False
        while time.time() - start_time < timeout:
            if self.task_queue.unfinished_tasks == 0:
                settled = True
                break
            time.sleep(0.05)
        if not settled:
            logger.warning(f"Timeout waiting for chunks of {self.session_id}; "
                           f"{self.task_queue.unfinished_tasks} tasks remain")
            self.cancel()

        self._stop_workers(wait=settled)
        return settled

    def _stop_workers(self, wait: bool = True) -> None:
        for _ in self.worker_threads:
            self.task_queue.put(None)
        if wait:
            for thread in self.worker_threads:
                thread.join(2.0)
                if thread.is_alive():
                    logger.warning(f"Worker thread {thread.name} did not terminate cleanly.")
        self.worker_threads = []
        self.is_running = False
        logger.info(f"Chunk scheduler for {self.session_id} stopped ({self.chunk_counter} chunks, "
                    f"{self.dropped_chunks} dropped)")
