"""
Dual-stream recording session.

Lifecycle:
    start_recording(options)   IDLE -> STARTING -> RECORDING, then blocks
                               until both chunk watchers exit
    stop_recording()           RECORDING -> STOPPING -> IDLE: stop watchers,
                               kill encoders, drain both streams, wait for
                               every live upload
"""

import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..capture import CaptureSupervisor, build_encoder_args, resolve_encoder_binary
from ..chunks import ChunkWatcher, drain
from ..config import ENCODER_DEFAULTS
from ..errors import (
    NoActiveOptionsError,
    RecorderError,
    SessionStateError,
    SetupError,
)
from ..models import RecordingOptions, StreamKind, Timings, UploadOutcome
from ..upload import UploadDispatcher
from .state import SessionPhase, SessionState

logger = logging.getLogger(__name__)


def clean_and_create_dir(path: Path) -> None:
    """Remove regular files from a chunk directory, creating it if needed."""
    try:
        if path.exists():
            for entry in path.iterdir():
                if entry.is_file():
                    entry.unlink()
        else:
            path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SetupError(f"Cannot prepare chunk directory {path}: {e}") from e


class RecordingSession:
    """
    Records screen and camera through two encoders and uploads chunks.

    One instance serves any number of consecutive sessions; state is
    cleared at the end of every stop.
    """

    def __init__(
        self,
        working_dir: Path,
        uploader,
        encoder: Optional[dict] = None,
        timings: Optional[Timings] = None,
        platform: Optional[str] = None,
        supervisor: Optional[CaptureSupervisor] = None,
        args_builder: Callable = build_encoder_args,
    ):
        """
        Args:
            working_dir: Directory that will hold chunks/screen and chunks/video
            uploader: Upload primitive, see UploadDispatcher
            encoder: Encoder settings (binary, container, segment_time, ...)
            timings: Poll/retry/timeout intervals
            platform: sys.platform override for argument construction
            supervisor: Encoder process supervisor
            args_builder: (platform, stream_kind, options, chunk_dir, encoder) -> args
        """
        self.working_dir = Path(working_dir)
        self.encoder = dict(ENCODER_DEFAULTS)
        self.encoder.update(encoder or {})
        self.timings = timings or Timings()
        self.platform = platform or sys.platform
        self.supervisor = supervisor or CaptureSupervisor(self.timings.stop_timeout)
        self.args_builder = args_builder

        self.dispatcher = UploadDispatcher(uploader, self.timings)
        self.state = SessionState()
        self.watchers: Dict[StreamKind, ChunkWatcher] = {}

    def chunk_dir(self, stream_kind: StreamKind) -> Path:
        return stream_kind.chunk_dir(self.working_dir)

    @property
    def phase(self) -> SessionPhase:
        with self.state.lock:
            return self.state.phase

    def status(self) -> dict:
        """Snapshot of the session for display."""
        with self.state.lock:
            return {
                "phase": self.state.phase.value,
                "encoders": {
                    kind.value: self.supervisor.is_running(proc)
                    for kind, proc in self.state.processes.items()
                },
                "live_uploads": sum(1 for t in self.state.upload_tasks if t.is_alive()),
            }

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------

    def _spawn_encoders(self, options: RecordingOptions) -> Dict[StreamKind, object]:
        """Prepare directories and spawn both encoders; all-or-nothing."""
        if not self.working_dir.is_dir():
            raise SetupError(f"Working directory not found: {self.working_dir}")

        binary = resolve_encoder_binary(str(self.encoder["binary"]))

        args = {}
        for kind in StreamKind:
            chunk_dir = self.chunk_dir(kind)
            clean_and_create_dir(chunk_dir)
            args[kind] = self.args_builder(self.platform, kind, options,
                                           chunk_dir, self.encoder)
            logger.info(f"{kind.label} args: {args[kind]}")

        processes = {}
        try:
            for kind in StreamKind:
                processes[kind] = self.supervisor.start(kind, binary, args[kind])
        except RecorderError:
            for kind, process in processes.items():
                self.supervisor.stop(process, kind)
            raise
        return processes

    def start_recording(self, options: RecordingOptions) -> None:
        """
        Start both encoders and watch their chunks until stopped.

        Blocks until stop_recording() sets the shutdown flag and both
        watcher loops have exited.

        Raises:
            SessionStateError: A session is already active
            SetupError: Encoders could not be started (nothing left running)
        """
        with self.state.lock:
            if self.state.phase is not SessionPhase.IDLE:
                raise SessionStateError(
                    f"Cannot start recording while {self.state.phase.value}"
                )
            self.state.phase = SessionPhase.STARTING

        logger.info("=" * 60)
        logger.info(f"STARTING RECORDING {options.recording_id}")
        logger.info("=" * 60)

        try:
            processes = self._spawn_encoders(options)
        except Exception:
            with self.state.lock:
                self.state.reset()
            raise

        shutdown_flag = threading.Event()
        watchers = {
            kind: ChunkWatcher(
                stream_kind=kind,
                chunk_dir=self.chunk_dir(kind),
                options=options,
                dispatcher=self.dispatcher,
                shutdown_flag=shutdown_flag,
                on_dispatch=self.state.add_upload_task,
                poll_interval=self.timings.poll_interval,
            )
            for kind in StreamKind
        }
        threads = [
            threading.Thread(target=w.run, name=f"{kind.label}-watcher")
            for kind, w in watchers.items()
        ]

        with self.state.lock:
            self.state.processes = dict(processes)
            self.state.upload_tasks = []
            self.state.watcher_threads = threads
            self.state.shutdown_flag = shutdown_flag
            self.state.options = options
            self.state.phase = SessionPhase.RECORDING
            # stop_recording joins these once the lock is released
            for thread in threads:
                thread.start()
        self.watchers = watchers
        logger.info("Recording - chunks upload as they are finalized")

        for thread in threads:
            thread.join()

        logger.info("Chunk watchers exited")

    # ------------------------------------------------------------------
    # Stop
    # ------------------------------------------------------------------

    def stop_recording(self) -> Dict[StreamKind, List[UploadOutcome]]:
        """
        Stop capture and flush every outstanding upload.

        Returns:
            Drain outcomes per stream

        Raises:
            NoActiveOptionsError: No session was started
            SessionStateError: Stop already in progress
            DrainError: First drain failure, raised after cleanup
        """
        with self.state.lock:
            if self.state.phase is SessionPhase.STOPPING:
                raise SessionStateError("Recording is already stopping")
            options = self.state.options
            if options is None:
                raise NoActiveOptionsError()
            self.state.phase = SessionPhase.STOPPING
            self.state.shutdown_flag.set()
            processes = self.state.processes
            self.state.processes = {kind: None for kind in StreamKind}
            watcher_threads = list(self.state.watcher_threads)

        logger.info("=" * 60)
        logger.info("STOPPING RECORDING")
        logger.info("=" * 60)

        results: Dict[StreamKind, List[UploadOutcome]] = {}
        first_error: Optional[RecorderError] = None
        try:
            # No live dispatch can happen after this point
            for thread in watcher_threads:
                thread.join()

            for kind, process in processes.items():
                self.supervisor.stop(process, kind)

            first_error = self._drain_all(options, results)

            tasks = self.state.take_upload_tasks()
            if tasks:
                logger.info(f"Waiting for {len(tasks)} live upload(s) to finish")
            for task in tasks:
                task.join()
        finally:
            with self.state.lock:
                self.state.reset()

        total = sum(len(o) for o in results.values())
        uploaded = sum(1 for o in results.values() for x in o if x.ok)
        logger.info(f"Recording stopped - drain uploaded {uploaded}/{total} chunk(s)")

        if first_error is not None:
            raise first_error
        return results

    def _drain_all(self, options: RecordingOptions,
                   results: Dict[StreamKind, List[UploadOutcome]]) -> Optional[RecorderError]:
        """Drain both streams concurrently; returns the first error, if any."""
        first_error = None
        with ThreadPoolExecutor(max_workers=len(StreamKind),
                                thread_name_prefix="drain") as pool:
            futures = {
                kind: pool.submit(
                    drain,
                    self.chunk_dir(kind),
                    options,
                    kind,
                    self.dispatcher,
                    self.timings.settle_delay,
                    str(self.encoder["container"]),
                )
                for kind in StreamKind
            }
            for kind, future in futures.items():
                try:
                    results[kind] = future.result()
                except RecorderError as e:
                    logger.error(f"Error uploading remaining {kind.value} chunks: {e}")
                    results[kind] = []
                    if first_error is None:
                        first_error = e
        return first_error
