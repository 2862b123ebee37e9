"""
Live chunk watcher.

Polls a stream's segment manifest and hands every newly listed chunk to
the upload dispatcher as soon as it appears. Polling rather than
filesystem events keeps this portable and tolerant of encoders that
rename files while finalizing them.
"""

import logging
import threading
from pathlib import Path
from typing import Callable, Optional, Set

from . import manifest
from ..models import RecordingOptions, StreamKind

logger = logging.getLogger(__name__)


class ChunkWatcher:
    """
    Manifest poller for one stream.

    Only this watcher touches its ``seen`` set, so plain set operations
    are enough to guarantee one live dispatch per chunk filename.
    """

    def __init__(
        self,
        stream_kind: StreamKind,
        chunk_dir: Path,
        options: RecordingOptions,
        dispatcher,
        shutdown_flag: threading.Event,
        on_dispatch: Optional[Callable[[threading.Thread], None]] = None,
        poll_interval: float = 3.0,
    ):
        """
        Args:
            stream_kind: Stream whose chunks are watched
            chunk_dir: Directory holding chunks and segment_list.txt
            options: Recording options passed along with every upload
            dispatcher: UploadDispatcher used for live uploads
            shutdown_flag: Set once to end the polling loop
            on_dispatch: Receives each upload task handle
            poll_interval: Seconds between manifest reads
        """
        self.stream_kind = stream_kind
        self.chunk_dir = Path(chunk_dir)
        self.manifest_path = manifest.manifest_path(self.chunk_dir)
        self.options = options
        self.dispatcher = dispatcher
        self.shutdown_flag = shutdown_flag
        self.on_dispatch = on_dispatch
        self.poll_interval = poll_interval

        self.seen: Set[str] = set()
        self.dispatched = 0

    def poll_once(self) -> int:
        """
        Read the manifest once and dispatch chunks not seen before.

        Returns:
            Number of uploads dispatched by this poll
        """
        try:
            names = manifest.load_ordered(self.manifest_path)
        except OSError as e:
            logger.warning(f"Failed to read segment list for {self.stream_kind.value}: {e}")
            return 0

        count = 0
        for name in names:
            if name in self.seen:
                continue
            chunk_path = self.chunk_dir / name
            if not chunk_path.is_file():
                continue

            try:
                task = self.dispatcher.dispatch_live(self.options, chunk_path, self.stream_kind)
            except Exception as e:
                # Left out of seen so the next poll retries it
                logger.error(f"Failed to dispatch upload for {chunk_path}: {e}")
                continue

            self.seen.add(name)
            count += 1
            if self.on_dispatch:
                try:
                    self.on_dispatch(task)
                except Exception as e:
                    logger.error(f"Failed to record upload task for {chunk_path}: {e}")

        self.dispatched += count
        return count

    def run(self) -> None:
        """Poll until the shutdown flag is set. Blocks."""
        logger.info(f"{self.stream_kind.label} watcher started: {self.manifest_path}")

        while True:
            if self.shutdown_flag.is_set():
                logger.info(f"Shutdown flag set, exiting upload loop for "
                            f"{self.stream_kind.value}")
                break
            self.poll_once()
            self.shutdown_flag.wait(self.poll_interval)

        logger.info(f"{self.stream_kind.label} watcher stopped "
                    f"({self.dispatched} chunk(s) dispatched live)")
