"""
Chunk upload dispatch.

Two policies:
    - Live phase: one fire-and-forget thread per chunk, no retry, no
      timeout. Failures are logged; the shutdown drain sweeps them up.
    - Drain phase: a bounded worker pool. Each worker waits for the file
      size to settle, then makes up to max_attempts timed attempts.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from pathlib import Path
from typing import List, Optional

from ..models import (
    RecordingOptions,
    StreamKind,
    Timings,
    UploadOutcome,
    UploadStatus,
)

logger = logging.getLogger(__name__)


class UploadDispatcher:
    """
    Uploads chunk files through an upload primitive.

    The uploader is any object with
    ``upload(options, file_path, stream_kind) -> key`` that raises on
    failure (normally an UploadError).
    """

    def __init__(self, uploader, timings: Optional[Timings] = None):
        self.uploader = uploader
        self.timings = timings or Timings()

    def upload_one(self, options: RecordingOptions, path: Path,
                   stream_kind: StreamKind) -> str:
        """Single attempt; returns the object key or raises."""
        return self.uploader.upload(options, str(path), stream_kind)

    # ------------------------------------------------------------------
    # Live phase
    # ------------------------------------------------------------------

    def dispatch_live(self, options: RecordingOptions, path: Path,
                      stream_kind: StreamKind) -> threading.Thread:
        """Start an upload thread for a freshly finalized chunk."""
        task = threading.Thread(
            target=self._live_upload,
            args=(options, Path(path), stream_kind),
            name=f"{stream_kind.label}-upload-{Path(path).name}",
        )
        task.start()
        return task

    def _live_upload(self, options: RecordingOptions, path: Path,
                     stream_kind: StreamKind) -> None:
        logger.info(f"Uploading video for {stream_kind.value}: {path}")
        try:
            key = self.upload_one(options, path, stream_kind)
        except Exception as e:
            logger.error(f"Failed to upload chunk {path}: {e}")
            return
        logger.info(f"Chunk uploaded: {key}")

    # ------------------------------------------------------------------
    # Drain phase
    # ------------------------------------------------------------------

    def wait_for_stable(self, path: Path) -> Optional[UploadStatus]:
        """
        Poll the file size until it is unchanged for stability_checks polls.

        Returns:
            None once stable, VANISHED if the file disappears (or cannot be
            stat'ed), UNSTABLE if stability_timeout elapses first.
        """
        t = self.timings
        deadline = None
        if t.stability_timeout is not None:
            deadline = time.monotonic() + t.stability_timeout

        last_size = None
        stable_count = 0
        while stable_count < t.stability_checks:
            if deadline is not None and time.monotonic() >= deadline:
                logger.warning(f"File size never settled, skipping: {path}")
                return UploadStatus.UNSTABLE
            try:
                current_size = path.stat().st_size
            except FileNotFoundError:
                logger.warning(f"File does not exist: {path}")
                return UploadStatus.VANISHED
            except OSError as e:
                logger.error(f"Failed to get file metadata for {path}: {e}")
                return UploadStatus.VANISHED

            if current_size == last_size:
                stable_count += 1
            else:
                last_size = current_size
                stable_count = 0
            time.sleep(t.stability_interval)

        return None

    def _timed_attempt(self, options: RecordingOptions, path: Path,
                       stream_kind: StreamKind,
                       permits: Optional[threading.BoundedSemaphore] = None) -> str:
        # A timed-out attempt is left to finish on its own thread and keeps
        # its permit until the upload call really returns
        if permits is not None:
            permits.acquire()

        def attempt():
            try:
                return self.upload_one(options, path, stream_kind)
            finally:
                if permits is not None:
                    permits.release()

        pool = ThreadPoolExecutor(max_workers=1,
                                  thread_name_prefix=f"{stream_kind.label}-attempt")
        try:
            try:
                future = pool.submit(attempt)
            except RuntimeError:
                if permits is not None:
                    permits.release()
                raise
            return future.result(timeout=self.timings.upload_timeout)
        finally:
            pool.shutdown(wait=False)

    def upload_with_retry(self, options: RecordingOptions, path: Path,
                          stream_kind: StreamKind,
                          permits: Optional[threading.BoundedSemaphore] = None) -> UploadOutcome:
        """
        Stability wait followed by up to max_attempts timed attempts.

        Never raises for upload failures; giving up is recorded in the
        returned outcome.

        Args:
            permits: Shared bound on uploader calls in flight, held by
                each attempt until the call returns (timed out or not)
        """
        path = Path(path)
        t = self.timings
        outcome = UploadOutcome(path=path, stream_kind=stream_kind,
                                status=UploadStatus.FAILED)

        unstable = self.wait_for_stable(path)
        if unstable is not None:
            outcome.status = unstable
            return outcome

        logger.info(f"File size stable: {path}")

        while outcome.attempts < t.max_attempts:
            outcome.attempts += 1
            try:
                key = self._timed_attempt(options, path, stream_kind, permits)
            except FuturesTimeout:
                logger.warning(f"Upload attempt timed out (attempt {outcome.attempts}): "
                               f"{path.name}")
                outcome.errors.append("timeout")
            except Exception as e:
                logger.warning(f"Failed to upload {path.name} "
                               f"(attempt {outcome.attempts}): {e}")
                outcome.errors.append(str(e))
            else:
                outcome.key = key
                outcome.status = UploadStatus.UPLOADED
                logger.info(f"Successful upload of {path.name} on attempt {outcome.attempts}")
                return outcome

            if outcome.attempts < t.max_attempts:
                time.sleep(t.retry_interval)

        logger.error(f"Giving up on {path.name} after {outcome.attempts} attempts")
        return outcome

    def upload_all(self, options: RecordingOptions, paths: List[Path],
                   stream_kind: StreamKind) -> List[UploadOutcome]:
        """
        Upload files with at most drain_workers uploader calls in flight,
        counting timed-out attempts that are still running. Waits for all.

        Outcomes are returned in the order of ``paths``.
        """
        if not paths:
            return []

        permits = threading.BoundedSemaphore(self.timings.drain_workers)
        outcomes: List[UploadOutcome] = []
        with ThreadPoolExecutor(max_workers=self.timings.drain_workers,
                                thread_name_prefix=f"{stream_kind.label}-drain") as pool:
            futures = [
                (path, pool.submit(self.upload_with_retry, options, path, stream_kind, permits))
                for path in paths
            ]
            for path, future in futures:
                try:
                    outcomes.append(future.result())
                except Exception as e:
                    logger.error(f"Failed to join upload task for {path}: {e}", exc_info=True)
                    outcomes.append(UploadOutcome(path=Path(path), stream_kind=stream_kind,
                                                  status=UploadStatus.FAILED,
                                                  errors=[str(e)]))
        return outcomes
