"""
Encoder process supervision.

Each encoder runs as a child process with stdout/stderr piped to a
draining thread.
"""

import logging
import subprocess
import threading
from typing import IO, List, Optional

from ..errors import SetupError
from ..models import StreamKind

logger = logging.getLogger(__name__)


class CaptureSupervisor:
    """
    Spawns and terminates encoder processes.

    The supervisor itself holds no per-session state; the session keeps
    the returned handles and passes them back to stop().
    """

    def __init__(self, stop_timeout: float = 5.0):
        """
        Args:
            stop_timeout: Seconds to wait after terminate() before kill()
        """
        self.stop_timeout = stop_timeout

    def start(self, stream_kind: StreamKind, binary: str,
              args: List[str]) -> subprocess.Popen:
        """
        Spawn the encoder for a stream.

        Raises:
            SetupError: If the process cannot be spawned
        """
        cmd = [binary] + list(args)
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise SetupError(f"Failed to spawn {stream_kind.value} encoder: {e}") from e

        logger.info(f"{stream_kind.label} encoder started (pid {process.pid})")

        for pipe, name in ((process.stdout, "stdout"), (process.stderr, "stderr")):
            threading.Thread(
                target=self._drain_output,
                args=(pipe, f"{stream_kind.label} {name}"),
                daemon=True,
                name=f"{stream_kind.label}-{name}",
            ).start()

        return process

    @staticmethod
    def _drain_output(pipe: IO[bytes], desc: str) -> None:
        """Log encoder output line by line until the pipe closes."""
        try:
            for raw in iter(pipe.readline, b""):
                line = raw.decode("utf-8", errors="replace").rstrip()
                if line:
                    logger.debug(f"{desc}: {line}")
        except (OSError, ValueError) as e:
            logger.debug(f"{desc}: output closed ({e})")
        finally:
            try:
                pipe.close()
            except OSError:
                pass

    @staticmethod
    def is_running(process: Optional[subprocess.Popen]) -> bool:
        return process is not None and process.poll() is None

    def stop(self, process: Optional[subprocess.Popen],
             stream_kind: Optional[StreamKind] = None) -> bool:
        """
        Terminate an encoder and wait for it to exit.

        Failures are logged, never raised.

        Returns:
            True if the process is confirmed exited (or was never started)
        """
        if process is None:
            return True

        label = stream_kind.label if stream_kind else "Encoder"

        if process.poll() is not None:
            logger.info(f"{label} encoder already exited (code {process.returncode})")
            return True

        try:
            process.terminate()
            try:
                process.wait(timeout=self.stop_timeout)
            except subprocess.TimeoutExpired:
                logger.warning(f"{label} encoder did not exit in "
                               f"{self.stop_timeout}s, killing")
                process.kill()
                process.wait(timeout=self.stop_timeout)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error(f"Failed to kill the {label.lower()} encoder: {e}")
            return process.poll() is not None

        logger.info(f"{label} encoder terminated (code {process.returncode})")
        return True
