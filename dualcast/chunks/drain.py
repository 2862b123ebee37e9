"""
Shutdown drain.

After the encoders are killed, every finished chunk left in a stream's
directory is uploaded again through the bounded, retried drain policy.
This covers the chunk that was open when the encoder died and any live
upload that failed.
"""

import logging
import time
from pathlib import Path
from typing import List, Optional

from ..errors import DrainError, NoActiveOptionsError
from ..models import RecordingOptions, StreamKind, UploadOutcome

logger = logging.getLogger(__name__)


def list_chunk_files(chunk_dir: Path, container: str = "mkv") -> List[Path]:
    """
    Finished-chunk files in a directory, sorted by name.

    Raises:
        DrainError: If the directory cannot be listed
    """
    suffix = f".{container.lstrip('.')}"
    try:
        entries = list(Path(chunk_dir).iterdir())
    except OSError as e:
        raise DrainError(f"Error reading directory {chunk_dir}: {e}") from e
    return sorted(p for p in entries if p.is_file() and p.suffix == suffix)


def drain(
    chunk_dir: Path,
    options: Optional[RecordingOptions],
    stream_kind: StreamKind,
    dispatcher,
    settle_delay: float = 1.0,
    container: str = "mkv",
) -> List[UploadOutcome]:
    """
    Upload all remaining chunks of a stream and wait for completion.

    Args:
        chunk_dir: Stream chunk directory
        options: Active recording options; None means no session
        stream_kind: Stream being drained
        dispatcher: UploadDispatcher providing the bounded retry pool
        settle_delay: Seconds to let the encoder's last write land
        container: Extension of finished chunk files

    Raises:
        NoActiveOptionsError: No options (checked before any scan)
        DrainError: The chunk directory cannot be listed
    """
    if options is None:
        raise NoActiveOptionsError()

    time.sleep(settle_delay)

    files = list_chunk_files(chunk_dir, container)
    logger.info(f"Draining {len(files)} {stream_kind.value} chunk(s) from {chunk_dir}")

    outcomes = dispatcher.upload_all(options, files, stream_kind)

    uploaded = sum(1 for o in outcomes if o.ok)
    if uploaded < len(outcomes):
        logger.warning(f"{stream_kind.label} drain: {uploaded}/{len(outcomes)} uploaded")
    else:
        logger.info(f"{stream_kind.label} drain complete: {uploaded} uploaded")
    return outcomes
