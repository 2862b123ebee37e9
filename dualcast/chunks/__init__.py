"""
Chunks module - manifest reading, live watching, shutdown drain.

Provides:
    manifest: ensure_exists / load / load_ordered for segment_list.txt
    ChunkWatcher: Per-stream manifest poller dispatching live uploads
    drain: Final sweep-and-upload of a stream's chunk directory
"""

from . import manifest
from .drain import drain, list_chunk_files
from .watcher import ChunkWatcher

__all__ = ["manifest", "ChunkWatcher", "drain", "list_chunk_files"]
