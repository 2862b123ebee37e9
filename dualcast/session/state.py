"""
Recording session state.

Everything here is guarded by ``lock`` except the shutdown flag, which
watchers read on every tick without taking the lock.
"""

import enum
import subprocess
import threading
from typing import Dict, List, Optional

from ..models import RecordingOptions, StreamKind


class SessionPhase(enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    RECORDING = "recording"
    STOPPING = "stopping"


class SessionState:
    """Mutable record for one start -> stop cycle."""

    def __init__(self):
        self.lock = threading.Lock()
        self.shutdown_flag = threading.Event()
        self.reset()

    def reset(self) -> None:
        """Clear all session fields. Caller holds ``lock``."""
        self.phase = SessionPhase.IDLE
        self.processes: Dict[StreamKind, Optional[subprocess.Popen]] = {
            kind: None for kind in StreamKind
        }
        self.upload_tasks: List[threading.Thread] = []
        self.watcher_threads: List[threading.Thread] = []
        self.options: Optional[RecordingOptions] = None

    def add_upload_task(self, task: threading.Thread) -> None:
        with self.lock:
            self.upload_tasks.append(task)

    def take_upload_tasks(self) -> List[threading.Thread]:
        """Hand over every recorded upload task and forget them."""
        with self.lock:
            tasks, self.upload_tasks = self.upload_tasks, []
        return tasks
