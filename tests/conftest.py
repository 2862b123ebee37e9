import sys
import threading
import time
from pathlib import Path

import pytest

# Repo root on sys.path so tests run without installing
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dualcast.errors import UploadError
from dualcast.models import RecordingOptions, Timings

STUB_ENCODER = Path(__file__).resolve().parent / "stub_encoder.py"


class FakeUploader:
    """
    Records upload calls and plays back scripted behaviours per filename.

    Behaviours: "ok", "error" (raises UploadError), "hang" (sleeps
    hang_seconds, then succeeds).
    """

    def __init__(self, delay: float = 0.0, hang_seconds: float = 1.0):
        self.delay = delay
        self.hang_seconds = hang_seconds
        self.script = {}
        self.calls = []
        self.keys = []
        self.active = 0
        self.max_active = 0
        self.lock = threading.Lock()

    def _next_behaviour(self, name):
        with self.lock:
            queue = self.script.get(name)
            if queue:
                return queue.pop(0)
        return "ok"

    def upload(self, options, file_path, stream_kind):
        name = Path(file_path).name
        with self.lock:
            self.calls.append((stream_kind, name))
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            behaviour = self._next_behaviour(name)
            if self.delay:
                time.sleep(self.delay)
            if behaviour == "error":
                raise UploadError(f"scripted failure for {name}")
            if behaviour == "hang":
                time.sleep(self.hang_seconds)
            key = f"{options.user_id}/{options.recording_id}/{stream_kind.value}/{name}"
            with self.lock:
                self.keys.append(key)
            return key
        finally:
            with self.lock:
                self.active -= 1

    def calls_for(self, stream_kind):
        with self.lock:
            return [name for kind, name in self.calls if kind is stream_kind]


@pytest.fixture
def options():
    return RecordingOptions(
        user_id="user-1",
        recording_id="rec-1",
        screen_index="1",
        video_index="0",
        aws_region="us-east-1",
        aws_bucket="test-bucket",
        framerate="24",
        resolution="640x480",
    )


@pytest.fixture
def fast_timings():
    return Timings(
        poll_interval=0.05,
        settle_delay=0.01,
        stability_interval=0.01,
        stability_checks=2,
        stability_timeout=1.0,
        upload_timeout=0.5,
        retry_interval=0.05,
        max_attempts=3,
        drain_workers=8,
        stop_timeout=2.0,
    )


@pytest.fixture
def uploader():
    return FakeUploader()


def wait_until(predicate, timeout: float = 10.0, interval: float = 0.02) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
