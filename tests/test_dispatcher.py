import dataclasses
import logging
import threading
import time

from dualcast.models import StreamKind, UploadStatus
from dualcast.upload import UploadDispatcher

from conftest import FakeUploader, wait_until


def _chunk(tmp_path, name="recording_chunk_000.mkv", size=1024):
    path = tmp_path / name
    path.write_bytes(b"\0" * size)
    return path


def test_stable_file_uploads_on_first_attempt(tmp_path, options, fast_timings, uploader):
    dispatcher = UploadDispatcher(uploader, fast_timings)
    path = _chunk(tmp_path)

    outcome = dispatcher.upload_with_retry(options, path, StreamKind.SCREEN)

    assert outcome.ok
    assert outcome.attempts == 1
    assert outcome.key == "user-1/rec-1/screen/recording_chunk_000.mkv"
    assert uploader.calls == [(StreamKind.SCREEN, "recording_chunk_000.mkv")]


def test_growing_file_is_never_uploaded(tmp_path, options, fast_timings, uploader):
    timings = dataclasses.replace(fast_timings, stability_checks=5, stability_timeout=0.3)
    dispatcher = UploadDispatcher(uploader, timings)
    path = _chunk(tmp_path, size=0)
    stop = threading.Event()

    def keep_writing():
        with open(path, "ab") as f:
            while not stop.is_set():
                f.write(b"x" * 64)
                f.flush()
                time.sleep(0.001)

    writer = threading.Thread(target=keep_writing)
    writer.start()
    try:
        outcome = dispatcher.upload_with_retry(options, path, StreamKind.VIDEO)
    finally:
        stop.set()
        writer.join()

    assert outcome.status is UploadStatus.UNSTABLE
    assert outcome.attempts == 0
    assert uploader.calls == []


def test_vanished_file_is_abandoned(tmp_path, options, fast_timings, uploader):
    dispatcher = UploadDispatcher(uploader, fast_timings)

    outcome = dispatcher.upload_with_retry(options, tmp_path / "gone.mkv", StreamKind.SCREEN)

    assert outcome.status is UploadStatus.VANISHED
    assert uploader.calls == []


def test_two_timeouts_then_success(tmp_path, options, fast_timings):
    uploader = FakeUploader(hang_seconds=0.5)
    name = "recording_chunk_007.mkv"
    uploader.script[name] = ["hang", "hang", "ok"]
    timings = dataclasses.replace(fast_timings, upload_timeout=0.15, retry_interval=0.1)
    dispatcher = UploadDispatcher(uploader, timings)
    path = _chunk(tmp_path, name)

    started = time.monotonic()
    outcome = dispatcher.upload_with_retry(options, path, StreamKind.SCREEN)
    elapsed = time.monotonic() - started

    assert outcome.ok
    assert outcome.attempts == 3
    assert outcome.errors == ["timeout", "timeout"]
    assert elapsed >= 2 * timings.retry_interval


def test_gives_up_after_max_attempts(tmp_path, options, fast_timings, uploader, caplog):
    name = "recording_chunk_000.mkv"
    uploader.script[name] = ["error", "error", "error", "error"]
    dispatcher = UploadDispatcher(uploader, fast_timings)
    path = _chunk(tmp_path, name)

    with caplog.at_level(logging.ERROR):
        outcome = dispatcher.upload_with_retry(options, path, StreamKind.VIDEO)

    assert outcome.status is UploadStatus.FAILED
    assert outcome.attempts == 3
    assert len(uploader.calls) == 3
    assert "Giving up" in caplog.text


def test_error_then_success_is_retried(tmp_path, options, fast_timings, uploader):
    name = "recording_chunk_000.mkv"
    uploader.script[name] = ["error"]
    dispatcher = UploadDispatcher(uploader, fast_timings)

    outcome = dispatcher.upload_with_retry(options, _chunk(tmp_path, name), StreamKind.VIDEO)

    assert outcome.ok
    assert outcome.attempts == 2


def test_drain_pool_respects_worker_limit(tmp_path, options, fast_timings):
    uploader = FakeUploader(delay=0.05)
    timings = dataclasses.replace(fast_timings, drain_workers=3)
    dispatcher = UploadDispatcher(uploader, timings)
    paths = [_chunk(tmp_path, f"recording_chunk_{i:03d}.mkv") for i in range(10)]

    outcomes = dispatcher.upload_all(options, paths, StreamKind.SCREEN)

    assert [o.path for o in outcomes] == paths
    assert all(o.ok for o in outcomes)
    assert 1 <= uploader.max_active <= 3


def test_timed_out_attempts_keep_their_drain_slot(tmp_path, options, fast_timings):
    uploader = FakeUploader(hang_seconds=0.2)
    paths = []
    for i in range(8):
        name = f"recording_chunk_{i:03d}.mkv"
        uploader.script[name] = ["hang", "hang", "hang"]
        paths.append(_chunk(tmp_path, name))
    timings = dataclasses.replace(fast_timings, drain_workers=3, upload_timeout=0.05,
                                  retry_interval=0.01)
    dispatcher = UploadDispatcher(uploader, timings)

    outcomes = dispatcher.upload_all(options, paths, StreamKind.VIDEO)
    assert wait_until(lambda: len(uploader.calls) == 24 and uploader.active == 0)

    assert all(o.status is UploadStatus.FAILED for o in outcomes)
    assert all(o.errors == ["timeout"] * 3 for o in outcomes)
    assert 1 <= uploader.max_active <= 3


def test_live_dispatch_failure_is_logged_not_raised(tmp_path, options, fast_timings,
                                                    uploader, caplog):
    name = "recording_chunk_000.mkv"
    uploader.script[name] = ["error"]
    dispatcher = UploadDispatcher(uploader, fast_timings)

    with caplog.at_level(logging.ERROR):
        task = dispatcher.dispatch_live(options, _chunk(tmp_path, name), StreamKind.SCREEN)
        task.join(timeout=5)

    assert not task.is_alive()
    assert len(uploader.calls) == 1
    assert "Failed to upload chunk" in caplog.text


def test_live_dispatch_uploads_once_without_retry(tmp_path, options, fast_timings, uploader):
    dispatcher = UploadDispatcher(uploader, fast_timings)

    task = dispatcher.dispatch_live(options, _chunk(tmp_path), StreamKind.VIDEO)
    task.join(timeout=5)

    assert uploader.keys == ["user-1/rec-1/video/recording_chunk_000.mkv"]
