"""
dualcast - screen + camera chunked recorder with live upload.

Provides:
    RecordingSession: start_recording / stop_recording orchestration
    RecordingOptions, StreamKind, Timings: Session value types
    S3Uploader: boto3 upload primitive
"""

from .models import RecordingOptions, StreamKind, Timings, UploadOutcome, UploadStatus
from .session import RecordingSession
from .upload import S3Uploader

__all__ = [
    "RecordingSession",
    "RecordingOptions",
    "StreamKind",
    "Timings",
    "UploadOutcome",
    "UploadStatus",
    "S3Uploader",
]
