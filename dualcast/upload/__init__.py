"""
Upload module - chunk upload policies and the S3 primitive.

Provides:
    UploadDispatcher: Live (fire-and-forget) and drain (bounded, retried) uploads
    S3Uploader: boto3-backed upload(options, path, stream_kind) -> key
"""

from .dispatcher import UploadDispatcher
from .s3 import S3Uploader

__all__ = ["UploadDispatcher", "S3Uploader"]
