"""
S3 upload primitive.

Keys are laid out as <prefix>/<user_id>/<recording_id>/<stream>/<file>,
so re-uploading a chunk overwrites the same object.
"""

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import UploadError
from ..models import RecordingOptions, StreamKind

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".mkv": "video/x-matroska",
    ".ts": "video/mp2t",
    ".mp4": "video/mp4",
}

# Retrying these never helps
PERMANENT_ERROR_CODES = (
    "AccessDenied",
    "NoSuchBucket",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
)


def _is_permanent(message: str) -> bool:
    return any(code in message for code in PERMANENT_ERROR_CODES)


class S3Uploader:
    """
    Uploads chunk files to S3 with boto3.

    One client is created per region and shared across upload threads.
    """

    def __init__(self, key_prefix: str = "",
                 client_factory: Optional[Callable[[str], object]] = None):
        """
        Args:
            key_prefix: Prefix for every object key (may be empty)
            client_factory: region -> S3 client; defaults to boto3.client
        """
        self.key_prefix = (key_prefix or "").strip("/")
        self._client_factory = client_factory or (
            lambda region: boto3.client("s3", region_name=region)
        )
        self._clients: Dict[str, object] = {}
        self._lock = threading.Lock()

    def _client(self, region: str):
        # Client creation is not thread-safe; using a client is
        with self._lock:
            if region not in self._clients:
                self._clients[region] = self._client_factory(region)
            return self._clients[region]

    def object_key(self, options: RecordingOptions, path: Path,
                   stream_kind: StreamKind) -> str:
        parts = [options.user_id, options.recording_id, stream_kind.value, Path(path).name]
        if self.key_prefix:
            parts.insert(0, self.key_prefix)
        return "/".join(parts)

    def upload(self, options: RecordingOptions, file_path: str,
               stream_kind: StreamKind) -> str:
        """
        Upload one file.

        Returns:
            The object key

        Raises:
            UploadError: transient=False for missing files and
                         access/bucket errors, True otherwise
        """
        path = Path(file_path)
        if not path.is_file():
            raise UploadError(f"File not found: {path}", transient=False)

        key = self.object_key(options, path, stream_kind)
        extra_args = {
            "ContentType": CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream"),
            "Metadata": {
                "user_id": options.user_id,
                "recording_id": options.recording_id,
                "stream": stream_kind.value,
                "upload_time": datetime.now(timezone.utc).isoformat(),
            },
        }

        logger.debug(f"Uploading {path.name} to s3://{options.aws_bucket}/{key}")

        try:
            self._client(options.aws_region).upload_file(
                str(path), options.aws_bucket, key, ExtraArgs=extra_args
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            raise UploadError(f"S3 upload failed for {path.name}: {e}",
                              transient=code not in PERMANENT_ERROR_CODES) from e
        except S3UploadFailedError as e:
            raise UploadError(f"S3 upload failed for {path.name}: {e}",
                              transient=not _is_permanent(str(e))) from e
        except BotoCoreError as e:
            raise UploadError(f"S3 upload failed for {path.name}: {e}") from e

        return key
