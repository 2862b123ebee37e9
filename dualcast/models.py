"""
Value types shared across the recorder.

RecordingOptions and Timings are immutable; they are handed to every
thread that needs them and never changed after a session starts.
"""

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional


class StreamKind(enum.Enum):
    """One of the two concurrently captured sources."""
    SCREEN = "screen"
    VIDEO = "video"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    def chunk_dir(self, working_dir: Path) -> Path:
        return Path(working_dir) / "chunks" / self.value

    def source_index(self, options: "RecordingOptions") -> str:
        if self is StreamKind.SCREEN:
            return options.screen_index
        return options.video_index

    def framerate(self, options: "RecordingOptions") -> str:
        # Screen capture always runs at 60 fps
        if self is StreamKind.SCREEN:
            return "60"
        return options.framerate


@dataclass(frozen=True)
class RecordingOptions:
    """Who is recording, from which sources, and where chunks go."""
    user_id: str
    recording_id: str
    screen_index: str
    video_index: str
    aws_region: str
    aws_bucket: str
    framerate: str = "30"
    resolution: str = "1280x720"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecordingOptions":
        """Build options from a settings/CLI mapping, stringifying values."""
        required = ["user_id", "recording_id", "screen_index", "video_index",
                    "aws_region", "aws_bucket"]
        missing = [k for k in required if data.get(k) in (None, "")]
        if missing:
            raise ValueError(f"Missing recording options: {missing}")

        optional = {k: str(data[k]) for k in ("framerate", "resolution")
                    if data.get(k) not in (None, "")}
        return cls(**{k: str(data[k]) for k in required}, **optional)


@dataclass(frozen=True)
class Timings:
    """Poll, retry and timeout intervals in seconds."""
    poll_interval: float = 3.0
    settle_delay: float = 1.0
    stability_interval: float = 1.0
    stability_checks: int = 2
    stability_timeout: Optional[float] = 30.0
    upload_timeout: float = 15.0
    retry_interval: float = 2.0
    max_attempts: int = 3
    drain_workers: int = 8
    stop_timeout: float = 5.0

    def __post_init__(self):
        for name in ("poll_interval", "stability_interval", "upload_timeout", "stop_timeout"):
            self._coerce(name, float, minimum=0, strict=True)
        for name in ("settle_delay", "retry_interval"):
            self._coerce(name, float, minimum=0)
        for name in ("stability_checks", "max_attempts", "drain_workers"):
            self._coerce(name, int, minimum=1)
        if self.stability_timeout is not None:
            self._coerce("stability_timeout", float, minimum=0, strict=True)

    def _coerce(self, name: str, kind: type, minimum: float, strict: bool = False) -> None:
        value = getattr(self, name)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{name} must be a number, got {value!r}")
        if kind is int and value != int(value):
            raise ValueError(f"{name} must be a whole number, got {value!r}")
        if value < minimum or (strict and value == minimum):
            bound = "greater than" if strict else "at least"
            raise ValueError(f"{name} must be {bound} {minimum}, got {value!r}")
        # Frozen dataclass
        object.__setattr__(self, name, kind(value))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Timings":
        data = data or {}
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown timing keys: {unknown}")
        return cls(**data)


class UploadStatus(enum.Enum):
    UPLOADED = "uploaded"
    FAILED = "failed"
    VANISHED = "vanished"
    UNSTABLE = "unstable"


@dataclass
class UploadOutcome:
    """Result of one drain-phase upload."""
    path: Path
    stream_kind: StreamKind
    status: UploadStatus
    key: Optional[str] = None
    attempts: int = 0
    errors: list = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is UploadStatus.UPLOADED
