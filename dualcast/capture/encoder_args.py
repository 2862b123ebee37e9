"""
Encoder command-line construction.

build_encoder_args is a pure function of (platform, stream, options,
chunk_dir, encoder settings); its only side effect is making sure the
segment manifest exists so readers never race the encoder's first write.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional

from ..chunks import manifest
from ..config import ENCODER_DEFAULTS
from ..errors import SetupError
from ..models import RecordingOptions, StreamKind

logger = logging.getLogger(__name__)

CHUNK_PREFIX = "recording_chunk_"

PIX_FMT = "nv12"
CODEC = "libx264"


def resolve_encoder_binary(configured: str = "ffmpeg") -> str:
    """
    Resolve the encoder executable to an absolute path.

    Args:
        configured: Absolute/relative path, or a bare name looked up on PATH

    Raises:
        SetupError: If the binary cannot be found or is not executable
    """
    if os.sep in configured or (os.altsep and os.altsep in configured):
        path = Path(configured).expanduser()
        if path.is_file() and os.access(path, os.X_OK):
            return str(path.resolve())
        raise SetupError(f"Encoder binary not executable: {configured}")

    found = shutil.which(configured)
    if not found:
        raise SetupError(f"Encoder binary not found on PATH: {configured}")
    return found


def build_encoder_args(
    platform: str,
    stream_kind: StreamKind,
    options: RecordingOptions,
    chunk_dir: Path,
    encoder: Optional[dict] = None,
) -> List[str]:
    """
    Build the ffmpeg argument list for one stream.

    Args:
        platform: sys.platform value ("darwin", "linux", "win32")
        stream_kind: Which stream the encoder captures
        options: Active recording options
        chunk_dir: Directory receiving chunks and the manifest
        encoder: Encoder settings (segment_time, container, preset, crf, gop)

    Returns:
        Arguments to pass after the encoder binary

    Raises:
        SetupError: Unsupported platform or manifest cannot be created
    """
    if platform not in ("darwin", "win32") and not platform.startswith("linux"):
        raise SetupError(f"Unsupported OS: {platform}")

    settings = dict(ENCODER_DEFAULTS)
    settings.update(encoder or {})

    chunk_dir = Path(chunk_dir)
    output_pattern = str(chunk_dir / f"{CHUNK_PREFIX}%03d.{settings['container']}")
    segment_list = manifest.manifest_path(chunk_dir)

    try:
        manifest.ensure_exists(segment_list)
    except OSError as e:
        raise SetupError(f"Failed to ensure segment list file exists: {e}") from e

    fps = stream_kind.framerate(options)
    index = stream_kind.source_index(options)
    is_screen = stream_kind is StreamKind.SCREEN

    if platform == "darwin":
        args = ["-f", "avfoundation"]
        if not is_screen:
            args += ["-video_size", options.resolution]
        args += [
            "-framerate", fps,
            "-i", f"{index}:none",
            "-c:v", CODEC,
            "-preset", str(settings["preset"]),
            "-pix_fmt", PIX_FMT,
        ]
        segment_format = "matroska"
    elif platform.startswith("linux"):
        args = ["-f", "x11grab", "-i", f"{index}+0,0"]
        if is_screen:
            args += ["-draw_mouse", "1"]
        args += [
            "-pix_fmt", PIX_FMT,
            "-c:v", CODEC,
            "-crf", str(settings["crf"]),
            "-preset", str(settings["preset"]),
        ]
        segment_format = "mpegts"
    else:
        if is_screen:
            args = ["-f", "gdigrab", "-i", "desktop"]
        else:
            args = ["-f", "dshow", "-i", f"video={index}"]
        args += [
            "-pixel_format", PIX_FMT,
            "-c:v", CODEC,
            "-crf", str(settings["crf"]),
            "-preset", str(settings["preset"]),
        ]
        segment_format = "mpegts"

    args += [
        "-g", str(settings["gop"]),
        "-r", fps,
        "-f", "segment",
        "-segment_time", str(settings["segment_time"]),
        "-segment_format", segment_format,
        "-segment_list", str(segment_list),
        "-segment_list_type", "flat",
        "-reset_timestamps", "1",
        output_pattern,
    ]

    logger.debug(f"{stream_kind.label} args: {args}")
    return args
