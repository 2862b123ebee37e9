"""
Capture module - encoder process supervision and argument construction.

Provides:
    CaptureSupervisor: Spawns/terminates encoder processes, drains their output
    build_encoder_args: Per-platform ffmpeg arguments for a stream
    resolve_encoder_binary: Locates the encoder executable
"""

from .encoder_args import build_encoder_args, resolve_encoder_binary
from .supervisor import CaptureSupervisor

__all__ = [
    "CaptureSupervisor",
    "build_encoder_args",
    "resolve_encoder_binary",
]
