"""
Session module - recording orchestration.

Provides:
    RecordingSession: start_recording / stop_recording / status
    SessionState, SessionPhase: Lock-guarded per-session record
"""

from .recorder import RecordingSession, clean_and_create_dir
from .state import SessionPhase, SessionState

__all__ = ["RecordingSession", "SessionState", "SessionPhase", "clean_and_create_dir"]
