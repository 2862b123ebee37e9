"""
Exception hierarchy for the recorder.

    RecorderError
        SetupError           - fatal, raised before/while spawning encoders
        ConfigError          - invalid settings file
        SessionStateError    - start/stop called from the wrong phase
        UploadError          - upload primitive failure (transient or not)
        DrainError           - shutdown drain could not run
            NoActiveOptionsError - stop without a prior successful start
"""


class RecorderError(Exception):
    """Base class for all recorder errors."""


class SetupError(RecorderError):
    """Recording could not be set up; no encoder is left running."""


class ConfigError(RecorderError):
    """Settings file is missing, malformed, or incomplete."""


class SessionStateError(RecorderError):
    """Operation is not valid in the current session phase."""


class UploadError(RecorderError):
    """An upload attempt failed.

    Args:
        message: Human readable reason
        transient: True when a later attempt may succeed
    """

    def __init__(self, message: str, transient: bool = True):
        super().__init__(message)
        self.transient = transient


class DrainError(RecorderError):
    """Shutdown drain for a stream could not complete its scan."""


class NoActiveOptionsError(DrainError):
    """Stop was requested but no recording options are active."""

    def __init__(self, message: str = "No recording options provided"):
        super().__init__(message)
