"""
Exception types for the piano synthesis engine.

Construction problems (bad frequencies, malformed envelopes) surface as
``InvalidArgument`` before any generator runs. Operating on a finished
session surfaces as ``InvalidState``. Both subclass the matching builtin so
callers can catch ``ValueError`` / ``RuntimeError`` if they prefer.
"""


class PianoSynthError(Exception):
    """Base class for all engine errors."""
    pass


class InvalidArgument(PianoSynthError, ValueError):
    """Raised when a frequency, count or envelope ordering is invalid."""
    pass


class InvalidState(PianoSynthError, RuntimeError):
    """Raised when an operation is not valid in the object's current state."""
    pass


class ConfigLoadError(PianoSynthError):
    """Raised when configuration loading fails."""
    pass
