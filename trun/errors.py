# trun/errors.py
"""
Error types shared by the tracking session, the run aggregator and the server.
"""


class TrunError(RuntimeError):
    """
    Base error for the trun toolkit.
    """


class UnsupportedCapability(TrunError):
    """
    Raised by `TrackingSession.start` when no location source is available.
    """


class SampleError(TrunError):
    """
    A single position update failed. Recorded on the session, never raised out
    of a sample callback.
    """


class InvalidRun(TrunError):
    """
    Raised when a run cannot be turned into a record (fewer than 2 path points
    or malformed path data).
    """


class SessionStateError(TrunError):
    """
    Raised on a lifecycle call that is not valid from the current state.
    """


__all__ = [
    "TrunError",
    "UnsupportedCapability",
    "SampleError",
    "InvalidRun",
    "SessionStateError",
]
