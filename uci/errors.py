"""
Error types raised by the UCI protocol layer.
"""


class EngineError(Exception):
    """Base class for failures talking to an engine worker."""
    pass


class ProtocolParseError(EngineError):
    """Raised when a response line does not have the expected shape."""

    def __init__(self, message: str, line: str = ""):
        super().__init__(message)
        self.line = line


class ResponseTimeoutError(EngineError):
    """Raised when no matching response line arrives before the deadline."""
    pass


class EngineTaskCanceledError(EngineError):
    """
    Raised for tasks that were flushed or terminated before they settled.

    The reason string is preserved ("terminated", "flushed", "new_game", or
    whatever the caller passed to flush()).
    """

    def __init__(self, reason: str = "canceled"):
        super().__init__(f"Engine task canceled: {reason}")
        self.reason = reason
