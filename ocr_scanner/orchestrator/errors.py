ERR_BUSY = "BUSY"
ERR_TIMEOUT = "TIMEOUT"
ERR_UNKNOWN = "UNKNOWN"
ERR_BAD_REQUEST = "BAD_REQUEST"


class ScanStateError(RuntimeError):
    """Raised when an operation is invoked in a state that does not allow it
    (e.g. cloud escalation without a retained candidate frame)."""


class RecognizerError(RuntimeError):
    """Local text recognizer failed on a single frame."""
