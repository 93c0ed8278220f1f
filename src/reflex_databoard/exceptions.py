"""Exception classes for reflex-databoard.

Backend failures are separated from session misuse so callers can decide
which ones to report to the user and which ones indicate a programming
error in the event wiring.
"""


class DataboardError(Exception):
    """Base class for all databoard exceptions."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class BackendError(DataboardError):
    """Raised when a backend command fails or answers with an unexpected shape."""

    def __init__(self, command: str, message: str = "Backend command failed."):
        self.command = command
        super().__init__(f"{command}: {message}")


class SessionBusyError(DataboardError):
    """Raised when an operation would overlap one of the same class still in flight."""

    def __init__(self, message: str = "Another operation is still running."):
        super().__init__(message)


class SessionStateError(DataboardError):
    """Raised when an operation is not allowed in the session's current phase."""

    def __init__(self, message: str = "Operation not allowed in the current session state."):
        super().__init__(message)
