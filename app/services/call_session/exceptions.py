"""Call session exceptions."""


class CallSessionError(Exception):
    """Base class for call session errors."""


class InvalidCallIdError(CallSessionError, ValueError):
    """Raised when a call identifier is empty."""


class SessionNotFoundError(CallSessionError):
    """Raised when a turn arrives for a call without an active session."""

    def __init__(self, call_id: str):
        self.call_id = call_id
        super().__init__(f"No active session for call {call_id}")
