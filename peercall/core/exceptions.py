"""
Custom exception classes for the peercall coordinator and client.
"""


class PeerCallError(Exception):
    """Base exception for peercall."""

    code = "INTERNAL_ERROR"
    status = 500

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{super().__str__()} - {self.details}"
        return super().__str__()

    def to_dict(self) -> dict:
        """Serialize for an HTTP error body."""
        return {
            'error': self.args[0] if self.args else self.code,
            'code': self.code,
            'details': self.details
        }


class RoomNotFoundError(PeerCallError):
    """Raised when a referenced room does not exist."""
    code = "NOT_FOUND"
    status = 404


class PeerNotFoundError(PeerCallError):
    """Raised when the sending peer never joined the room."""
    code = "PEER_NOT_FOUND"
    status = 404


class ValidationError(PeerCallError):
    """Raised when a request is missing fields or carries the wrong types."""
    code = "BAD_REQUEST"
    status = 400


class MediaAccessDeniedError(PeerCallError):
    """Raised when the local camera or microphone cannot be opened."""
    code = "MEDIA_ACCESS_DENIED"


class NegotiationError(PeerCallError):
    """Raised when one peer's offer, answer or candidate cannot be applied."""
    code = "NEGOTIATION_ERROR"


class SignalingError(PeerCallError):
    """Raised when a call to the coordinator fails for any other reason."""
    code = "SIGNALING_ERROR"

    def __init__(self, message: str, details: dict = None, status: int = 500):
        super().__init__(message, details)
        self.status = status
