"""
Error taxonomy for FinVoice.

The parser never raises; invalid input is a field on its result.
Everything else that can fail raises one of these, and callers decide
what to tell the user.
"""

from typing import Optional


class FinVoiceError(Exception):
    """Base exception for FinVoice."""
    pass


class InvalidInputError(FinVoiceError):
    """Input could not be turned into a usable record."""
    pass


class NotAuthenticatedError(FinVoiceError):
    """No active session, or the credential was rejected."""
    pass


class RemoteUnavailableOfflineModeError(FinVoiceError):
    """The session is local-only and the operation needs the remote store."""
    pass


class RemoteOperationError(FinVoiceError):
    """A remote store call failed or timed out."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class RemoteWriteFailedError(RemoteOperationError):
    """A remote write failed or timed out."""
    pass


class RemoteReadFailedError(RemoteOperationError):
    """A remote read failed or timed out."""
    pass


class AIResponseParseError(FinVoiceError):
    """The AI service returned text that is not the expected JSON."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text
