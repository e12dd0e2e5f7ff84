"""
Errors Module

Error taxonomy for authentication attempts. Providers raise these,
the challenge orchestrator turns them into Failure outcomes
"""

from enum import Enum


class AuthErrorKind(str, Enum):
    """Classification attached to every failed attempt"""

    INVALID_CREDENTIALS = "invalid_credentials"
    CHALLENGE_REJECTED = "challenge_rejected"
    UNSUPPORTED_CHALLENGE = "unsupported_challenge"
    TRANSPORT_FAULT = "transport_fault"
    SESSION_EXPIRED = "session_expired"
    CANCELLED = "cancelled"


REASON_PREFIXES = {
    AuthErrorKind.INVALID_CREDENTIALS: "bad credentials",
    AuthErrorKind.CHALLENGE_REJECTED: "bad challenge response",
    AuthErrorKind.UNSUPPORTED_CHALLENGE: "unexpected challenge type",
    AuthErrorKind.TRANSPORT_FAULT: "provider unavailable",
    AuthErrorKind.SESSION_EXPIRED: "session expired",
    AuthErrorKind.CANCELLED: "cancelled",
}


class AuthError(Exception):
    """
    Base class for authentication errors

    :param message: Provider or local detail message
    """

    kind = AuthErrorKind.TRANSPORT_FAULT

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    @property
    def reason(self) -> str:
        """Human-readable reason, prefixed with the error class"""
        prefix = REASON_PREFIXES[self.kind]
        return f"{prefix}: {self.message}" if self.message else prefix


class InvalidCredentials(AuthError):
    kind = AuthErrorKind.INVALID_CREDENTIALS


class ChallengeRejected(AuthError):
    kind = AuthErrorKind.CHALLENGE_REJECTED


class UnsupportedChallenge(AuthError):
    kind = AuthErrorKind.UNSUPPORTED_CHALLENGE


class TransportFault(AuthError):
    kind = AuthErrorKind.TRANSPORT_FAULT


class PromptCancelled(AuthError):
    """Raised by a prompt when the operator closes it mid-flow"""

    kind = AuthErrorKind.CANCELLED


__all__ = [
    "AuthErrorKind",
    "AuthError",
    "InvalidCredentials",
    "ChallengeRejected",
    "UnsupportedChallenge",
    "TransportFault",
    "PromptCancelled",
]
