"""
Session Data Model

Defines the Credentials supplied for a login attempt and the
Session issued once every challenge has been satisfied, together
with the results returned by session refresh and sign-out
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from src.errors import AuthErrorKind, REASON_PREFIXES


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Credentials:
    """
    Identity and secret supplied once per login attempt

    The secret is kept out of repr so it never reaches a log line
    """

    identity: str
    secret: str = field(repr=False)

    def is_complete(self) -> bool:
        return bool(self.identity and self.identity.strip()) and bool(self.secret)


@dataclass(frozen=True)
class Session:
    """
    Tokens issued by the identity provider

    A session is valid while expires_at lies in the future
    """

    access_token: str = field(repr=False)
    id_token: str = field(repr=False)
    expires_at: datetime
    refresh_token: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_expires_in(cls, access_token: str, id_token: str, expires_in: int,
                        refresh_token: Optional[str] = None,
                        now: Optional[datetime] = None) -> 'Session':
        """
        Build a session from a relative lifetime

        :param access_token: Access token string
        :param id_token: ID token string
        :param expires_in: Lifetime in seconds
        :param refresh_token: Optional refresh token
        :param now: Reference time, defaults to the current UTC time
        :return: Session instance
        """
        issued_at = now or utc_now()
        return cls(
            access_token=access_token,
            id_token=id_token,
            expires_at=issued_at + timedelta(seconds=int(expires_in)),
            refresh_token=refresh_token,
        )

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at > (now or utc_now())

    def seconds_remaining(self, now: Optional[datetime] = None) -> int:
        return int((self.expires_at - (now or utc_now())).total_seconds())

    def preview(self, length: int = 50) -> Dict[str, Any]:
        """
        Shortened token view for status output

        :param length: Number of leading characters to keep
        :return: Dictionary with truncated tokens and expiry
        """
        return {
            "access_token": self.access_token[:length] + "...",
            "id_token": self.id_token[:length] + "...",
            "expires_at": self.expires_at.isoformat(),
        }


@dataclass(frozen=True)
class SessionExpired:
    """A cached session exists but its tokens are no longer valid"""

    identity: str
    expired_at: datetime

    kind = AuthErrorKind.SESSION_EXPIRED

    @property
    def reason(self) -> str:
        return f"{REASON_PREFIXES[self.kind]} at {self.expired_at.isoformat()}"


@dataclass(frozen=True)
class SessionError:
    """
    No usable session could be obtained

    kind is None when the provider simply holds no session
    """

    reason: str
    kind: Optional[AuthErrorKind] = AuthErrorKind.TRANSPORT_FAULT


@dataclass(frozen=True)
class Ack:
    identity: str
