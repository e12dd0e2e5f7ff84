"""
Challenge Data Model

Defines the outcomes an identity provider can return for a login
attempt. Exactly one outcome is active per round: either a terminal
Success/Failure or a challenge carrying the continuation token that
must be echoed back on the next reply
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Mapping, Optional, Tuple

from src.errors import AuthErrorKind
from src.models.session import Session


SOFTWARE_TOKEN_MFA = "SOFTWARE_TOKEN_MFA"
SMS_MFA = "SMS_MFA"


@dataclass(frozen=True)
class Continuation:
    """
    Provider-issued continuation for a multi-round challenge sequence

    Belongs to exactly one login attempt. The token value is excluded
    from repr so it cannot leak through logging
    """

    identity: str
    challenge_name: str
    value: str = field(repr=False)


class ChallengeOutcome:
    """Base class for every outcome a provider round can produce"""

    terminal = False

    @property
    def tag(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class Success(ChallengeOutcome):
    session: Session
    terminal = True


@dataclass(frozen=True)
class Failure(ChallengeOutcome):
    reason: str
    kind: AuthErrorKind = AuthErrorKind.CHALLENGE_REJECTED
    terminal = True


@dataclass(frozen=True)
class NewPasswordRequired(ChallengeOutcome):
    continuation: Continuation
    current_attributes: Mapping[str, str] = field(default_factory=dict)
    required_attributes: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class MfaSetupRequired(ChallengeOutcome):
    continuation: Continuation


@dataclass(frozen=True)
class TotpChallenge(ChallengeOutcome):
    continuation: Continuation


@dataclass(frozen=True)
class SmsOrOtherMfaChallenge(ChallengeOutcome):
    continuation: Continuation
    challenge_kind: str = SMS_MFA


@dataclass(frozen=True)
class SelectMfaType(ChallengeOutcome):
    continuation: Continuation
    available_kinds: Tuple[str, ...] = ()


@dataclass(frozen=True)
class UnrecognizedChallenge(ChallengeOutcome):
    """A provider challenge name that no handler implements"""

    challenge_name: str
    continuation: Optional[Continuation] = None


@dataclass(frozen=True)
class TotpSetup:
    """Shared secret returned when enrolling an authenticator app"""

    secret: str = field(repr=False)
    continuation: Continuation
