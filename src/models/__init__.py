"""
Models package

Data classes shared by the orchestrator, providers and facade
"""

from src.models.session import Credentials, Session, SessionExpired, SessionError, Ack
from src.models.challenge import (
    Continuation,
    ChallengeOutcome,
    Success,
    Failure,
    NewPasswordRequired,
    MfaSetupRequired,
    TotpChallenge,
    SmsOrOtherMfaChallenge,
    SelectMfaType,
    UnrecognizedChallenge,
    TotpSetup,
)

__all__ = [
    'Credentials',
    'Session',
    'SessionExpired',
    'SessionError',
    'Ack',
    'Continuation',
    'ChallengeOutcome',
    'Success',
    'Failure',
    'NewPasswordRequired',
    'MfaSetupRequired',
    'TotpChallenge',
    'SmsOrOtherMfaChallenge',
    'SelectMfaType',
    'UnrecognizedChallenge',
    'TotpSetup',
]
