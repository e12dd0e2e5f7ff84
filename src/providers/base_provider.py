"""
Base Provider Module

Defines an abstract base class for identity providers. The
challenge orchestrator talks to a provider only through this
interface, so a fake provider can stand in during tests
"""

import abc
from typing import Mapping, Optional

from src.models.challenge import ChallengeOutcome, Continuation, TotpSetup
from src.models.session import Credentials, Session


class BaseIdentityProvider(abc.ABC):
    """
    Abstract base class for identity providers

    Every operation returns a ChallengeOutcome or raises an
    AuthError subclass. Providers must not retry on their own
    """

    @abc.abstractmethod
    def initiate_auth(self, credentials: Credentials) -> ChallengeOutcome:
        """
        Submit credentials and start a login attempt

        :param credentials: Identity and secret
        :return: Terminal outcome or first challenge
        """
        pass

    @abc.abstractmethod
    def respond_to_challenge(self, continuation: Continuation, challenge_kind: str,
                             answer: str) -> ChallengeOutcome:
        """
        Answer an MFA code challenge or an MFA type selection

        :param continuation: Continuation from the previous round
        :param challenge_kind: MFA kind being answered or selected
        :param answer: Operator-supplied code, or the selected kind
        :return: Next outcome
        """
        pass

    @abc.abstractmethod
    def complete_new_password(self, continuation: Continuation, new_secret: str,
                              attributes: Mapping[str, str]) -> ChallengeOutcome:
        """
        Answer a forced password change

        :param continuation: Continuation from the previous round
        :param new_secret: New password chosen by the operator
        :param attributes: Required attributes to submit with it
        :return: Next outcome
        """
        pass

    @abc.abstractmethod
    def begin_software_token_setup(self, continuation: Continuation) -> TotpSetup:
        pass

    @abc.abstractmethod
    def verify_software_token(self, continuation: Continuation, code: str) -> ChallengeOutcome:
        pass

    @abc.abstractmethod
    def enable_sms_mfa(self, continuation: Continuation) -> ChallengeOutcome:
        pass

    @abc.abstractmethod
    def get_cached_session(self, identity: str) -> Optional[Session]:
        """
        Look up the session cached for an identity

        :param identity: Identity the session was issued to
        :return: Cached session, or None when there is none
        """
        pass

    @abc.abstractmethod
    def sign_out(self, identity: str) -> None:
        """
        Invalidate local and remote session records for an identity

        :param identity: Identity to sign out
        """
        pass
