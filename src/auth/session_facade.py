"""
Session Facade Module

Thin pass-through to the identity provider for checking a
cached session and signing out
"""

from typing import Union

from src.errors import AuthError, AuthErrorKind
from src.models.session import Ack, Session, SessionError, SessionExpired
from src.providers.base_provider import BaseIdentityProvider
from src.utils.logger import get_logger


class SessionFacade:
    """Session refresh and sign-out for a single identity provider"""

    def __init__(self, provider: BaseIdentityProvider):
        self.logger = get_logger("session_facade")
        self.provider = provider

    def refresh(self, identity: str) -> Union[Session, SessionExpired, SessionError]:
        """
        Return the cached session for an identity if it is still valid

        :param identity: Identity the session was issued to
        :return: The cached Session, SessionExpired when its tokens
            have expired, or SessionError when there is no session or
            the provider could not be reached
        """
        try:
            session = self.provider.get_cached_session(identity)
        except AuthError as e:
            self.logger.error(f"Session lookup failed for {identity}: {e.reason}")
            return SessionError(reason=e.reason, kind=e.kind)
        except Exception as e:
            self.logger.error(f"Session lookup failed for {identity}: {str(e)}", exc_info=True)
            return SessionError(reason=f"provider unavailable: {str(e)}",
                                kind=AuthErrorKind.TRANSPORT_FAULT)

        if session is None:
            self.logger.info(f"No cached session for {identity}")
            return SessionError(reason=f"no cached session for {identity}", kind=None)

        if not session.is_valid():
            expired = SessionExpired(identity=identity, expired_at=session.expires_at)
            self.logger.info(f"Cached session for {identity}: {expired.reason}")
            return expired

        self.logger.debug(f"Session for {identity} valid for {session.seconds_remaining()}s")
        return session

    def sign_out(self, identity: str) -> Ack:
        """
        Invalidate session records for an identity

        Provider failures are logged and never raised, sign-out
        cannot be blocked

        :param identity: Identity to sign out
        :return: Ack for the identity
        """
        try:
            self.provider.sign_out(identity)
            self.logger.info(f"Signed out {identity}")
        except Exception as e:
            self.logger.warning(f"Sign-out for {identity} was not confirmed by provider: {str(e)}")

        return Ack(identity=identity)
