"""
Cognito Provider Module

Identity provider backed by an AWS Cognito user pool app client.
Uses the USER_PASSWORD_AUTH flow and maps Cognito challenge
names and error codes onto the shared outcome and error types
"""

import base64
import hashlib
import hmac
import json
import threading
from typing import Any, Callable, Dict, Mapping, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from src.errors import AuthError, ChallengeRejected, InvalidCredentials, TransportFault
from src.models.challenge import (
    ChallengeOutcome,
    Continuation,
    MfaSetupRequired,
    NewPasswordRequired,
    SelectMfaType,
    SmsOrOtherMfaChallenge,
    Success,
    TotpChallenge,
    TotpSetup,
    UnrecognizedChallenge,
    SOFTWARE_TOKEN_MFA,
    SMS_MFA,
)
from src.models.session import Credentials, Session
from src.providers.base_provider import BaseIdentityProvider
from src.utils.config import DEFAULT_REGION
from src.utils.logger import get_logger


NEW_PASSWORD_REQUIRED = "NEW_PASSWORD_REQUIRED"
MFA_SETUP = "MFA_SETUP"
SELECT_MFA_TYPE = "SELECT_MFA_TYPE"
EMAIL_OTP = "EMAIL_OTP"

# Code-style challenges answered with <KIND>_CODE
_CODE_CHALLENGES = (SMS_MFA, EMAIL_OTP)

# Cognito rejects these attributes when echoed back on a password change
_READ_ONLY_ATTRIBUTES = frozenset(["sub", "email_verified", "phone_number_verified"])

_CREDENTIAL_ERRORS = frozenset([
    "NotAuthorizedException",
    "UserNotFoundException",
    "UserNotConfirmedException",
    "PasswordResetRequiredException",
])

_REJECTION_ERRORS = frozenset([
    "CodeMismatchException",
    "ExpiredCodeException",
    "InvalidPasswordException",
    "EnableSoftwareTokenMFAException",
    "NotAuthorizedException",
    "InvalidParameterException",
    "SoftwareTokenMFANotFoundException",
])


class CognitoProvider(BaseIdentityProvider):
    """
    Cognito user pool implementation of the identity provider

    Sessions issued to an identity are cached in memory until the
    identity signs out. The cache is shared between threads and
    guarded by a lock; per-attempt state lives only in the
    Continuation objects handed back to the caller
    """

    def __init__(self, config: Dict[str, Any], client=None):
        """
        Initialize Cognito provider

        :param config: Cognito settings (region, client_id, optional
            client_secret, connect_timeout, read_timeout, device_name)
        :param client: Optional pre-built cognito-idp client
        :raises ValueError: If client_id is missing
        """
        self.logger = get_logger("cognito_provider")

        self.region = config.get("region") or DEFAULT_REGION
        self.client_id = config.get("client_id")
        self.client_secret = config.get("client_secret")
        self.device_name = config.get("device_name", "My TOTP Device")

        if not self.client_id:
            raise ValueError("Missing client_id in Cognito configuration")

        # Single attempt per call, retries are left to the caller
        if client is None:
            boto_config = BotoConfig(
                connect_timeout=int(config.get("connect_timeout", 10)),
                read_timeout=int(config.get("read_timeout", 30)),
                retries={"total_max_attempts": 1},
            )
            client = boto3.client("cognito-idp", region_name=self.region, config=boto_config)
        self.client = client

        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def initiate_auth(self, credentials: Credentials) -> ChallengeOutcome:
        auth_parameters = self._base_parameters(credentials.identity)
        auth_parameters["PASSWORD"] = credentials.secret

        self.logger.debug(f"Initiating USER_PASSWORD_AUTH for {credentials.identity}")
        response = self._call(
            self.client.initiate_auth,
            initial=True,
            AuthFlow="USER_PASSWORD_AUTH",
            ClientId=self.client_id,
            AuthParameters=auth_parameters,
        )
        return self._to_outcome(credentials.identity, response)

    def respond_to_challenge(self, continuation: Continuation, challenge_kind: str,
                             answer: str) -> ChallengeOutcome:
        responses = self._base_parameters(continuation.identity)

        if continuation.challenge_name == SELECT_MFA_TYPE:
            responses["ANSWER"] = challenge_kind
        else:
            responses[f"{challenge_kind}_CODE"] = answer

        return self._respond(continuation, continuation.challenge_name, responses)

    def complete_new_password(self, continuation: Continuation, new_secret: str,
                              attributes: Mapping[str, str]) -> ChallengeOutcome:
        responses = self._base_parameters(continuation.identity)
        responses["NEW_PASSWORD"] = new_secret

        for name, value in attributes.items():
            if name in _READ_ONLY_ATTRIBUTES:
                continue
            responses[f"userAttributes.{name}"] = value

        return self._respond(continuation, NEW_PASSWORD_REQUIRED, responses)

    def begin_software_token_setup(self, continuation: Continuation) -> TotpSetup:
        response = self._call(self.client.associate_software_token, Session=continuation.value)

        next_continuation = Continuation(
            identity=continuation.identity,
            challenge_name=continuation.challenge_name,
            value=response.get("Session") or continuation.value,
        )
        return TotpSetup(secret=response["SecretCode"], continuation=next_continuation)

    def verify_software_token(self, continuation: Continuation, code: str) -> ChallengeOutcome:
        response = self._call(
            self.client.verify_software_token,
            Session=continuation.value,
            UserCode=code,
            FriendlyDeviceName=self.device_name,
        )

        if response.get("Status") != "SUCCESS":
            raise ChallengeRejected("authenticator code was not accepted")

        # Verification only enrols the device; the MFA_SETUP challenge
        # still has to be answered to obtain tokens
        verified = Continuation(
            identity=continuation.identity,
            challenge_name=MFA_SETUP,
            value=response.get("Session") or continuation.value,
        )
        return self._respond(verified, MFA_SETUP, self._base_parameters(continuation.identity))

    def enable_sms_mfa(self, continuation: Continuation) -> ChallengeOutcome:
        return self._respond(continuation, MFA_SETUP, self._base_parameters(continuation.identity))

    def get_cached_session(self, identity: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(identity)

    def sign_out(self, identity: str) -> None:
        with self._lock:
            session = self._sessions.pop(identity, None)

        if session is None:
            self.logger.debug(f"No cached session for {identity}")
            return

        if session.is_valid():
            self._call(self.client.global_sign_out, AccessToken=session.access_token)
            self.logger.info(f"Revoked tokens for {identity}")

    def secret_hash(self, username: str) -> str:
        """
        Compute the SECRET_HASH required by app clients with a secret

        :param username: Username the request is made for
        :return: Base64 encoded HMAC-SHA256 digest
        """
        message = (username + self.client_id).encode("utf-8")
        digest = hmac.new(self.client_secret.encode("utf-8"), message, hashlib.sha256).digest()
        return base64.b64encode(digest).decode("utf-8")

    def _base_parameters(self, identity: str) -> Dict[str, str]:
        parameters = {"USERNAME": identity}
        if self.client_secret:
            parameters["SECRET_HASH"] = self.secret_hash(identity)
        return parameters

    def _respond(self, continuation: Continuation, challenge_name: str,
                 responses: Dict[str, str]) -> ChallengeOutcome:
        response = self._call(
            self.client.respond_to_auth_challenge,
            ClientId=self.client_id,
            ChallengeName=challenge_name,
            Session=continuation.value,
            ChallengeResponses=responses,
        )
        return self._to_outcome(continuation.identity, response)

    def _call(self, operation: Callable[..., Dict[str, Any]], initial: bool = False,
              **params) -> Dict[str, Any]:
        """
        Invoke a cognito-idp operation and classify failures

        :param operation: Bound client method
        :param initial: Whether this is the credential submission
        :param params: Operation parameters
        :return: Operation response
        :raises AuthError: Classified provider failure
        """
        try:
            return operation(**params)
        except ClientError as e:
            error = e.response.get("Error", {})
            code = error.get("Code", "Unknown")
            message = error.get("Message") or code
            self.logger.warning(f"Cognito rejected request: {code}")
            raise self._classify(code, message, initial) from e
        except BotoCoreError as e:
            self.logger.error(f"Cognito unreachable: {str(e)}")
            raise TransportFault(str(e)) from e

    @staticmethod
    def _classify(code: str, message: str, initial: bool) -> AuthError:
        if initial:
            # No challenge has been answered yet
            if code in _CREDENTIAL_ERRORS:
                return InvalidCredentials(message)
        elif code in _REJECTION_ERRORS:
            return ChallengeRejected(message)
        return TransportFault(f"{code}: {message}")

    def _to_outcome(self, identity: str, response: Dict[str, Any]) -> ChallengeOutcome:
        """
        Translate a Cognito auth response into an outcome

        :param identity: Identity the attempt belongs to
        :param response: initiate_auth or respond_to_auth_challenge response
        :return: Success or the challenge Cognito asked for
        """
        # Tokens mean every challenge is satisfied
        result = response.get("AuthenticationResult")
        if result:
            session = Session.from_expires_in(
                access_token=result["AccessToken"],
                id_token=result["IdToken"],
                expires_in=result.get("ExpiresIn", 3600),
                refresh_token=result.get("RefreshToken"),
            )
            with self._lock:
                self._sessions[identity] = session
            return Success(session)

        name = response.get("ChallengeName", "")
        parameters = response.get("ChallengeParameters") or {}
        continuation = Continuation(identity=identity, challenge_name=name,
                                    value=response.get("Session", ""))

        self.logger.debug(f"Cognito issued challenge {name}")

        if name == NEW_PASSWORD_REQUIRED:
            current = json.loads(parameters.get("userAttributes") or "{}")
            required = json.loads(parameters.get("requiredAttributes") or "[]")
            return NewPasswordRequired(
                continuation=continuation,
                current_attributes={k: str(v) for k, v in current.items()},
                required_attributes=frozenset(a.replace("userAttributes.", "", 1) for a in required),
            )
        if name == MFA_SETUP:
            return MfaSetupRequired(continuation)
        if name == SOFTWARE_TOKEN_MFA:
            return TotpChallenge(continuation)
        if name in _CODE_CHALLENGES:
            return SmsOrOtherMfaChallenge(continuation, challenge_kind=name)
        if name == SELECT_MFA_TYPE:
            kinds = json.loads(parameters.get("MFAS_CAN_CHOOSE") or "[]")
            return SelectMfaType(continuation, available_kinds=tuple(kinds))

        return UnrecognizedChallenge(challenge_name=name or "<none>", continuation=continuation)
