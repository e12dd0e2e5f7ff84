"""
Challenge Orchestrator Module

Drives a login attempt from credential submission through any
number of provider challenges (forced password change, MFA
enrollment, MFA verification, MFA type selection) to a terminal
Success or Failure. Every challenge round is answered with fresh
operator input and no step is ever retried
"""

from typing import Callable, Dict, Optional, Sequence, Tuple, Type

from src.errors import AuthError, AuthErrorKind, TransportFault, UnsupportedChallenge
from src.models.challenge import (
    ChallengeOutcome,
    Continuation,
    Failure,
    MfaSetupRequired,
    NewPasswordRequired,
    SelectMfaType,
    SmsOrOtherMfaChallenge,
    Success,
    TotpChallenge,
    UnrecognizedChallenge,
    SOFTWARE_TOKEN_MFA,
)
from src.models.session import Credentials
from src.prompts.base_prompt import BasePrompt
from src.providers.base_provider import BaseIdentityProvider
from src.utils.config import DEFAULT_TOTP_ISSUER
from src.utils.logger import get_logger


START = "Start"
TOTP_SETUP_IN_PROGRESS = "TotpSetupInProgress"
INVALID_SELECTION = "invalid selection"

SMS = "SMS"
TOTP = "TOTP"
DEFAULT_MFA_METHODS = (SMS, TOTP)

_MFA_METHOD_LABELS = {
    SMS: "SMS",
    TOTP: "TOTP (Authenticator App)",
}

_ANY_OUTCOME: Tuple[Type[ChallengeOutcome], ...] = (
    Success,
    Failure,
    NewPasswordRequired,
    MfaSetupRequired,
    TotpChallenge,
    SmsOrOtherMfaChallenge,
    SelectMfaType,
    UnrecognizedChallenge,
)

# Outcomes the provider may answer with, keyed by the state being left
_TRANSITIONS: Dict[str, Tuple[Type[ChallengeOutcome], ...]] = {
    START: _ANY_OUTCOME,
    "NewPasswordRequired": tuple(t for t in _ANY_OUTCOME if t is not NewPasswordRequired),
    "MfaSetupRequired": (Success, Failure),
    TOTP_SETUP_IN_PROGRESS: (Success, Failure),
    "TotpChallenge": (Success, Failure),
    "SmsOrOtherMfaChallenge": (Success, Failure),
    "SelectMfaType": (TotpChallenge, SmsOrOtherMfaChallenge, Failure),
}


def _menu_pick(options: Sequence[str], choice: str) -> Optional[str]:
    """Option named by a 1-based menu answer, None if the answer is not on the menu"""
    try:
        index = int(choice)
    except ValueError:
        return None

    if not 1 <= index <= len(options):
        return None
    return options[index - 1]


class _Attempt:
    """
    State owned by a single login call

    Holds the current state name and the continuation issued by the
    provider. Once closed the continuation can no longer be read
    """

    def __init__(self, credentials: Credentials):
        self.credentials = credentials
        self.state = START
        self.rounds = 0
        self._continuation: Optional[Continuation] = None
        self._closed = False

    @property
    def identity(self) -> str:
        return self.credentials.identity

    @property
    def continuation(self) -> Continuation:
        if self._closed or self._continuation is None:
            raise RuntimeError("continuation used outside an active challenge round")
        return self._continuation

    def enter(self, state: str, continuation: Optional[Continuation]) -> None:
        self.state = state
        self.rounds += 1
        self._continuation = continuation

    def close(self) -> None:
        self._continuation = None
        self._closed = True


class ChallengeOrchestrator:
    """
    State machine for interactive authentication

    Consumes an identity provider and an operator prompt, both
    injected, and runs the challenge protocol to completion. The
    orchestrator keeps no per-attempt state on the instance, so one
    instance can serve concurrent login calls
    """

    def __init__(self, provider: BaseIdentityProvider, prompt: BasePrompt,
                 totp_issuer: str = DEFAULT_TOTP_ISSUER,
                 mfa_methods: Sequence[str] = DEFAULT_MFA_METHODS):
        """
        Initialize orchestrator

        :param provider: Identity provider to authenticate against
        :param prompt: Operator prompt for codes, passwords and choices
        :param totp_issuer: Issuer label used in the enrollment URI
        :param mfa_methods: Methods offered when the provider requires
            MFA enrollment, in menu order
        :raises ValueError: If no supported MFA method is configured
        """
        self.logger = get_logger("challenge_orchestrator")
        self.provider = provider
        self.prompt = prompt
        self.totp_issuer = totp_issuer
        self.mfa_methods = tuple(m.upper() for m in mfa_methods if m.upper() in _MFA_METHOD_LABELS)

        if not self.mfa_methods:
            raise ValueError(f"No supported MFA method in {list(mfa_methods)}")

        self._handlers: Dict[Type[ChallengeOutcome], Callable[[_Attempt, ChallengeOutcome], ChallengeOutcome]] = {
            NewPasswordRequired: self._handle_new_password,
            MfaSetupRequired: self._handle_mfa_setup,
            TotpChallenge: self._handle_totp,
            SmsOrOtherMfaChallenge: self._handle_code_challenge,
            SelectMfaType: self._handle_select_mfa_type,
        }

    def login(self, credentials: Credentials) -> ChallengeOutcome:
        """
        Authenticate credentials, answering every challenge on the way

        :param credentials: Identity and secret for this attempt
        :return: Success carrying the session, or a classified Failure
        """
        if not credentials.is_complete():
            return self._finish(credentials.identity, Failure(
                reason="bad credentials: identity and password are required",
                kind=AuthErrorKind.INVALID_CREDENTIALS,
            ))

        attempt = _Attempt(credentials)
        self.logger.info(f"Starting login for {attempt.identity}")

        try:
            outcome = self._call(self.provider.initiate_auth, credentials)

            while True:
                self._check_transition(attempt, outcome)
                if outcome.terminal:
                    break
                outcome = self._dispatch(attempt, outcome)

        except AuthError as e:
            outcome = Failure(reason=e.reason, kind=e.kind)
        finally:
            attempt.close()

        return self._finish(attempt.identity, outcome, attempt.rounds)

    def _dispatch(self, attempt: _Attempt, challenge: ChallengeOutcome) -> ChallengeOutcome:
        handler = self._handlers.get(type(challenge))

        if handler is None:
            name = getattr(challenge, "challenge_name", challenge.tag)
            raise UnsupportedChallenge(name)

        attempt.enter(challenge.tag, challenge.continuation)
        self.logger.info(f"Round {attempt.rounds} for {attempt.identity}: {challenge.tag}")

        return handler(attempt, challenge)

    def _check_transition(self, attempt: _Attempt, outcome: ChallengeOutcome) -> None:
        """
        Reject outcomes the current state does not lead to

        :param attempt: Attempt being driven
        :param outcome: Outcome returned by the provider
        :raises UnsupportedChallenge: If the transition is not allowed
        """
        if not isinstance(outcome, ChallengeOutcome):
            raise UnsupportedChallenge(type(outcome).__name__)

        allowed = _TRANSITIONS[attempt.state]
        if not isinstance(outcome, allowed):
            name = getattr(outcome, "challenge_name", outcome.tag)
            raise UnsupportedChallenge(f"{name} after {attempt.state}")

    def _call(self, operation: Callable, *args):
        """
        Invoke a provider operation

        Anything that is not already an AuthError is treated as a
        provider fault
        """
        try:
            return operation(*args)
        except AuthError:
            raise
        except Exception as e:
            self.logger.error(f"Identity provider call failed: {str(e)}", exc_info=True)
            raise TransportFault(str(e)) from e

    def _handle_new_password(self, attempt: _Attempt, challenge: NewPasswordRequired) -> ChallengeOutcome:
        self.prompt.say()
        self.prompt.say("New password required (first login)")
        new_password = self.prompt.ask("Enter new password: ", secret=True)

        # Only attributes the pool has no value for are asked
        attributes = {}
        for name in sorted(challenge.required_attributes):
            current = challenge.current_attributes.get(name)
            attributes[name] = current if current else self.prompt.ask(f"Enter {name}: ").strip()

        return self._call(self.provider.complete_new_password, attempt.continuation,
                          new_password, attributes)

    def _handle_mfa_setup(self, attempt: _Attempt, challenge: MfaSetupRequired) -> ChallengeOutcome:
        methods = self.mfa_methods

        self.prompt.say()
        choice = self.prompt.choose(
            "MFA setup required. Choose MFA method:",
            [_MFA_METHOD_LABELS[m] for m in methods],
            f"Enter choice (1-{len(methods)}): ",
        )

        method = _menu_pick(methods, choice)
        if method is None:
            self.logger.warning(f"Invalid MFA method choice for {attempt.identity}")
            return Failure(reason=INVALID_SELECTION)

        if method == SMS:
            self.logger.info(f"Enabling SMS MFA for {attempt.identity}")
            return self._call(self.provider.enable_sms_mfa, attempt.continuation)
        return self._enroll_totp(attempt)

    def _enroll_totp(self, attempt: _Attempt) -> ChallengeOutcome:
        """
        Enrol an authenticator app: show the secret, then verify one code

        :param attempt: Attempt being driven
        :return: Outcome of the verification
        """
        setup = self._call(self.provider.begin_software_token_setup, attempt.continuation)
        attempt.enter(TOTP_SETUP_IN_PROGRESS, setup.continuation)

        uri = f"otpauth://totp/{self.totp_issuer}:{attempt.identity}?secret={setup.secret}"

        self.prompt.say()
        self.prompt.say("TOTP Setup:")
        self.prompt.say("1. Install an authenticator app (Google Authenticator, Authy, etc.)")
        self.prompt.say(f"2. Add this secret key: {setup.secret}")
        self.prompt.say(f"3. Or scan QR code with URL: {uri}")

        code = self.prompt.ask("Enter code from authenticator app: ").strip()
        return self._call(self.provider.verify_software_token, attempt.continuation, code)

    def _handle_totp(self, attempt: _Attempt, challenge: TotpChallenge) -> ChallengeOutcome:
        code = self.prompt.ask("Enter TOTP code from authenticator app: ").strip()
        return self._call(self.provider.respond_to_challenge, attempt.continuation,
                          SOFTWARE_TOKEN_MFA, code)

    def _handle_code_challenge(self, attempt: _Attempt,
                               challenge: SmsOrOtherMfaChallenge) -> ChallengeOutcome:
        code = self.prompt.ask("Enter MFA code: ").strip()
        return self._call(self.provider.respond_to_challenge, attempt.continuation,
                          challenge.challenge_kind, code)

    def _handle_select_mfa_type(self, attempt: _Attempt, challenge: SelectMfaType) -> ChallengeOutcome:
        kinds = challenge.available_kinds

        self.prompt.say()
        choice = self.prompt.choose("Select MFA Type:", kinds, "Enter choice: ")

        selected = _menu_pick(kinds, choice)
        if selected is None:
            self.logger.warning(f"Invalid MFA selection for {attempt.identity}")
            return Failure(reason=INVALID_SELECTION)

        return self._call(self.provider.respond_to_challenge, attempt.continuation,
                          selected, selected)

    def _finish(self, identity: str, outcome: ChallengeOutcome, rounds: int = 0) -> ChallengeOutcome:
        self.prompt.say()

        if isinstance(outcome, Success):
            self.logger.info(f"Login succeeded for {identity} after {rounds} challenge round(s)")
            preview = outcome.session.preview()
            self.prompt.say("Authentication successful!")
            self.prompt.say(f"   Access Token: {preview['access_token']}")
            self.prompt.say(f"   ID Token: {preview['id_token']}")
            self.prompt.say(f"   Token Expiration: {preview['expires_at']}")
        else:
            self.logger.warning(f"Login failed for {identity} ({outcome.kind.value}): {outcome.reason}")
            self.prompt.say(f"Authentication failed: {outcome.reason}")

        return outcome
