"""
Tests for the challenge orchestrator state machine.

Covers:
  1. Terminal outcomes on the first round
  2. Prompting before every provider reply
  3. MFA type selection, including invalid choices
  4. TOTP / SMS verification with no retries
  5. MFA enrollment (SMS and authenticator app)
  6. Forced password change chaining into MFA
  7. Unsupported challenges, provider faults and cancellation
"""

import threading

import pytest

from conftest import FakeProvider, ScriptedPrompt, IDENTITY, make_continuation, make_session
from src.auth.challenge_orchestrator import ChallengeOrchestrator, _Attempt
from src.errors import AuthErrorKind, ChallengeRejected, InvalidCredentials, TransportFault
from src.models.challenge import (
    Failure,
    MfaSetupRequired,
    NewPasswordRequired,
    SelectMfaType,
    SmsOrOtherMfaChallenge,
    Success,
    TotpChallenge,
    TotpSetup,
    UnrecognizedChallenge,
)
from src.models.session import Credentials

SECRET = "JBSWY3DPEHPK3PXPJBSWY3DP"


def build(events, answers, **scripts):
    provider = FakeProvider(events=events, **scripts)
    prompt = ScriptedPrompt(answers, events=events)
    orchestrator = ChallengeOrchestrator(provider, prompt, totp_issuer="TestIssuer")
    return orchestrator, provider, prompt


def credentials():
    return Credentials(identity=IDENTITY, secret="Passw0rd!")


# ====================================================================
# 1. Terminal outcomes on the first round
# ====================================================================

class TestTerminalFirstRound:

    def test_success_without_challenges(self, events):
        session = make_session()
        orchestrator, provider, prompt = build(events, [], initiate_auth=[Success(session)])

        outcome = orchestrator.login(credentials())

        assert isinstance(outcome, Success)
        assert outcome.session is session
        assert prompt.asks == []
        assert "Authentication successful!" in prompt.output

    def test_provider_failure_invokes_no_prompt(self, events):
        orchestrator, provider, prompt = build(
            events, [], initiate_auth=[Failure(reason="bad credentials: locked")])

        outcome = orchestrator.login(credentials())

        assert isinstance(outcome, Failure)
        assert prompt.asks == []

    def test_invalid_credentials_are_classified(self, events):
        orchestrator, provider, prompt = build(
            events, [], initiate_auth=[InvalidCredentials("Incorrect username or password.")])

        outcome = orchestrator.login(credentials())

        assert outcome.kind is AuthErrorKind.INVALID_CREDENTIALS
        assert outcome.reason.startswith("bad credentials")

    def test_empty_secret_never_reaches_provider(self, events):
        orchestrator, provider, prompt = build(events, [])

        outcome = orchestrator.login(Credentials(identity=IDENTITY, secret=""))

        assert outcome.kind is AuthErrorKind.INVALID_CREDENTIALS
        assert provider.calls == []

    def test_identity_without_at_sign_is_accepted(self, events):
        orchestrator, provider, prompt = build(
            events, [], initiate_auth=[Success(make_session())])

        outcome = orchestrator.login(Credentials(identity="plainuser", secret="pw"))

        assert isinstance(outcome, Success)
        assert provider.call_names == ["initiate_auth"]


# ====================================================================
# 2. Prompting before every provider reply
# ====================================================================

@pytest.mark.parametrize("challenge, answers, scripts", [
    (
        NewPasswordRequired(make_continuation("NEW_PASSWORD_REQUIRED")),
        ["N3w#Password"],
        {"complete_new_password": [Success(make_session())]},
    ),
    (
        MfaSetupRequired(make_continuation("MFA_SETUP")),
        ["1"],
        {"enable_sms_mfa": [Success(make_session())]},
    ),
    (
        TotpChallenge(make_continuation("SOFTWARE_TOKEN_MFA")),
        ["123456"],
        {"respond_to_challenge": [Success(make_session())]},
    ),
    (
        SmsOrOtherMfaChallenge(make_continuation("SMS_MFA")),
        ["654321"],
        {"respond_to_challenge": [Success(make_session())]},
    ),
    (
        SelectMfaType(make_continuation("SELECT_MFA_TYPE"), available_kinds=("SMS_MFA",)),
        ["1", "654321"],
        {"respond_to_challenge": [
            SmsOrOtherMfaChallenge(make_continuation("SMS_MFA", value="session-token-0000000002")),
            Success(make_session()),
        ]},
    ),
])
def test_every_challenge_prompts_before_reply(events, challenge, answers, scripts):
    orchestrator, provider, prompt = build(events, answers, initiate_auth=[challenge], **scripts)

    outcome = orchestrator.login(credentials())

    assert isinstance(outcome, Success)
    # initiate, then strictly alternating ask / provider reply
    assert events[0] == ("provider", "initiate_auth")
    kinds = [kind for kind, _ in events[1:] if kind != "say"]
    assert kinds[0] == "ask"
    for index, kind in enumerate(kinds):
        if kind == "provider":
            assert kinds[index - 1] == "ask"


# ====================================================================
# 3. MFA type selection
# ====================================================================

class TestSelectMfaType:

    def select(self):
        return SelectMfaType(make_continuation("SELECT_MFA_TYPE"), available_kinds=("SMS", "TOTP"))

    def test_one_based_choice_selects_kind(self, events):
        orchestrator, provider, prompt = build(
            events, ["2", "123456"],
            initiate_auth=[self.select()],
            respond_to_challenge=[
                TotpChallenge(make_continuation("SOFTWARE_TOKEN_MFA", value="session-token-0000000002")),
                Success(make_session()),
            ],
        )

        outcome = orchestrator.login(credentials())

        assert isinstance(outcome, Success)
        name, continuation, challenge_kind, answer = provider.calls[1]
        assert name == "respond_to_challenge"
        assert challenge_kind == "TOTP"
        assert continuation.challenge_name == "SELECT_MFA_TYPE"
        assert "1. SMS" in prompt.lines
        assert "2. TOTP" in prompt.lines

    def test_out_of_range_choice_fails_without_provider_call(self, events):
        orchestrator, provider, prompt = build(events, ["5"], initiate_auth=[self.select()])

        outcome = orchestrator.login(credentials())

        assert outcome == Failure(reason="invalid selection")
        assert provider.call_names == ["initiate_auth"]

    @pytest.mark.parametrize("choice", ["0", "-1", "two", ""])
    def test_non_menu_choice_is_invalid_selection(self, events, choice):
        orchestrator, provider, prompt = build(events, [choice], initiate_auth=[self.select()])

        outcome = orchestrator.login(credentials())

        assert outcome.reason == "invalid selection"
        assert provider.call_names == ["initiate_auth"]

    def test_success_straight_after_selection_is_unexpected(self, events):
        orchestrator, provider, prompt = build(
            events, ["1"],
            initiate_auth=[self.select()],
            respond_to_challenge=[Success(make_session())],
        )

        outcome = orchestrator.login(credentials())

        assert outcome.kind is AuthErrorKind.UNSUPPORTED_CHALLENGE


# ====================================================================
# 4. Code verification
# ====================================================================

class TestCodeChallenges:

    def test_accepted_totp_code_yields_valid_session(self, events):
        orchestrator, provider, prompt = build(
            events, [" 123456 "],
            initiate_auth=[TotpChallenge(make_continuation("SOFTWARE_TOKEN_MFA"))],
            respond_to_challenge=[Success(make_session())],
        )

        outcome = orchestrator.login(credentials())

        assert isinstance(outcome, Success)
        assert outcome.session.is_valid()
        assert provider.calls[1][2:] == ("SOFTWARE_TOKEN_MFA", "123456")

    def test_rejected_totp_code_is_not_retried(self, events):
        orchestrator, provider, prompt = build(
            events, ["000000", "111111"],
            initiate_auth=[TotpChallenge(make_continuation("SOFTWARE_TOKEN_MFA"))],
            respond_to_challenge=[ChallengeRejected("Invalid code received for user")],
        )

        outcome = orchestrator.login(credentials())

        assert outcome.kind is AuthErrorKind.CHALLENGE_REJECTED
        assert outcome.reason.startswith("bad challenge response")
        assert provider.call_names.count("respond_to_challenge") == 1
        assert len(prompt.asks) == 1

    def test_sms_challenge_forwards_its_kind(self, events):
        orchestrator, provider, prompt = build(
            events, ["654321"],
            initiate_auth=[SmsOrOtherMfaChallenge(make_continuation("EMAIL_OTP"), challenge_kind="EMAIL_OTP")],
            respond_to_challenge=[Success(make_session())],
        )

        orchestrator.login(credentials())

        assert provider.calls[1][2:] == ("EMAIL_OTP", "654321")


# ====================================================================
# 5. MFA enrollment
# ====================================================================

class TestMfaSetup:

    def test_totp_enrollment_shows_secret_and_uri(self, events):
        rotated = make_continuation("MFA_SETUP", value="session-token-0000000002")
        orchestrator, provider, prompt = build(
            events, ["2", "123456"],
            initiate_auth=[MfaSetupRequired(make_continuation("MFA_SETUP"))],
            begin_software_token_setup=[TotpSetup(secret=SECRET, continuation=rotated)],
            verify_software_token=[Success(make_session())],
        )

        outcome = orchestrator.login(credentials())

        assert isinstance(outcome, Success)
        assert f"2. Add this secret key: {SECRET}" in prompt.lines
        uri = f"otpauth://totp/TestIssuer:{IDENTITY}?secret={SECRET}"
        assert f"3. Or scan QR code with URL: {uri}" in prompt.lines
        assert prompt.asks[-1] == ("Enter code from authenticator app: ", False)
        code_ask = events.index(("ask", "Enter code from authenticator app: "))
        assert events.index(("provider", "begin_software_token_setup")) < code_ask
        assert events.index(("say", f"2. Add this secret key: {SECRET}")) < code_ask
        assert events.index(("say", f"3. Or scan QR code with URL: {uri}")) < code_ask
        assert provider.calls[-1] == ("verify_software_token", rotated, "123456")

    def test_totp_verification_failure_is_terminal(self, events):
        orchestrator, provider, prompt = build(
            events, ["2", "999999"],
            initiate_auth=[MfaSetupRequired(make_continuation("MFA_SETUP"))],
            begin_software_token_setup=[TotpSetup(secret=SECRET, continuation=make_continuation("MFA_SETUP"))],
            verify_software_token=[ChallengeRejected("Code mismatch")],
        )

        outcome = orchestrator.login(credentials())

        assert outcome.kind is AuthErrorKind.CHALLENGE_REJECTED
        assert provider.call_names.count("verify_software_token") == 1

    def test_sms_enrollment_is_single_round(self, events):
        orchestrator, provider, prompt = build(
            events, ["1"],
            initiate_auth=[MfaSetupRequired(make_continuation("MFA_SETUP"))],
            enable_sms_mfa=[Success(make_session())],
        )

        outcome = orchestrator.login(credentials())

        assert isinstance(outcome, Success)
        assert provider.call_names == ["initiate_auth", "enable_sms_mfa"]

    def test_unknown_method_choice_fails(self, events):
        orchestrator, provider, prompt = build(
            events, ["3"],
            initiate_auth=[MfaSetupRequired(make_continuation("MFA_SETUP"))],
        )

        outcome = orchestrator.login(credentials())

        assert outcome.reason == "invalid selection"
        assert provider.call_names == ["initiate_auth"]

    def test_menu_follows_configured_methods(self, events):
        provider = FakeProvider(
            events=events,
            initiate_auth=[MfaSetupRequired(make_continuation("MFA_SETUP"))],
            begin_software_token_setup=[TotpSetup(secret=SECRET, continuation=make_continuation("MFA_SETUP"))],
            verify_software_token=[Success(make_session())],
        )
        prompt = ScriptedPrompt(["1", "123456"], events=events)
        orchestrator = ChallengeOrchestrator(provider, prompt, mfa_methods=["totp"])

        outcome = orchestrator.login(credentials())

        assert isinstance(outcome, Success)
        assert "1. TOTP (Authenticator App)" in prompt.lines
        assert "2. SMS" not in prompt.lines
        assert prompt.asks[0] == ("Enter choice (1-1): ", False)
        assert "enable_sms_mfa" not in provider.call_names

    def test_unknown_methods_are_dropped(self):
        orchestrator = ChallengeOrchestrator(FakeProvider(), ScriptedPrompt(), mfa_methods=["EMAIL", "SMS"])

        assert orchestrator.mfa_methods == ("SMS",)

    def test_no_supported_method_rejected(self):
        with pytest.raises(ValueError):
            ChallengeOrchestrator(FakeProvider(), ScriptedPrompt(), mfa_methods=["EMAIL"])


# ====================================================================
# 6. Forced password change
# ====================================================================

class TestNewPasswordRequired:

    def test_prompts_only_for_missing_required_attributes(self, events):
        challenge = NewPasswordRequired(
            make_continuation("NEW_PASSWORD_REQUIRED"),
            current_attributes={"email": IDENTITY},
            required_attributes=frozenset(["email", "phone_number"]),
        )
        orchestrator, provider, prompt = build(
            events, ["N3w#Password", "+15550100"],
            initiate_auth=[challenge],
            complete_new_password=[Success(make_session())],
        )

        outcome = orchestrator.login(credentials())

        assert isinstance(outcome, Success)
        assert prompt.asks == [("Enter new password: ", True), ("Enter phone_number: ", False)]
        _, continuation, new_secret, attributes = provider.calls[1]
        assert new_secret == "N3w#Password"
        assert attributes == {"email": IDENTITY, "phone_number": "+15550100"}

    def test_chains_into_totp_enrollment(self, events):
        orchestrator, provider, prompt = build(
            events, ["N3w#Password", "2", "123456"],
            initiate_auth=[NewPasswordRequired(make_continuation("NEW_PASSWORD_REQUIRED"))],
            complete_new_password=[MfaSetupRequired(make_continuation("MFA_SETUP", value="session-token-0000000002"))],
            begin_software_token_setup=[TotpSetup(secret=SECRET, continuation=make_continuation("MFA_SETUP"))],
            verify_software_token=[Success(make_session())],
        )

        outcome = orchestrator.login(credentials())

        assert isinstance(outcome, Success)
        assert provider.call_names == [
            "initiate_auth",
            "complete_new_password",
            "begin_software_token_setup",
            "verify_software_token",
        ]

    def test_repeated_password_challenge_is_unsupported(self, events):
        orchestrator, provider, prompt = build(
            events, ["N3w#Password", "Another#1"],
            initiate_auth=[NewPasswordRequired(make_continuation("NEW_PASSWORD_REQUIRED"))],
            complete_new_password=[NewPasswordRequired(make_continuation("NEW_PASSWORD_REQUIRED"))],
        )

        outcome = orchestrator.login(credentials())

        assert outcome.kind is AuthErrorKind.UNSUPPORTED_CHALLENGE
        assert len(prompt.asks) == 1


# ====================================================================
# 7. Unsupported challenges, faults and cancellation
# ====================================================================

class TestFailures:

    def test_unrecognized_challenge_is_failure(self, events):
        orchestrator, provider, prompt = build(
            events, [],
            initiate_auth=[UnrecognizedChallenge(challenge_name="CUSTOM_CHALLENGE")],
        )

        outcome = orchestrator.login(credentials())

        assert outcome.kind is AuthErrorKind.UNSUPPORTED_CHALLENGE
        assert outcome.reason == "unexpected challenge type: CUSTOM_CHALLENGE"
        assert prompt.asks == []

    def test_non_outcome_value_is_failure(self, events):
        orchestrator, provider, prompt = build(events, [], initiate_auth=[{"ChallengeName": "X"}])

        outcome = orchestrator.login(credentials())

        assert outcome.kind is AuthErrorKind.UNSUPPORTED_CHALLENGE

    def test_challenge_after_code_round_is_unsupported(self, events):
        orchestrator, provider, prompt = build(
            events, ["123456"],
            initiate_auth=[TotpChallenge(make_continuation("SOFTWARE_TOKEN_MFA"))],
            respond_to_challenge=[SelectMfaType(make_continuation("SELECT_MFA_TYPE"), ("SMS",))],
        )

        outcome = orchestrator.login(credentials())

        assert outcome.kind is AuthErrorKind.UNSUPPORTED_CHALLENGE

    def test_transport_fault_is_classified(self, events):
        orchestrator, provider, prompt = build(
            events, [], initiate_auth=[TransportFault("Read timeout on endpoint URL")])

        outcome = orchestrator.login(credentials())

        assert outcome.kind is AuthErrorKind.TRANSPORT_FAULT
        assert outcome.reason.startswith("provider unavailable")

    def test_unexpected_exception_is_transport_fault(self, events):
        orchestrator, provider, prompt = build(
            events, ["123456"],
            initiate_auth=[TotpChallenge(make_continuation("SOFTWARE_TOKEN_MFA"))],
            respond_to_challenge=[ConnectionError("connection reset")],
        )

        outcome = orchestrator.login(credentials())

        assert outcome.kind is AuthErrorKind.TRANSPORT_FAULT

    def test_closed_prompt_cancels_attempt(self, events):
        orchestrator, provider, prompt = build(
            events, [],
            initiate_auth=[TotpChallenge(make_continuation("SOFTWARE_TOKEN_MFA"))],
        )

        outcome = orchestrator.login(credentials())

        assert outcome.kind is AuthErrorKind.CANCELLED
        assert provider.call_names == ["initiate_auth"]

    def test_consecutive_logins_use_their_own_continuations(self, events):
        first = make_continuation("SOFTWARE_TOKEN_MFA", value="session-token-first-0001")
        second = make_continuation("SOFTWARE_TOKEN_MFA", value="session-token-second-001",
                                   identity="other@example.com")
        orchestrator, provider, prompt = build(
            events, ["111111", "222222"],
            initiate_auth=[TotpChallenge(first), TotpChallenge(second)],
            respond_to_challenge=[Success(make_session()), Success(make_session())],
        )

        orchestrator.login(credentials())
        orchestrator.login(Credentials(identity="other@example.com", secret="pw"))

        replies = [call for call in provider.calls if call[0] == "respond_to_challenge"]
        assert replies[0][1] is first
        assert replies[1][1] is second


class InterleavedProvider(FakeProvider):
    """Holds both logins inside initiate_auth until each has started"""

    def __init__(self):
        super().__init__()
        self.barrier = threading.Barrier(2, timeout=5)
        self.lock = threading.Lock()
        self.issued = {}
        self.replies = {}

    def initiate_auth(self, credentials):
        continuation = make_continuation(
            "SOFTWARE_TOKEN_MFA",
            value=f"session-token-for-{credentials.identity}",
            identity=credentials.identity,
        )
        with self.lock:
            self.issued[threading.get_ident()] = continuation
        self.barrier.wait()
        return TotpChallenge(continuation)

    def respond_to_challenge(self, continuation, challenge_kind, answer):
        with self.lock:
            self.replies[threading.get_ident()] = continuation
        self.barrier.wait()
        return Success(make_session())


class TestConcurrentLogins:

    def test_parallel_logins_keep_their_own_continuations(self):
        provider = InterleavedProvider()
        prompt = ScriptedPrompt(["111111", "222222"])
        orchestrator = ChallengeOrchestrator(provider, prompt)
        outcomes = {}

        def run(identity):
            outcomes[identity] = orchestrator.login(Credentials(identity=identity, secret="pw"))

        threads = [
            threading.Thread(target=run, args=(identity,))
            for identity in (IDENTITY, "other@example.com")
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert all(isinstance(outcome, Success) for outcome in outcomes.values())
        assert len(provider.replies) == 2
        for thread_id, continuation in provider.replies.items():
            assert continuation is provider.issued[thread_id]


class TestAttempt:

    def test_continuation_unavailable_after_close(self):
        attempt = _Attempt(credentials())
        attempt.enter("TotpChallenge", make_continuation("SOFTWARE_TOKEN_MFA"))
        assert attempt.continuation.value == "session-token-0000000001"

        attempt.close()

        with pytest.raises(RuntimeError):
            attempt.continuation

    def test_continuation_value_not_in_repr(self):
        continuation = make_continuation("SMS_MFA", value="very-secret-session-token")
        assert "very-secret-session-token" not in repr(continuation)
