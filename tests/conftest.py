"""
Shared fixtures: a scripted operator prompt and a scripted identity
provider that record what happened, in order, in one event list
"""

import os

os.environ.setdefault("LOG_TO_FILE", "false")

from datetime import timedelta

import pytest

from src.errors import PromptCancelled
from src.models.challenge import Continuation
from src.models.session import Session, utc_now
from src.prompts.base_prompt import BasePrompt
from src.providers.base_provider import BaseIdentityProvider

IDENTITY = "user@example.com"


class ScriptedPrompt(BasePrompt):
    """Answers prompts from a list; raises PromptCancelled when it runs out"""

    def __init__(self, answers=None, events=None):
        self.answers = list(answers or [])
        self.events = events if events is not None else []
        self.asks = []
        self.lines = []

    def ask(self, prompt_text, secret=False):
        self.asks.append((prompt_text, secret))
        self.events.append(("ask", prompt_text))
        if not self.answers:
            raise PromptCancelled("no more scripted answers")
        return self.answers.pop(0)

    def say(self, line=""):
        self.lines.append(line)
        self.events.append(("say", line))

    @property
    def output(self):
        return "\n".join(self.lines)


class FakeProvider(BaseIdentityProvider):
    """
    Provider returning scripted values per operation

    A scripted value that is an exception instance is raised instead
    """

    def __init__(self, events=None, **scripts):
        self.events = events if events is not None else []
        self.scripts = {name: list(values) for name, values in scripts.items()}
        self.calls = []
        self.sessions = {}
        self.sign_out_error = None
        self.lookup_error = None

    def _next(self, name, *args):
        self.calls.append((name,) + args)
        self.events.append(("provider", name))
        value = self.scripts[name].pop(0)
        if isinstance(value, Exception):
            raise value
        return value

    @property
    def call_names(self):
        return [call[0] for call in self.calls]

    def initiate_auth(self, credentials):
        return self._next("initiate_auth", credentials)

    def respond_to_challenge(self, continuation, challenge_kind, answer):
        return self._next("respond_to_challenge", continuation, challenge_kind, answer)

    def complete_new_password(self, continuation, new_secret, attributes):
        return self._next("complete_new_password", continuation, new_secret, dict(attributes))

    def begin_software_token_setup(self, continuation):
        return self._next("begin_software_token_setup", continuation)

    def verify_software_token(self, continuation, code):
        return self._next("verify_software_token", continuation, code)

    def enable_sms_mfa(self, continuation):
        return self._next("enable_sms_mfa", continuation)

    def get_cached_session(self, identity):
        self.calls.append(("get_cached_session", identity))
        if self.lookup_error is not None:
            raise self.lookup_error
        return self.sessions.get(identity)

    def sign_out(self, identity):
        self.calls.append(("sign_out", identity))
        if self.sign_out_error is not None:
            raise self.sign_out_error
        self.sessions.pop(identity, None)


def make_continuation(challenge_name, value="session-token-0000000001", identity=IDENTITY):
    return Continuation(identity=identity, challenge_name=challenge_name, value=value)


def make_session(expires_in=3600):
    return Session(
        access_token="access-token-value",
        id_token="id-token-value",
        expires_at=utc_now() + timedelta(seconds=expires_in),
    )


@pytest.fixture
def events():
    return []
