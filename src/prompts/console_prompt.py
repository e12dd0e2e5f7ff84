"""
Console Prompt Module

Terminal implementation of the operator prompt. Plain answers
are read with input(), hidden answers with getpass
"""

import getpass
import sys

from src.errors import PromptCancelled
from src.prompts.base_prompt import BasePrompt


class ConsolePrompt(BasePrompt):
    """Prompt reading from stdin and writing status lines to stdout"""

    def __init__(self, stream=None):
        """
        Initialize console prompt

        :param stream: Output stream for status lines, defaults to stdout
        """
        self.stream = stream or sys.stdout

    def ask(self, prompt_text: str, secret: bool = False) -> str:
        try:
            if secret:
                return getpass.getpass(prompt_text)
            return input(prompt_text)
        except (EOFError, KeyboardInterrupt):
            self.say()
            raise PromptCancelled("input closed by operator")

    def say(self, line: str = "") -> None:
        print(line, file=self.stream, flush=True)
