"""
Base Prompt Module

Defines an abstract base class for operator prompts used
while driving authentication challenges
"""

import abc


class BasePrompt(abc.ABC):
    """
    Abstract base class for operator prompts

    A prompt obtains one line of text per call and displays
    status lines. Implementations raise PromptCancelled when
    the operator closes the prompt
    """

    @abc.abstractmethod
    def ask(self, prompt_text: str, secret: bool = False) -> str:
        """
        Obtain one line of text from the operator

        :param prompt_text: Text shown to the operator
        :param secret: Whether the answer must not be echoed
        :return: Answer text without the trailing newline
        :raises PromptCancelled: If the operator aborts
        """
        pass

    @abc.abstractmethod
    def say(self, line: str = "") -> None:
        """
        Display a status line to the operator

        :param line: Text to display
        """
        pass

    def choose(self, title: str, options, prompt_text: str) -> str:
        """
        Display a numbered menu and read the operator's choice

        :param title: Heading shown above the options
        :param options: Sequence of option labels, numbered from 1
        :param prompt_text: Text shown when asking for the choice
        :return: Raw answer text
        """
        self.say(title)
        for index, option in enumerate(options, start=1):
            self.say(f"{index}. {option}")
        return self.ask(prompt_text).strip()
