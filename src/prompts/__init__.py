"""
Prompts package

Operator prompts used to answer authentication challenges
"""

from src.prompts.base_prompt import BasePrompt
from src.prompts.console_prompt import ConsolePrompt

__all__ = [
    'BasePrompt',
    'ConsolePrompt',
]
