"""
Authentication package

Challenge orchestration for interactive login and session handling
"""

from src.auth.challenge_orchestrator import ChallengeOrchestrator
from src.auth.session_facade import SessionFacade

__all__ = [
    'ChallengeOrchestrator',
    'SessionFacade',
]
