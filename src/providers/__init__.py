"""
Providers package

Identity provider interface and the Cognito implementation
"""

from src.providers.base_provider import BaseIdentityProvider
from src.providers.cognito_provider import CognitoProvider
from src.providers.provider_factory import ProviderFactory

__all__ = [
    'BaseIdentityProvider',
    'CognitoProvider',
    'ProviderFactory',
]
