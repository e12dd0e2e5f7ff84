"""
Provider Factory Module

Factory for creating the identity provider named in the
configuration
"""

from typing import Dict, Any

from src.providers.base_provider import BaseIdentityProvider
from src.providers.cognito_provider import CognitoProvider
from src.utils.config import ConfigManager


class ProviderFactory:
    """
    Factory class for identity providers

    Builds the provider once from configuration so the same
    instance (and its session cache) is injected everywhere
    """

    def __init__(self, config_manager: ConfigManager = None):
        """
        Initialize the provider factory with config

        :param config_manager: Optional ConfigManager instance
        """
        self.config_manager = config_manager or ConfigManager()
        self.providers = {}

    def get_provider(self, provider_id: str = "cognito") -> BaseIdentityProvider:
        """
        Get provider by identifier

        :param provider_id: Identifier for provider
        :return: Instance of a BaseIdentityProvider subclass
        :raises ValueError: If provider_id is not supported
        """
        if provider_id in self.providers:
            return self.providers[provider_id]

        config = self.config_manager.get_cognito_config()
        config.setdefault("device_name", self.config_manager.get_mfa_config().get("device_name"))

        provider = self._create_provider(provider_id, config)
        self.providers[provider_id] = provider

        return provider

    def _create_provider(self, provider_id: str, config: Dict[str, Any]) -> BaseIdentityProvider:
        providers = {
            "cognito": CognitoProvider,
        }

        provider_class = providers.get(provider_id.lower())

        if not provider_class:
            raise ValueError(f"Unsupported identity provider: {provider_id}")

        return provider_class(config)
