"""
Configuration Manager Module

Functionality to load and manage configuration settings
for the authentication tools. Handles loading settings from
YAML, env variables (including a .env file), and provides
access to the Cognito, admin, password policy and MFA sections
"""

import os
import yaml
from typing import Dict, Any, List
from pathlib import Path

from dotenv import load_dotenv

from src.utils.logger import get_logger


DEFAULT_REGION = "us-east-1"
DEFAULT_TOTP_ISSUER = "CognitoDemo"

DEFAULT_PASSWORD_POLICY = {
    "minimum_length": 12,
    "require_uppercase": True,
    "require_lowercase": True,
    "require_numbers": True,
    "require_symbols": True,
    "temporary_password_validity_days": 7,
}

DEFAULT_MFA_CONFIG = {
    "mfa_methods": ["SMS", "TOTP"],
    "totp_issuer": DEFAULT_TOTP_ISSUER,
    "device_name": "My TOTP Device",
}

# Environment variables overriding the cognito section
_COGNITO_ENV = {
    "COGNITO_USER_POOL_ID": "user_pool_id",
    "COGNITO_CLIENT_ID": "client_id",
    "COGNITO_CLIENT_SECRET": "client_secret",
    "AWS_REGION": "region",
}


class ConfigManager:
    """
    Configuration manager for the authentication tools

    Provides ways to load and access configuration settings
    from a YAML settings file and env vars. Env vars win over
    the file
    """

    def __init__(self, config_dir: str = None, use_dotenv: bool = True):
        """
        Initialize config manager

        :param config_dir: Optional directory path for configuration files
        :param use_dotenv: Whether to load a .env file into the environment
        """
        self.logger = get_logger("config_manager")

        if use_dotenv:
            load_dotenv()

        if config_dir:
            self.config_dir = Path(config_dir)
        else:
            self.config_dir = Path(__file__).parents[2] / "config"

        self._config_cache = {}

    def load_config(self) -> Dict[str, Any]:
        """
        Load main configuration settings

        :return: Dictionary of configuration settings
        """
        if "main" in self._config_cache:
            return self._config_cache["main"]

        try:
            settings_file = self.config_dir / "settings.yaml"

            if not settings_file.exists():
                self.logger.warning(f"Settings file not found: {settings_file}")
                self._config_cache["main"] = {}
                return {}

            with open(settings_file, "r") as f:
                config = yaml.safe_load(f) or {}

            self._config_cache["main"] = config

            self.logger.debug("Loaded main configuration")
            return config

        except (OSError, yaml.YAMLError) as e:
            self.logger.error(f"Error loading configuration: {str(e)}")
            self._config_cache["main"] = {}
            return {}

    def get_cognito_config(self) -> Dict[str, Any]:
        """
        Get user pool client settings

        :return: Dictionary with region, user_pool_id, client_id,
            client_secret and timeout settings
        """
        config = self.load_config()
        cognito_config = dict(config.get("cognito") or {})
        cognito_config.setdefault("region", DEFAULT_REGION)
        cognito_config.setdefault("connect_timeout", 10)
        cognito_config.setdefault("read_timeout", 30)

        for env_name, key in _COGNITO_ENV.items():
            if os.environ.get(env_name):
                cognito_config[key] = os.environ[env_name]

        return cognito_config

    def get_admin_config(self) -> Dict[str, Any]:
        """
        Get settings for the admin provisioning client

        :return: Dictionary with region, user_pool_id and explicit
            AWS credentials when present in the environment
        """
        cognito_config = self.get_cognito_config()
        admin_config = {
            "region": cognito_config["region"],
            "user_pool_id": cognito_config.get("user_pool_id"),
            "aws_access_key_id": os.environ.get("AWS_ACCESS_KEY_ID"),
            "aws_secret_access_key": os.environ.get("AWS_SECRET_ACCESS_KEY"),
        }
        return admin_config

    def get_password_policy(self) -> Dict[str, Any]:
        config = self.load_config()
        policy = dict(DEFAULT_PASSWORD_POLICY)
        policy.update(config.get("password_policy") or {})
        return policy

    def get_mfa_config(self) -> Dict[str, Any]:
        """
        Get MFA settings

        :return: Dictionary of MFA settings, TOTP_ISSUER env var wins
        """
        config = self.load_config()
        mfa_config = dict(DEFAULT_MFA_CONFIG)
        mfa_config.update(config.get("mfa") or {})

        if os.environ.get("TOTP_ISSUER"):
            mfa_config["totp_issuer"] = os.environ["TOTP_ISSUER"]

        return mfa_config

    def missing_settings(self, admin: bool = False) -> List[str]:
        """
        List required settings that are absent

        :param admin: Check the admin provisioning settings instead
            of the client settings
        :return: Names of the missing environment variables
        """
        missing = []
        cognito_config = self.get_cognito_config()

        if not cognito_config.get("user_pool_id"):
            missing.append("COGNITO_USER_POOL_ID")

        if admin:
            if not os.environ.get("AWS_ACCESS_KEY_ID"):
                missing.append("AWS_ACCESS_KEY_ID")
        elif not cognito_config.get("client_id"):
            missing.append("COGNITO_CLIENT_ID")

        return missing
