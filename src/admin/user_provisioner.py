"""
User Provisioner Module

Admin workflow for creating user pool accounts. Creates the user
with a generated temporary password and no welcome message, so the
user is forced through the new password challenge on first login
"""

import secrets
import string
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from src.utils.config import DEFAULT_PASSWORD_POLICY, DEFAULT_REGION
from src.utils.logger import get_logger


SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"
MIN_PASSWORD_LENGTH = 12
GENERATED_PASSWORD_LENGTH = 16

IMMUTABLE_EMAIL_ATTRIBUTE = "custom:email_immutable"


def generate_temporary_password(policy: Optional[Dict[str, Any]] = None) -> str:
    """
    Generate a temporary password satisfying a password policy

    Draws from the secrets module and always includes one
    character of every class the policy requires

    :param policy: Password policy settings, defaults to the built-in policy
    :return: Generated password
    """
    policy = policy or DEFAULT_PASSWORD_POLICY
    length = max(GENERATED_PASSWORD_LENGTH, MIN_PASSWORD_LENGTH, int(policy.get("minimum_length", 0)))

    classes = []
    if policy.get("require_uppercase", True):
        classes.append(string.ascii_uppercase)
    if policy.get("require_lowercase", True):
        classes.append(string.ascii_lowercase)
    if policy.get("require_numbers", True):
        classes.append(string.digits)
    if policy.get("require_symbols", True):
        classes.append(SYMBOLS)

    alphabet = string.ascii_letters + string.digits + SYMBOLS
    characters = [secrets.choice(chars) for chars in classes]
    characters += [secrets.choice(alphabet) for _ in range(length - len(characters))]

    # secrets has no shuffle of its own
    secrets.SystemRandom().shuffle(characters)
    return "".join(characters)


class UserProvisioner:
    """
    Admin client for provisioning user pool accounts

    Requires AWS credentials allowed to call the admin user pool APIs
    """

    def __init__(self, config: Dict[str, Any], client=None):
        """
        Initialize user provisioner

        :param config: Admin settings (region, user_pool_id and optional
            aws_access_key_id / aws_secret_access_key)
        :param client: Optional pre-built cognito-idp client
        :raises ValueError: If user_pool_id is missing
        """
        self.logger = get_logger("user_provisioner")
        self.user_pool_id = config.get("user_pool_id")

        if not self.user_pool_id:
            raise ValueError("Missing user_pool_id in admin configuration")

        if client is None:
            client = boto3.client(
                "cognito-idp",
                region_name=config.get("region") or DEFAULT_REGION,
                aws_access_key_id=config.get("aws_access_key_id"),
                aws_secret_access_key=config.get("aws_secret_access_key"),
            )
        self.client = client

    def create_user(self, email: str, temporary_password: str, phone_number: str) -> Dict[str, Any]:
        """
        Create a user with unverified email and phone number

        :param email: Email address, also used as the username
        :param temporary_password: Password the user must change on first login
        :param phone_number: Phone number in E.164 format
        :return: User record returned by the user pool
        :raises ClientError: If the user pool rejects the request
        """
        try:
            response = self.client.admin_create_user(
                UserPoolId=self.user_pool_id,
                Username=email,
                UserAttributes=[
                    {"Name": "email", "Value": email},
                    {"Name": "email_verified", "Value": "false"},
                    {"Name": "phone_number", "Value": phone_number},
                    {"Name": "phone_number_verified", "Value": "false"},
                ],
                TemporaryPassword=temporary_password,
                MessageAction="SUPPRESS",
                DesiredDeliveryMediums=["EMAIL"],
            )
            user = response["User"]
            self.logger.info(f"User created: {user['Username']} ({user.get('UserStatus')})")

            self.client.admin_set_user_password(
                UserPoolId=self.user_pool_id,
                Username=email,
                Password=temporary_password,
                Permanent=False,
            )
            self.logger.info(f"Temporary password set for {email}")

            return user

        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code == "UsernameExistsException":
                self.logger.error(f"User with email {email} already exists")
            else:
                self.logger.error(f"Error creating user {email}: {str(e)}")
            raise

    def mark_email_immutable(self, email: str) -> bool:
        """
        Flag the user's email as immutable

        Best effort: the custom attribute may not be configured in the
        user pool, in which case a warning is logged and False returned

        :param email: Username of the user
        :return: Whether the attribute was set
        """
        try:
            self.client.admin_update_user_attributes(
                UserPoolId=self.user_pool_id,
                Username=email,
                UserAttributes=[{"Name": IMMUTABLE_EMAIL_ATTRIBUTE, "Value": "true"}],
            )
            self.logger.info(f"Email marked as immutable for {email}")
            return True
        except (ClientError, BotoCoreError) as e:
            self.logger.warning(
                f"{IMMUTABLE_EMAIL_ATTRIBUTE} not set for {email}, "
                f"the attribute may need to be configured in the user pool: {str(e)}"
            )
            return False
