"""
Main entry point

Interactive command line for the user pool:
1. Sign in, answering every challenge the pool raises
2. Check whether the cached session is still valid
3. Sign out
4. Register a new user (admin credentials required)
"""

import sys
import argparse
import logging

from botocore.exceptions import BotoCoreError, ClientError

from src.admin.user_provisioner import UserProvisioner, generate_temporary_password
from src.auth.challenge_orchestrator import ChallengeOrchestrator
from src.auth.session_facade import SessionFacade
from src.errors import PromptCancelled
from src.models.challenge import Success
from src.models.session import Credentials, Session, SessionExpired
from src.prompts.base_prompt import BasePrompt
from src.prompts.console_prompt import ConsolePrompt
from src.providers.base_provider import BaseIdentityProvider
from src.providers.provider_factory import ProviderFactory
from src.utils.config import ConfigManager
from src.utils.logger import set_global_log_level, setup_logger


PROVIDERS = ["cognito"]
ACTIONS = ["sign-in", "refresh", "sign-out", "register"]
MENU = ["Sign In", "Refresh Session", "Sign Out", "Register User (admin)"]


def parse_arguments(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(description="Cognito Client Authentication")
    parser.add_argument(
        "--action",
        choices=ACTIONS,
        help="Action to run (default: choose from an interactive menu)"
    )
    parser.add_argument(
        "--provider",
        default="cognito",
        choices=PROVIDERS,
        help="Identity provider to use (default: cognito)"
    )
    parser.add_argument(
        "--config-dir",
        help="Directory holding settings.yaml"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    return parser.parse_args(argv)


def sign_in(prompt: BasePrompt, config_manager: ConfigManager, provider: BaseIdentityProvider) -> bool:
    """
    Run an interactive login

    :param prompt: Operator prompt
    :param config_manager: Loaded configuration
    :param provider: Identity provider shared by every action
    :return: Whether the login succeeded
    """
    mfa_config = config_manager.get_mfa_config()
    orchestrator = ChallengeOrchestrator(
        provider,
        prompt,
        totp_issuer=mfa_config["totp_issuer"],
        mfa_methods=mfa_config["mfa_methods"],
    )

    email = prompt.ask("Enter email: ").strip()
    password = prompt.ask("Enter password: ", secret=True)

    prompt.say()
    prompt.say("Authenticating...")
    outcome = orchestrator.login(Credentials(identity=email, secret=password))

    if isinstance(outcome, Success):
        prompt.say()
        prompt.say("Authentication workflow complete!")
        prompt.say("   User is now logged in with valid tokens")
        return True

    return False


def refresh_session(prompt: BasePrompt, provider: BaseIdentityProvider) -> bool:
    facade = SessionFacade(provider)

    email = prompt.ask("Enter email: ").strip()
    prompt.say()
    prompt.say("Refreshing session...")
    result = facade.refresh(email)

    if isinstance(result, Session):
        prompt.say("Session is valid")
        prompt.say(f"   Access Token: {result.preview()['access_token']}")
        return True
    if isinstance(result, SessionExpired):
        prompt.say(f"Please sign in again, {result.reason}")
    else:
        prompt.say(f"Session refresh failed: {result.reason}")
    return False


def sign_out(prompt: BasePrompt, provider: BaseIdentityProvider) -> bool:
    facade = SessionFacade(provider)

    email = prompt.ask("Enter email: ").strip()
    facade.sign_out(email)
    prompt.say("User signed out successfully")
    return True


def register_user(prompt: BasePrompt, config_manager: ConfigManager) -> bool:
    """
    Create a user with a temporary password

    :param prompt: Operator prompt
    :param config_manager: Loaded configuration
    :return: Whether the user was created
    """
    email = prompt.ask("Enter user email: ").strip()
    phone_number = prompt.ask("Enter phone number (format: +1234567890): ").strip()

    if not email or "@" not in email:
        prompt.say("Registration failed: Invalid email address")
        return False

    if not phone_number or not phone_number.startswith("+"):
        prompt.say("Registration failed: Phone number must start with + and country code")
        return False

    policy = config_manager.get_password_policy()
    provisioner = UserProvisioner(config_manager.get_admin_config())
    temporary_password = generate_temporary_password(policy)

    prompt.say()
    prompt.say("Creating user...")
    try:
        provisioner.create_user(email, temporary_password, phone_number)
    except (ClientError, BotoCoreError) as e:
        prompt.say(f"Registration failed: {str(e)}")
        return False

    provisioner.mark_email_immutable(email)

    prompt.say()
    prompt.say("User Registration Complete")
    prompt.say(f"   Email: {email}")
    prompt.say(f"   Temporary Password: {temporary_password}")
    prompt.say(f"   Phone Number: {phone_number}")
    prompt.say()
    prompt.say("Next Steps:")
    prompt.say("1. Share the temporary password securely with the user")
    prompt.say("2. User must verify email and phone number")
    prompt.say("3. User must log in and change password")
    prompt.say("4. User will set up MFA after verification")
    prompt.say(f"5. Temporary password expires after {policy['temporary_password_validity_days']} days")
    return True


def run_action(action: str, prompt: BasePrompt, config_manager: ConfigManager,
               factory: ProviderFactory, provider_id: str) -> bool:
    """
    Run one menu action

    :param action: One of ACTIONS
    :param prompt: Operator prompt
    :param config_manager: Loaded configuration
    :param factory: Provider factory, caches the provider between actions
    :param provider_id: Identity provider identifier
    :return: Whether the action succeeded
    """
    if action == "register":
        return register_user(prompt, config_manager)

    provider = factory.get_provider(provider_id)

    if action == "sign-in":
        return sign_in(prompt, config_manager, provider)
    elif action == "refresh":
        return refresh_session(prompt, provider)
    else:
        return sign_out(prompt, provider)


def main(argv=None, prompt: BasePrompt = None) -> int:
    args = parse_arguments(argv)

    log_level = logging.DEBUG if args.debug else logging.INFO
    # Component loggers are created lazily, so they pick up this level too
    set_global_log_level(log_level)
    logger = setup_logger("cognito_auth", log_level)

    prompt = prompt or ConsolePrompt()
    config_manager = ConfigManager(args.config_dir)
    factory = ProviderFactory(config_manager)

    prompt.say("===================================")
    prompt.say("Cognito Client Authentication")
    prompt.say("===================================")

    interactive = args.action is None
    menu_actions = {str(i): action for i, action in enumerate(ACTIONS, start=1)}

    try:
        while True:
            action = args.action
            if interactive:
                prompt.say()
                choice = prompt.choose("Select action:", MENU + ["Exit"], "\nEnter choice (1-5): ")
                if choice == str(len(MENU) + 1):
                    break
                action = menu_actions.get(choice)
                if action is None:
                    prompt.say("Invalid choice")
                    continue

            missing = config_manager.missing_settings(admin=action == "register")
            if missing:
                logger.error(f"Missing required environment variables: {', '.join(missing)}")
                prompt.say("Missing required environment variables. Please check .env file")
                return 1

            run_action(action, prompt, config_manager, factory, args.provider)

            if not interactive:
                break

    except PromptCancelled:
        prompt.say("Operation cancelled")

    return 0


if __name__ == "__main__":
    sys.exit(main())
