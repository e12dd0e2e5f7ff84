"""
Admin package

User provisioning for the user pool
"""

from src.admin.user_provisioner import UserProvisioner, generate_temporary_password

__all__ = [
    'UserProvisioner',
    'generate_temporary_password',
]
