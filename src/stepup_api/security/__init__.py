"""Security package."""

from stepup_api.security.auth import create_access_token, get_current_user
from stepup_api.security.encryption import EncryptionService
from stepup_api.security.password import PasswordService

__all__ = [
    "EncryptionService",
    "PasswordService",
    "get_current_user",
    "create_access_token",
]
