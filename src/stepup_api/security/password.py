"""Password hashing for the step-up gate."""

import bcrypt

from stepup_api.config import get_settings

# bcrypt only hashes the first 72 bytes; bcrypt>=5 rejects longer input
MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes:
    # JSON bodies may carry lone surrogates
    return password.encode("utf-8", "surrogatepass")


class PasswordService:
    """Hashes new passwords and checks them against the length policy."""

    def __init__(self, min_length: int | None = None, rounds: int | None = None) -> None:
        settings = get_settings()
        self.min_length = settings.password_min_length if min_length is None else min_length
        self.rounds = settings.password_bcrypt_rounds if rounds is None else rounds
        self.max_bytes = MAX_PASSWORD_BYTES

    def hash_password(self, password: str) -> str:
        """Hash a password with a fresh bcrypt salt.

        Args:
            password: Plain text password, at most ``max_bytes`` once UTF-8 encoded

        Returns:
            bcrypt hash as text
        """
        encoded = _encode(password)
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify_password(self, password: str, hashed: str) -> bool:
        encoded = _encode(password)
        if len(encoded) > self.max_bytes:
            return False
        try:
            return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
        except ValueError:
            # Malformed hash
            return False

    def is_strong_enough(self, password: str) -> bool:
        return len(password) >= self.min_length

    def is_too_long(self, password: str) -> bool:
        return len(_encode(password)) > self.max_bytes


_password_service: PasswordService | None = None


def get_password_service() -> PasswordService:
    """Get the password service singleton."""
    global _password_service
    if _password_service is None:
        _password_service = PasswordService()
    return _password_service
