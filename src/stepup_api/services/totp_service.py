"""TOTP (Time-based One-Time Password) primitives for the step-up gate."""

import base64
import hashlib
import hmac
import re
import secrets
import struct
import urllib.parse
from datetime import datetime

from stepup_api.config import get_settings
from stepup_api.security.encryption import EncryptionService, get_encryption_service

# TOTP Constants (RFC 6238)
TOTP_DIGITS = 6
TOTP_PERIOD = 30  # seconds
TOTP_ALGORITHM = "SHA1"
TOTP_SECRET_LENGTH = 20  # 160 bits, standard for Google Authenticator compatibility

_CODE_PATTERN = re.compile(rf"[0-9]{{{TOTP_DIGITS}}}")


class TotpService:
    """Service for TOTP generation and verification.

    Implements RFC 6238 (TOTP) on top of RFC 4226 (HOTP). Codes are handled
    as fixed-width digit strings so leading zeros survive end to end.
    """

    def __init__(self, issuer: str | None = None, valid_window: int | None = None) -> None:
        """Initialize TOTP service.

        Args:
            issuer: Issuer label shown in authenticator apps
            valid_window: Number of periods accepted on each side of now
        """
        settings = get_settings()
        self.issuer = issuer or settings.totp_issuer
        self.valid_window = settings.totp_valid_window if valid_window is None else valid_window

    @property
    def encryption(self) -> EncryptionService:
        return get_encryption_service()

    def generate_secret(self) -> str:
        """Generate a new TOTP secret key.

        Returns:
            Base32-encoded secret key (RFC 4648), without padding
        """
        random_bytes = secrets.token_bytes(TOTP_SECRET_LENGTH)
        return base64.b32encode(random_bytes).decode("utf-8").rstrip("=")

    def encrypt_secret(self, secret: str) -> bytes:
        """Encrypt TOTP secret for database storage."""
        return self.encryption.encrypt_string(secret)

    def decrypt_secret(self, encrypted_data: bytes) -> str:
        """Decrypt TOTP secret from database."""
        return self.encryption.decrypt_string(encrypted_data)

    def needs_rotation(self, encrypted_data: bytes) -> bool:
        """Whether the stored secret was encrypted with a retired key."""
        return self.encryption.needs_rotation(encrypted_data)

    def get_provisioning_uri(self, secret: str, label: str) -> str:
        """Build the otpauth URI consumed by authenticator apps.

        Deterministic in ``(secret, label, issuer)`` so a reused secret yields
        the same URI it was first issued with.

        Format: otpauth://totp/{issuer}:{label}?secret={secret}&issuer={issuer}&algorithm=SHA1&digits=6&period=30

        Args:
            secret: Base32-encoded TOTP secret
            label: Per-user account label (email)

        Returns:
            OTPAuth URI string
        """
        encoded_issuer = urllib.parse.quote(self.issuer, safe="")
        encoded_label = urllib.parse.quote(label, safe="@")

        return (
            f"otpauth://totp/{encoded_issuer}:{encoded_label}"
            f"?secret={secret.rstrip('=')}"
            f"&issuer={encoded_issuer}"
            f"&algorithm={TOTP_ALGORITHM}"
            f"&digits={TOTP_DIGITS}"
            f"&period={TOTP_PERIOD}"
        )

    @staticmethod
    def _decode_secret(secret: str) -> bytes:
        padded = secret.upper()
        if len(padded) % 8:
            padded += "=" * (8 - len(padded) % 8)
        return base64.b32decode(padded)

    def generate_totp(self, secret: str, timestamp: int) -> str:
        """Generate the TOTP code for a Unix timestamp.

        Args:
            secret: Base32-encoded TOTP secret
            timestamp: Unix timestamp in seconds

        Returns:
            6-digit TOTP code, zero-padded
        """
        return self._hotp(self._decode_secret(secret), timestamp // TOTP_PERIOD)

    @staticmethod
    def _hotp(key: bytes, counter: int) -> str:
        counter_bytes = struct.pack(">Q", counter)
        hmac_hash = hmac.new(key, counter_bytes, hashlib.sha1).digest()

        # Dynamic truncation
        offset = hmac_hash[-1] & 0x0F
        binary = struct.unpack(">I", hmac_hash[offset : offset + 4])[0] & 0x7FFFFFFF

        return str(binary % (10**TOTP_DIGITS)).zfill(TOTP_DIGITS)

    def valid_codes(self, secret: str, at: datetime) -> list[str]:
        """Codes accepted at ``at``, oldest period first.

        Args:
            secret: Base32-encoded TOTP secret
            at: Verification instant

        Returns:
            One code per period in [now - window, now + window]
        """
        key = self._decode_secret(secret)
        counter = int(at.timestamp()) // TOTP_PERIOD
        return [
            self._hotp(key, counter + offset)
            for offset in range(-self.valid_window, self.valid_window + 1)
        ]

    @staticmethod
    def normalize_code(code: str) -> str | None:
        """Strip surrounding whitespace and check the code shape.

        Returns:
            The 6-digit code, or None if it is malformed
        """
        cleaned = code.strip()
        if not _CODE_PATTERN.fullmatch(cleaned):
            return None
        return cleaned

    def verify_totp(self, secret: str, code: str, at: datetime) -> bool:
        """Verify a normalized code against the tolerance window around ``at``.

        Args:
            secret: Base32-encoded TOTP secret
            code: 6-digit code as returned by ``normalize_code``
            at: Verification instant

        Returns:
            True if code is valid within the time window
        """
        matched = False
        # Compare against every candidate to keep timing independent of position
        for expected in self.valid_codes(secret, at):
            if hmac.compare_digest(code, expected):
                matched = True
        return matched


# Global instance
_totp_service: TotpService | None = None


def get_totp_service() -> TotpService:
    """Get or create the TOTP service singleton."""
    global _totp_service
    if _totp_service is None:
        _totp_service = TotpService()
    return _totp_service
