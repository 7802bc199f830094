"""AES-256-GCM encryption of secrets at rest, with key versioning for rotation."""

import base64
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from stepup_api.config import get_settings


class EncryptionService:
    """Encrypt and decrypt short secrets (TOTP seeds) using AES-256-GCM.

    Every key known to the service sits in a chain, oldest first, with the
    current key last. Ciphertexts record the index of the key that produced
    them so that rotation only needs the old key appended to
    ``ENCRYPTION_KEY_LEGACY``.

    Data format: magic (2 bytes) + key version (1 byte) + nonce (12 bytes) + ciphertext
    """

    MAGIC_BYTES = b"\xEC\x02"
    MAGIC_SIZE = 2
    VERSION_SIZE = 1
    NONCE_SIZE = 12  # 96 bits for GCM
    HEADER_SIZE = MAGIC_SIZE + VERSION_SIZE

    def __init__(
        self,
        current_key: str | None = None,
        legacy_keys: list[str] | None = None,
    ) -> None:
        """Initialize encryption service with current key and optional legacy keys.

        Args:
            current_key: Current encryption key (base64-encoded, 32 bytes decoded)
            legacy_keys: Keys kept for decryption only (oldest to newest)
        """
        settings = get_settings() if current_key is None or legacy_keys is None else None

        if current_key is None:
            current_key = settings.encryption_key
        if legacy_keys is None:
            legacy_keys = [k.strip() for k in settings.encryption_key_legacy.split(",") if k.strip()]

        if len(legacy_keys) > 254:
            raise ValueError("Too many legacy encryption keys")

        self._key_chain: list[bytes] = [self._decode_key(key) for key in legacy_keys]
        self._key_chain.append(self._decode_key(current_key))
        self._current_version = len(self._key_chain) - 1
        self._current_aesgcm = AESGCM(self._key_chain[self._current_version])

    def _decode_key(self, key: str) -> bytes:
        """Decode and validate a base64-encoded encryption key.

        Args:
            key: Base64 URL-safe encoded encryption key

        Returns:
            Decoded 32-byte key

        Raises:
            ValueError: If key is not valid base64 or not 32 bytes
        """
        try:
            # Add padding if missing (base64 requires multiple of 4)
            padded_key = key + "=" * (4 - len(key) % 4) if len(key) % 4 else key
            decoded = base64.urlsafe_b64decode(padded_key)
        except ValueError as e:
            raise ValueError(f"Invalid base64-encoded encryption key: {type(e).__name__}") from e

        if len(decoded) != 32:
            raise ValueError("Encryption key must be 32 bytes (256 bits)")
        return decoded

    def encrypt_string(self, data: str) -> bytes:
        """Encrypt a string with the current key.

        Args:
            data: String to encrypt

        Returns:
            Encrypted bytes (magic + version + nonce + ciphertext)
        """
        nonce = os.urandom(self.NONCE_SIZE)
        ciphertext = self._current_aesgcm.encrypt(nonce, data.encode("utf-8"), self.MAGIC_BYTES)
        return self.MAGIC_BYTES + bytes([self._current_version]) + nonce + ciphertext

    def decrypt_string(self, encrypted_data: bytes) -> str:
        """Decrypt bytes produced by ``encrypt_string``.

        Args:
            encrypted_data: Encrypted bytes

        Returns:
            Decrypted string

        Raises:
            ValueError: If the data is malformed or no known key decrypts it
        """
        if len(encrypted_data) < self.HEADER_SIZE + self.NONCE_SIZE + 1:
            raise ValueError("Invalid encrypted data: too short")
        if encrypted_data[: self.MAGIC_SIZE] != self.MAGIC_BYTES:
            raise ValueError("Invalid encrypted data: unknown format")

        version = encrypted_data[self.MAGIC_SIZE]
        nonce = encrypted_data[self.HEADER_SIZE : self.HEADER_SIZE + self.NONCE_SIZE]
        ciphertext = encrypted_data[self.HEADER_SIZE + self.NONCE_SIZE :]

        # Recorded version first, then the rest of the chain newest to oldest
        candidates = []
        if version < len(self._key_chain):
            candidates.append(self._key_chain[version])
        candidates.extend(k for k in reversed(self._key_chain) if k not in candidates)

        for key in candidates:
            try:
                plaintext = AESGCM(key).decrypt(nonce, ciphertext, self.MAGIC_BYTES)
                return plaintext.decode("utf-8")
            except (InvalidTag, UnicodeDecodeError):
                continue

        raise ValueError("Decryption failed: no valid key found")

    def needs_rotation(self, encrypted_data: bytes) -> bool:
        """Whether the data was written with a key other than the current one."""
        return (
            len(encrypted_data) > self.MAGIC_SIZE
            and encrypted_data[self.MAGIC_SIZE] != self._current_version
        )


# Global instance
_encryption_service: EncryptionService | None = None


def get_encryption_service() -> EncryptionService:
    """Get or create the encryption service singleton."""
    global _encryption_service
    if _encryption_service is None:
        _encryption_service = EncryptionService()
    return _encryption_service


def reset_encryption_service() -> None:
    """Reset the encryption service singleton (for testing or key rotation)."""
    global _encryption_service
    _encryption_service = None
