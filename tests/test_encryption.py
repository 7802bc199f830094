"""Encryption service tests."""

import base64

import pytest

from stepup_api.security.encryption import EncryptionService

KEY_A = base64.urlsafe_b64encode(b"A" * 32).decode()
KEY_B = base64.urlsafe_b64encode(b"B" * 32).decode()
KEY_C = base64.urlsafe_b64encode(b"C" * 32).decode()


class TestEncryptionService:
    def test_round_trip(self) -> None:
        service = EncryptionService(current_key=KEY_A, legacy_keys=[])

        encrypted = service.encrypt_string("JBSWY3DPEHPK3PXP")

        assert encrypted.startswith(EncryptionService.MAGIC_BYTES)
        assert b"JBSWY3DPEHPK3PXP" not in encrypted
        assert service.decrypt_string(encrypted) == "JBSWY3DPEHPK3PXP"

    def test_nonce_is_random(self) -> None:
        service = EncryptionService(current_key=KEY_A, legacy_keys=[])

        assert service.encrypt_string("secret") != service.encrypt_string("secret")

    def test_tampered_ciphertext_rejected(self) -> None:
        service = EncryptionService(current_key=KEY_A, legacy_keys=[])
        encrypted = bytearray(service.encrypt_string("secret"))
        encrypted[-1] ^= 0x01

        with pytest.raises(ValueError):
            service.decrypt_string(bytes(encrypted))

    @pytest.mark.parametrize("data", [b"", b"\xec\x02\x00", b"\x00\x00\x00" + b"x" * 40])
    def test_malformed_data_rejected(self, data: bytes) -> None:
        service = EncryptionService(current_key=KEY_A, legacy_keys=[])

        with pytest.raises(ValueError):
            service.decrypt_string(data)

    def test_unknown_key_rejected(self) -> None:
        encrypted = EncryptionService(current_key=KEY_A, legacy_keys=[]).encrypt_string("secret")

        with pytest.raises(ValueError):
            EncryptionService(current_key=KEY_B, legacy_keys=[]).decrypt_string(encrypted)

    def test_legacy_key_still_decrypts(self) -> None:
        old = EncryptionService(current_key=KEY_A, legacy_keys=[])
        encrypted = old.encrypt_string("secret")

        rotated = EncryptionService(current_key=KEY_B, legacy_keys=[KEY_A])

        assert rotated.decrypt_string(encrypted) == "secret"
        assert rotated.needs_rotation(encrypted)
        assert not rotated.needs_rotation(rotated.encrypt_string("secret"))

    def test_second_rotation_keeps_versions(self) -> None:
        first = EncryptionService(current_key=KEY_A, legacy_keys=[])
        second = EncryptionService(current_key=KEY_B, legacy_keys=[KEY_A])
        third = EncryptionService(current_key=KEY_C, legacy_keys=[KEY_A, KEY_B])

        assert third.decrypt_string(first.encrypt_string("one")) == "one"
        assert third.decrypt_string(second.encrypt_string("two")) == "two"

    @pytest.mark.parametrize(
        "key",
        [
            base64.urlsafe_b64encode(b"short").decode(),
            base64.urlsafe_b64encode(b"x" * 31).decode(),
            "not base64 at all!",
        ],
    )
    def test_invalid_keys_rejected(self, key: str) -> None:
        with pytest.raises(ValueError):
            EncryptionService(current_key=key, legacy_keys=[])
