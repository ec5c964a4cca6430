"""
Unit tests for salted password hashing.
"""

import hashlib

import pytest

from saberpro.auth.models import HashedCredential, PlaintextCredential
from saberpro.auth.passwords import PasswordHasher


class TestHashing:
    """Test hash/verify behaviour."""

    def test_verify_accepts_own_hash(self, hasher):
        cred = hasher.hash("secret1")
        assert hasher.verify("secret1", cred.salt, cred.hash)

    def test_verify_rejects_other_password(self, hasher):
        cred = hasher.hash("secret1")
        assert not hasher.verify("secret2", cred.salt, cred.hash)

    def test_same_password_gets_fresh_salt(self, hasher):
        first = hasher.hash("secret1")
        second = hasher.hash("secret1")

        assert first.salt != second.salt
        assert first.hash != second.hash

    def test_output_sizes(self, hasher):
        cred = hasher.hash("secret1")

        # 16 random bytes and 64 derived bytes, hex encoded
        assert len(cred.salt) == 32
        assert len(cred.hash) == 128

    def test_compatible_with_stored_pbkdf2_pairs(self, hasher):
        """Existing records derive from the hex salt string with 1000 rounds of SHA-512."""
        salt = "00112233445566778899aabbccddeeff"
        stored = hashlib.pbkdf2_hmac("sha512", b"password123", salt.encode(), 1000, 64).hex()

        assert hasher.verify("password123", salt, stored)

    @pytest.mark.parametrize("password, salt, stored", [
        ("", "", ""),
        ("secret1", "", ""),
        ("", "abcd", "ef01"),
        ("secret1", "abcd", "éé"),
        (None, "abcd", "ef01"),
        ("secret1", None, "ef01"),
        ("secret1", "abcd", None),
    ])
    def test_verify_never_raises(self, hasher, password, salt, stored):
        assert hasher.verify(password, salt, stored) is False

    def test_iterations_are_tunable(self):
        fast = PasswordHasher(iterations=1000)
        slow = PasswordHasher(iterations=2000)
        cred = slow.hash("secret1")

        assert slow.verify("secret1", cred.salt, cred.hash)
        assert not fast.verify("secret1", cred.salt, cred.hash)

    @pytest.mark.parametrize("kwargs", [
        {"iterations": 999},
        {"key_length": 32},
        {"salt_bytes": 8},
        {"digest": "not-a-digest"},
    ])
    def test_rejects_weak_parameters(self, kwargs):
        with pytest.raises(ValueError):
            PasswordHasher(**kwargs)


class TestCredentialVariants:
    """Test verification against both stored representations."""

    def test_hashed_credential(self, hasher):
        cred = hasher.hash("secret1")
        assert hasher.verify_credential("secret1", cred)
        assert not hasher.verify_credential("secret2", cred)

    def test_plaintext_credential(self, hasher):
        cred = PlaintextCredential("password123")
        assert hasher.verify_credential("password123", cred)
        assert not hasher.verify_credential("password124", cred)

    def test_empty_plaintext_placeholder_never_matches(self, hasher):
        assert not hasher.verify_credential("", PlaintextCredential(""))

    def test_unusable_credential_never_matches(self, hasher):
        cred = hasher.unusable()

        assert cred.hash == ""
        for attempt in ("", "password123", cred.salt):
            assert not hasher.verify_credential(attempt, cred)

    def test_rehash_keeps_scheme(self, hasher):
        hashed = hasher.rehash_like("newpass1", HashedCredential(salt="aa", hash="bb"))
        plain = hasher.rehash_like("newpass1", PlaintextCredential("old"))

        assert isinstance(hashed, HashedCredential)
        assert hasher.verify_credential("newpass1", hashed)
        assert plain == PlaintextCredential("newpass1")
