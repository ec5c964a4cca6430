"""
Password hashing.

Salted PBKDF2 compatible with the hex ``salt``/``hash`` pairs already stored
for existing users: the hex salt string itself is the KDF salt.
"""

import hashlib
import hmac
import secrets
from typing import Optional

from loguru import logger

from ..config import settings
from .models import Credential, HashedCredential, PlaintextCredential

MIN_ITERATIONS = 1000
MIN_SALT_BYTES = 16
MIN_KEY_LENGTH = 64


class PasswordHasher:
    """
    Derives and verifies salted password hashes.

    Iterations, key length and digest are tunable. Stored hashes carry no
    parameters, so every hasher reading a store must use the parameters it
    was written with.
    """

    def __init__(
        self,
        iterations: Optional[int] = None,
        key_length: Optional[int] = None,
        digest: Optional[str] = None,
        salt_bytes: Optional[int] = None,
    ):
        """
        Initialize hasher.

        Args:
            iterations: PBKDF2 iteration count (default from settings)
            key_length: Derived key length in bytes
            digest: Hash name understood by hashlib (e.g. "sha512")
            salt_bytes: Random salt size in bytes

        Raises:
            ValueError: If a parameter is below the accepted minimum
        """
        self.iterations = iterations if iterations is not None else settings.password_iterations
        self.key_length = key_length if key_length is not None else settings.password_key_length
        self.digest = digest or settings.password_digest
        self.salt_bytes = salt_bytes if salt_bytes is not None else settings.password_salt_bytes

        if self.iterations < MIN_ITERATIONS:
            raise ValueError(f"iterations must be at least {MIN_ITERATIONS}")
        if self.key_length < MIN_KEY_LENGTH:
            raise ValueError(f"key_length must be at least {MIN_KEY_LENGTH}")
        if self.salt_bytes < MIN_SALT_BYTES:
            raise ValueError(f"salt_bytes must be at least {MIN_SALT_BYTES}")
        if self.digest not in hashlib.algorithms_available:
            raise ValueError(f"Unsupported digest: {self.digest}")

    def _derive(self, password: str, salt: str) -> str:
        return hashlib.pbkdf2_hmac(
            self.digest,
            password.encode("utf-8"),
            salt.encode("utf-8"),
            self.iterations,
            self.key_length,
        ).hex()

    def hash(self, password: str) -> HashedCredential:
        """
        Hash a password with a fresh random salt.

        Args:
            password: Plain text password

        Returns:
            HashedCredential with hex salt and hex derived key
        """
        salt = secrets.token_hex(self.salt_bytes)
        return HashedCredential(salt=salt, hash=self._derive(password, salt))

    def unusable(self) -> HashedCredential:
        """
        Placeholder credential for accounts without a password yet.

        The empty hash can never equal a derived key, so nothing verifies
        against it, while the record still uses the hashed scheme.
        """
        return HashedCredential(salt=secrets.token_hex(self.salt_bytes), hash="")

    def verify(self, password: str, salt: str, stored_hash: str) -> bool:
        """
        Check a password against a stored salt and hash.

        Never raises; malformed input simply does not verify.
        """
        try:
            candidate = self._derive(password, salt)
            return hmac.compare_digest(candidate.encode("ascii"), stored_hash.encode("utf-8"))
        except (AttributeError, TypeError, ValueError, UnicodeError) as e:
            logger.debug(f"Password verification rejected malformed input: {type(e).__name__}")
            return False

    def verify_credential(self, password: str, credential: Credential) -> bool:
        """
        Check a password against whichever representation is stored.

        Args:
            password: Plain text password
            credential: Stored hashed or legacy plaintext credential

        Returns:
            True if the password matches
        """
        if isinstance(credential, HashedCredential):
            return self.verify(password, credential.salt, credential.hash)
        if isinstance(credential, PlaintextCredential):
            # Older not yet activated records hold an empty value
            if not credential.value:
                return False
            try:
                return hmac.compare_digest(password.encode("utf-8"), credential.value.encode("utf-8"))
            except (AttributeError, TypeError, UnicodeError):
                return False
        raise TypeError(f"Unknown credential type: {type(credential).__name__}")

    def rehash_like(self, password: str, current: Credential) -> Credential:
        """
        Build a new credential for password using the same scheme as current.
        """
        if isinstance(current, HashedCredential):
            return self.hash(password)
        return PlaintextCredential(password)
