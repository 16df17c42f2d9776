# Sentinel Vault - Key Derivation & Envelope Encryption
#
# Master password + salt -> PBKDF2-HMAC-SHA256 root (32 bytes)
# Root -> HKDF-SHA256 with two distinct labels:
#   - encryption key (AES-256-GCM, protects credential secrets)
#   - login verifier (stored, compared at login)
# The two outputs are independent: leaking the verifier does not reveal
# the encryption key, and vice versa.
#
# Envelope = base64url(nonce(12) || ciphertext || tag(16))

import base64
import binascii
import hmac
import logging
import os
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..core.errors import DecryptionFailed, InvalidInput

logger = logging.getLogger(__name__)

ENCRYPTION_KEY_INFO = b"sentinel-vault/v1/encryption-key"
VERIFIER_INFO = b"sentinel-vault/v1/login-verifier"


@dataclass(frozen=True)
class DerivedMaterial:
    """Both KDF outputs for one (master password, salt) pair."""

    encryption_key: bytes
    verifier: bytes

    def __repr__(self) -> str:
        return "DerivedMaterial(<redacted>)"


class KeyDerivation:
    """
    Turns a master password + salt into an encryption key and a verifier.

    Same inputs always yield the same outputs, so a key can be re-derived
    on any device from the master password and the stored salt.
    """

    # PBKDF2 parameters (OWASP recommendations)
    DEFAULT_ITERATIONS = 600_000  # OWASP 2023: 600k iterations for PBKDF2-SHA256
    KEY_LENGTH = 32  # 256 bits for AES-256
    DEFAULT_SALT_LENGTH = 32  # 256-bit salt
    MIN_SALT_LENGTH = 16

    def __init__(
        self,
        iterations: int = DEFAULT_ITERATIONS,
        salt_length: int = DEFAULT_SALT_LENGTH,
    ):
        if iterations < 1:
            raise InvalidInput("KDF iteration count must be positive")
        if salt_length < self.MIN_SALT_LENGTH:
            raise InvalidInput(f"Salt length must be at least {self.MIN_SALT_LENGTH} bytes")
        self.iterations = iterations
        self.salt_length = salt_length

    def generate_salt(self, length: Optional[int] = None) -> bytes:
        """Generate a cryptographically random salt (unique per user)."""
        length = self.salt_length if length is None else length
        if length < self.MIN_SALT_LENGTH:
            raise InvalidInput(f"Salt length must be at least {self.MIN_SALT_LENGTH} bytes")
        return os.urandom(length)

    def _root(self, master_password: str, salt: bytes) -> bytes:
        if not isinstance(master_password, str) or not master_password:
            raise InvalidInput("Master password must be a non-empty string")
        if not isinstance(salt, (bytes, bytearray)) or len(salt) < self.MIN_SALT_LENGTH:
            raise InvalidInput("Salt is missing or too short")

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=self.KEY_LENGTH,
            salt=bytes(salt),
            iterations=self.iterations,
        )
        return kdf.derive(master_password.encode("utf-8"))

    @staticmethod
    def _expand(root: bytes, info: bytes) -> bytes:
        return HKDF(
            algorithm=hashes.SHA256(),
            length=KeyDerivation.KEY_LENGTH,
            salt=None,
            info=info,
        ).derive(root)

    def derive(self, master_password: str, salt: bytes) -> DerivedMaterial:
        """Run the slow KDF once and return both outputs."""
        root = self._root(master_password, salt)
        return DerivedMaterial(
            encryption_key=self._expand(root, ENCRYPTION_KEY_INFO),
            verifier=self._expand(root, VERIFIER_INFO),
        )

    def derive_key(self, master_password: str, salt: bytes) -> bytes:
        """
        Derive the 256-bit vault encryption key.

        Args:
            master_password: User's master password
            salt: Per-user random salt (stored with the user)

        Returns:
            32-byte AES-256 key

        Raises:
            InvalidInput: Empty password or missing/short salt
        """
        return self.derive(master_password, salt).encryption_key

    def verifier_hash(self, master_password: str, salt: bytes) -> bytes:
        """Derive the login verifier (safe to store, useless for decryption)."""
        return self.derive(master_password, salt).verifier

    @staticmethod
    def verify(candidate: bytes, stored: bytes) -> bool:
        """Constant-time verifier comparison."""
        return hmac.compare_digest(candidate, stored)


class VaultCipher:
    """
    AES-256-GCM envelope encryption for credential secrets.

    Flow:
    1. Fresh random 96-bit nonce per call (encryption is non-deterministic)
    2. AES-256-GCM encrypts and authenticates plaintext (+ associated data)
    3. nonce || ciphertext || tag is base64url-encoded for storage
    """

    NONCE_LENGTH = 12  # 96-bit nonce for GCM (recommended)
    TAG_LENGTH = 16

    @staticmethod
    def _check_key(key: bytes):
        if not isinstance(key, (bytes, bytearray)) or len(key) != KeyDerivation.KEY_LENGTH:
            raise InvalidInput("Encryption key must be 32 bytes")

    @staticmethod
    def encrypt(
        plaintext: str, key: bytes, associated_data: Optional[bytes] = None
    ) -> str:
        """
        Encrypt plaintext into a storable envelope.

        Args:
            plaintext: Secret to encrypt
            key: 256-bit encryption key (from KeyDerivation)
            associated_data: Authenticated but unencrypted context
                (binds the envelope to its owner/record)

        Returns:
            base64url envelope string
        """
        if not isinstance(plaintext, str):
            raise InvalidInput("Plaintext must be a string")
        VaultCipher._check_key(key)

        nonce = os.urandom(VaultCipher.NONCE_LENGTH)
        ciphertext = AESGCM(bytes(key)).encrypt(
            nonce, plaintext.encode("utf-8"), associated_data
        )
        return encode_for_storage(nonce + ciphertext)

    @staticmethod
    def decrypt(
        envelope: str, key: bytes, associated_data: Optional[bytes] = None
    ) -> str:
        """
        Decrypt an envelope produced by encrypt().

        Raises:
            DecryptionFailed: Wrong key, corrupted or tampered envelope,
                mismatched associated data. Never returns garbage.
        """
        VaultCipher._check_key(key)
        try:
            raw = decode_from_storage(envelope)
        except (binascii.Error, ValueError, TypeError, AttributeError) as e:
            raise DecryptionFailed() from e

        if len(raw) < VaultCipher.NONCE_LENGTH + VaultCipher.TAG_LENGTH:
            raise DecryptionFailed()

        nonce, ciphertext = raw[: VaultCipher.NONCE_LENGTH], raw[VaultCipher.NONCE_LENGTH :]
        try:
            plaintext = AESGCM(bytes(key)).decrypt(nonce, ciphertext, associated_data)
        except InvalidTag as e:
            raise DecryptionFailed() from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionFailed() from e


def encode_for_storage(data: bytes) -> str:
    """Encode binary data for TEXT columns (base64url, no padding)."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def decode_from_storage(data: str) -> bytes:
    """Decode a value produced by encode_for_storage()."""
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode((data + padding).encode("ascii"))
