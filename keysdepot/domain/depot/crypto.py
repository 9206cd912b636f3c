"""Crypto Engine.

Implements the three key-protection schemes a tenant can choose per key:

- aes-256: AES-256-GCM, authenticated, reversible
- 3des:    three-key Triple DES in CBC mode with an HMAC-SHA256 tag
           (encrypt-then-MAC), reversible
- sha-256: HMAC-SHA256 digest, irreversible, verifiable only by comparison

Every scheme derives its working keys from the tenant's crypto password
with PBKDF2-HMAC-SHA256 and a fresh random salt, so protecting the same
value twice never yields the same output. The engine holds no state beyond
its configuration and is safe to share across threads.
"""
import base64
import binascii
import hashlib
import hmac
import secrets
from abc import ABC, abstractmethod
from typing import Dict, List, Tuple

from cryptography.exceptions import InvalidSignature, InvalidTag
from cryptography.hazmat.decrepit.ciphers.algorithms import TripleDES
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives import hmac as crypto_hmac
from cryptography.hazmat.primitives.ciphers import Cipher, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from keysdepot.errors import CryptoError, UnsupportedOperationError
from .models import CryptoAlgorithm

MAX_PROTECTED_LENGTH = 1024  # encoded characters
DEFAULT_KDF_ITERATIONS = 600_000
SALT_SIZE = 16
AES_NONCE_SIZE = 12
AES_TAG_SIZE = 16
DES3_KEY_SIZE = 24
DES3_BLOCK_SIZE = 8
MAC_KEY_SIZE = 32
MAC_SIZE = 32
AAD_LABEL = b"keysdepot.key.v1"
HASH_PREFIX = "sha256"


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64decode(value: str) -> bytes:
    try:
        return base64.b64decode(value.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise CryptoError("Protected value is not valid base64") from e


class PasswordKdf:
    """PBKDF2-HMAC-SHA256 key derivation from a crypto password."""

    def __init__(self, iterations: int = DEFAULT_KDF_ITERATIONS):
        if iterations < 1:
            raise ValueError("KDF iterations must be positive")
        self.iterations = iterations

    def derive(self, password: str, salt: bytes, length: int) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=length,
            salt=salt,
            iterations=self.iterations,
        )
        return kdf.derive(password.encode("utf-8"))


class ProtectionScheme(ABC):
    """Capability set of one algorithm: protect, reveal and matches.

    ``reveal`` is always present; irreversible schemes raise
    UnsupportedOperationError from it so callers have one failure path.
    """
    algorithm: CryptoAlgorithm

    def __init__(self, kdf: PasswordKdf):
        self._kdf = kdf

    @property
    def reversible(self) -> bool:
        return self.algorithm.reversible

    @abstractmethod
    def protect(self, plaintext: bytes, password: str) -> str:
        ...

    @abstractmethod
    def reveal(self, protected_value: str, password: str) -> bytes:
        ...

    def matches(self, candidate: bytes, protected_value: str, password: str) -> bool:
        return hmac.compare_digest(self.reveal(protected_value, password), candidate)


class AesGcmScheme(ProtectionScheme):
    """Format: base64(salt (16) || nonce (12) || ciphertext || tag (16))."""
    algorithm = CryptoAlgorithm.SYMMETRIC_BLOCK

    def protect(self, plaintext: bytes, password: str) -> str:
        salt = secrets.token_bytes(SALT_SIZE)
        nonce = secrets.token_bytes(AES_NONCE_SIZE)
        key = self._kdf.derive(password, salt, 32)
        ciphertext = AESGCM(key).encrypt(nonce, plaintext, AAD_LABEL)
        return _b64encode(salt + nonce + ciphertext)

    def reveal(self, protected_value: str, password: str) -> bytes:
        raw = _b64decode(protected_value)
        if len(raw) < SALT_SIZE + AES_NONCE_SIZE + AES_TAG_SIZE:
            raise CryptoError("Invalid protected value: too short")

        salt = raw[:SALT_SIZE]
        nonce = raw[SALT_SIZE:SALT_SIZE + AES_NONCE_SIZE]
        ciphertext = raw[SALT_SIZE + AES_NONCE_SIZE:]

        key = self._kdf.derive(password, salt, 32)
        try:
            return AESGCM(key).decrypt(nonce, ciphertext, AAD_LABEL)
        except InvalidTag as e:
            raise CryptoError("Decryption failed - wrong password or corrupted value") from e


class TripleDesScheme(ProtectionScheme):
    """Format: base64(salt (16) || iv (8) || ciphertext || hmac-sha256 (32))."""
    algorithm = CryptoAlgorithm.TRIPLE_DES

    def _keys(self, password: str, salt: bytes) -> Tuple[bytes, bytes]:
        material = self._kdf.derive(password, salt, DES3_KEY_SIZE + MAC_KEY_SIZE)
        return material[:DES3_KEY_SIZE], material[DES3_KEY_SIZE:]

    @staticmethod
    def _mac(mac_key: bytes, data: bytes) -> crypto_hmac.HMAC:
        h = crypto_hmac.HMAC(mac_key, hashes.SHA256())
        h.update(data)
        return h

    def protect(self, plaintext: bytes, password: str) -> str:
        salt = secrets.token_bytes(SALT_SIZE)
        iv = secrets.token_bytes(DES3_BLOCK_SIZE)
        enc_key, mac_key = self._keys(password, salt)

        padder = padding.PKCS7(DES3_BLOCK_SIZE * 8).padder()
        padded = padder.update(plaintext) + padder.finalize()
        encryptor = Cipher(TripleDES(enc_key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()

        body = salt + iv + ciphertext
        return _b64encode(body + self._mac(mac_key, body).finalize())

    def reveal(self, protected_value: str, password: str) -> bytes:
        raw = _b64decode(protected_value)
        header = SALT_SIZE + DES3_BLOCK_SIZE
        ct_len = len(raw) - header - MAC_SIZE
        if ct_len < DES3_BLOCK_SIZE or ct_len % DES3_BLOCK_SIZE:
            raise CryptoError("Invalid protected value: bad length")

        body, mac = raw[:-MAC_SIZE], raw[-MAC_SIZE:]
        salt = body[:SALT_SIZE]
        iv = body[SALT_SIZE:header]
        ciphertext = body[header:]

        enc_key, mac_key = self._keys(password, salt)
        try:
            self._mac(mac_key, body).verify(mac)
        except InvalidSignature as e:
            raise CryptoError("Decryption failed - wrong password or corrupted value") from e

        decryptor = Cipher(TripleDES(enc_key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(DES3_BLOCK_SIZE * 8).unpadder()
        try:
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise CryptoError("Decryption failed - invalid padding") from e


class Sha256DigestScheme(ProtectionScheme):
    """Format: sha256$<b64 salt>$<b64 hmac-sha256(derived key, plaintext)>."""
    algorithm = CryptoAlgorithm.ONE_WAY_HASH

    def _digest(self, plaintext: bytes, password: str, salt: bytes) -> bytes:
        key = self._kdf.derive(password, salt, 32)
        return hmac.new(key, plaintext, hashlib.sha256).digest()

    def protect(self, plaintext: bytes, password: str) -> str:
        salt = secrets.token_bytes(SALT_SIZE)
        digest = self._digest(plaintext, password, salt)
        return f"{HASH_PREFIX}${_b64encode(salt)}${_b64encode(digest)}"

    def reveal(self, protected_value: str, password: str) -> bytes:
        raise UnsupportedOperationError(
            "One-way digests cannot be revealed; use a comparison instead",
            details={"algorithm": self.algorithm.value},
        )

    def matches(self, candidate: bytes, protected_value: str, password: str) -> bool:
        parts = protected_value.split("$")
        if len(parts) != 3 or parts[0] != HASH_PREFIX:
            raise CryptoError("Invalid protected value: not a sha256 digest")
        salt = _b64decode(parts[1])
        expected = _b64decode(parts[2])
        if len(salt) != SALT_SIZE or len(expected) != hashlib.sha256().digest_size:
            raise CryptoError("Invalid protected value: bad digest length")
        return hmac.compare_digest(self._digest(candidate, password, salt), expected)


class CryptoEngine:
    """Dispatches protect / reveal / matches to the scheme of an algorithm."""

    def __init__(self, kdf_iterations: int = DEFAULT_KDF_ITERATIONS):
        kdf = PasswordKdf(kdf_iterations)
        self._schemes: Dict[CryptoAlgorithm, ProtectionScheme] = {
            scheme.algorithm: scheme
            for scheme in (AesGcmScheme(kdf), TripleDesScheme(kdf), Sha256DigestScheme(kdf))
        }

    @property
    def algorithms(self) -> List[CryptoAlgorithm]:
        return list(self._schemes)

    def scheme(self, algorithm: CryptoAlgorithm) -> ProtectionScheme:
        try:
            return self._schemes[algorithm]
        except KeyError:
            raise CryptoError(f"No protection scheme registered for {algorithm!r}") from None

    def protect(self, plaintext: str, password: str, algorithm: CryptoAlgorithm) -> str:
        if len(plaintext) > MAX_PROTECTED_LENGTH:
            raise CryptoError(
                f"Value exceeds {MAX_PROTECTED_LENGTH} characters",
                details={"length": len(plaintext)},
            )
        protected = self.scheme(algorithm).protect(plaintext.encode("utf-8"), password)
        if len(protected) > MAX_PROTECTED_LENGTH:
            raise CryptoError(
                f"Encoded value would exceed {MAX_PROTECTED_LENGTH} characters",
                details={"algorithm": algorithm.value, "encoded_length": len(protected)},
            )
        return protected

    def reveal(self, protected_value: str, password: str, algorithm: CryptoAlgorithm) -> str:
        plaintext = self.scheme(algorithm).reveal(protected_value, password)
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CryptoError("Revealed value is not valid UTF-8") from e

    def matches(
        self,
        candidate: str,
        protected_value: str,
        password: str,
        algorithm: CryptoAlgorithm,
    ) -> bool:
        return self.scheme(algorithm).matches(candidate.encode("utf-8"), protected_value, password)
