"""Key Encryption Key (KEK) Provider Implementations.

Crypto passwords must come back out of GetKey, so they are sealed with
AES-256-GCM under a service master key rather than hashed.
"""
import binascii
import hashlib
import os
from typing import Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from keysdepot.errors import CryptoError
from .models import EncryptedEnvelope
from .ports import KekProvider


class LocalKekProvider(KekProvider):
    """KEK provider using a local master key.

    This provider derives a 256-bit AES key from the master secret.
    """

    def __init__(self, master_key: str, key_id: str = "v1"):
        """Initialize with master key.

        If master_key is 64 hex chars, it's used directly.
        Otherwise, it's hashed into a 32-byte key.
        """
        if len(master_key) == 64 and all(c in "0123456789abcdef" for c in master_key.lower()):
            self._key = binascii.unhexlify(master_key)
        else:
            self._key = hashlib.sha256(master_key.encode()).digest()

        self._key_id = key_id
        self._aesgcm = AESGCM(self._key)

    @property
    def key_id(self) -> str:
        return self._key_id

    def encrypt(self, plaintext: bytes, aad: Optional[bytes] = None) -> EncryptedEnvelope:
        iv = os.urandom(12)
        ct_and_tag = self._aesgcm.encrypt(iv, plaintext, aad)

        ciphertext = ct_and_tag[:-16]
        tag = ct_and_tag[-16:]

        return EncryptedEnvelope(
            kek_id=self.key_id,
            iv=binascii.hexlify(iv).decode('ascii'),
            ciphertext=binascii.hexlify(ciphertext).decode('ascii'),
            tag=binascii.hexlify(tag).decode('ascii'),
        )

    def decrypt(self, envelope: EncryptedEnvelope, aad: Optional[bytes] = None) -> bytes:
        if envelope.kek_id != self.key_id:
            raise CryptoError(
                f"Key mismatch: Envelope uses {envelope.kek_id}, Provider has {self.key_id}"
            )

        iv = binascii.unhexlify(envelope.iv)
        tag = binascii.unhexlify(envelope.tag)
        ciphertext = binascii.unhexlify(envelope.ciphertext)

        try:
            return self._aesgcm.decrypt(iv, ciphertext + tag, aad)
        except InvalidTag as e:
            raise CryptoError("DECRYPT_FAILED: sealed material does not open under this KEK") from e


class MultiKekProvider(KekProvider):
    """Facade for supporting key rotation with multiple active keys."""

    def __init__(self, primary: KekProvider, secondaries: Dict[str, KekProvider]):
        self.primary = primary
        self.secondaries = secondaries

    @property
    def key_id(self) -> str:
        return self.primary.key_id

    def encrypt(self, plaintext: bytes, aad: Optional[bytes] = None) -> EncryptedEnvelope:
        # Always encrypt with primary (latest) version
        return self.primary.encrypt(plaintext, aad)

    def decrypt(self, envelope: EncryptedEnvelope, aad: Optional[bytes] = None) -> bytes:
        if envelope.kek_id == self.primary.key_id:
            return self.primary.decrypt(envelope, aad)

        if provider := self.secondaries.get(envelope.kek_id):
            return provider.decrypt(envelope, aad)

        raise CryptoError(f"No provider found for KEK ID {envelope.kek_id}")


def get_kek_provider(cfg=None) -> KekProvider:
    """Factory function to get the active KEK provider."""
    if cfg is None:
        from keysdepot.core.config import settings as cfg

    cfg.check_production_secrets()

    primary = LocalKekProvider(cfg.DEPOT_MASTER_KEY, cfg.DEPOT_KEK_ID)
    secondaries: Dict[str, KekProvider] = {
        old_id: LocalKekProvider(old_key, old_id)
        for old_id, old_key in cfg.retired_keks()
    }

    if not secondaries:
        return primary

    return MultiKekProvider(primary, secondaries)
