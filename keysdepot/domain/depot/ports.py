"""Keys Depot Domain Ports (Interfaces)."""
from abc import ABC, abstractmethod
from typing import List, Optional

from .models import Certificate, EncryptedEnvelope, KeyDraft, KeyRecord


class TenantRegistry(ABC):
    """Abstract Port resolving certificate tokens to tenants."""

    @abstractmethod
    def resolve(self, token: str) -> Certificate:
        """Return the certificate for ``token``.

        Raises FormatError for a malformed token and CertificateNotFoundError
        for an unknown one. Does not check license status.
        """
        ...


class KeyStore(ABC):
    """Abstract Port for tenant-scoped key persistence.

    Every method is atomic with respect to concurrent callers on the same
    (tenant_id, key_name). Absence and duplication are reported through
    return values; exceptions are reserved for StorageError.
    """

    @abstractmethod
    def insert_if_absent(self, draft: KeyDraft) -> Optional[KeyRecord]:
        """Insert a new key. Returns None if the name is already taken."""
        ...

    @abstractmethod
    def replace(self, draft: KeyDraft) -> Optional[KeyRecord]:
        """Overwrite an existing key, keeping created_at. None if absent."""
        ...

    @abstractmethod
    def remove_if_present(self, tenant_id: str, key_name: str) -> Optional[KeyRecord]:
        """Delete a key and return what was removed. None if absent."""
        ...

    @abstractmethod
    def get_by_name(self, tenant_id: str, key_name: str) -> Optional[KeyRecord]:
        ...

    @abstractmethod
    def list_by_tenant(self, tenant_id: str) -> List[KeyRecord]:
        ...

    @abstractmethod
    def ping(self) -> None:
        """Raise StorageError if the backend is unreachable."""
        ...


class KekProvider(ABC):
    """Abstract Port for Key Encryption Key providers."""

    @property
    @abstractmethod
    def key_id(self) -> str:
        """ID of the KEK used for new encryptions."""
        ...

    @abstractmethod
    def encrypt(self, plaintext: bytes, aad: Optional[bytes] = None) -> EncryptedEnvelope:
        """Encrypt plaintext using AES-GCM with optional AAD."""
        ...

    @abstractmethod
    def decrypt(self, envelope: EncryptedEnvelope, aad: Optional[bytes] = None) -> bytes:
        """Decrypt envelope using AES-GCM with optional AAD."""
        ...
