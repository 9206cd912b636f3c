"""Memory Store Implementations."""
import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from keysdepot.domain.depot.models import Certificate, KeyDraft, KeyRecord, utcnow
from keysdepot.domain.depot.ports import KeyStore, TenantRegistry
from keysdepot.domain.depot.validation import validate_token
from keysdepot.errors import CertificateNotFoundError

logger = logging.getLogger(__name__)


class MemoryKeyStore(KeyStore):
    """In-process key store.

    A single lock guards the mapping. Only dict operations and timestamp
    assignment run under it; callers do their crypto before calling in.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._records: Dict[Tuple[str, str], KeyRecord] = {}
        self._lock = threading.Lock()
        self._clock = clock or utcnow

    def insert_if_absent(self, draft: KeyDraft) -> Optional[KeyRecord]:
        key = (draft.tenant_id, draft.key_name)
        with self._lock:
            if key in self._records:
                return None
            now = self._clock()
            record = KeyRecord(**dict(draft), created_at=now, updated_at=now, version=1)
            self._records[key] = record
            return record

    def replace(self, draft: KeyDraft) -> Optional[KeyRecord]:
        key = (draft.tenant_id, draft.key_name)
        with self._lock:
            existing = self._records.get(key)
            if existing is None:
                return None
            record = KeyRecord(
                **dict(draft),
                created_at=existing.created_at,
                updated_at=max(self._clock(), existing.updated_at),
                version=existing.version + 1,
            )
            self._records[key] = record
            return record

    def remove_if_present(self, tenant_id: str, key_name: str) -> Optional[KeyRecord]:
        with self._lock:
            return self._records.pop((tenant_id, key_name), None)

    def get_by_name(self, tenant_id: str, key_name: str) -> Optional[KeyRecord]:
        # Records are immutable; a plain read sees the latest committed one
        return self._records.get((tenant_id, key_name))

    def list_by_tenant(self, tenant_id: str) -> List[KeyRecord]:
        with self._lock:
            records = [r for (t, _), r in self._records.items() if t == tenant_id]
        return sorted(records, key=lambda r: r.key_name)

    def ping(self) -> None:
        return None


class MemoryTenantRegistry(TenantRegistry):
    """Token to certificate map, seeded in code or from a JSON file (DEV_MODE)."""

    def __init__(self, certificates: Optional[Dict[str, Certificate]] = None):
        self._certificates: Dict[str, Certificate] = {}
        for token, certificate in (certificates or {}).items():
            self.register(token, certificate)

    def register(self, token: str, certificate: Certificate) -> None:
        self._certificates[validate_token(token)] = certificate

    def resolve(self, token: str) -> Certificate:
        validate_token(token)
        certificate = self._certificates.get(token)
        if certificate is None:
            raise CertificateNotFoundError("Certificate token does not resolve")
        return certificate

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "MemoryTenantRegistry":
        """Load ``[{"token": ..., "registration_id": ..., ...}, ...]``."""
        with open(path) as f:
            entries = json.load(f)

        registry = cls()
        for entry in entries:
            entry = dict(entry)
            token = entry.pop("token")
            registry.register(token, Certificate.model_validate(entry))

        logger.info(f"Loaded {len(registry._certificates)} certificates from {path}")
        return registry
