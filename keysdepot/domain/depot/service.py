"""Vault Service.

Orchestrates every tenant-facing operation: resolve the certificate, gate
on license status, validate input, then dispatch to the crypto engine and
the key store. Collaborators are injected; the service keeps no state of
its own and takes no locks. Atomicity is the KeyStore's contract.
"""
import logging
from typing import List

from keysdepot.errors import DuplicateKeyError, KeyNotFoundError, LicenseError
from .crypto import CryptoEngine
from .models import (
    Certificate,
    DepotKey,
    KeyConfirmation,
    KeyDraft,
    KeyRecord,
)
from .ports import KekProvider, KeyStore, TenantRegistry
from .validation import KeyInput, validate_key_input

logger = logging.getLogger(__name__)


def password_aad(tenant_id: str, key_name: str) -> bytes:
    """Binds a sealed password to the one key it belongs to."""
    return f"keysdepot.password.v1:{tenant_id}:{key_name}".encode("utf-8")


class VaultService:
    """Certificate-gated CRUD and verification over tenant keys."""

    def __init__(
        self,
        registry: TenantRegistry,
        store: KeyStore,
        engine: CryptoEngine,
        kek: KekProvider,
    ):
        self.registry = registry
        self.store = store
        self.engine = engine
        self.kek = kek

    # --- Certificates ---

    def get_certificate(self, token: str) -> Certificate:
        """Return tenant metadata regardless of license status."""
        return self.registry.resolve(token)

    def _licensed(self, token: str) -> Certificate:
        certificate = self.registry.resolve(token)
        if not certificate.is_active:
            logger.warning(
                f"Refused operation for tenant {certificate.registration_id}: "
                f"license status {certificate.status.value}"
            )
            raise LicenseError(
                f"License is {certificate.status.value}",
                details={"status": certificate.status.value},
            )
        return certificate

    # --- Reads ---

    def get_keys(self, token: str) -> List[DepotKey]:
        """All keys of the tenant, by key name, with stored protected values."""
        tenant_id = self._licensed(token).registration_id
        records = sorted(self.store.list_by_tenant(tenant_id), key=lambda r: r.key_name)
        return [self._to_depot_key(r, reveal=False) for r in records]

    def get_key(self, token: str, key_name: str) -> DepotKey:
        """One key; reversible values are revealed, digests returned as stored."""
        tenant_id = self._licensed(token).registration_id
        return self._to_depot_key(self._require(tenant_id, key_name), reveal=True)

    def check_key(self, token: str, key_name: str, candidate: str) -> bool:
        tenant_id = self._licensed(token).registration_id
        record = self._require(tenant_id, key_name)
        password = self._unseal_password(record)
        return self.engine.matches(
            candidate or "", record.protected_value, password, record.crypto_algorithm
        )

    # --- Mutations ---

    def add_key(
        self,
        token: str,
        key_name: str,
        value: str,
        description: str,
        password: str,
        algorithm,
    ) -> KeyConfirmation:
        tenant_id = self._licensed(token).registration_id
        key_input = validate_key_input(key_name, value, description, password, algorithm)

        # Cheap early answer; insert_if_absent stays the authority under races
        if self.store.get_by_name(tenant_id, key_input.key_name) is not None:
            raise DuplicateKeyError(
                f"Key '{key_input.key_name}' already exists",
                details={"key_name": key_input.key_name},
            )

        record = self.store.insert_if_absent(self._protect(tenant_id, key_input))
        if record is None:
            raise DuplicateKeyError(
                f"Key '{key_input.key_name}' already exists",
                details={"key_name": key_input.key_name},
            )

        logger.info(
            f"Added key {record.key_name} for tenant {tenant_id} "
            f"({record.crypto_algorithm.value})"
        )
        return KeyConfirmation(key_name=record.key_name, message="Key added")

    def update_key(
        self,
        token: str,
        key_name: str,
        value: str,
        description: str,
        password: str,
        algorithm,
    ) -> KeyConfirmation:
        """Full replace of value, description, password and algorithm."""
        tenant_id = self._licensed(token).registration_id
        key_input = validate_key_input(key_name, value, description, password, algorithm)

        self._require(tenant_id, key_input.key_name)

        record = self.store.replace(self._protect(tenant_id, key_input))
        if record is None:
            # Dropped between the existence check and the write
            raise self._not_found(key_input.key_name)

        logger.info(
            f"Updated key {record.key_name} for tenant {tenant_id} "
            f"({record.crypto_algorithm.value}, v{record.version})"
        )
        return KeyConfirmation(key_name=record.key_name, message="Key updated")

    def drop_key(self, token: str, key_name: str) -> str:
        """Remove a key; returns its name."""
        tenant_id = self._licensed(token).registration_id
        removed = self.store.remove_if_present(tenant_id, key_name)
        if removed is None:
            raise self._not_found(key_name)

        logger.info(f"Dropped key {removed.key_name} for tenant {tenant_id}")
        return removed.key_name

    # --- Health ---

    def ping(self) -> None:
        self.store.ping()

    # --- Helpers ---

    @staticmethod
    def _not_found(key_name: str) -> KeyNotFoundError:
        return KeyNotFoundError(f"Key '{key_name}' not found", details={"key_name": key_name})

    def _require(self, tenant_id: str, key_name: str) -> KeyRecord:
        record = self.store.get_by_name(tenant_id, key_name)
        if record is None:
            raise self._not_found(key_name)
        return record

    def _protect(self, tenant_id: str, key_input: KeyInput) -> KeyDraft:
        protected_value = self.engine.protect(
            key_input.value, key_input.password, key_input.algorithm
        )
        envelope = self.kek.encrypt(
            key_input.password.encode("utf-8"),
            aad=password_aad(tenant_id, key_input.key_name),
        )
        return KeyDraft(
            tenant_id=tenant_id,
            key_name=key_input.key_name,
            description=key_input.description,
            protected_value=protected_value,
            password_envelope=envelope,
            crypto_algorithm=key_input.algorithm,
        )

    def _unseal_password(self, record: KeyRecord) -> str:
        raw = self.kek.decrypt(
            record.password_envelope, aad=password_aad(record.tenant_id, record.key_name)
        )
        return raw.decode("utf-8")

    def _to_depot_key(self, record: KeyRecord, reveal: bool) -> DepotKey:
        password = self._unseal_password(record)
        if reveal and record.crypto_algorithm.reversible:
            value = self.engine.reveal(record.protected_value, password, record.crypto_algorithm)
            revealed = True
        else:
            value = record.protected_value
            revealed = False

        return DepotKey(
            tenant_id=record.tenant_id,
            key_name=record.key_name,
            description=record.description,
            value=value,
            revealed=revealed,
            crypto_password=password,
            crypto_algorithm=record.crypto_algorithm,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
