"""Dependency Injection Module."""
import logging
import threading
from typing import Optional

from fastapi import Header

from keysdepot.core.config import Settings, settings
from keysdepot.domain.depot.crypto import CryptoEngine
from keysdepot.domain.depot.kek import get_kek_provider
from keysdepot.domain.depot.ports import KeyStore, TenantRegistry
from keysdepot.domain.depot.service import VaultService
from keysdepot.errors import raise_depot_error

logger = logging.getLogger(__name__)

_service: Optional[VaultService] = None
_service_lock = threading.Lock()


def build_adapters(cfg: Settings) -> tuple[TenantRegistry, KeyStore]:
    """Build the registry/store pair for the configured backend."""
    backend = cfg.STORE_BACKEND.lower()

    if backend == "postgres":
        from keysdepot.adapters.postgres.key_store import PostgresKeyStore
        from keysdepot.adapters.postgres.session import build_engine, build_session_factory, init_schema
        from keysdepot.adapters.postgres.tenant_registry import PostgresTenantRegistry

        engine = build_engine(cfg.DATABASE_URL)
        if cfg.is_dev:
            init_schema(engine)
        session_factory = build_session_factory(engine)
        registry: TenantRegistry = PostgresTenantRegistry(
            session_factory, cfg.DEPOT_TOKEN_PEPPER, cfg.DEPOT_PEPPER_ID
        )
        store: KeyStore = PostgresKeyStore(
            session_factory, retry_attempts=cfg.STORE_RETRY_ATTEMPTS
        )
        logger.info("Using Postgres tenant registry and key store")
        return registry, store

    if backend == "memory":
        if not cfg.is_dev:
            raise RuntimeError("In PROD, STORE_BACKEND must be 'postgres'")
        from keysdepot.adapters.memory_store.stores import MemoryKeyStore, MemoryTenantRegistry

        if cfg.CERTIFICATES_FILE:
            registry = MemoryTenantRegistry.from_json_file(cfg.CERTIFICATES_FILE)
        else:
            registry = MemoryTenantRegistry()
        logger.info("Using in-memory tenant registry and key store (DEV_MODE)")
        return registry, MemoryKeyStore()

    raise RuntimeError(f"Unknown STORE_BACKEND: {cfg.STORE_BACKEND}")


def build_vault_service(cfg: Settings = settings) -> VaultService:
    registry, store = build_adapters(cfg)
    return VaultService(
        registry=registry,
        store=store,
        engine=CryptoEngine(kdf_iterations=cfg.KDF_ITERATIONS),
        kek=get_kek_provider(cfg),
    )


def get_vault_service() -> VaultService:
    """Process-wide VaultService, built on first use."""
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = build_vault_service()
    return _service


def get_certificate_token(
    x_certificate_token: Optional[str] = Header(default=None, alias="X-Certificate-Token"),
) -> str:
    """Certificate token presented with every call; there is no session."""
    if not x_certificate_token:
        raise_depot_error(
            "TOKEN_MISSING", 401, "X-Certificate-Token header is required"
        )
    return x_certificate_token  # type: ignore[return-value]
