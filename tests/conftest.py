import pytest

from keysdepot.adapters.memory_store.stores import MemoryKeyStore, MemoryTenantRegistry
from keysdepot.domain.depot.crypto import CryptoEngine
from keysdepot.domain.depot.kek import LocalKekProvider
from keysdepot.domain.depot.service import VaultService

from depot_seed import SEED_CERTIFICATES, TEST_KDF_ITERATIONS


@pytest.fixture
def registry():
    return MemoryTenantRegistry(SEED_CERTIFICATES)


@pytest.fixture
def engine():
    return CryptoEngine(kdf_iterations=TEST_KDF_ITERATIONS)


@pytest.fixture
def kek():
    return LocalKekProvider("test-master-key")


@pytest.fixture
def store():
    return MemoryKeyStore()


@pytest.fixture
def service(registry, store, engine, kek):
    return VaultService(registry=registry, store=store, engine=engine, kek=kek)
