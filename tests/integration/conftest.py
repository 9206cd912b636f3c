import pytest

from keysdepot.adapters.postgres.models import CertificateRow
from keysdepot.adapters.postgres.session import build_engine, build_session_factory, init_schema
from keysdepot.adapters.postgres.tenant_registry import PostgresTenantRegistry
from keysdepot.main import app

from depot_seed import SEED_CERTIFICATES, TEST_PEPPER


@pytest.fixture(autouse=True)
def clear_overrides():
    """Automatically clear FastAPI dependency overrides before each test."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


def seeded_session_factory(database_url):
    engine = build_engine(database_url)
    init_schema(engine)
    factory = build_session_factory(engine)

    registry = PostgresTenantRegistry(factory, TEST_PEPPER)
    with factory() as db:
        for token, cert in SEED_CERTIFICATES.items():
            db.add(CertificateRow(
                registration_id=cert.registration_id,
                token_hash=registry.hash_token(token),
                owner=cert.owner,
                email=cert.email,
                licensee_address=cert.licensee_address,
                licensed_date=cert.licensed_date,
                status=cert.status.value,
            ))
        db.commit()
    return engine, factory


@pytest.fixture
def session_factory():
    engine, factory = seeded_session_factory("sqlite:///:memory:")
    yield factory
    engine.dispose()


@pytest.fixture
def file_session_factory(tmp_path):
    """One connection per thread; the in-memory engine shares a single one."""
    engine, factory = seeded_session_factory(f"sqlite:///{tmp_path / 'depot.db'}")
    yield factory
    engine.dispose()
