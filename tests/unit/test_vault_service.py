"""Tests for VaultService operations."""
from unittest.mock import MagicMock

import pytest

from keysdepot.domain.depot.models import CertificateStatus, CryptoAlgorithm
from keysdepot.domain.depot.ports import KeyStore
from keysdepot.domain.depot.service import VaultService
from keysdepot.errors import (
    CertificateNotFoundError,
    CryptoError,
    DuplicateKeyError,
    FormatError,
    KeyNotFoundError,
    LicenseError,
    NotFoundError,
    StorageError,
    ValidationError,
)

from depot_seed import ACTIVE_TOKEN, EXPIRED_TOKEN, OTHER_ACTIVE_TOKEN, SUSPENDED_TOKEN, UNKNOWN_TOKEN

AES = CryptoAlgorithm.SYMMETRIC_BLOCK.value
DES3 = CryptoAlgorithm.TRIPLE_DES.value
SHA = CryptoAlgorithm.ONE_WAY_HASH.value


def test_symmetric_key_lifecycle(service, store):
    """Add, read, check, update, drop, read again."""
    confirmation = service.add_key(ACTIVE_TOKEN, "DB_PWD", "s3cret", "db", "p@ss", AES)
    assert confirmation.key_name == "DB_PWD"

    key = service.get_key(ACTIVE_TOKEN, "DB_PWD")
    assert key.value == "s3cret"
    assert key.revealed is True
    assert key.description == "db"
    assert key.crypto_password == "p@ss"
    assert key.crypto_algorithm is CryptoAlgorithm.SYMMETRIC_BLOCK
    created_at = key.created_at

    assert service.check_key(ACTIVE_TOKEN, "DB_PWD", "s3cret") is True
    assert service.check_key(ACTIVE_TOKEN, "DB_PWD", "wrong") is False

    service.update_key(ACTIVE_TOKEN, "DB_PWD", "s3cret2", "db", "p@ss", AES)
    key = service.get_key(ACTIVE_TOKEN, "DB_PWD")
    assert key.value == "s3cret2"
    assert key.created_at == created_at
    assert key.updated_at >= created_at

    assert service.drop_key(ACTIVE_TOKEN, "DB_PWD") == "DB_PWD"
    with pytest.raises(NotFoundError):
        service.get_key(ACTIVE_TOKEN, "DB_PWD")


def test_protected_value_is_never_plaintext(service, store):
    service.add_key(ACTIVE_TOKEN, "DB_PWD", "s3cret", "db", "p@ss", AES)

    record = store.get_by_name("REG001", "DB_PWD")
    assert record.protected_value != "s3cret"
    assert "p@ss" not in record.password_envelope.model_dump_json()


def test_one_way_hash_scenario(service):
    service.add_key(ACTIVE_TOKEN, "LOGIN", "hunter2", None, "pw", SHA)

    keys = service.get_keys(ACTIVE_TOKEN)
    assert [k.key_name for k in keys] == ["LOGIN"]
    assert keys[0].value != "hunter2"
    assert keys[0].revealed is False

    key = service.get_key(ACTIVE_TOKEN, "LOGIN")
    assert key.value != "hunter2"
    assert key.revealed is False
    assert key.crypto_password == "pw"

    assert service.check_key(ACTIVE_TOKEN, "LOGIN", "hunter2") is True
    assert service.check_key(ACTIVE_TOKEN, "LOGIN", "hunter3") is False


def test_triple_des_round_trip(service):
    service.add_key(ACTIVE_TOKEN, "LEGACY", "old-secret", "legacy system", "pw", "Three-Key Triple DES")

    key = service.get_key(ACTIVE_TOKEN, "LEGACY")
    assert key.value == "old-secret"
    assert key.crypto_algorithm is CryptoAlgorithm.TRIPLE_DES


@pytest.mark.parametrize("algorithm", [AES, DES3, SHA])
def test_add_round_trips_fields(service, algorithm):
    name = "K_" + "x" * 126
    service.add_key(ACTIVE_TOKEN, name, "value", "d" * 512, "p" * 128, algorithm)

    key = service.get_key(ACTIVE_TOKEN, name)
    assert key.description == "d" * 512
    assert key.crypto_password == "p" * 128
    assert key.crypto_algorithm.value == algorithm


@pytest.mark.parametrize("description", ["", None, "db"])
def test_description_round_trips_exactly(service, description):
    service.add_key(ACTIVE_TOKEN, "D", "v", description, "pw", AES)

    assert service.get_key(ACTIVE_TOKEN, "D").description == description
    assert service.get_keys(ACTIVE_TOKEN)[0].description == description


def test_get_keys_sorted_and_empty(service):
    assert service.get_keys(ACTIVE_TOKEN) == []

    for name in ["zeta", "Alpha", "beta"]:
        service.add_key(ACTIVE_TOKEN, name, "v", None, "pw", AES)

    keys = service.get_keys(ACTIVE_TOKEN)
    assert [k.key_name for k in keys] == ["Alpha", "beta", "zeta"]
    # Listing never reveals
    assert all(not k.revealed and k.value != "v" for k in keys)


def test_update_can_change_algorithm(service):
    service.add_key(ACTIVE_TOKEN, "SWITCH", "value", None, "pw", AES)
    service.update_key(ACTIVE_TOKEN, "SWITCH", "new-value", "now hashed", "pw2", SHA)

    key = service.get_key(ACTIVE_TOKEN, "SWITCH")
    assert key.crypto_algorithm is CryptoAlgorithm.ONE_WAY_HASH
    assert key.crypto_password == "pw2"
    assert key.description == "now hashed"
    assert service.check_key(ACTIVE_TOKEN, "SWITCH", "new-value") is True
    assert service.check_key(ACTIVE_TOKEN, "SWITCH", "value") is False


def test_duplicate_add(service):
    service.add_key(ACTIVE_TOKEN, "DUP", "v", None, "pw", AES)

    with pytest.raises(DuplicateKeyError):
        service.add_key(ACTIVE_TOKEN, "DUP", "other", None, "pw", SHA)
    assert service.get_key(ACTIVE_TOKEN, "DUP").value == "v"


def test_same_name_in_two_tenants(service):
    service.add_key(ACTIVE_TOKEN, "SHARED", "mine", None, "pw", AES)
    service.add_key(OTHER_ACTIVE_TOKEN, "SHARED", "theirs", None, "pw", AES)

    assert service.get_key(ACTIVE_TOKEN, "SHARED").value == "mine"
    assert service.get_key(OTHER_ACTIVE_TOKEN, "SHARED").value == "theirs"
    service.drop_key(ACTIVE_TOKEN, "SHARED")
    assert service.get_key(OTHER_ACTIVE_TOKEN, "SHARED").value == "theirs"


def test_update_missing_key(service):
    with pytest.raises(KeyNotFoundError):
        service.update_key(ACTIVE_TOKEN, "MISSING", "v", None, "pw", AES)


def test_drop_twice(service):
    service.add_key(ACTIVE_TOKEN, "ONCE", "v", None, "pw", AES)
    service.drop_key(ACTIVE_TOKEN, "ONCE")

    with pytest.raises(KeyNotFoundError):
        service.drop_key(ACTIVE_TOKEN, "ONCE")


def test_check_missing_key(service):
    with pytest.raises(KeyNotFoundError):
        service.check_key(ACTIVE_TOKEN, "MISSING", "v")


@pytest.mark.parametrize("token", [EXPIRED_TOKEN, SUSPENDED_TOKEN])
def test_inactive_license_blocks_every_key_operation(service, token):
    operations = [
        lambda: service.get_keys(token),
        lambda: service.get_key(token, "ANY"),
        lambda: service.add_key(token, "ANY", "v", None, "pw", AES),
        lambda: service.update_key(token, "ANY", "v", None, "pw", AES),
        lambda: service.drop_key(token, "ANY"),
        lambda: service.check_key(token, "ANY", "v"),
    ]
    for operation in operations:
        with pytest.raises(LicenseError):
            operation()


@pytest.mark.parametrize("token, status", [
    (EXPIRED_TOKEN, CertificateStatus.EXPIRED),
    (SUSPENDED_TOKEN, CertificateStatus.SUSPENDED),
    (ACTIVE_TOKEN, CertificateStatus.ACTIVE),
])
def test_get_certificate_ignores_status(service, token, status):
    assert service.get_certificate(token).status is status


def test_unknown_and_malformed_tokens(service):
    with pytest.raises(CertificateNotFoundError):
        service.get_certificate(UNKNOWN_TOKEN)
    with pytest.raises(CertificateNotFoundError):
        service.get_keys(UNKNOWN_TOKEN)
    with pytest.raises(FormatError):
        service.get_keys("bad token!")


def test_validation_runs_before_crypto_and_storage(registry, kek):
    store = MagicMock(spec=KeyStore)
    engine = MagicMock()
    service = VaultService(registry=registry, store=store, engine=engine, kek=kek)

    for bad in [
        dict(key_name="1bad"),
        dict(value="x" * 1025),
        dict(description="d" * 513),
        dict(password="p" * 129),
        dict(algorithm="Blowfish"),
    ]:
        args = dict(key_name="GOOD", value="v", description=None, password="pw", algorithm=AES)
        args.update(bad)
        with pytest.raises(ValidationError):
            service.add_key(ACTIVE_TOKEN, **args)
        with pytest.raises(ValidationError):
            service.update_key(ACTIVE_TOKEN, **args)

    engine.protect.assert_not_called()
    store.insert_if_absent.assert_not_called()
    store.replace.assert_not_called()
    store.get_by_name.assert_not_called()


def test_encoded_overflow_writes_nothing(service, store):
    """Passes field validation but the ciphertext would not fit."""
    with pytest.raises(CryptoError):
        service.add_key(ACTIVE_TOKEN, "BIG", "x" * 1000, None, "pw", AES)
    assert store.get_by_name("REG001", "BIG") is None


def test_license_checked_before_storage(registry, engine, kek):
    store = MagicMock(spec=KeyStore)
    service = VaultService(registry=registry, store=store, engine=engine, kek=kek)

    with pytest.raises(LicenseError):
        service.add_key(EXPIRED_TOKEN, "K", "v", None, "pw", AES)
    assert not store.method_calls


def test_storage_errors_propagate_unchanged(registry, engine, kek):
    store = MagicMock(spec=KeyStore)
    failure = StorageError("Key store unavailable")
    store.get_by_name.side_effect = failure
    store.list_by_tenant.side_effect = failure
    store.remove_if_present.side_effect = failure
    service = VaultService(registry=registry, store=store, engine=engine, kek=kek)

    for operation in [
        lambda: service.get_keys(ACTIVE_TOKEN),
        lambda: service.get_key(ACTIVE_TOKEN, "K"),
        lambda: service.drop_key(ACTIVE_TOKEN, "K"),
        lambda: service.add_key(ACTIVE_TOKEN, "K", "v", None, "pw", AES),
    ]:
        with pytest.raises(StorageError) as excinfo:
            operation()
        assert excinfo.value is failure
        assert excinfo.value.retryable


def test_insert_race_reported_as_duplicate(registry, engine, kek):
    """Store says the name was taken between the pre-check and the insert."""
    store = MagicMock(spec=KeyStore)
    store.get_by_name.return_value = None
    store.insert_if_absent.return_value = None
    service = VaultService(registry=registry, store=store, engine=engine, kek=kek)

    with pytest.raises(DuplicateKeyError):
        service.add_key(ACTIVE_TOKEN, "RACE", "v", None, "pw", AES)


def test_update_race_with_drop_reported_as_not_found(service, store, monkeypatch):
    service.add_key(ACTIVE_TOKEN, "GONE", "v", None, "pw", AES)
    monkeypatch.setattr(store, "replace", lambda draft: None)

    with pytest.raises(KeyNotFoundError):
        service.update_key(ACTIVE_TOKEN, "GONE", "v2", None, "pw", AES)


def test_check_key_never_reveals_one_way(service, engine, monkeypatch):
    service.add_key(ACTIVE_TOKEN, "LOGIN", "hunter2", None, "pw", SHA)
    reveal = MagicMock(side_effect=AssertionError("reveal called"))
    monkeypatch.setattr(engine, "reveal", reveal)

    assert service.check_key(ACTIVE_TOKEN, "LOGIN", "hunter2") is True
    reveal.assert_not_called()


def test_sealed_password_bound_to_key(service, store):
    """An envelope copied onto another key does not open."""
    service.add_key(ACTIVE_TOKEN, "A", "va", None, "pw-a", AES)
    service.add_key(ACTIVE_TOKEN, "B", "vb", None, "pw-b", AES)

    a = store.get_by_name("REG001", "A")
    b = store.get_by_name("REG001", "B")
    store._records[("REG001", "B")] = b.model_copy(update={"password_envelope": a.password_envelope})

    with pytest.raises(CryptoError):
        service.get_key(ACTIVE_TOKEN, "B")
