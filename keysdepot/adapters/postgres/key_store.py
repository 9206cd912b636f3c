"""PostgresKeyStore - Database-backed key storage.

Each call runs in its own transaction:
1. Uniqueness of (tenant_id, key_name) is the table's UNIQUE constraint
2. replace/remove lock the row (FOR UPDATE) and carry a version check
3. A stale version is retried; anything else surfaces as StorageError
"""
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from keysdepot.domain.depot.models import (
    CryptoAlgorithm,
    EncryptedEnvelope,
    KeyDraft,
    KeyRecord,
    utcnow,
)
from keysdepot.domain.depot.ports import KeyStore
from keysdepot.errors import StorageError
from .models import DepotKeyRow

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(row: DepotKeyRow) -> KeyRecord:
    return KeyRecord(
        tenant_id=str(row.tenant_id),
        key_name=str(row.key_name),
        description=row.description,  # type: ignore
        protected_value=str(row.protected_value),
        password_envelope=EncryptedEnvelope.model_validate(row.password_envelope),
        crypto_algorithm=CryptoAlgorithm(row.crypto_algorithm),
        created_at=_as_utc(row.created_at),  # type: ignore
        updated_at=_as_utc(row.updated_at),  # type: ignore
        version=int(row.version),  # type: ignore
    )


class PostgresKeyStore(KeyStore):
    """SQLAlchemy-backed KeyStore (PostgreSQL in production, SQLite in tests)."""

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Optional[Callable[[], datetime]] = None,
        retry_attempts: int = 3,
    ):
        """Initialize store.

        Args:
            session_factory: sessionmaker bound to the write database
            clock: Source of timestamps (UTC)
            retry_attempts: Tries for a replace/remove that hits a stale version
        """
        self._session_factory = session_factory
        self._clock = clock or utcnow
        self._retry_attempts = max(1, retry_attempts)

    @staticmethod
    def _locked_row(db: Session, tenant_id: str, key_name: str) -> Optional[DepotKeyRow]:
        return (
            db.query(DepotKeyRow)
            .filter(DepotKeyRow.tenant_id == tenant_id, DepotKeyRow.key_name == key_name)
            .with_for_update()
            .first()
        )

    def insert_if_absent(self, draft: KeyDraft) -> Optional[KeyRecord]:
        last_error: Optional[IntegrityError] = None
        for attempt in range(1, self._retry_attempts + 1):
            now = self._clock()
            try:
                with self._session_factory() as db:
                    row = DepotKeyRow(
                        tenant_id=draft.tenant_id,
                        key_name=draft.key_name,
                        description=draft.description,
                        protected_value=draft.protected_value,
                        password_envelope=draft.password_envelope.model_dump(),
                        crypto_algorithm=draft.crypto_algorithm.value,
                        created_at=now,
                        updated_at=now,
                    )
                    db.add(row)
                    db.commit()
                    return _to_record(row)
            except IntegrityError as e:
                if self.get_by_name(draft.tenant_id, draft.key_name) is not None:
                    return None
                # Conflicting row dropped before the lookup, or another constraint failed
                logger.warning(
                    f"Insert conflict on {draft.tenant_id}/{draft.key_name} with no row left, "
                    f"retrying insert ({attempt}/{self._retry_attempts})"
                )
                last_error = e
            except SQLAlchemyError as e:
                logger.error(f"Insert failed for {draft.tenant_id}/{draft.key_name}: {e}")
                raise StorageError("Key store unavailable") from e

        raise StorageError(
            "Key insert violated a storage constraint",
            details={"key_name": draft.key_name, "attempts": self._retry_attempts},
        ) from last_error

    def replace(self, draft: KeyDraft) -> Optional[KeyRecord]:
        for attempt in range(1, self._retry_attempts + 1):
            try:
                with self._session_factory() as db:
                    row = self._locked_row(db, draft.tenant_id, draft.key_name)
                    if row is None:
                        return None
                    row.description = draft.description  # type: ignore
                    row.protected_value = draft.protected_value  # type: ignore
                    row.password_envelope = draft.password_envelope.model_dump()  # type: ignore
                    row.crypto_algorithm = draft.crypto_algorithm.value  # type: ignore
                    row.updated_at = max(self._clock(), _as_utc(row.updated_at))  # type: ignore
                    db.commit()
                    return _to_record(row)
            except StaleDataError:
                logger.warning(
                    f"Concurrent write on {draft.tenant_id}/{draft.key_name}, "
                    f"retrying replace ({attempt}/{self._retry_attempts})"
                )
            except SQLAlchemyError as e:
                logger.error(f"Replace failed for {draft.tenant_id}/{draft.key_name}: {e}")
                raise StorageError("Key store unavailable") from e

        raise StorageError(
            "Replace kept conflicting with concurrent writers",
            details={"key_name": draft.key_name, "attempts": self._retry_attempts},
        )

    def remove_if_present(self, tenant_id: str, key_name: str) -> Optional[KeyRecord]:
        for attempt in range(1, self._retry_attempts + 1):
            try:
                with self._session_factory() as db:
                    row = self._locked_row(db, tenant_id, key_name)
                    if row is None:
                        return None
                    removed = _to_record(row)
                    db.delete(row)
                    db.commit()
                    return removed
            except StaleDataError:
                logger.warning(
                    f"Concurrent write on {tenant_id}/{key_name}, "
                    f"retrying remove ({attempt}/{self._retry_attempts})"
                )
            except SQLAlchemyError as e:
                logger.error(f"Remove failed for {tenant_id}/{key_name}: {e}")
                raise StorageError("Key store unavailable") from e

        raise StorageError(
            "Remove kept conflicting with concurrent writers",
            details={"key_name": key_name, "attempts": self._retry_attempts},
        )

    def get_by_name(self, tenant_id: str, key_name: str) -> Optional[KeyRecord]:
        try:
            with self._session_factory() as db:
                row = (
                    db.query(DepotKeyRow)
                    .filter(DepotKeyRow.tenant_id == tenant_id, DepotKeyRow.key_name == key_name)
                    .first()
                )
                return _to_record(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"Lookup failed for {tenant_id}/{key_name}: {e}")
            raise StorageError("Key store unavailable") from e

    def list_by_tenant(self, tenant_id: str) -> List[KeyRecord]:
        try:
            with self._session_factory() as db:
                rows = (
                    db.query(DepotKeyRow)
                    .filter(DepotKeyRow.tenant_id == tenant_id)
                    .order_by(DepotKeyRow.key_name)
                    .all()
                )
                return [_to_record(r) for r in rows]
        except SQLAlchemyError as e:
            logger.error(f"Listing failed for {tenant_id}: {e}")
            raise StorageError("Key store unavailable") from e

    def ping(self) -> None:
        try:
            with self._session_factory() as db:
                db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StorageError("Key store unavailable") from e
