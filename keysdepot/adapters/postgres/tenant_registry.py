"""PostgresTenantRegistry - certificate lookup by peppered token hash."""
import hashlib
import hmac
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from keysdepot.domain.depot.models import Certificate, CertificateStatus
from keysdepot.domain.depot.ports import TenantRegistry
from keysdepot.domain.depot.validation import validate_token
from keysdepot.errors import CertificateNotFoundError, StorageError
from .key_store import _as_utc
from .models import CertificateRow

logger = logging.getLogger(__name__)


class PostgresTenantRegistry(TenantRegistry):
    """Database-backed registry.

    Tokens are hashed using HMAC-SHA256 with a pepper. The pepper_id is
    stored with the hash to support pepper rotation.
    """

    def __init__(self, session_factory: sessionmaker, pepper: str, pepper_id: str = "p1"):
        if not pepper:
            raise RuntimeError("PostgresTenantRegistry requires a token pepper")
        self._session_factory = session_factory
        self._pepper = pepper.encode()
        self._pepper_id = pepper_id

    def hash_token(self, token: str) -> str:
        """Format: {pepper_id}:{hex_hash}"""
        h = hmac.new(self._pepper, token.encode(), hashlib.sha256)
        return f"{self._pepper_id}:{h.hexdigest()}"

    def resolve(self, token: str) -> Certificate:
        validate_token(token)
        token_hash = self.hash_token(token)
        try:
            with self._session_factory() as db:
                row = (
                    db.query(CertificateRow)
                    .filter(CertificateRow.token_hash == token_hash)
                    .first()
                )
        except SQLAlchemyError as e:
            logger.error(f"Certificate lookup failed: {e}")
            raise StorageError("Tenant registry unavailable") from e

        if row is None:
            raise CertificateNotFoundError("Certificate token does not resolve")

        return Certificate(
            registration_id=str(row.registration_id),
            owner=str(row.owner),
            email=str(row.email),
            licensee_address=row.licensee_address,  # type: ignore
            licensed_date=_as_utc(row.licensed_date),  # type: ignore
            status=CertificateStatus(row.status),
        )
