"""SQLAlchemy Models for the Keys Depot."""
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship  # type: ignore

from keysdepot.utils.id import uuid7


class Base(DeclarativeBase):
    pass


class CertificateRow(Base):
    """Tenant certificate. Written by the registration workflow, read here."""
    __tablename__ = "certificates"
    registration_id = Column(String(64), primary_key=True)
    # {pepper_id}:{hmac-sha256 hex}; raw tokens are never stored
    token_hash = Column(String(128), nullable=False, unique=True, index=True)
    owner = Column(String(255), nullable=False)
    email = Column(String(320), nullable=False)
    licensee_address = Column(String(512), nullable=True)
    licensed_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(20), nullable=False, default="Active")
    keys = relationship("DepotKeyRow", back_populates="certificate")

    __table_args__ = (
        CheckConstraint("status IN ('Active', 'Expired', 'Suspended')", name="ck_certificate_status"),
    )


class DepotKeyRow(Base):
    """Tenant secret, protected value plus KEK-sealed password."""
    __tablename__ = "depot_keys"
    id = Column(String(36), primary_key=True, default=uuid7)
    tenant_id = Column(
        String(64), ForeignKey("certificates.registration_id"), nullable=False
    )
    key_name = Column(String(128), nullable=False)
    description = Column(String(512), nullable=True)
    protected_value = Column(String(1024), nullable=False)
    password_envelope = Column(JSON, nullable=False)
    crypto_algorithm = Column(String(16), nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    version = Column(Integer, nullable=False)
    certificate = relationship("CertificateRow", back_populates="keys")

    __table_args__ = (
        UniqueConstraint("tenant_id", "key_name", name="uq_depot_keys_tenant_key_name"),
        CheckConstraint("created_at <= updated_at", name="ck_depot_keys_timestamps"),
        Index("idx_depot_keys_tenant", "tenant_id"),
    )
    # Optimistic concurrency: UPDATE/DELETE match on the version read
    __mapper_args__ = {"version_id_col": version}
