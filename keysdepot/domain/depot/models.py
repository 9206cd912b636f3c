"""Keys Depot Domain Models."""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ALGORITHM_AES_256_GCM = "aes-256-gcm"
SCHEMA_ID_ENVELOPE = "keysdepot.secrets.envelope"
SCHEMA_VERSION_V1 = "v1"


class CertificateStatus(str, Enum):
    ACTIVE = "Active"
    EXPIRED = "Expired"
    SUSPENDED = "Suspended"


class CryptoAlgorithm(str, Enum):
    """Closed set of key-protection algorithms a tenant can pick per key."""
    SYMMETRIC_BLOCK = "aes-256"
    TRIPLE_DES = "3des"
    ONE_WAY_HASH = "sha-256"

    @property
    def label(self) -> str:
        return _ALGORITHM_LABELS[self]

    @property
    def reversible(self) -> bool:
        return self is not CryptoAlgorithm.ONE_WAY_HASH

    @classmethod
    def parse(cls, value: str) -> Optional["CryptoAlgorithm"]:
        """Resolve a wire id or display label; None when it names nothing."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        for algorithm in cls:
            if value == algorithm.value or value == algorithm.label:
                return algorithm
        return None


_ALGORITHM_LABELS = {
    CryptoAlgorithm.SYMMETRIC_BLOCK: "Symmetric Block Cipher - AES-256",
    CryptoAlgorithm.TRIPLE_DES: "Three-Key Triple DES",
    CryptoAlgorithm.ONE_WAY_HASH: "Hash Functions - SHA-256",
}


class Certificate(BaseModel):
    """Tenant identity and license record resolved from a certificate token."""
    model_config = ConfigDict(frozen=True)

    registration_id: str = Field(..., min_length=1, max_length=64, pattern=r"^[A-Za-z0-9]+$")
    owner: str
    email: str
    licensee_address: Optional[str] = None
    licensed_date: datetime
    status: CertificateStatus

    @property
    def is_active(self) -> bool:
        return self.status is CertificateStatus.ACTIVE


class EncryptedEnvelope(BaseModel):
    """
    AES-GCM envelope for material sealed under the service KEK.

    All binary fields are stored as lowercase hex strings.
    """
    model_config = ConfigDict(frozen=True)

    kek_id: str = Field(..., min_length=1, max_length=255)
    iv: str = Field(..., pattern=r"^[0-9a-f]{24}$")        # 24 hex char (12 bytes)
    ciphertext: str = Field(..., pattern=r"^[0-9a-f]*$")   # Hex
    tag: str = Field(..., pattern=r"^[0-9a-f]{32}$")       # 32 hex char (16 bytes)
    alg: str = Field(default=ALGORITHM_AES_256_GCM)
    schema_id: str = Field(default=SCHEMA_ID_ENVELOPE)
    schema_version: str = Field(default=SCHEMA_VERSION_V1)

    @field_validator("alg")
    @classmethod
    def validate_alg(cls, v):
        if v != ALGORITHM_AES_256_GCM:
            raise ValueError(f"Unsupported algorithm: {v}")
        return v


class KeyDraft(BaseModel):
    """A fully protected key, ready to be written by a KeyStore."""
    model_config = ConfigDict(frozen=True)

    tenant_id: str
    key_name: str
    description: Optional[str] = None
    protected_value: str = Field(..., max_length=1024)
    password_envelope: EncryptedEnvelope
    crypto_algorithm: CryptoAlgorithm


class KeyRecord(KeyDraft):
    """A committed key as held by a KeyStore."""
    created_at: datetime
    updated_at: datetime
    version: int = 1


class DepotKey(BaseModel):
    """Key as returned to a tenant.

    ``value`` holds the revealed plaintext when ``revealed`` is true, and the
    stored protected value (ciphertext or digest) otherwise.
    """
    tenant_id: str
    key_name: str
    description: Optional[str] = None
    value: str
    revealed: bool
    crypto_password: str
    crypto_algorithm: CryptoAlgorithm
    created_at: datetime
    updated_at: datetime


class KeyConfirmation(BaseModel):
    key_name: str
    message: str


class AlgorithmInfo(BaseModel):
    id: str
    label: str
    reversible: bool


def list_algorithms() -> List[AlgorithmInfo]:
    return [
        AlgorithmInfo(id=a.value, label=a.label, reversible=a.reversible)
        for a in CryptoAlgorithm
    ]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
