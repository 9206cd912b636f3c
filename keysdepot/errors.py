"""Keys Depot error taxonomy.

Every failure a caller can observe is a ``DepotError`` subclass. Each class
carries a stable ``code`` for the wire, the HTTP status the gateway maps it
to, and whether a retry can succeed without changing the input.
"""
from fastapi import HTTPException
from typing import Optional, Dict, Any


class DepotError(Exception):
    """Base class for all vault failures."""
    code = "DEPOT_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        error_body: Dict[str, Any] = {
            "code": self.code,
            "message": self.message
        }
        if self.details:
            error_body["details"] = self.details
        return {"error": error_body}


class ValidationError(DepotError):
    """Malformed input: name pattern, field length or unknown algorithm."""
    code = "VALIDATION_FAILED"
    status_code = 400


class FormatError(ValidationError):
    """Certificate token is not well formed."""
    code = "TOKEN_MALFORMED"


class NotFoundError(DepotError):
    code = "NOT_FOUND"
    status_code = 404


class CertificateNotFoundError(NotFoundError):
    code = "CERTIFICATE_NOT_FOUND"


class KeyNotFoundError(NotFoundError):
    code = "KEY_NOT_FOUND"


class DuplicateKeyError(DepotError):
    code = "KEY_EXISTS"
    status_code = 409


class LicenseError(DepotError):
    """Certificate status is not Active."""
    code = "LICENSE_INACTIVE"
    status_code = 403


class CryptoError(DepotError):
    """Password mismatch, corrupt ciphertext or size overflow."""
    code = "CRYPTO_FAILED"
    status_code = 422


class UnsupportedOperationError(CryptoError):
    """Operation undefined for the algorithm (reveal on a one-way digest)."""
    code = "UNSUPPORTED_OPERATION"


class StorageError(DepotError):
    """Backend unavailable or I/O failure."""
    code = "STORAGE_UNAVAILABLE"
    status_code = 503
    retryable = True


def raise_depot_error(
    code: str,
    status_code: int,
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> None:
    """Raise a standardized Keys Depot HTTPException.

    Args:
        code: Error code (TOKEN_MISSING, etc.)
        status_code: HTTP Status Code (401, 400, etc.)
        message: Human readable message
        details: Optional extra details
    """
    error_body: Dict[str, Any] = {
        "code": code,
        "message": message
    }
    if details:
        error_body["details"] = details

    raise HTTPException(status_code=status_code, detail={"error": error_body})
