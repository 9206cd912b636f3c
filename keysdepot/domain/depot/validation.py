"""Input validation for vault operations.

All checks here are pure; VaultService runs them before any crypto or
storage call so a rejected request never leaves partial state.
"""
import re
from typing import NamedTuple, Optional

from keysdepot.errors import FormatError, ValidationError
from .models import CryptoAlgorithm

KEY_NAME_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_+/=-]{1,256}")

MAX_KEY_NAME_LENGTH = 128
MAX_DESCRIPTION_LENGTH = 512
MAX_VALUE_LENGTH = 1024
MAX_PASSWORD_LENGTH = 128


class KeyInput(NamedTuple):
    key_name: str
    value: str
    description: Optional[str]
    password: str
    algorithm: CryptoAlgorithm


def validate_token(token: str) -> str:
    if not isinstance(token, str) or not TOKEN_PATTERN.fullmatch(token):
        raise FormatError("Certificate token is malformed")
    return token


def validate_key_name(key_name: str) -> str:
    if not isinstance(key_name, str) or not key_name:
        raise ValidationError("Key name is required", details={"field": "key_name"})
    if len(key_name) > MAX_KEY_NAME_LENGTH:
        raise ValidationError(
            f"Key name must be no longer than {MAX_KEY_NAME_LENGTH} characters",
            details={"field": "key_name", "length": len(key_name)},
        )
    if not KEY_NAME_PATTERN.fullmatch(key_name):
        raise ValidationError(
            "Key name accepts letters, digits and '_' only and must not start with a digit",
            details={"field": "key_name"},
        )
    return key_name


def _bounded(value, field: str, max_length: int, required: bool) -> Optional[str]:
    if value is None:
        if required:
            raise ValidationError(f"{field} is required", details={"field": field})
        return None
    if required and value == "":
        raise ValidationError(f"{field} is required", details={"field": field})
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={"field": field})
    if len(value) > max_length:
        raise ValidationError(
            f"{field} must be no longer than {max_length} characters",
            details={"field": field, "length": len(value)},
        )
    return value


def validate_algorithm(algorithm) -> CryptoAlgorithm:
    parsed = CryptoAlgorithm.parse(algorithm)
    if parsed is None:
        raise ValidationError(
            "Unknown crypto algorithm",
            details={
                "field": "algorithm",
                "allowed": [a.value for a in CryptoAlgorithm] + [a.label for a in CryptoAlgorithm],
            },
        )
    return parsed


def validate_key_input(
    key_name: str,
    value: str,
    description: Optional[str],
    password: str,
    algorithm,
) -> KeyInput:
    """Validate every field of an add/update request at once."""
    return KeyInput(
        key_name=validate_key_name(key_name),
        value=_bounded(value, "value", MAX_VALUE_LENGTH, required=True),  # type: ignore[arg-type]
        description=_bounded(description, "description", MAX_DESCRIPTION_LENGTH, required=False),
        password=_bounded(password, "password", MAX_PASSWORD_LENGTH, required=True),  # type: ignore[arg-type]
        algorithm=validate_algorithm(algorithm),
    )
