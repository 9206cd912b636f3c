"""Tests for request validation."""
import pytest

from keysdepot.domain.depot.models import CryptoAlgorithm
from keysdepot.domain.depot.validation import (
    validate_key_input,
    validate_key_name,
    validate_token,
)
from keysdepot.errors import FormatError, ValidationError


@pytest.mark.parametrize("name", ["DB_PWD", "_private", "a", "Key_2", "A" * 128, "mixedCase_9"])
def test_valid_key_names(name):
    assert validate_key_name(name) == name


@pytest.mark.parametrize("name", [
    "1bad",          # starts with a digit
    "",              # empty
    "A" * 129,       # too long
    "bad-name",      # dash
    "bad name",      # space
    "DB_PWD\n",      # trailing newline
    "naïve",         # non-ascii letter
    None,
])
def test_invalid_key_names(name):
    with pytest.raises(ValidationError):
        validate_key_name(name)


def test_key_input_accepts_bounds():
    key_input = validate_key_input(
        "NAME", "v" * 1024, "d" * 512, "p" * 128, "Symmetric Block Cipher - AES-256"
    )
    assert key_input.algorithm is CryptoAlgorithm.SYMMETRIC_BLOCK
    assert len(key_input.value) == 1024


def test_description_is_optional():
    assert validate_key_input("NAME", "v", None, "p", "sha-256").description is None
    assert validate_key_input("NAME", "v", "", "p", "sha-256").description == ""


@pytest.mark.parametrize("kwargs, field", [
    ({"value": "v" * 1025}, "value"),
    ({"value": ""}, "value"),
    ({"description": "d" * 513}, "description"),
    ({"password": "p" * 129}, "password"),
    ({"password": ""}, "password"),
    ({"algorithm": "rot13"}, "algorithm"),
    ({"key_name": "9lives"}, "key_name"),
])
def test_key_input_rejections(kwargs, field):
    args = {
        "key_name": "NAME",
        "value": "v",
        "description": "d",
        "password": "p",
        "algorithm": "aes-256",
    }
    args.update(kwargs)

    with pytest.raises(ValidationError) as excinfo:
        validate_key_input(**args)
    assert excinfo.value.details["field"] == field


@pytest.mark.parametrize("token", ["T1", "abc-DEF_123+/=", "x" * 256])
def test_valid_tokens(token):
    assert validate_token(token) == token


@pytest.mark.parametrize("token", ["", "has space", "x" * 257, "semi;colon", None])
def test_malformed_tokens(token):
    with pytest.raises(FormatError):
        validate_token(token)


def test_format_error_is_validation_error():
    assert issubclass(FormatError, ValidationError)
