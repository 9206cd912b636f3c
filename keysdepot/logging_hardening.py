"""Logging Hardening and Redaction.

This module provides filters to prevent secret material (key values,
crypto passwords, certificate tokens, sealed envelopes) from appearing in
application logs.
"""
import logging
import re

_SENSITIVE_FIELDS = r"(?:password|crypto_password|value|candidate|token|ciphertext|protected_value|iv|tag)"

SECRET_PATTERNS = [
    # JSON-ish: "password": "hunter2"
    (re.compile(r'("' + _SENSITIVE_FIELDS + r'":\s*")[^"]*(")', re.IGNORECASE), r'\1[REDACTED]\2'),
    # Python repr of dicts: 'password': 'hunter2'
    (re.compile(r"('" + _SENSITIVE_FIELDS + r"':\s*')[^']*(')", re.IGNORECASE), r'\1[REDACTED]\2'),
    # keyword assignments: password=hunter2
    (re.compile(r'\b(' + _SENSITIVE_FIELDS + r'=)[^\s,;)]+', re.IGNORECASE), r'\1[REDACTED]'),
    # certificate header
    (re.compile(r'(X-Certificate-Token:\s*)\S+', re.IGNORECASE), r'\1[REDACTED]'),
]


def redact(text: str) -> str:
    for pattern, replacement in SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class SecretRedactionFilter(logging.Filter):
    """Filter that redacts secret-like patterns from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not isinstance(record.msg, str):
            return True

        record.msg = redact(record.msg)

        # Also redact arguments if they are strings
        if record.args and isinstance(record.args, tuple):
            new_args = []
            for arg in record.args:
                if isinstance(arg, str):
                    arg = redact(arg)
                new_args.append(arg)
            record.args = tuple(new_args)

        return True


def setup_logging_redaction() -> None:
    """Apply the SecretRedactionFilter to all existing loggers."""
    redact_filter = SecretRedactionFilter()

    root_logger = logging.getLogger()

    # Remove existing filters if any (to avoid duplicates)
    for f in root_logger.filters[:]:
        if isinstance(f, SecretRedactionFilter):
            root_logger.removeFilter(f)

    root_logger.addFilter(redact_filter)

    # Specifically ensure it's on library loggers that bypass root
    for name in logging.root.manager.loggerDict:
        logger = logging.getLogger(name)
        if isinstance(logger, logging.Logger):
            for f in logger.filters[:]:
                if isinstance(f, SecretRedactionFilter):
                    logger.removeFilter(f)
            logger.addFilter(redact_filter)

    logging.info("Logging redaction filters active.")


def configure_logging(level: str = "INFO") -> None:
    """Install a basic root handler, then the redaction filters."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    setup_logging_redaction()
