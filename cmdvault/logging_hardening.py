"""Logging Hardening and Redaction.

Filters that keep sealed payloads, key material, bearer tokens and secret
plaintext typed into author forms out of application logs.
"""
import logging
import re

SECRET_PATTERNS = [
    # Author forms carrying plaintext
    (re.compile(r'(\{secure#[^:}]+:)[^}]+(\})'), r'\1[REDACTED]\2'),
    (re.compile(r'(\{secure:)[^}]+(\})'), r'\1[REDACTED]\2'),
    # Sealed payloads and key material
    (re.compile(r'("(?:ciphertext|material|key)":\s*")[^"]+(")'), r'\1[REDACTED]\2'),
    (re.compile(r'((?:ciphertext|material)=)[A-Za-z0-9+/=_-]+'), r'\1[REDACTED]'),
    # Long base64 runs (nonce + ciphertext + tag is at least 40 chars)
    (re.compile(r'(?<![A-Za-z0-9+/])[A-Za-z0-9+/]{40,}={0,2}(?![A-Za-z0-9+/=])'), '[REDACTED]'),
    (re.compile(r'(Bearer\s+)[A-Za-z0-9._~+/=-]+'), r'\1[REDACTED]'),
]


def redact(text: str) -> str:
    for pattern, replacement in SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class SecretRedactionFilter(logging.Filter):
    """Filter that redacts secret-like patterns from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact(record.msg)

        # Also redact arguments if they are strings
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(redact(a) if isinstance(a, str) else a for a in record.args)

        return True


def setup_logging_redaction() -> None:
    """Apply the SecretRedactionFilter to the root logger and all existing loggers."""
    redact_filter = SecretRedactionFilter()

    root_logger = logging.getLogger()
    for f in root_logger.filters[:]:
        if isinstance(f, SecretRedactionFilter):
            root_logger.removeFilter(f)
    root_logger.addFilter(redact_filter)

    # Filters on a logger do not apply to records propagated from children,
    # so every known logger gets its own, and so does every root handler.
    for name in list(logging.root.manager.loggerDict):
        logger = logging.getLogger(name)
        if not any(isinstance(f, SecretRedactionFilter) for f in logger.filters):
            logger.addFilter(redact_filter)
    for handler in root_logger.handlers:
        if not any(isinstance(f, SecretRedactionFilter) for f in handler.filters):
            handler.addFilter(redact_filter)

    logging.getLogger(__name__).debug("Logging redaction filters active.")


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    setup_logging_redaction()
