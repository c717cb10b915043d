"""Error taxonomy for the secure value store and reference engine.

Author-time errors (``LabelNotFound``, ``DuplicateLabel``) abort saving of a
field. Decrypt-time errors (``NotFound``, ``KeyMissing``, ``AuthFailure``) are
raised by the Secure Value Store; the resolution engine catches them and leaves
the reference unresolved.
"""
from typing import Optional, Dict, Any, Tuple

from fastapi import HTTPException


class VaultError(Exception):
    """Base class. ``code`` is a stable machine-readable identifier."""

    code = "VAULT_ERROR"

    def __init__(self, message: str = "", **details: Any):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class LabelNotFound(VaultError):
    code = "LABEL_NOT_FOUND"


class DuplicateLabel(VaultError):
    code = "DUPLICATE_LABEL"


class NotFound(VaultError):
    code = "NOT_FOUND"


class KeyMissing(VaultError):
    """Key material for a version is absent from the platform secret store."""
    code = "KEY_MISSING"


class AuthFailure(VaultError):
    """AEAD tag verification failed (corrupted or tampered ciphertext)."""
    code = "AUTH_FAILURE"


class KeyStoreWriteError(VaultError):
    code = "KEY_STORE_WRITE_FAILED"


class CycleDetected(VaultError):
    code = "CYCLE_DETECTED"


class CanonicalizationError(VaultError):
    """Wraps an author-time error with the span of the offending placeholder."""

    code = "CANONICALIZATION_FAILED"

    def __init__(self, error: VaultError, span: Tuple[int, int], field: Optional[str] = None):
        super().__init__(error.message, span=list(span), field=field, cause=error.code)
        self.error = error
        self.span = span
        self.field = field


def raise_vault_error(
    code: str,
    status_code: int,
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> None:
    """Raise a standardized HTTPException.

    Args:
        code: Error code (LABEL_NOT_FOUND, DUPLICATE_LABEL, etc.)
        status_code: HTTP Status Code (400, 404, 409, ...)
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
