"""Secrets Domain Models."""
from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import BaseModel, Field

ALGORITHM_AES_256_GCM = "aes-256-gcm"
AAD_PREFIX = "cmdvault.secure.v1"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeyVersion(BaseModel):
    """Metadata for one key version. The key material itself never lives here."""
    version: int = Field(..., ge=1)
    fingerprint: str = Field(..., min_length=1)
    is_active: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class SecureValue(BaseModel):
    """
    An encrypted value addressed by ``ref_id``.

    ``ciphertext`` is the base64 "combined" AES-GCM form:
    nonce (12 bytes) + ciphertext + tag (16 bytes).
    """
    ref_id: str = Field(..., min_length=1, max_length=64)
    ciphertext: str = Field(..., min_length=1)
    key_version: int = Field(..., ge=1)
    label: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    def metadata(self) -> Dict[str, object]:
        """Row summary without ciphertext."""
        return {
            "ref_id": self.ref_id,
            "label": self.label,
            "key_version": self.key_version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class RotationReport(BaseModel):
    target_version: int
    scanned: int = 0
    rotated: int = 0
    failed: int = 0


class KeyInfo(BaseModel):
    active_version: int
    value_count: int
    stale_counts: Dict[int, int] = Field(default_factory=dict)
