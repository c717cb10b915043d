"""Variable Domain Models."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from cmdvault.domain.secrets.models import utcnow


class Variable(BaseModel):
    """A plaintext value addressed by ``ref_id``. No encryption involved."""
    ref_id: str = Field(..., min_length=1, max_length=64)
    value: str
    label: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
