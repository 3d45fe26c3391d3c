"""
Block Record Model
==================

Blocklist entry as held by the registry and persisted by a store.

Persisted form (store's concern):
    {
        "<fingerprint bits>": {"timestamp": 1707321234.567, "origin": "manual"}
    }
"""

import time
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clipguard.models.fingerprint import Fingerprint


class BlockOrigin(str, Enum):
    """
    How a record entered the blocklist.
    
    Attributes:
        MANUAL: User explicitly blocked a clip
        AUTOMATIC: Added by an automated pass
    """
    
    MANUAL = "manual"
    AUTOMATIC = "automatic"


class BlockRecord(BaseModel):
    """
    Immutable blocklist entry.
    
    Records are never edited; they are only created and deleted.
    Uniqueness is by exact fingerprint.
    """
    
    model_config = ConfigDict(frozen=True)
    
    fingerprint: str = Field(
        ...,
        description="Fingerprint bit string",
    )
    
    created_at: float = Field(
        default_factory=time.time,
        ge=0.0,
        description="UNIX timestamp when the record was created",
    )
    
    origin: BlockOrigin = Field(
        default=BlockOrigin.MANUAL,
        description="Origin tag (manual/automatic)",
    )
    
    @field_validator("fingerprint")
    @classmethod
    def _validate_bits(cls, value: str) -> str:
        # Raises InvalidFingerprintError (a ValueError) on bad input
        return Fingerprint.parse(value).bits
    
    @property
    def fp(self) -> Fingerprint:
        """Fingerprint as a value object."""
        return Fingerprint(self.fingerprint)
    
    def to_store_entry(self) -> Dict[str, Any]:
        """Serialize metadata for a fingerprint-keyed store mapping."""
        return {"timestamp": self.created_at, "origin": self.origin.value}
    
    @classmethod
    def from_store_entry(cls, fingerprint: str, entry: Dict[str, Any]) -> "BlockRecord":
        """Inverse of to_store_entry."""
        return cls(
            fingerprint=fingerprint,
            created_at=float(entry.get("timestamp", 0.0)),
            origin=BlockOrigin(entry.get("origin", BlockOrigin.MANUAL.value)),
        )
