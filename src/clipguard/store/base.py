"""
Fingerprint Store Protocol
==========================

Boundary contract for blocklist persistence.

Persistence itself is an external concern. The core only needs:
    - list()   -> ordered sequence of BlockRecord
    - add()    -> False if the fingerprint is already stored
    - remove() -> False if the fingerprint was not stored
    - clear()
    - change notifications, delivered asynchronously to listeners
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Protocol, Sequence

from clipguard.models.record import BlockOrigin, BlockRecord


class StoreEventType(str, Enum):
    """Kinds of store change notifications."""
    
    ADDED = "ADDED"
    REMOVED = "REMOVED"
    CLEARED = "CLEARED"
    EXTERNAL_UPDATE = "EXTERNAL_UPDATE"


@dataclass(frozen=True, slots=True)
class StoreEvent:
    """
    Store change notification.
    
    Attributes:
        type: What happened
        fingerprint: Affected fingerprint for ADDED/REMOVED
        record: Full record for ADDED
        records: Complete new contents for EXTERNAL_UPDATE
        total_count: Store size after the change
    """
    
    type: StoreEventType
    fingerprint: Optional[str] = None
    record: Optional[BlockRecord] = None
    records: List[BlockRecord] = field(default_factory=list)
    total_count: int = 0


StoreListener = Callable[[StoreEvent], None]


class FingerprintStore(Protocol):
    """
    Protocol for blocklist stores.
    
    Implementations must deliver StoreEvents to registered listeners
    asynchronously (never from inside the mutating call).
    """
    
    async def list(self) -> Sequence[BlockRecord]:
        ...
    
    async def add(
        self,
        fingerprint: str,
        origin: BlockOrigin = BlockOrigin.MANUAL,
    ) -> bool:
        ...
    
    async def remove(self, fingerprint: str) -> bool:
        ...
    
    async def clear(self) -> None:
        ...
    
    def add_listener(self, listener: StoreListener) -> None:
        ...
    
    def remove_listener(self, listener: StoreListener) -> None:
        ...
