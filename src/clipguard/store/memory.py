"""
In-Memory Fingerprint Store
===========================

Process-local FingerprintStore used by the service and the tests.

Records are kept in insertion order, keyed by fingerprint bits.
Listeners are scheduled on the running event loop with call_soon,
so they never run inside the mutating call.
"""

import asyncio
import logging
import time
from typing import Dict, Iterable, List, Optional, Set

from clipguard.models.fingerprint import Fingerprint
from clipguard.models.record import BlockOrigin, BlockRecord
from clipguard.store.base import StoreEvent, StoreEventType, StoreListener


logger = logging.getLogger(__name__)


class InMemoryFingerprintStore:
    """
    Dict-backed store with asynchronous change notification.
    
    Example:
        store = InMemoryFingerprintStore()
        store.add_listener(registry.apply)
        added = await store.add(fp.bits)
    """
    
    def __init__(self, records: Optional[Iterable[BlockRecord]] = None) -> None:
        self._records: Dict[str, BlockRecord] = {}
        self._listeners: Set[StoreListener] = set()
        for record in records or ():
            self._records.setdefault(record.fingerprint, record)
    
    async def list(self) -> List[BlockRecord]:
        return list(self._records.values())
    
    async def add(
        self,
        fingerprint: str,
        origin: BlockOrigin = BlockOrigin.MANUAL,
    ) -> bool:
        bits = Fingerprint.parse(fingerprint).bits
        if bits in self._records:
            logger.debug(f"Hash already exists in store: {bits[:16]}...")
            return False
        
        record = BlockRecord(fingerprint=bits, created_at=time.time(), origin=origin)
        self._records[bits] = record
        logger.info(
            f"Saved blocked hash {bits[:16]}... (total={len(self._records)})"
        )
        self._notify(StoreEvent(
            type=StoreEventType.ADDED,
            fingerprint=bits,
            record=record,
            total_count=len(self._records),
        ))
        return True
    
    async def remove(self, fingerprint: str) -> bool:
        bits = Fingerprint.parse(fingerprint).bits
        if self._records.pop(bits, None) is None:
            logger.debug(f"Hash not found for removal: {bits[:16]}...")
            return False
        
        logger.info(
            f"Removed blocked hash {bits[:16]}... (remaining={len(self._records)})"
        )
        self._notify(StoreEvent(
            type=StoreEventType.REMOVED,
            fingerprint=bits,
            total_count=len(self._records),
        ))
        return True
    
    async def clear(self) -> None:
        self._records.clear()
        logger.info("Cleared all blocked hashes")
        self._notify(StoreEvent(type=StoreEventType.CLEARED, total_count=0))
    
    async def replace_all(self, records: Iterable[BlockRecord]) -> None:
        """
        Overwrite contents, as another writer sharing the store would.
        
        Emits a single EXTERNAL_UPDATE event with the new contents.
        """
        self._records = {}
        for record in records:
            self._records.setdefault(record.fingerprint, record)
        
        logger.info(f"Store updated via external change: count={len(self._records)}")
        self._notify(StoreEvent(
            type=StoreEventType.EXTERNAL_UPDATE,
            records=list(self._records.values()),
            total_count=len(self._records),
        ))
    
    def add_listener(self, listener: StoreListener) -> None:
        self._listeners.add(listener)
        logger.debug(f"Change listener added (total={len(self._listeners)})")
    
    def remove_listener(self, listener: StoreListener) -> None:
        self._listeners.discard(listener)
        logger.debug(f"Change listener removed (total={len(self._listeners)})")
    
    def _notify(self, event: StoreEvent) -> None:
        if not self._listeners:
            return
        
        loop = asyncio.get_running_loop()
        for listener in list(self._listeners):
            loop.call_soon(self._deliver, listener, event)
    
    @staticmethod
    def _deliver(listener: StoreListener, event: StoreEvent) -> None:
        try:
            listener(event)
        except Exception:
            logger.exception(f"Listener callback failed for {event.type.value}")
