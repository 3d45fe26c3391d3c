"""
Block Registry
==============

In-memory view of the blocklist, synchronized with a FingerprintStore.

Design Rules:
    - The registry is an explicit instance; there is no module-level list
    - Only add/remove/clear/apply mutate the view
    - Readers take a snapshot, so a concurrent write during a scan is
      tolerated; a fingerprint added mid-scan is caught on the next pass
    - Store events are applied idempotently (the registry's own writes
      come back as events too)
"""

import json
import logging
import time
from typing import Dict, List, Optional, Tuple, Union

from clipguard.matching.similarity import SimilarityMatcher
from clipguard.models.fingerprint import Fingerprint
from clipguard.models.outcome import MatchResult
from clipguard.models.record import BlockOrigin, BlockRecord
from clipguard.store.base import FingerprintStore, StoreEvent, StoreEventType


logger = logging.getLogger(__name__)


class BlockRegistry:
    """
    Fingerprint -> BlockRecord view backed by a store.
    
    Example:
        registry = BlockRegistry(store, matcher)
        await registry.load()
        match = registry.match(fingerprint)
    """
    
    def __init__(
        self,
        store: FingerprintStore,
        matcher: Optional[SimilarityMatcher] = None,
    ) -> None:
        self.store = store
        self.matcher = matcher or SimilarityMatcher()
        self._records: Dict[str, BlockRecord] = {}
        self._subscribed = False
    
    # -------------------------------------------------------------------------
    # Synchronization
    # -------------------------------------------------------------------------
    
    async def load(self) -> int:
        """
        (Re)load the view from the store and subscribe to its changes.
        
        Returns:
            Number of records loaded
        """
        records = await self.store.list()
        self._records = {r.fingerprint: r for r in records}
        
        if not self._subscribed:
            self.store.add_listener(self.apply)
            self._subscribed = True
        
        logger.info(f"Loaded {len(self._records)} blocked hashes from store")
        return len(self._records)
    
    def close(self) -> None:
        """Stop listening to store changes."""
        if self._subscribed:
            self.store.remove_listener(self.apply)
            self._subscribed = False
    
    def apply(self, event: StoreEvent) -> None:
        """Apply a store change notification to the view."""
        if event.type is StoreEventType.ADDED and event.record is not None:
            self._records.setdefault(event.record.fingerprint, event.record)
        elif event.type is StoreEventType.REMOVED and event.fingerprint:
            self._records.pop(event.fingerprint, None)
        elif event.type is StoreEventType.CLEARED:
            self._records = {}
        elif event.type is StoreEventType.EXTERNAL_UPDATE:
            self._records = {r.fingerprint: r for r in event.records}
            logger.info(f"Registry refreshed from external update: count={len(self._records)}")
    
    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------
    
    async def add(
        self,
        fingerprint: Union[Fingerprint, str],
        origin: BlockOrigin = BlockOrigin.MANUAL,
    ) -> bool:
        """
        Persist and register a fingerprint.
        
        Returns:
            False if the fingerprint was already blocked
        """
        fp = Fingerprint.parse(fingerprint)
        if fp.bits in self._records:
            return False
        
        added = await self.store.add(fp.bits, origin=origin)
        if added:
            stored = next(
                (r for r in await self.store.list() if r.fingerprint == fp.bits),
                BlockRecord(fingerprint=fp.bits, origin=origin),
            )
            self._records.setdefault(fp.bits, stored)
        return added
    
    async def remove(self, fingerprint: Union[Fingerprint, str]) -> bool:
        fp = Fingerprint.parse(fingerprint)
        removed = await self.store.remove(fp.bits)
        if removed:
            self._records.pop(fp.bits, None)
        return removed
    
    async def clear(self) -> None:
        await self.store.clear()
        self._records = {}
    
    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------
    
    def __len__(self) -> int:
        return len(self._records)
    
    def __contains__(self, fingerprint: object) -> bool:
        if isinstance(fingerprint, Fingerprint):
            return fingerprint.bits in self._records
        return fingerprint in self._records
    
    def get(self, fingerprint: Union[Fingerprint, str]) -> Optional[BlockRecord]:
        return self._records.get(Fingerprint.parse(fingerprint).bits)
    
    def snapshot(self) -> Tuple[Fingerprint, ...]:
        """Immutable copy of the current fingerprints, in insertion order."""
        return tuple(Fingerprint(bits) for bits in list(self._records))
    
    def records(self) -> List[BlockRecord]:
        return list(self._records.values())
    
    def match(
        self,
        fingerprint: Union[Fingerprint, str],
        threshold: Optional[int] = None,
    ) -> Optional[MatchResult]:
        """
        Check a fingerprint against the blocklist.
        
        Exact matches short-circuit; otherwise the closest record within
        the threshold is returned.
        """
        fp = Fingerprint.parse(fingerprint)
        if fp.bits in self._records:
            return MatchResult(candidate=fp, distance=0, similarity=100.0)
        
        result = self.matcher.find_match(fp, self.snapshot(), threshold=threshold)
        if result is not None:
            logger.debug(
                f"Similar hash match: {fp.preview} ~ {result.candidate.preview} "
                f"(distance={result.distance})"
            )
        return result
    
    def is_blocked(
        self,
        fingerprint: Union[Fingerprint, str],
        threshold: Optional[int] = None,
    ) -> bool:
        return self.match(fingerprint, threshold=threshold) is not None
    
    def stats(self) -> dict:
        """
        Registry statistics.
        
        Returns:
            Dict with total_count, oldest_entry, newest_entry,
            average_age_seconds, size_estimate (JSON bytes)
        """
        records = self.records()
        now = time.time()
        
        stats = {
            "total_count": len(records),
            "oldest_entry": None,
            "newest_entry": None,
            "average_age_seconds": 0.0,
            "size_estimate": len(json.dumps(
                {r.fingerprint: r.to_store_entry() for r in records}
            )),
        }
        if records:
            created = [r.created_at for r in records]
            stats["oldest_entry"] = min(created)
            stats["newest_entry"] = max(created)
            stats["average_age_seconds"] = sum(now - c for c in created) / len(created)
        return stats
