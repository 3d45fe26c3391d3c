"""
Store Module
============

Blocklist persistence boundary.

Components:
    - FingerprintStore: Protocol implemented by stores
    - StoreEvent, StoreEventType: Change notifications
    - InMemoryFingerprintStore: Process-local implementation
"""

from clipguard.store.base import (
    FingerprintStore,
    StoreEvent,
    StoreEventType,
    StoreListener,
)
from clipguard.store.memory import InMemoryFingerprintStore

__all__ = [
    "FingerprintStore",
    "StoreEvent",
    "StoreEventType",
    "StoreListener",
    "InMemoryFingerprintStore",
]
