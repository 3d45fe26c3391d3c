"""
Matching Tests
==============

Tests for Hamming matching, the in-memory store, and the block registry.
"""

import asyncio

import pytest

from clipguard.errors import InvalidFingerprintError
from clipguard.matching.registry import BlockRegistry
from clipguard.matching.similarity import (
    SimilarityMatcher,
    hamming_distance,
    similarity_percent,
)
from clipguard.models.fingerprint import Fingerprint
from clipguard.models.record import BlockOrigin, BlockRecord
from clipguard.store.base import StoreEventType
from clipguard.store.memory import InMemoryFingerprintStore


def flip(bits: str, *positions: int) -> str:
    chars = list(bits)
    for p in positions:
        chars[p] = "1" if chars[p] == "0" else "0"
    return "".join(chars)


class TestHammingDistance:
    """Tests for hamming_distance and similarity_percent."""

    def test_identity(self, fingerprint_bits):
        bits = fingerprint_bits()
        assert hamming_distance(bits, bits) == 0

    def test_symmetry(self, fingerprint_bits):
        a, b = fingerprint_bits(1), fingerprint_bits(2)
        assert hamming_distance(a, b) == hamming_distance(b, a)

    def test_counts_differing_bits(self):
        assert hamming_distance("0000", "0110") == 2

    def test_length_penalty(self):
        """Verify each missing position counts as a difference."""
        assert hamming_distance("0101", "010") == 1
        assert hamming_distance("0101", "1") == 4

    def test_accepts_fingerprint_objects(self):
        assert hamming_distance(Fingerprint("01"), "11") == 1

    def test_rejects_non_binary(self):
        with pytest.raises(InvalidFingerprintError):
            hamming_distance("01", "0a")

    def test_similarity_percent(self):
        assert similarity_percent("0000", "0000") == 100.0
        assert similarity_percent("0000", "0011") == 50.0


class TestSimilarityMatcher:
    """Tests for SimilarityMatcher."""

    def test_threshold_inclusive(self, fingerprint_bits):
        a = fingerprint_bits()
        b = flip(a, 0, 1, 2)
        matcher = SimilarityMatcher(threshold=3)
        assert matcher.is_match(a, b)
        assert not matcher.is_match(a, b, threshold=2)

    def test_threshold_monotonic(self, fingerprint_bits):
        """Verify a match at t stays a match for every larger t."""
        a = fingerprint_bits()
        b = flip(a, 5, 9, 20, 40)
        matcher = SimilarityMatcher()
        first = next(t for t in range(64) if matcher.is_match(a, b, threshold=t))
        assert first == 4
        assert all(matcher.is_match(a, b, threshold=t) for t in range(first, 64))

    def test_threshold_runtime_update(self):
        matcher = SimilarityMatcher(threshold=12)
        matcher.threshold = 5
        assert matcher.threshold == 5
        with pytest.raises(ValueError):
            matcher.threshold = -1

    def test_best_match_empty(self, fingerprint_bits):
        assert SimilarityMatcher().best_match(fingerprint_bits(), []) is None

    def test_best_match_picks_minimum(self, fingerprint_bits):
        target = fingerprint_bits()
        far = flip(target, *range(20))
        near = flip(target, 3)
        result = SimilarityMatcher().best_match(target, [far, near])
        assert result.candidate.bits == near
        assert result.distance == 1
        assert result.similarity == pytest.approx(62 / 63 * 100)

    def test_best_match_tie_goes_to_first(self, fingerprint_bits):
        target = fingerprint_bits()
        first = flip(target, 1, 2)
        second = flip(target, 10, 11)
        result = SimilarityMatcher().best_match(target, [first, second])
        assert result.candidate.bits == first

    def test_find_match_respects_threshold(self, fingerprint_bits):
        target = fingerprint_bits()
        candidate = flip(target, *range(13))
        matcher = SimilarityMatcher(threshold=12)
        assert matcher.find_match(target, [candidate]) is None
        assert matcher.find_match(target, [candidate], threshold=13).distance == 13


class TestInMemoryFingerprintStore:
    """Tests for InMemoryFingerprintStore."""

    def test_add_and_list(self, fingerprint_bits):
        async def scenario():
            store = InMemoryFingerprintStore()
            assert await store.add(fingerprint_bits(1))
            assert not await store.add(fingerprint_bits(1))
            assert await store.add(fingerprint_bits(2), origin=BlockOrigin.AUTOMATIC)
            return await store.list()

        records = asyncio.run(scenario())
        assert len(records) == 2
        assert records[1].origin is BlockOrigin.AUTOMATIC

    def test_listeners_notified_after_mutation(self, fingerprint_bits):
        async def scenario():
            store = InMemoryFingerprintStore()
            events = []
            store.add_listener(events.append)
            await store.add(fingerprint_bits(1))
            # Delivery is scheduled, not inline
            assert events == []
            await asyncio.sleep(0)
            await store.remove(fingerprint_bits(1))
            await store.clear()
            await asyncio.sleep(0)
            return events

        events = asyncio.run(scenario())
        assert [e.type for e in events] == [
            StoreEventType.ADDED,
            StoreEventType.REMOVED,
            StoreEventType.CLEARED,
        ]
        assert events[0].record.fingerprint == events[0].fingerprint
        assert events[0].total_count == 1

    def test_failing_listener_does_not_break_others(self, fingerprint_bits):
        async def scenario():
            store = InMemoryFingerprintStore()
            events = []

            def broken(event):
                raise RuntimeError("listener bug")

            store.add_listener(broken)
            store.add_listener(events.append)
            await store.add(fingerprint_bits())
            await asyncio.sleep(0)
            return events

        assert len(asyncio.run(scenario())) == 1

    def test_remove_missing(self, fingerprint_bits):
        store = InMemoryFingerprintStore()
        assert asyncio.run(store.remove(fingerprint_bits())) is False


class TestBlockRecord:
    """Tests for BlockRecord."""

    def test_store_entry_round_trip(self, fingerprint_bits):
        record = BlockRecord(fingerprint=fingerprint_bits(), created_at=1000.0)
        entry = record.to_store_entry()
        assert entry == {"timestamp": 1000.0, "origin": "manual"}
        assert BlockRecord.from_store_entry(record.fingerprint, entry) == record

    def test_invalid_fingerprint_rejected(self):
        with pytest.raises(ValueError):
            BlockRecord(fingerprint="01201")

    def test_frozen(self, fingerprint_bits):
        record = BlockRecord(fingerprint=fingerprint_bits())
        with pytest.raises(ValueError):
            record.origin = BlockOrigin.AUTOMATIC


class TestBlockRegistry:
    """Tests for BlockRegistry."""

    def test_load_existing_records(self, fingerprint_bits):
        store = InMemoryFingerprintStore([
            BlockRecord(fingerprint=fingerprint_bits(1)),
            BlockRecord(fingerprint=fingerprint_bits(2)),
        ])
        registry = BlockRegistry(store)
        assert asyncio.run(registry.load()) == 2
        assert fingerprint_bits(1) in registry
        assert Fingerprint(fingerprint_bits(2)) in registry

    def test_add_remove_clear(self, fingerprint_bits):
        async def scenario():
            registry = BlockRegistry(InMemoryFingerprintStore())
            await registry.load()
            assert await registry.add(fingerprint_bits(1))
            assert not await registry.add(fingerprint_bits(1))
            assert await registry.add(fingerprint_bits(2))
            await asyncio.sleep(0)
            assert len(registry) == 2

            assert await registry.remove(fingerprint_bits(1))
            assert not await registry.remove(fingerprint_bits(1))
            await asyncio.sleep(0)
            assert len(registry) == 1

            await registry.clear()
            await asyncio.sleep(0)
            return len(registry), len(await registry.store.list())

        assert asyncio.run(scenario()) == (0, 0)

    def test_get_returns_record(self, fingerprint_bits):
        async def scenario():
            registry = BlockRegistry(InMemoryFingerprintStore())
            await registry.add(fingerprint_bits(1), origin=BlockOrigin.AUTOMATIC)
            return registry.get(Fingerprint(fingerprint_bits(1))), registry.get(fingerprint_bits(2))

        record, missing = asyncio.run(scenario())
        assert record.fingerprint == fingerprint_bits(1)
        assert record.origin is BlockOrigin.AUTOMATIC
        assert missing is None

    def test_exact_match_short_circuits(self, fingerprint_bits):
        async def scenario():
            registry = BlockRegistry(InMemoryFingerprintStore())
            await registry.add(fingerprint_bits())
            return registry.match(fingerprint_bits())

        result = asyncio.run(scenario())
        assert result.distance == 0
        assert result.similarity == 100.0

    def test_near_match_within_threshold(self, fingerprint_bits):
        async def scenario():
            registry = BlockRegistry(InMemoryFingerprintStore(), SimilarityMatcher(threshold=5))
            await registry.add(fingerprint_bits())
            near = flip(fingerprint_bits(), 0, 1, 2)
            far = flip(fingerprint_bits(), *range(10))
            return registry.match(near), registry.is_blocked(far)

        near_result, far_blocked = asyncio.run(scenario())
        assert near_result.distance == 3
        assert not far_blocked

    def test_snapshot_is_immutable_copy(self, fingerprint_bits):
        async def scenario():
            registry = BlockRegistry(InMemoryFingerprintStore())
            await registry.add(fingerprint_bits(1))
            snapshot = registry.snapshot()
            await registry.add(fingerprint_bits(2))
            return snapshot, registry.snapshot()

        before, after = asyncio.run(scenario())
        assert isinstance(before, tuple)
        assert len(before) == 1
        assert len(after) == 2

    def test_external_update_replaces_view(self, fingerprint_bits):
        async def scenario():
            store = InMemoryFingerprintStore()
            registry = BlockRegistry(store)
            await registry.load()
            await registry.add(fingerprint_bits(1))
            await store.replace_all([
                BlockRecord(fingerprint=fingerprint_bits(2)),
                BlockRecord(fingerprint=fingerprint_bits(3)),
            ])
            await asyncio.sleep(0)
            return registry

        registry = asyncio.run(scenario())
        assert len(registry) == 2
        assert fingerprint_bits(1) not in registry
        assert fingerprint_bits(3) in registry

    def test_close_stops_updates(self, fingerprint_bits):
        async def scenario():
            store = InMemoryFingerprintStore()
            registry = BlockRegistry(store)
            await registry.load()
            registry.close()
            await store.add(fingerprint_bits())
            await asyncio.sleep(0)
            return registry

        assert len(asyncio.run(scenario())) == 0

    def test_stats(self, fingerprint_bits):
        store = InMemoryFingerprintStore([
            BlockRecord(fingerprint=fingerprint_bits(1), created_at=100.0),
            BlockRecord(fingerprint=fingerprint_bits(2), created_at=200.0),
        ])
        registry = BlockRegistry(store)
        asyncio.run(registry.load())

        stats = registry.stats()
        assert stats["total_count"] == 2
        assert stats["oldest_entry"] == 100.0
        assert stats["newest_entry"] == 200.0
        assert stats["average_age_seconds"] > 0
        assert stats["size_estimate"] > 2 * 63

    def test_stats_empty(self):
        stats = BlockRegistry(InMemoryFingerprintStore()).stats()
        assert stats["total_count"] == 0
        assert stats["oldest_entry"] is None
