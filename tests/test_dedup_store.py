"""Tests for the shared hash store and its reservation protocol."""

import itertools
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from hypothesis import given, settings, strategies as st

from phashkeep.dedup.distance import hamming_distance
from phashkeep.dedup.store import HashStore
from tests.helpers.image_factory import hash_from_int, make_hash


def _assert_no_duplicates(store: HashStore) -> None:
    hashes = list(store)
    for a, b in itertools.combinations(hashes, 2):
        assert hamming_distance(a, b) >= store.threshold


class TestHashStore:
    def test_empty_store(self):
        store = HashStore()
        assert len(store) == 0
        assert store.find_match(make_hash([])) is None

    def test_add_bypasses_duplicate_check(self):
        store = HashStore(threshold=10)
        store.add(make_hash([]))
        store.add(make_hash([]))
        assert len(store) == 2

    def test_find_match_returns_near_hash(self):
        store = HashStore(threshold=10)
        stored = make_hash(range(3))
        store.add(stored)

        assert store.find_match(make_hash([])) == stored
        assert store.find_match(make_hash(range(20, 60))) is None

    def test_reserve_and_commit(self):
        store = HashStore(threshold=10)
        reservation = store.reserve(make_hash([]))

        assert reservation is not None
        assert len(store) == 0
        assert store.pending_count == 1

        reservation.commit()
        assert len(store) == 1
        assert store.pending_count == 0

    def test_reserve_rejects_committed_duplicate(self):
        store = HashStore(threshold=10)
        store.reserve(make_hash([])).commit()

        assert store.reserve(make_hash(range(3))) is None
        assert store.reserve(make_hash(range(20, 60))) is not None

    def test_release_leaves_store_unchanged(self):
        store = HashStore(threshold=10)
        reservation = store.reserve(make_hash([]))
        reservation.release()

        assert len(store) == 0
        assert store.pending_count == 0
        assert store.reserve(make_hash([])) is not None

    def test_reservation_closes_once(self):
        store = HashStore()
        reservation = store.reserve(make_hash([]))
        reservation.commit()

        with pytest.raises(RuntimeError):
            reservation.release()
        assert len(store) == 1

    def test_unrelated_reservations_do_not_block(self):
        store = HashStore(threshold=10)
        first = store.reserve(make_hash([]))
        second = store.reserve(make_hash(range(20, 60)))

        assert first is not None and second is not None
        assert store.pending_count == 2


class TestConcurrentAdmission:
    def test_near_duplicate_waits_for_open_reservation(self):
        store = HashStore(threshold=10)
        first = store.reserve(make_hash([]))
        results = []

        worker = threading.Thread(target=lambda: results.append(store.reserve(make_hash(range(3)))))
        worker.start()
        worker.join(timeout=0.2)
        assert worker.is_alive()

        first.commit()
        worker.join(timeout=5)
        assert not worker.is_alive()
        assert results == [None]

    def test_released_reservation_unblocks_near_duplicate(self):
        store = HashStore(threshold=10)
        first = store.reserve(make_hash([]))
        results = []

        worker = threading.Thread(target=lambda: results.append(store.reserve(make_hash(range(3)))))
        worker.start()
        worker.join(timeout=0.2)
        assert worker.is_alive()

        first.release()
        worker.join(timeout=5)
        assert not worker.is_alive()
        assert results[0] is not None
        results[0].commit()
        assert list(store) == [make_hash(range(3))]

    def test_identical_hashes_admitted_once(self):
        store = HashStore(threshold=10)
        barrier = threading.Barrier(16)

        def _admit(_):
            barrier.wait()
            reservation = store.reserve(make_hash([7]))
            if reservation is None:
                return False
            reservation.commit()
            return True

        with ThreadPoolExecutor(max_workers=16) as executor:
            admitted = list(executor.map(_admit, range(16)))

        assert admitted.count(True) == 1
        assert len(store) == 1

    def test_concurrent_random_hashes_keep_invariant(self):
        store = HashStore(threshold=10)
        values = [(i * 0x9E3779B97F4A7C15) % 2 ** 64 for i in range(200)]
        values += [v ^ 0b101 for v in values]

        def _admit(value):
            reservation = store.reserve(hash_from_int(value))
            if reservation is not None:
                reservation.commit()

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(_admit, values))

        assert store.pending_count == 0
        _assert_no_duplicates(store)


class TestStoreInvariant:
    @settings(max_examples=50, deadline=None)
    @given(
        values=st.lists(st.integers(min_value=0, max_value=2 ** 64 - 1), max_size=40),
        threshold=st.integers(min_value=1, max_value=32),
    )
    def test_admitted_hashes_are_pairwise_distinct(self, values, threshold):
        """For any admission sequence, no two committed hashes are duplicates."""
        store = HashStore(threshold=threshold)
        for value in values:
            reservation = store.reserve(hash_from_int(value))
            if reservation is not None:
                reservation.commit()

        _assert_no_duplicates(store)
        for value in values:
            assert store.find_match(hash_from_int(value)) is not None
