"""Tests for concurrent use of a single sketch from many threads."""

import threading
from concurrent.futures import ThreadPoolExecutor

from cmsketch.sketching import CountMinSketch

THREADS = 8
PER_THREAD = 2_000


def _run_together(*targets):
    """Start all targets behind a barrier so they really overlap."""
    barrier = threading.Barrier(len(targets))

    def wrap(target):
        def run():
            barrier.wait()
            target()

        return run

    threads = [threading.Thread(target=wrap(target)) for target in targets]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    assert not any(thread.is_alive() for thread in threads), "threads did not finish"


class TestConcurrentInsert:
    """Inserts from many threads are never lost."""

    def test_no_lost_updates(self):
        cms = CountMinSketch[str](width=64, depth=4)

        def insert_hot():
            for _ in range(PER_THREAD):
                cms.insert("hot")

        _run_together(*[insert_hot] * THREADS)

        assert cms.count("hot") == THREADS * PER_THREAD
        assert cms.item_count == THREADS * PER_THREAD

    def test_every_row_fully_updated(self):
        """Each row holds exactly one increment per insert."""
        cms = CountMinSketch[int](width=32, depth=5)

        def insert_range(offset):
            def run():
                for i in range(PER_THREAD):
                    cms.insert(offset * PER_THREAD + i)

            return run

        _run_together(*[insert_range(t) for t in range(THREADS)])

        for row in cms._counters:
            assert sum(row) == THREADS * PER_THREAD

    def test_thread_pool_add(self):
        """add() with counts from a pool sums correctly."""
        cms = CountMinSketch[str](width=128, depth=3)
        keys = [f"k{i % 10}" for i in range(1_000)]

        with ThreadPoolExecutor(max_workers=THREADS) as pool:
            list(pool.map(lambda key: cms.add(key, count=3), keys))

        assert cms.item_count == 3_000
        for i in range(10):
            assert cms.count(f"k{i}") >= 300


class TestConsistentReads:
    """Readers always see whole inserts."""

    def test_reader_sees_monotonic_counts(self):
        """A key's count never goes backwards while writers run."""
        cms = CountMinSketch[str](width=16, depth=6)
        observed: list[int] = []
        done = threading.Event()

        def writer():
            for _ in range(PER_THREAD):
                cms.insert("key")

        def reader():
            while not done.is_set():
                observed.append(cms.count("key"))

        reader_thread = threading.Thread(target=reader)
        reader_thread.start()
        _run_together(*[writer] * 4)
        done.set()
        reader_thread.join(timeout=30)

        assert observed == sorted(observed)
        assert cms.count("key") == 4 * PER_THREAD

    def test_rows_agree_under_lock(self):
        """Whoever holds the lock sees every row at the same insert.

        Each insert adds one to every row, so snapshots taken under the
        sketch lock must have equal row totals. Locking each row separately
        would let a snapshot land between two rows of the same insert.
        """
        cms = CountMinSketch[int](width=32, depth=8)
        snapshots: list[tuple[list[int], int]] = []
        done = threading.Event()

        def writer(offset):
            def run():
                for i in range(PER_THREAD):
                    cms.insert(offset * PER_THREAD + i)

            return run

        def reader():
            while True:
                with cms._lock:
                    totals = [sum(row) for row in cms._counters]
                    item_count = cms._total_count
                snapshots.append((totals, item_count))
                if done.is_set():
                    break

        reader_thread = threading.Thread(target=reader)
        reader_thread.start()
        _run_together(*[writer(t) for t in range(4)])
        done.set()
        reader_thread.join(timeout=30)

        assert snapshots
        for totals, item_count in snapshots:
            assert min(totals) == max(totals) == item_count
        assert [sum(row) for row in cms._counters] == [4 * PER_THREAD] * 8

    def test_top_k_estimates_consistent(self):
        """top_k results stay sorted while the sketch is updated."""
        cms = CountMinSketch[int](width=64, depth=4)
        results = []

        def writer():
            for i in range(PER_THREAD):
                cms.insert(i % 20)

        def ranker():
            for _ in range(200):
                results.append(cms.top_k(5, list(range(20))))

        _run_together(writer, writer, ranker)

        for ranked in results:
            estimates = [estimate for _, estimate in ranked]
            assert estimates == sorted(estimates, reverse=True)
            assert len(ranked) == 5


class TestConcurrentMergeAndClear:
    """Merge and clear take the same exclusion as insert."""

    def test_cross_merge_does_not_deadlock(self):
        """a.merge(b) and b.merge(a) at the same time both complete."""
        a = CountMinSketch[str](width=256, depth=4)
        b = CountMinSketch[str](width=256, depth=4)
        a.add("x", count=1)
        b.add("y", count=1)

        def merge_into_a():
            for _ in range(50):
                a.merge(b)

        def merge_into_b():
            for _ in range(50):
                b.merge(a)

        _run_together(merge_into_a, merge_into_b)

        assert a.count("x") >= 1
        assert b.count("y") >= 1

    def test_merge_during_inserts(self):
        """Merged totals and concurrent inserts both land."""
        target = CountMinSketch[str](width=64, depth=4)
        source = CountMinSketch[str](width=64, depth=4)
        source.add("m", count=5)

        def insert():
            for _ in range(PER_THREAD):
                target.insert("i")

        def merge():
            for _ in range(100):
                target.merge(source)

        _run_together(insert, insert, merge)

        assert target.item_count == 2 * PER_THREAD + 500
        for row in target._counters:
            assert sum(row) == 2 * PER_THREAD + 500

    def test_clear_during_inserts(self):
        """Clearing never leaves rows out of step with each other."""
        cms = CountMinSketch[str](width=8, depth=4)

        def insert():
            for _ in range(PER_THREAD):
                cms.insert("k")

        def clear():
            for _ in range(50):
                cms.clear()

        _run_together(insert, insert, clear)

        row_totals = {sum(row) for row in cms._counters}
        assert row_totals == {cms.item_count}
        assert cms.count("k") == cms.item_count
