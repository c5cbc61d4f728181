"""Tests for moving a sketch's counters between owners."""

import pytest

from cmsketch.sketching import (
    CountMinSketch,
    SketchState,
    UseOfMovedSketchError,
    build_hash_family,
)


@pytest.fixture
def populated():
    cms = CountMinSketch[str](width=50, depth=4)
    cms.add("a", count=10)
    cms.add("b", count=3)
    return cms


class TestTake:
    """Tests for take() (move into a new sketch)."""

    def test_moved_sketch_keeps_counts(self, populated):
        """The new owner answers exactly like the original did."""
        before = {key: populated.count(key) for key in ("a", "b", "c")}

        moved = populated.take()

        assert (moved.width, moved.depth) == (50, 4)
        assert moved.item_count == 13
        assert {key: moved.count(key) for key in before} == before

    def test_source_becomes_empty(self, populated):
        """The source is reduced to the empty sentinel."""
        populated.take()

        assert populated.state is SketchState.EMPTY
        assert not populated.is_active
        assert populated.width == 0
        assert populated.depth == 0
        assert populated.item_count == 0
        assert populated._counters == []
        assert populated._hash_family == ()

    def test_hash_family_regenerated(self, populated):
        """The new owner gets a freshly built family for its own dimensions."""
        moved = populated.take()

        assert moved._hash_family == build_hash_family(50, 4)
        assert all(row_hash.width == moved.width for row_hash in moved._hash_family)

    def test_moved_sketch_has_its_own_lock(self, populated):
        """The new owner does not share a lock with the source."""
        old_lock = populated._lock

        moved = populated.take()

        assert moved._lock is not old_lock

    def test_moved_sketch_keeps_working(self, populated):
        """Inserts after the move land in the moved counters."""
        moved = populated.take()
        moved.insert("a")

        assert moved.count("a") >= 11

    def test_take_from_empty_rejected(self, populated):
        """An empty sketch has nothing to move."""
        populated.take()

        with pytest.raises(UseOfMovedSketchError):
            populated.take()

    def test_mis_sized_rows_are_repaired(self, populated, caplog):
        """Rows of the wrong width are padded or truncated, with a warning."""
        populated._counters[0] = populated._counters[0][:20]
        populated._counters[1] = populated._counters[1] + [9, 9, 9]

        with caplog.at_level("WARNING", logger="cmsketch"):
            moved = populated.take()

        assert all(len(row) == 50 for row in moved._counters)
        assert moved._counters[0][20:] == [0] * 30
        assert "repairing" in caplog.text

    def test_missing_rows_are_repaired(self, populated):
        """A matrix with too few rows is padded with zero rows."""
        populated._counters.pop()

        moved = populated.take()

        assert len(moved._counters) == 4
        assert moved._counters[3] == [0] * 50


class TestEmptySketchRejectsOperations:
    """Every operation on an empty sketch fails fast."""

    @pytest.fixture
    def empty(self, populated):
        populated.take()
        return populated

    @pytest.mark.parametrize(
        "operation",
        [
            lambda s: s.insert("a"),
            lambda s: s.add("a", count=2),
            lambda s: s.count("a"),
            lambda s: s.estimate("a"),
            lambda s: s.clear(),
            lambda s: s.top_k(3, ["a"]),
            lambda s: s.top_k(0, ["a"]),
            lambda s: s.merge(CountMinSketch[str](width=50, depth=4)),
            lambda s: s.inner_product(CountMinSketch[str](width=50, depth=4)),
        ],
    )
    def test_operation_rejected(self, empty, operation):
        with pytest.raises(UseOfMovedSketchError, match="sketch is empty"):
            operation(empty)

    def test_merging_from_empty_rejected(self, empty):
        """An empty sketch cannot be merged into an active one."""
        receiver = CountMinSketch[str](width=50, depth=4)

        with pytest.raises(UseOfMovedSketchError):
            receiver.merge(empty)
        assert receiver.item_count == 0

    def test_error_is_a_runtime_error(self, empty):
        with pytest.raises(RuntimeError):
            empty.count("a")

    def test_repr_shows_empty(self, empty):
        assert repr(empty) == "CountMinSketch(empty)"


class TestReplaceWith:
    """Tests for replace_with() (move assignment)."""

    def test_takes_over_counters(self, populated):
        """The receiver adopts the other sketch's dimensions and counts."""
        receiver = CountMinSketch[str](width=7, depth=2)
        receiver.insert("zzz")
        expected = populated.count("a")

        result = receiver.replace_with(populated)

        assert result is receiver
        assert (receiver.width, receiver.depth) == (50, 4)
        assert receiver.count("a") == expected
        assert receiver._hash_family == build_hash_family(50, 4)
        assert populated.state is SketchState.EMPTY

    def test_revives_empty_sketch(self, populated):
        """An empty sketch becomes usable again once given new counters."""
        populated.take()

        populated.replace_with(CountMinSketch[str](width=10, depth=2))
        populated.insert("x")

        assert populated.is_active
        assert populated.count("x") == 1

    def test_self_replace_is_noop(self, populated):
        """Replacing a sketch with itself keeps it intact."""
        before = populated.count("a")

        populated.replace_with(populated)

        assert populated.is_active
        assert populated.count("a") == before

    def test_rejects_empty_source(self, populated):
        """Replacing with an empty sketch fails and leaves the receiver alone."""
        donor = CountMinSketch[str](width=10, depth=2)
        donor.take()

        with pytest.raises(UseOfMovedSketchError):
            populated.replace_with(donor)
        assert populated.count("a") >= 10

    def test_rejects_wrong_type(self, populated):
        with pytest.raises(TypeError, match="Can only replace"):
            populated.replace_with({"a": 1})  # type: ignore
