"""Count-Min Sketch for frequency estimation.

The Count-Min Sketch is a probabilistic data structure that estimates the
frequency of items in a data stream. It uses multiple hash functions and
a 2D array of counters to provide frequency estimates with controlled error.

Key properties:
- Space: O(width * depth)
- Update: O(depth) time
- Query: O(depth) time
- Error: At most εN with probability ≥ 1-δ where ε=e/width and δ=e^(-depth)
- Always overestimates (never underestimates)

Thread safety: every operation that touches the counter matrix holds the
sketch's lock for the whole logical operation. An insert updates all rows
before any reader can observe them, so the minimum taken by ``count`` always
sees every row at the same point in the stream. Key hashing happens before
the lock is taken.

Ownership: ``take()`` and ``replace_with()`` move the counter matrix to
another sketch object and leave the source empty. An empty sketch rejects
every operation with UseOfMovedSketchError until it is given new storage
with ``replace_with()``.

Reference:
    Cormode, Muthukrishnan. "An Improved Data Stream Summary: The Count-Min
    Sketch and its Applications" (2004)
"""

from __future__ import annotations

import enum
import logging
import math
import sys
import threading
from collections.abc import Hashable, Iterable
from typing import TypeVar

from cmsketch.sketching.base import FrequencyEstimate, FrequencySketch
from cmsketch.sketching.errors import (
    DimensionMismatchError,
    InvalidDimensionError,
    UseOfMovedSketchError,
)
from cmsketch.sketching.hashing import RowHash, base_hash, build_hash_family

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Hashable)

COUNTER_MAX = 0xFFFFFFFF
"""Counters are unsigned 32-bit and saturate at this value."""

_DIMENSION_MAX = 0xFFFFFFFF


def _optimal_width(epsilon: float) -> int:
    """Calculate optimal width for target error rate epsilon."""
    return int(math.ceil(math.e / epsilon))


def _optimal_depth(delta: float) -> int:
    """Calculate optimal depth for target failure probability delta."""
    return int(math.ceil(math.log(1.0 / delta)))


def _is_valid_dimension(value: object) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 < value <= _DIMENSION_MAX
    )


class SketchState(enum.Enum):
    """Lifecycle state of a sketch."""

    ACTIVE = "active"
    EMPTY = "empty"


class CountMinSketch(FrequencySketch[T]):
    """Thread-safe Count-Min Sketch for approximate frequency counting.

    Args:
        width: Number of counters per row. Larger = more accurate.
        depth: Number of hash functions/rows. Larger = higher confidence.

    Alternatively, create from error bounds:
        CountMinSketch.from_error_rate(epsilon=0.01, delta=0.01)

    Error guarantees:
        - count() always returns >= the true count (never underestimates)
        - With probability ≥ 1-δ: estimate ≤ true_count + εN
        - Where ε = e/width, δ = e^(-depth), N = total item count

    Example:
        cms = CountMinSketch[str](width=2048, depth=5)

        for key in request_keys:
            cms.insert(key)

        cms.count("hot_key")
        cms.top_k(3, ["a", "b", "c", "d"])
    """

    def __init__(self, width: int, depth: int):
        """Initialize Count-Min Sketch.

        Args:
            width: Number of counters per row. Must be positive.
            depth: Number of hash functions/rows. Must be positive.

        Raises:
            InvalidDimensionError: If width or depth is not a positive
                32-bit integer.
        """
        if not (_is_valid_dimension(width) and _is_valid_dimension(depth)):
            raise InvalidDimensionError(width, depth)

        self._lock = threading.Lock()
        self._install(width, depth, [[0] * width for _ in range(depth)], 0)
        logger.debug("Created sketch %dx%d", width, depth, extra={"sketch_event": "created"})

    @classmethod
    def from_error_rate(cls, epsilon: float, delta: float) -> CountMinSketch[T]:
        """Create a sketch with specified error guarantees.

        Args:
            epsilon: Maximum relative error (e.g., 0.01 for 1%).
            delta: Failure probability (e.g., 0.01 for 99% confidence).

        Returns:
            CountMinSketch configured for the specified guarantees.

        Raises:
            ValueError: If epsilon or delta not in (0, 1).
        """
        if not 0 < epsilon < 1:
            raise ValueError(f"epsilon must be in (0, 1), got {epsilon}")
        if not 0 < delta < 1:
            raise ValueError(f"delta must be in (0, 1), got {delta}")

        return cls(width=_optimal_width(epsilon), depth=_optimal_depth(delta))

    # -- storage management -------------------------------------------------

    def _install(
        self,
        width: int,
        depth: int,
        counters: list[list[int]],
        total_count: int,
    ) -> None:
        """Take ownership of a counter matrix and rebuild the hash family.

        Rows that don't match ``width`` are padded with zeros or truncated,
        and missing rows are added. That only happens if the matrix was
        damaged before it got here, so it is logged.
        """
        if len(counters) != depth:
            logger.warning(
                "Counter matrix has %d rows, expected %d; repairing",
                len(counters),
                depth,
                extra={"sketch_event": "repair"},
            )
            del counters[depth:]
            counters.extend([0] * width for _ in range(depth - len(counters)))
        for index, row in enumerate(counters):
            if len(row) != width:
                logger.warning(
                    "Row %d has %d counters, expected %d; repairing",
                    index,
                    len(row),
                    width,
                    extra={"sketch_event": "repair"},
                )
                del row[width:]
                row.extend([0] * (width - len(row)))

        self._width = width
        self._depth = depth
        self._counters = counters
        self._hash_family: tuple[RowHash, ...] = build_hash_family(width, depth)
        self._total_count = total_count
        self._state = SketchState.ACTIVE

    def _become_empty(self) -> None:
        self._width = 0
        self._depth = 0
        self._counters = []
        self._hash_family = ()
        self._total_count = 0
        self._state = SketchState.EMPTY

    def _require_active(self, operation: str) -> None:
        if self._state is SketchState.EMPTY:
            raise UseOfMovedSketchError(operation)

    def take(self) -> CountMinSketch[T]:
        """Move this sketch's counters into a new sketch.

        The returned sketch has the same dimensions and counts and a freshly
        built hash family. This sketch becomes empty.

        Raises:
            UseOfMovedSketchError: If this sketch is already empty.
        """
        self._require_active("take")
        moved = type(self).__new__(type(self))
        moved._lock = threading.Lock()
        moved._install(self._width, self._depth, self._counters, self._total_count)
        self._become_empty()
        logger.debug(
            "Moved sketch %dx%d to a new owner",
            moved._width,
            moved._depth,
            extra={"sketch_event": "moved"},
        )
        return moved

    def replace_with(self, other: CountMinSketch[T]) -> CountMinSketch[T]:
        """Take over ``other``'s counters, discarding this sketch's own.

        Works on an empty sketch too, which makes it usable again. ``other``
        becomes empty. Replacing a sketch with itself does nothing.

        Returns:
            This sketch.

        Raises:
            TypeError: If other is not a CountMinSketch.
            UseOfMovedSketchError: If other is empty.
        """
        if not isinstance(other, CountMinSketch):
            raise TypeError(f"Can only replace with CountMinSketch, got {type(other).__name__}")
        if other is self:
            return self
        other._require_active("replace with an empty sketch")

        self._install(other._width, other._depth, other._counters, other._total_count)
        other._become_empty()
        logger.debug(
            "Sketch took over %dx%d counters",
            self._width,
            self._depth,
            extra={"sketch_event": "replaced"},
        )
        return self

    def __copy__(self):
        raise TypeError("CountMinSketch cannot be copied; use take() to transfer it")

    def __deepcopy__(self, memo):
        raise TypeError("CountMinSketch cannot be copied; use take() to transfer it")

    # -- properties ---------------------------------------------------------

    @property
    def width(self) -> int:
        """Number of counters per row (0 once empty)."""
        return self._width

    @property
    def depth(self) -> int:
        """Number of hash functions/rows (0 once empty)."""
        return self._depth

    @property
    def state(self) -> SketchState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SketchState.ACTIVE

    @property
    def epsilon(self) -> float:
        """Error rate parameter (e/width)."""
        if self._width == 0:
            return math.inf
        return math.e / self._width

    @property
    def delta(self) -> float:
        """Failure probability parameter (e^-depth)."""
        return math.exp(-self._depth)

    @property
    def item_count(self) -> int:
        """Total count of items added, including merged-in totals."""
        return self._total_count

    @property
    def memory_bytes(self) -> int:
        """Estimated memory usage in bytes."""
        counter_bytes = self._depth * self._width * 8
        list_overhead = sys.getsizeof([]) * (self._depth + 1)
        return counter_bytes + list_overhead + sys.getsizeof(self)

    # -- updates ------------------------------------------------------------

    def add(self, item: T, count: int = 1) -> None:
        """Add occurrences of an item to the sketch.

        Args:
            item: The item to add. Must be hashable.
            count: Number of occurrences to add (default 1).

        Raises:
            TypeError: If count is not an int (bools are rejected).
            ValueError: If count is negative.
            UseOfMovedSketchError: If the sketch is empty.
        """
        if not isinstance(count, int) or isinstance(count, bool):
            raise TypeError(f"count must be an int, got {type(count).__name__}")
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        self._require_active("add")
        if count:
            self._increment(item, count)

    def insert(self, item: T) -> None:
        """Record a single occurrence of an item."""
        self._require_active("insert")
        self._increment(item, 1)

    def _increment(self, item: T, count: int) -> None:
        digest = base_hash(item)
        columns = [row_hash.column_for_digest(digest) for row_hash in self._hash_family]
        with self._lock:
            for row, col in zip(self._counters, columns):
                row[col] = min(row[col] + count, COUNTER_MAX)
            self._total_count += count

    def merge(self, other: CountMinSketch[T]) -> None:
        """Merge another Count-Min Sketch into this one.

        After merging, this sketch estimates frequencies for the combined
        stream. Errors add up as well: a merged estimate may overshoot by
        the collision error of both inputs.

        The other sketch is copied under its own lock first, then folded in
        under this sketch's lock, so the two locks are never held together.

        Args:
            other: Another Count-Min Sketch with the same dimensions.

        Raises:
            TypeError: If other is not a CountMinSketch.
            DimensionMismatchError: If other has different dimensions. This
                sketch is left untouched.
            UseOfMovedSketchError: If either sketch is empty.
        """
        if not isinstance(other, CountMinSketch):
            raise TypeError(f"Can only merge with CountMinSketch, got {type(other).__name__}")
        self._require_active("merge")
        other._require_active("merge from an empty sketch")
        if self._width != other._width or self._depth != other._depth:
            raise DimensionMismatchError(
                "merge", (self._width, self._depth), (other._width, other._depth)
            )

        with other._lock:
            snapshot = [list(row) for row in other._counters]
            other_total = other._total_count

        with self._lock:
            for row, other_row in zip(self._counters, snapshot):
                row[:] = [min(a + b, COUNTER_MAX) for a, b in zip(row, other_row)]
            self._total_count += other_total
        logger.debug(
            "Merged %d items into %dx%d sketch",
            other_total,
            self._width,
            self._depth,
            extra={"sketch_event": "merged"},
        )

    def clear(self) -> None:
        """Reset every counter to zero, keeping dimensions and hash functions."""
        self._require_active("clear")
        with self._lock:
            for row in self._counters:
                row[:] = [0] * len(row)
            self._total_count = 0
        logger.debug(
            "Cleared %dx%d sketch", self._width, self._depth, extra={"sketch_event": "cleared"}
        )

    # -- queries ------------------------------------------------------------

    def _count_digest(self, digest: int) -> int:
        """Minimum counter for a digest. Caller must hold the lock.

        If the matrix is out of shape, falls back to a best-effort value
        rather than raising: 0 when the row count is wrong, or the first
        counter of the first mis-sized row. Columns outside ``[0, width)``
        are skipped.
        """
        counters = self._counters
        family = self._hash_family
        if not counters or len(counters) != self._depth or len(family) != self._depth:
            logger.warning(
                "Counter matrix is malformed (%d rows, %d hash functions, depth %d); "
                "returning 0",
                len(counters),
                len(family),
                self._depth,
                extra={"sketch_event": "degraded_count"},
            )
            return 0

        minimum: int | None = None
        for index, (row, row_hash) in enumerate(zip(counters, family)):
            if len(row) != self._width:
                logger.warning(
                    "Row %d has %d counters, expected %d; returning fallback estimate",
                    index,
                    len(row),
                    self._width,
                    extra={"sketch_event": "degraded_count"},
                )
                return row[0] if row else 0
            col = row_hash.column_for_digest(digest)
            if not 0 <= col < self._width:
                continue
            value = row[col]
            if minimum is None or value < minimum:
                minimum = value
        return 0 if minimum is None else minimum

    def count(self, item: T) -> int:
        """Estimate the frequency of an item.

        Returns the minimum counter across all rows. This is guaranteed to
        be >= the true count, and with high probability
        <= true_count + epsilon * item_count.

        Raises:
            UseOfMovedSketchError: If the sketch is empty.
        """
        self._require_active("count")
        digest = base_hash(item)
        with self._lock:
            return self._count_digest(digest)

    def estimate(self, item: T) -> int:
        """Same as count(), under the FrequencySketch name."""
        return self.count(item)

    def estimate_with_error(self, item: T) -> FrequencyEstimate[T]:
        """Get frequency estimate with error bounds.

        Args:
            item: The item to estimate.

        Returns:
            FrequencyEstimate with count and error bound.
        """
        count = self.count(item)
        error = int(math.ceil(self.epsilon * self._total_count))
        return FrequencyEstimate(item=item, count=count, error=error)

    def top_k(self, k: int, candidates: Iterable[T]) -> list[tuple[T, int]]:
        """Rank caller-supplied candidates by estimated frequency.

        The sketch does not remember which keys it has seen, so it can only
        rank the keys it is given. All candidates are counted under a single
        lock acquisition, so the returned estimates are mutually consistent.

        Candidates with equal estimates keep their input order.

        Args:
            k: Maximum number of items to return. 0 returns an empty list.
            candidates: Items to rank. Duplicates are ranked as given.

        Returns:
            Up to ``min(k, len(candidates))`` ``(item, estimate)`` pairs,
            highest estimate first.

        Raises:
            ValueError: If k is negative.
            UseOfMovedSketchError: If the sketch is empty.
        """
        if k < 0:
            raise ValueError(f"k must be non-negative, got {k}")
        self._require_active("top_k")
        if k == 0:
            return []

        items = list(candidates)
        digests = [base_hash(item) for item in items]
        with self._lock:
            ranked = [(item, self._count_digest(d)) for item, d in zip(items, digests)]

        ranked.sort(key=lambda pair: pair[1], reverse=True)
        return ranked[:k]

    def inner_product(self, other: CountMinSketch[T]) -> int:
        """Estimate the inner product of two streams.

        The inner product is sum(count_A[x] * count_B[x]) over all items x.
        Useful for comparing similarity of two streams.

        Args:
            other: Another Count-Min Sketch with same dimensions.

        Returns:
            Estimated inner product.

        Raises:
            TypeError: If other is not a CountMinSketch.
            DimensionMismatchError: If sketches have different dimensions.
            UseOfMovedSketchError: If either sketch is empty.
        """
        if not isinstance(other, CountMinSketch):
            raise TypeError(
                f"Can only compute inner product with CountMinSketch, got {type(other).__name__}"
            )
        self._require_active("compute inner product")
        other._require_active("compute inner product with an empty sketch")
        if self._width != other._width or self._depth != other._depth:
            raise DimensionMismatchError(
                "compute inner product",
                (self._width, self._depth),
                (other._width, other._depth),
            )

        with other._lock:
            snapshot = [list(row) for row in other._counters]

        with self._lock:
            return min(
                sum(a * b for a, b in zip(row, other_row))
                for row, other_row in zip(self._counters, snapshot)
            )

    def __repr__(self) -> str:
        if self._state is SketchState.EMPTY:
            return "CountMinSketch(empty)"
        return (
            f"CountMinSketch(width={self._width}, depth={self._depth}, "
            f"ε={self.epsilon:.4f}, δ={self.delta:.4f}, total={self._total_count})"
        )
