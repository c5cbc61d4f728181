"""Base protocols for frequency sketches.

Sketching algorithms provide approximate statistics over data streams using
bounded memory. They trade exact accuracy for space efficiency, making them
a good fit for hot paths such as cache admission scoring or hot-key
detection, where keeping one exact counter per key is too expensive.

This module defines the protocols that sketch implementations follow:
- Sketch: Base protocol with common operations (add, merge, clear)
- FrequencySketch: For frequency estimation (Count-Min Sketch)
"""

from abc import ABC, abstractmethod
from collections.abc import Hashable, Sequence
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")


class Sketch(ABC):
    """Base protocol for all streaming/sketching algorithms.

    Sketches process a stream of items and provide approximate answers to
    queries about the stream. They support:
    - Adding items (with optional counts)
    - Merging two sketches of the same type
    - Estimating memory usage
    - Clearing state for reuse
    """

    @abstractmethod
    def add(self, item: T, count: int = 1) -> None:
        """Add an item to the sketch.

        Args:
            item: The item to add.
            count: Number of occurrences to add (default 1).
        """

    @abstractmethod
    def merge(self, other: "Sketch") -> None:
        """Merge another sketch of the same type into this one.

        After merging, this sketch contains the combined information from
        both sketches, as if all items from both had been added to one sketch.

        Args:
            other: Another sketch of the same type and configuration.

        Raises:
            TypeError: If other is not the same sketch type.
            ValueError: If other has incompatible configuration.
        """

    @property
    @abstractmethod
    def memory_bytes(self) -> int:
        """Estimated memory usage in bytes."""

    @property
    @abstractmethod
    def item_count(self) -> int:
        """Total count of items added to the sketch.

        Returns:
            Sum of all counts added via add(), including merged-in totals.
        """

    @abstractmethod
    def clear(self) -> None:
        """Reset the sketch counters, keeping its configuration."""


@dataclass(frozen=True, slots=True)
class FrequencyEstimate[T]:
    """A frequency estimate for an item.

    Attributes:
        item: The item being estimated.
        count: Estimated frequency count.
        error: Upper bound on the overestimation (holds with high probability).
    """

    item: T
    count: int
    error: int


class FrequencySketch[T: Hashable](Sketch):
    """Protocol for sketches that estimate item frequencies.

    Frequency sketches do not remember which items they have seen, so
    ranking is done over a candidate set supplied by the caller.
    """

    @abstractmethod
    def estimate(self, item: T) -> int:
        """Estimate the frequency of an item.

        Args:
            item: The item to estimate frequency for.

        Returns:
            Estimated count. Never below the true count for Count-Min.
        """

    @abstractmethod
    def top_k(self, k: int, candidates: Sequence[T]) -> list[tuple[T, int]]:
        """Rank candidate items by estimated frequency.

        Args:
            k: Maximum number of items to return.
            candidates: Items to rank.

        Returns:
            Up to ``min(k, len(candidates))`` ``(item, estimate)`` pairs sorted
            by estimate, highest first.
        """
