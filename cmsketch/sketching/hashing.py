"""Deterministic key digests and the per-row hash family.

Each row of a Count-Min Sketch maps a key to a column with its own hash
function. Row ``i`` computes::

    column = combine(base_hash(key), combine(i, SEED_BASE)) % width

The row functions are stored as plain frozen dataclasses holding only
``(row, width, salt)``. They never reference the sketch that owns them, so a
family can be rebuilt from ``(width, depth)`` alone whenever a sketch's
storage is handed to a new owner.

``base_hash`` produces a 64-bit digest that is stable across processes for
the common key types (ints, strings, bytes, floats, tuples of those), and
for any other number equal to an int or float. Other
objects may implement ``__sketch_hash__`` to supply their own digest; if they
don't, the builtin ``hash()`` is used, which is only stable within a process.
"""

from __future__ import annotations

import hashlib
import numbers
import struct
from collections.abc import Hashable
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

SEED_BASE = 15445
"""Global seed mixed into every row's salt."""

MASK64 = 0xFFFFFFFFFFFFFFFF

_GOLDEN_GAMMA = 0x9E3779B97F4A7C15


class SketchHashable(Protocol):
    """Keys that provide their own deterministic 64-bit digest."""

    def __sketch_hash__(self) -> int: ...


def _mix64(z: int) -> int:
    """splitmix64 finalizer."""
    z = ((z ^ (z >> 30)) * 0xBF58476D1CE4E5B9) & MASK64
    z = ((z ^ (z >> 27)) * 0x94D049BB133111EB) & MASK64
    return z ^ (z >> 31)


def _digest_bytes(tag: bytes, data: bytes) -> int:
    h = hashlib.sha256()
    h.update(tag)
    h.update(data)
    return struct.unpack(">Q", h.digest()[:8])[0]


def combine_hashes(left: int, right: int) -> int:
    """Fold two digests into a single 64-bit digest.

    Order matters: ``combine_hashes(a, b) != combine_hashes(b, a)`` in general.
    """
    left &= MASK64
    right &= MASK64
    combined = left ^ ((right + _GOLDEN_GAMMA + (left << 6) + (left >> 2)) & MASK64)
    return _mix64(combined)


def _canonical_number(key: numbers.Number | Decimal) -> object:
    """Reduce a non-builtin number to an equal ``int`` or ``float`` if one exists.

    Returns the key unchanged when no equal builtin value exists (e.g.
    ``Decimal("0.1")``); Python's numeric ``hash()`` already agrees across
    ``Decimal`` and ``Fraction`` for those.
    """
    if isinstance(key, numbers.Complex) and not isinstance(key, numbers.Real):
        if key.imag != 0:
            return key
        key = key.real
    if isinstance(key, numbers.Integral):
        return int(key)
    if isinstance(key, Decimal):
        if key.is_nan():
            return key
        if key.is_finite() and key == key.to_integral_value():
            return int(key)
    elif isinstance(key, numbers.Rational) and key.denominator == 1:
        return int(key)
    try:
        as_float = float(key)
    except (TypeError, ValueError, OverflowError):
        return key
    return as_float if as_float == key else key


def base_hash(key: Hashable) -> int:
    """Return a deterministic 64-bit digest for a key.

    Keys that compare equal across numeric types get the same digest, matching
    Python's own hashing contract: ``-1 == -1.0 == Decimal(-1)`` and
    ``0.5 == Fraction(1, 2) == Decimal("0.5")`` each share one digest.
    numpy scalars and other registered ``numbers`` types are reduced to the
    equal builtin ``int`` or ``float`` first.

    Args:
        key: Any hashable value.

    Returns:
        Unsigned 64-bit integer digest.
    """
    custom = getattr(type(key), "__sketch_hash__", None)
    if custom is not None:
        return custom(key) & MASK64
    if isinstance(key, int):
        if -(1 << 63) <= key <= MASK64:
            return key & MASK64
        return _digest_bytes(b"i", str(key).encode("ascii"))
    if isinstance(key, str):
        return _digest_bytes(b"s", key.encode("utf-8", "surrogatepass"))
    if isinstance(key, (bytes, bytearray, memoryview)):
        return _digest_bytes(b"b", bytes(key))
    if isinstance(key, float):
        if key.is_integer():
            return base_hash(int(key))
        return _digest_bytes(b"f", struct.pack(">d", key))
    if isinstance(key, tuple):
        digest = len(key)
        for element in key:
            digest = combine_hashes(digest, base_hash(element))
        return digest
    if isinstance(key, (numbers.Number, Decimal)):
        canonical = _canonical_number(key)
        if canonical is not key:
            return base_hash(canonical)
    return hash(key) & MASK64


@dataclass(frozen=True, slots=True)
class RowHash:
    """Hash function for one sketch row.

    Attributes:
        row: Row index this function belongs to.
        width: Number of columns in the row; results are in ``[0, width)``.
        salt: ``combine_hashes(row, seed_base)``, precomputed.
    """

    row: int
    width: int
    salt: int

    def column_for_digest(self, digest: int) -> int:
        """Map an already computed ``base_hash`` digest to a column."""
        return combine_hashes(digest, self.salt) % self.width

    def __call__(self, key: Hashable) -> int:
        return self.column_for_digest(base_hash(key))


def build_hash_family(width: int, depth: int, seed_base: int = SEED_BASE) -> tuple[RowHash, ...]:
    """Build the ``depth`` row hash functions for a sketch of the given width.

    The result depends only on the arguments, so two sketches with equal
    dimensions always hash every key to the same columns.

    Args:
        width: Columns per row. Must be positive.
        depth: Number of rows. Zero yields an empty family.
        seed_base: Global seed mixed into each row's salt.

    Returns:
        Tuple of RowHash, indexed by row.
    """
    if width <= 0 and depth > 0:
        raise ValueError(f"width must be positive, got {width}")
    return tuple(
        RowHash(row=row, width=width, salt=combine_hashes(row, seed_base))
        for row in range(depth)
    )
