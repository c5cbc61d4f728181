"""Frequency sketches for approximate per-key counting.

The Count-Min Sketch answers "roughly how many times has this key been
seen?" in memory that does not grow with the number of distinct keys. It
never underestimates, which makes it safe for admission and hot-key
decisions where a missed hot key costs more than a false alarm.

Properties:
- Bounded memory usage (width * depth counters)
- Single-pass processing (insert keys one at a time)
- Mergeable (combine sketches from parallel streams)
- Deterministic (fixed hash seeds, equal dimensions hash identically)
- Thread-safe (one lock per sketch, held for whole operations)

Example:
    from cmsketch.sketching import CountMinSketch

    cms = CountMinSketch[str](width=2048, depth=5)
    for key in requests:
        cms.insert(key)

    cms.count("user:42")
    cms.top_k(10, candidate_keys)
"""

from cmsketch.sketching.base import FrequencyEstimate, FrequencySketch, Sketch
from cmsketch.sketching.count_min_sketch import COUNTER_MAX, CountMinSketch, SketchState
from cmsketch.sketching.errors import (
    DimensionMismatchError,
    InvalidDimensionError,
    SketchError,
    UseOfMovedSketchError,
)
from cmsketch.sketching.hashing import (
    SEED_BASE,
    RowHash,
    SketchHashable,
    base_hash,
    build_hash_family,
    combine_hashes,
)

__all__ = [
    "COUNTER_MAX",
    "CountMinSketch",
    "DimensionMismatchError",
    "FrequencyEstimate",
    "FrequencySketch",
    "InvalidDimensionError",
    "RowHash",
    "SEED_BASE",
    "Sketch",
    "SketchError",
    "SketchHashable",
    "SketchState",
    "UseOfMovedSketchError",
    "base_hash",
    "build_hash_family",
    "combine_hashes",
]
