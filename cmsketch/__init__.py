"""cmsketch - a thread-safe Count-Min Sketch.

Approximate per-key frequency counting in bounded memory, for cache
admission scoring, hot-key detection and traffic shaping.

Example:
    from cmsketch import CountMinSketch

    cms = CountMinSketch[str](width=100, depth=5)
    for _ in range(10):
        cms.insert("a")
    cms.insert("b")

    cms.count("a")                  # >= 10
    cms.top_k(1, ["a", "b"])        # [("a", cms.count("a"))]
"""

import logging

from cmsketch.logging_config import (
    configure_from_env,
    disable_logging,
    enable_console_logging,
    enable_file_logging,
    enable_json_logging,
    set_level,
    set_module_level,
)
from cmsketch.sketching import (
    COUNTER_MAX,
    SEED_BASE,
    CountMinSketch,
    DimensionMismatchError,
    FrequencyEstimate,
    FrequencySketch,
    InvalidDimensionError,
    Sketch,
    SketchError,
    SketchState,
    UseOfMovedSketchError,
)

__version__ = "0.1.0"

# Silent unless the application configures logging.
logging.getLogger("cmsketch").addHandler(logging.NullHandler())

__all__ = [
    "COUNTER_MAX",
    "CountMinSketch",
    "DimensionMismatchError",
    "FrequencyEstimate",
    "FrequencySketch",
    "InvalidDimensionError",
    "SEED_BASE",
    "Sketch",
    "SketchError",
    "SketchState",
    "UseOfMovedSketchError",
    "__version__",
    # Logging
    "configure_from_env",
    "disable_logging",
    "enable_console_logging",
    "enable_file_logging",
    "enable_json_logging",
    "set_level",
    "set_module_level",
]
