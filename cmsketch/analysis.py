"""Accuracy analysis of a sketch against exact counts.

Useful when sizing a sketch: feed a sample of the real key stream into both
a sketch and a ``collections.Counter``, then compare the two here.

Example:
    frame = accuracy_frame(cms, exact)
    summarize_accuracy(frame)
    plot_error_distribution(frame, "cms_errors.png", error_bound=cms.epsilon * cms.item_count)
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Mapping
from pathlib import Path

import pandas as pd

from cmsketch.sketching import CountMinSketch

logger = logging.getLogger(__name__)

COLUMNS = ["item", "true_count", "estimate", "error", "within_bound"]


def accuracy_frame(
    sketch: CountMinSketch,
    exact_counts: Mapping[Hashable, int],
) -> pd.DataFrame:
    """Compare sketch estimates with exact counts, one row per item.

    ``within_bound`` is True where the overestimate is at most
    ``epsilon * item_count``, the bound the sketch promises with
    probability ``1 - delta``.

    Args:
        sketch: The sketch to evaluate.
        exact_counts: True frequency per item.

    Returns:
        DataFrame with columns item, true_count, estimate, error, within_bound,
        sorted by true_count descending.
    """
    items = list(exact_counts)
    ranked = sketch.top_k(len(items), items) if items else []
    bound = sketch.epsilon * sketch.item_count

    frame = pd.DataFrame(ranked, columns=["item", "estimate"])
    frame["true_count"] = [exact_counts[item] for item in frame["item"]]
    frame["error"] = frame["estimate"] - frame["true_count"]
    frame["within_bound"] = frame["error"] <= bound
    frame = frame[COLUMNS].sort_values("true_count", ascending=False, kind="stable")
    return frame.reset_index(drop=True)


def summarize_accuracy(frame: pd.DataFrame) -> dict[str, float]:
    """Aggregate an accuracy frame into a few headline numbers."""
    if frame.empty:
        return {
            "items": 0,
            "max_error": 0.0,
            "mean_error": 0.0,
            "violation_rate": 0.0,
            "underestimates": 0,
        }

    summary = {
        "items": int(len(frame)),
        "max_error": float(frame["error"].max()),
        "mean_error": float(frame["error"].mean()),
        "violation_rate": float((~frame["within_bound"]).mean()),
        "underestimates": int((frame["error"] < 0).sum()),
    }
    if summary["underestimates"]:
        logger.warning("%d items were underestimated", summary["underestimates"])
    return summary


def plot_error_distribution(
    frame: pd.DataFrame,
    path: str | Path,
    error_bound: float | None = None,
    title: str = "Count-Min Sketch error distribution",
) -> Path:
    """Save a histogram of per-item estimation errors.

    Args:
        frame: Output of accuracy_frame().
        path: Where to write the image. Parent directories are created.
        error_bound: If given, drawn as a vertical line.
        title: Plot title.

    Returns:
        The path written.
    """
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(figsize=(8, 5))
    ax.hist(frame["error"], bins=50, edgecolor="black", alpha=0.7)
    if error_bound is not None:
        ax.axvline(error_bound, color="red", linestyle="--", label=f"ε×N = {error_bound:.0f}")
        ax.legend()
    ax.set_xlabel("Estimation error (estimate - true)")
    ax.set_ylabel("Items")
    ax.set_title(title)

    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)
    logger.debug("Wrote error distribution plot to %s", path)
    return path
