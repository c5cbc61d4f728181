"""Hot-key detection over a Zipf-distributed request stream.

Several worker threads record request keys into one shared Count-Min Sketch
while a second set of per-worker sketches is merged at the end of each
window. Both must agree. At each window boundary the hottest keys among a
candidate set are reported, then the sketch is cleared for the next window.

## Architecture

```
Zipf key stream (per window)
  -> N worker threads
       -> shared CountMinSketch       (insert under the sketch lock)
       -> per-worker CountMinSketch   (merged into one at window end)
  -> top_k over candidate keys, accuracy vs exact Counter
  -> clear() and start the next window
```

## Expected Results (default config, s=1.1, 5000 keys, 2048x5 sketch)

The hottest keys keep their true order in every window. Nothing is
underestimated, and overestimates stay under ε×N (about 66 requests).
"""

from __future__ import annotations

import random
import threading
from collections import Counter
from dataclasses import dataclass
from pathlib import Path

from cmsketch import CountMinSketch, enable_console_logging
from cmsketch.analysis import accuracy_frame, plot_error_distribution, summarize_accuracy


@dataclass(frozen=True)
class HotKeyConfig:
    num_keys: int = 5000
    zipf_s: float = 1.1
    requests_per_window: int = 50_000
    windows: int = 3
    workers: int = 4
    width: int = 2048
    depth: int = 5
    top: int = 10
    seed: int = 42


def zipf_keys(config: HotKeyConfig, rng: random.Random) -> list[str]:
    weights = [1.0 / (rank + 1) ** config.zipf_s for rank in range(config.num_keys)]
    ranks = rng.choices(range(config.num_keys), weights=weights, k=config.requests_per_window)
    return [f"key-{rank}" for rank in ranks]


def run_window(config: HotKeyConfig, shared: CountMinSketch[str], keys: list[str]) -> CountMinSketch[str]:
    """Feed one window through the worker threads; return the merged per-worker sketch."""
    shards = [keys[i :: config.workers] for i in range(config.workers)]
    locals_ = [CountMinSketch[str](config.width, config.depth) for _ in shards]

    def work(shard: list[str], local: CountMinSketch[str]) -> None:
        for key in shard:
            shared.insert(key)
            local.insert(key)

    threads = [threading.Thread(target=work, args=pair) for pair in zip(shards, locals_)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    merged = locals_[0]
    for local in locals_[1:]:
        merged.merge(local)
    return merged


def run(config: HotKeyConfig, output_dir: Path | None) -> None:
    rng = random.Random(config.seed)
    shared = CountMinSketch[str](config.width, config.depth)
    candidates = [f"key-{rank}" for rank in range(config.num_keys)]

    for window in range(config.windows):
        keys = zipf_keys(config, rng)
        exact = Counter(keys)
        merged = run_window(config, shared, keys)

        assert merged.top_k(config.top, candidates) == shared.top_k(config.top, candidates)

        frame = accuracy_frame(shared, {key: exact.get(key, 0) for key in candidates})
        summary = summarize_accuracy(frame)
        hot = shared.top_k(config.top, candidates)
        true_hot = [key for key, _ in exact.most_common(config.top)]

        print(f"\nWindow {window}: {shared.item_count} requests, {len(exact)} distinct keys")
        print(f"  max error {summary['max_error']:.0f}, mean error {summary['mean_error']:.2f}, "
              f"violations {summary['violation_rate']:.2%}")
        for rank, (key, estimate) in enumerate(hot, start=1):
            marker = "" if key in true_hot else "  (not in true top)"
            print(f"  {rank:>2}. {key:<10} est={estimate:<6} true={exact[key]}{marker}")

        if output_dir is not None:
            plot_error_distribution(
                frame,
                output_dir / f"window_{window}_errors.png",
                error_bound=shared.epsilon * shared.item_count,
                title=f"Window {window} error distribution",
            )

        shared.clear()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Hot-key detection with a shared Count-Min Sketch")
    parser.add_argument("--keys", type=int, default=5000, help="Distinct keys (default: 5000)")
    parser.add_argument("--zipf-s", type=float, default=1.1, help="Zipf exponent (default: 1.1)")
    parser.add_argument("--requests", type=int, default=50_000, help="Requests per window (default: 50000)")
    parser.add_argument("--windows", type=int, default=3, help="Number of windows (default: 3)")
    parser.add_argument("--workers", type=int, default=4, help="Worker threads (default: 4)")
    parser.add_argument("--width", type=int, default=2048, help="Sketch width (default: 2048)")
    parser.add_argument("--depth", type=int, default=5, help="Sketch depth (default: 5)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--output", type=str, default="output/hot_key_detection", help="Output directory")
    parser.add_argument("--no-viz", action="store_true", help="Skip plot generation")
    parser.add_argument("--verbose", action="store_true", help="Log sketch lifecycle at DEBUG")
    args = parser.parse_args()

    if args.verbose:
        enable_console_logging(level="DEBUG")

    config = HotKeyConfig(
        num_keys=args.keys,
        zipf_s=args.zipf_s,
        requests_per_window=args.requests,
        windows=args.windows,
        workers=args.workers,
        width=args.width,
        depth=args.depth,
        seed=args.seed,
    )
    run(config, None if args.no_viz else Path(args.output))
