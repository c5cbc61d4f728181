"""
Shared pytest fixtures for cmsketch tests.
"""

import logging
from pathlib import Path

import pytest


@pytest.fixture(scope="session")
def test_output_root() -> Path:
    """
    Returns the root test_output directory. Created once per test session.
    Files here persist after tests complete for easy access.
    """
    output_dir = Path(__file__).parent.parent / "test_output"
    output_dir.mkdir(exist_ok=True)
    return output_dir


@pytest.fixture
def test_output_dir(request, test_output_root) -> Path:
    """
    Returns a directory for the current test to write output files.
    Directory structure: test_output/<module_name>/<test_name>/
    """
    module_name = request.module.__name__.split(".")[-1]
    test_name = request.node.name

    test_dir = test_output_root / module_name / test_name
    test_dir.mkdir(parents=True, exist_ok=True)
    return test_dir


@pytest.fixture
def zipf_stream():
    """Factory for a reproducible Zipf-like stream of integer keys."""
    import random

    def make(n: int, population: int = 1000, s: float = 1.0, seed: int = 42) -> list[int]:
        rng = random.Random(seed)
        weights = [1.0 / (rank + 1) ** s for rank in range(population)]
        return rng.choices(range(population), weights=weights, k=n)

    return make


@pytest.fixture(autouse=True)
def reset_cmsketch_logging():
    """Reset logging state before each test.

    Removes all handlers except NullHandler and resets the level to NOTSET,
    so logging configuration from one test cannot leak into another.
    """
    logger = logging.getLogger("cmsketch")

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        if not isinstance(handler, logging.NullHandler):
            handler.close()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.NOTSET)

    yield

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        if not isinstance(handler, logging.NullHandler):
            handler.close()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.NOTSET)
