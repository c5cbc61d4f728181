"""Exceptions raised by sketch implementations.

Every error derives from SketchError so callers can catch the whole family,
and additionally from the builtin exception that describes the same misuse
(ValueError for bad dimensions, RuntimeError for use of a moved-from sketch).
"""


class SketchError(Exception):
    """Base class for all sketch errors."""


class InvalidDimensionError(SketchError, ValueError):
    """Raised when a sketch is constructed with a non-positive width or depth."""

    def __init__(self, width: object, depth: object):
        self.width = width
        self.depth = depth
        super().__init__(
            f"width and depth must be positive integers below 2**32, "
            f"got width={width!r}, depth={depth!r}"
        )


class DimensionMismatchError(SketchError, ValueError):
    """Raised when two sketches of different shape are combined.

    The receiving sketch is guaranteed to be unmodified when this is raised.
    """

    def __init__(self, operation: str, left: tuple[int, int], right: tuple[int, int]):
        self.operation = operation
        self.left = left
        self.right = right
        super().__init__(
            f"Cannot {operation}: dimensions differ "
            f"({left[0]}x{left[1]} vs {right[0]}x{right[1]})"
        )


class UseOfMovedSketchError(SketchError, RuntimeError):
    """Raised when an operation is attempted on a sketch whose storage was moved away."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(
            f"Cannot {operation}: sketch is empty (its counters were moved to another sketch)"
        )
