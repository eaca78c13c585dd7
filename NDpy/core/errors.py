"""
Typed errors raised by the array and autograd layers.

All of them are recoverable failures caused by caller input. Internal
invariant violations are reported with plain assertions instead.
"""

from typing import Any, Optional, Sequence, Tuple


class NDpyError(Exception):
    """Base class for all errors raised by NDpy."""


class ConstructionError(NDpyError, ValueError):
    """
    Raised when an Array cannot be built from the supplied data.

    Attributes:
        length: Number of elements supplied (None when the shape itself is invalid)
        shape: The requested shape
    """

    def __init__(self, message: str, length: Optional[int] = None, shape: Any = None):
        super().__init__(message)
        self.length = length
        self.shape = shape


class ShapeMismatch(NDpyError, ValueError):
    """
    Raised when operand shapes are incompatible for an operation.

    Attributes:
        shape_a: Shape of the first operand
        shape_b: Shape of the second operand (or the requested target shape)
    """

    def __init__(
        self,
        shape_a: Sequence[int],
        shape_b: Sequence[int],
        message: Optional[str] = None,
    ):
        self.shape_a: Tuple[int, ...] = tuple(shape_a)
        self.shape_b: Tuple[int, ...] = tuple(shape_b)
        super().__init__(
            message or f"Cannot broadcast shape {self.shape_a} with {self.shape_b}"
        )


class IndexOutOfRange(NDpyError, IndexError):
    """
    Raised when an index, slice bound or axis falls outside an array's shape.

    Attributes:
        index: The offending index, slice or axis
        shape: Shape of the array being indexed
    """

    def __init__(self, index: Any, shape: Sequence[int], message: Optional[str] = None):
        self.index = index
        self.shape = tuple(shape)
        super().__init__(message or f"Index {index!r} out of range for shape {self.shape}")


class GradError(NDpyError, RuntimeError):
    """Raised when a requested gradient cannot be computed."""
