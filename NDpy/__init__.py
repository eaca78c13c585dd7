"""
NDpy: N-dimensional arrays with reverse-mode autograd

This library provides a strided numeric Array with broadcasting and BLAS-backed
batched matrix multiplication, and an eagerly built Tensor graph over it.
"""

from . import config
from .core import (
    Array,
    ConstructionError,
    GradError,
    IndexOutOfRange,
    NDpyError,
    ShapeMismatch,
    Tensor,
    array,
    constant,
    variable,
)
from . import ops

__version__ = "0.1.0"

__all__ = [
    "Array",
    "array",
    "Tensor",
    "variable",
    "constant",
    "config",
    "ops",
    "NDpyError",
    "ConstructionError",
    "ShapeMismatch",
    "IndexOutOfRange",
    "GradError",
]
