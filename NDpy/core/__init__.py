"""
Core functionality for NDpy.

This module contains the strided Array, the Tensor graph and the autograd engine.
"""

from .array import Array, array
from .tensor import Tensor, constant, variable
from .autograd import AutogradEngine, get_autograd_engine
from .context import Context
from .errors import ConstructionError, GradError, IndexOutOfRange, NDpyError, ShapeMismatch
from .function import Function, Operation, OpKind, get_function, register_function

__all__ = [
    "Array",
    "array",
    "Tensor",
    "variable",
    "constant",
    "Function",
    "Operation",
    "OpKind",
    "register_function",
    "get_function",
    "Context",
    "AutogradEngine",
    "get_autograd_engine",
    "NDpyError",
    "ConstructionError",
    "ShapeMismatch",
    "IndexOutOfRange",
    "GradError",
]
