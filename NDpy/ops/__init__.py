"""
Operations module for NDpy.

Importing this module registers a Function for every OpKind.
"""

from .basic import Add, Divide, MatMul, Multiply, Negate, Subtract
from .elementwise import Cos, Exp, Log, Power, ReLU, Sigmoid, Sin, Tanh
from .matrix import Reshape, Transpose
from .reduction import Mean, Sum

__all__ = [
    # Basic operations
    "Add",
    "Subtract",
    "Multiply",
    "Divide",
    "MatMul",
    "Negate",
    # Matrix operations
    "Transpose",
    "Reshape",
    # Element-wise operations
    "Power",
    "Exp",
    "Log",
    "Sin",
    "Cos",
    "Tanh",
    "Sigmoid",
    "ReLU",
    # Reduction operations
    "Sum",
    "Mean",
]
