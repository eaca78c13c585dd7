from numbers import Number
from typing import TYPE_CHECKING, Any, Optional, Tuple, Union

import numpy as np
from numpy.typing import DTypeLike, NDArray

from .array import Array, array

if TYPE_CHECKING:
    from .function import Operation


class Tensor:
    """
    A node of the computational graph wrapping one Array value.

    A Tensor is either a leaf, created by the user as a variable (tracked) or a
    constant (untracked), or derived, in which case it records the Operation
    that produced it from its parent Tensors. Values are computed eagerly and
    never change after construction.

    Attributes:
        value: Read-only view of the Array holding the tensor's values
        requires_grad: Whether gradients can be requested with respect to it
        op: The producing Operation, None for leaves
    """

    def __init__(
        self,
        data: Any,
        requires_grad: bool = False,
        op: Optional["Operation"] = None,
        dtype: Optional[DTypeLike] = None,
    ):
        if isinstance(data, Tensor):
            data = data.value
        if isinstance(data, Array):
            if dtype is not None and np.dtype(dtype) != data.dtype:
                data = Array.from_numpy(data.numpy().astype(dtype))
            self._value = data
        else:
            self._value = array(data, dtype=dtype)

        self._requires_grad = bool(requires_grad)
        self._op = op

    @classmethod
    def new_variable(cls, value: Any) -> "Tensor":
        """Creates a leaf Tensor that gradients can be requested for."""
        return cls(value, requires_grad=True)

    @classmethod
    def new_constant(cls, value: Any) -> "Tensor":
        """Creates a leaf Tensor excluded from gradient computation."""
        return cls(value, requires_grad=False)

    @property
    def value(self) -> Array:
        """Read-only view of the tensor's value (shares its buffer)."""
        return self._value.readonly()

    @property
    def shape(self) -> Tuple[int, ...]:
        return self._value.shape

    @property
    def dtype(self) -> np.dtype:
        return self._value.dtype

    @property
    def ndim(self) -> int:
        return self._value.ndim

    @property
    def requires_grad(self) -> bool:
        """Returns whether the tensor takes part in gradient computation."""
        return self._requires_grad

    @property
    def op(self) -> Optional["Operation"]:
        return self._op

    @property
    def is_leaf(self) -> bool:
        return self._op is None

    @property
    def parents(self) -> Tuple["Tensor", ...]:
        return () if self._op is None else self._op.parents

    def numpy(self) -> NDArray[Any]:
        """Returns a numpy copy of the tensor's value."""
        return self._value.numpy()

    def item(self) -> Any:
        """Returns the only element of a one-element tensor as a Python scalar."""
        if self._value.size != 1:
            raise ValueError(f"Only one-element tensors can be converted, got shape {self.shape}")
        return self._value.item((0,) * self.ndim)

    def grad(self, target: "Tensor", upstream: Optional[Array] = None) -> Array:
        """
        Computes the gradient of this tensor with respect to target.

        Args:
            target: A gradient-tracking Tensor this tensor was computed from
            upstream: Gradient of some downstream quantity with respect to this
                tensor. Must match this tensor's shape; defaults to ones.

        Returns:
            An Array shaped like target

        Raises:
            GradError: If target does not require grad or is not reachable
            ShapeMismatch: If upstream does not match this tensor's shape
        """
        from .autograd import get_autograd_engine

        return get_autograd_engine().grad(self, target, upstream)

    def __repr__(self) -> str:
        return f"Tensor({self._value._render()}, requires_grad={self.requires_grad})"

    def __str__(self) -> str:
        return str(self._value)

    def _lift(self, other: Any) -> Any:
        # Python scalars become constants of this tensor's dtype.
        if isinstance(other, Number):
            return Tensor.new_constant(Array.full((), other, dtype=self.dtype))
        return other

    # Arithmetic operations, connected to their Function implementations
    def __add__(self, other: Union["Tensor", Number]) -> "Tensor":
        from ..ops.basic import Add

        return Add.apply(self, self._lift(other))

    def __radd__(self, other: Number) -> "Tensor":
        from ..ops.basic import Add

        return Add.apply(self._lift(other), self)

    def __sub__(self, other: Union["Tensor", Number]) -> "Tensor":
        from ..ops.basic import Subtract

        return Subtract.apply(self, self._lift(other))

    def __rsub__(self, other: Number) -> "Tensor":
        from ..ops.basic import Subtract

        return Subtract.apply(self._lift(other), self)

    def __mul__(self, other: Union["Tensor", Number]) -> "Tensor":
        from ..ops.basic import Multiply

        return Multiply.apply(self, self._lift(other))

    def __rmul__(self, other: Number) -> "Tensor":
        from ..ops.basic import Multiply

        return Multiply.apply(self._lift(other), self)

    def __truediv__(self, other: Union["Tensor", Number]) -> "Tensor":
        from ..ops.basic import Divide

        return Divide.apply(self, self._lift(other))

    def __rtruediv__(self, other: Number) -> "Tensor":
        from ..ops.basic import Divide

        return Divide.apply(self._lift(other), self)

    def __neg__(self) -> "Tensor":
        from ..ops.basic import Negate

        return Negate.apply(self)

    def __matmul__(self, other: "Tensor") -> "Tensor":
        return self.matmul(other)

    def __pow__(self, exponent: float) -> "Tensor":
        return self.pow(exponent)

    def matmul(self, other: "Tensor") -> "Tensor":
        """Batched matrix product over the last two axes."""
        from ..ops.basic import MatMul

        return MatMul.apply(self, other)

    def transpose(self) -> "Tensor":
        """Swaps the last two axes."""
        from ..ops.matrix import Transpose

        return Transpose.apply(self)

    @property
    def T(self) -> "Tensor":
        return self.transpose()

    def reshape(self, *shape: Any) -> "Tensor":
        """Returns a tensor with the same data and new shape."""
        if len(shape) == 1 and isinstance(shape[0], (tuple, list)):
            shape = shape[0]

        from ..ops.matrix import Reshape

        return Reshape.apply(self, shape=tuple(shape))

    def pow(self, exponent: float) -> "Tensor":
        """Returns tensor raised to a scalar power."""
        from ..ops.elementwise import Power

        return Power.apply(self, exponent=exponent)

    def exp(self) -> "Tensor":
        from ..ops.elementwise import Exp

        return Exp.apply(self)

    def log(self, base: Optional[float] = None) -> "Tensor":
        """Natural logarithm, or logarithm in the given base."""
        from ..ops.elementwise import Log

        return Log.apply(self, base=base)

    def sin(self) -> "Tensor":
        from ..ops.elementwise import Sin

        return Sin.apply(self)

    def cos(self) -> "Tensor":
        from ..ops.elementwise import Cos

        return Cos.apply(self)

    def tanh(self) -> "Tensor":
        from ..ops.elementwise import Tanh

        return Tanh.apply(self)

    def sigmoid(self) -> "Tensor":
        from ..ops.elementwise import Sigmoid

        return Sigmoid.apply(self)

    def relu(self) -> "Tensor":
        from ..ops.elementwise import ReLU

        return ReLU.apply(self)

    def sum(self, axis: Optional[Union[int, Tuple[int, ...]]] = None, keepdims: bool = False) -> "Tensor":
        from ..ops.reduction import Sum

        return Sum.apply(self, axis=axis, keepdims=keepdims)

    def mean(self, axis: Optional[Union[int, Tuple[int, ...]]] = None, keepdims: bool = False) -> "Tensor":
        from ..ops.reduction import Mean

        return Mean.apply(self, axis=axis, keepdims=keepdims)


def variable(data: Any, dtype: Optional[DTypeLike] = None) -> Tensor:
    """Creates a gradient-tracking leaf Tensor from array-like data."""
    return Tensor(data, requires_grad=True, dtype=dtype)


def constant(data: Any, dtype: Optional[DTypeLike] = None) -> Tensor:
    """Creates a constant leaf Tensor from array-like data."""
    return Tensor(data, requires_grad=False, dtype=dtype)
