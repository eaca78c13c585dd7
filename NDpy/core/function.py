from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from numbers import Number
from typing import Any, ClassVar, Dict, FrozenSet, Optional, Sequence, Tuple, Type

from .array import Array
from .context import Context
from .shape import reduction_axes
from .tensor import Tensor


class OpKind(Enum):
    """The closed set of operations a derived Tensor can record."""

    ADD = "add"
    SUBTRACT = "subtract"
    MULTIPLY = "multiply"
    DIVIDE = "divide"
    MATMUL = "matmul"
    NEGATE = "negate"
    TRANSPOSE = "transpose"
    RESHAPE = "reshape"
    POWER = "power"
    EXP = "exp"
    LOG = "log"
    SIN = "sin"
    COS = "cos"
    TANH = "tanh"
    SIGMOID = "sigmoid"
    RELU = "relu"
    SUM = "sum"
    MEAN = "mean"


@dataclass(frozen=True)
class Operation:
    """
    Provenance of a derived Tensor.

    Attributes:
        kind: Which registered Function produced the Tensor
        parents: Input Tensors, in argument order (shared references)
        ctx: Forward-pass state needed by the backward rule
    """

    kind: OpKind
    parents: Tuple[Tensor, ...]
    ctx: Context

    @property
    def function(self) -> Type["Function"]:
        return get_function(self.kind)


_REGISTRY: Dict[OpKind, Type["Function"]] = {}


def register_function(cls: Type["Function"]) -> Type["Function"]:
    """
    Class decorator binding a Function subclass to its OpKind.

    Raises:
        ValueError: If another Function is already bound to the same kind
    """
    existing = _REGISTRY.get(cls.kind)
    if existing is not None and existing is not cls:
        raise ValueError(f"{cls.kind} is already registered to {existing.__name__}")
    _REGISTRY[cls.kind] = cls
    return cls


def get_function(kind: OpKind) -> Type["Function"]:
    """
    Returns the Function implementing kind.

    Raises:
        KeyError: If no Function is registered for kind
    """
    try:
        return _REGISTRY[kind]
    except KeyError:
        raise KeyError(f"No function registered for {kind}") from None


def registered_kinds() -> FrozenSet[OpKind]:
    return frozenset(_REGISTRY)


class Function(ABC):
    """
    Base class for all differentiable operations.

    A Function pairs a forward rule, computed eagerly on Arrays, with a
    backward rule mapping the gradient of the output to one gradient
    contribution per input. Subclasses set ``kind`` and are registered with
    ``register_function``.
    """

    kind: ClassVar[OpKind]

    @staticmethod
    @abstractmethod
    def forward(ctx: Context, *args: Any, **kwargs: Any) -> Array:
        """
        Performs the forward computation.

        Args:
            ctx: Context object for saving information needed in backward pass
            *args: Input arrays, one per parent Tensor
            **kwargs: Non-differentiable arguments of the operation

        Returns:
            Result of the computation as an Array
        """
        raise NotImplementedError

    @staticmethod
    @abstractmethod
    def backward(ctx: Context, grad_output: Array) -> Tuple[Optional[Array], ...]:
        """
        Computes gradient contributions for the inputs.

        Args:
            ctx: Context object containing state saved by forward
            grad_output: Gradient with respect to the output, shaped like it

        Returns:
            One Array per input shaped like that input, or None where the input
            does not need a gradient
        """
        raise NotImplementedError

    @classmethod
    def apply(cls, *inputs: Any, **kwargs: Any) -> Tensor:
        """
        Applies the function to the given inputs.

        This method:
        1. Wraps non-Tensor inputs as constant Tensors
        2. Runs the forward pass on the input values
        3. Records the Operation linking the result to its parents
        """
        parents = tuple(_as_tensor(x) for x in inputs)
        ctx = Context(needs_input_grad=tuple(p.requires_grad for p in parents))
        value = cls.forward(ctx, *(p.value for p in parents), **kwargs)
        return Tensor(
            value,
            requires_grad=any(ctx.needs_input_grad),
            op=Operation(cls.kind, parents, ctx),
        )

    @staticmethod
    def reduce_grad(grad: Array, shape: Sequence[int]) -> Array:
        """
        Reduces a gradient to the shape of an operand that was broadcast.

        Sums over every axis that broadcasting introduced or stretched, so each
        virtual copy of an element contributes to that element's gradient.
        """
        shape = tuple(shape)
        if grad.shape == shape:
            return grad
        axes = reduction_axes(grad.shape, shape)
        if axes:
            grad = grad.sum(axis=axes, keepdims=True)
        return grad.reshape(shape)


def _as_tensor(value: Any) -> Tensor:
    if isinstance(value, Tensor):
        return value
    if isinstance(value, Array):
        return Tensor.new_constant(value)
    if isinstance(value, Number):
        return Tensor.new_constant(Array.full((), value))
    raise TypeError(f"Cannot use {type(value).__name__} as an operation input")
