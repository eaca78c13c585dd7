from typing import Optional, Tuple

from ..core.array import Array
from ..core.context import Context
from ..core.function import Function, OpKind, register_function


@register_function
class Add(Function):
    kind = OpKind.ADD

    @staticmethod
    def forward(ctx: Context, a: Array, b: Array) -> Array:
        ctx.save_arguments(shape_a=a.shape, shape_b=b.shape)
        return a + b

    @staticmethod
    def backward(ctx: Context, grad_output: Array) -> Tuple[Optional[Array], ...]:
        args = ctx.saved_arguments
        grad_a = grad_b = None

        if ctx.needs_input_grad[0]:
            grad_a = Function.reduce_grad(grad_output, args["shape_a"])
        if ctx.needs_input_grad[1]:
            grad_b = Function.reduce_grad(grad_output, args["shape_b"])
        return grad_a, grad_b


@register_function
class Subtract(Function):
    kind = OpKind.SUBTRACT

    @staticmethod
    def forward(ctx: Context, a: Array, b: Array) -> Array:
        ctx.save_arguments(shape_a=a.shape, shape_b=b.shape)
        return a - b

    @staticmethod
    def backward(ctx: Context, grad_output: Array) -> Tuple[Optional[Array], ...]:
        args = ctx.saved_arguments
        grad_a = grad_b = None

        if ctx.needs_input_grad[0]:
            grad_a = Function.reduce_grad(grad_output, args["shape_a"])
        if ctx.needs_input_grad[1]:
            grad_b = Function.reduce_grad(-grad_output, args["shape_b"])
        return grad_a, grad_b


@register_function
class Multiply(Function):
    kind = OpKind.MULTIPLY

    @staticmethod
    def forward(ctx: Context, a: Array, b: Array) -> Array:
        result = a * b
        ctx.save_for_backward(a, b)
        return result

    @staticmethod
    def backward(ctx: Context, grad_output: Array) -> Tuple[Optional[Array], ...]:
        a, b = ctx.saved_arrays
        grad_a = grad_b = None

        if ctx.needs_input_grad[0]:
            grad_a = Function.reduce_grad(grad_output * b, a.shape)
        if ctx.needs_input_grad[1]:
            grad_b = Function.reduce_grad(grad_output * a, b.shape)
        return grad_a, grad_b


@register_function
class Divide(Function):
    kind = OpKind.DIVIDE

    @staticmethod
    def forward(ctx: Context, a: Array, b: Array) -> Array:
        result = a / b
        ctx.save_for_backward(a, b)
        return result

    @staticmethod
    def backward(ctx: Context, grad_output: Array) -> Tuple[Optional[Array], ...]:
        a, b = ctx.saved_arrays
        grad_a = grad_b = None

        if ctx.needs_input_grad[0]:
            # d/da(a/b) = 1/b
            grad_a = Function.reduce_grad(grad_output / b, a.shape)
        if ctx.needs_input_grad[1]:
            # d/db(a/b) = -a/b^2
            grad_b = Function.reduce_grad(-grad_output * a / (b * b), b.shape)
        return grad_a, grad_b


@register_function
class MatMul(Function):
    kind = OpKind.MATMUL

    @staticmethod
    def forward(ctx: Context, a: Array, b: Array) -> Array:
        ctx.save_for_backward(a, b)
        return a.matmul(b)

    @staticmethod
    def backward(ctx: Context, grad_output: Array) -> Tuple[Optional[Array], ...]:
        a, b = ctx.saved_arrays
        grad_a = grad_b = None

        # Batch dimensions that were broadcast are summed out by reduce_grad
        if ctx.needs_input_grad[0]:
            grad_a = Function.reduce_grad(grad_output.matmul(b.transpose()), a.shape)
        if ctx.needs_input_grad[1]:
            grad_b = Function.reduce_grad(a.transpose().matmul(grad_output), b.shape)
        return grad_a, grad_b


@register_function
class Negate(Function):
    kind = OpKind.NEGATE

    @staticmethod
    def forward(ctx: Context, a: Array) -> Array:
        return -a

    @staticmethod
    def backward(ctx: Context, grad_output: Array) -> Tuple[Optional[Array], ...]:
        return (-grad_output if ctx.needs_input_grad[0] else None,)
