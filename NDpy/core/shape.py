"""
Shape and stride arithmetic.

Pure functions over shape/stride tuples. Strides are measured in elements,
not bytes. Nothing here touches array data.
"""

from numbers import Integral
from typing import Any, Optional, Sequence, Tuple

from .errors import ConstructionError, IndexOutOfRange, ShapeMismatch

Shape = Tuple[int, ...]


def check_shape(shape: Any) -> Shape:
    """
    Normalises a shape specifier into a tuple of non-negative ints.

    Raises:
        ConstructionError: If any dimension is negative or not an integer
    """
    if isinstance(shape, Integral):
        shape = (shape,)
    try:
        dims = tuple(shape)
    except TypeError:
        raise ConstructionError(f"Invalid shape: {shape!r}", shape=shape) from None
    for dim in dims:
        if isinstance(dim, bool) or not isinstance(dim, Integral) or dim < 0:
            raise ConstructionError(
                f"Shape should only contain non-negative integers. Got: {shape!r}",
                shape=shape,
            )
    return tuple(int(d) for d in dims)


def size_of(shape: Sequence[int]) -> int:
    """Returns the number of elements described by shape."""
    size = 1
    for dim in shape:
        size *= dim
    return size


def default_strides(shape: Sequence[int]) -> Shape:
    """Returns contiguous row-major strides for shape."""
    strides = []
    step = 1
    for dim in reversed(shape):
        strides.append(step)
        step *= max(dim, 1)
    return tuple(reversed(strides))


def broadcast_shapes(shape_a: Sequence[int], shape_b: Sequence[int]) -> Shape:
    """
    Resolves the broadcast result of two shapes.

    Shapes are aligned from the trailing dimension. Missing leading dimensions
    count as 1 and a dimension of size 1 stretches to match the other operand.

    Raises:
        ShapeMismatch: If two aligned dimensions differ and neither is 1
    """
    ndim = max(len(shape_a), len(shape_b))
    padded_a = (1,) * (ndim - len(shape_a)) + tuple(shape_a)
    padded_b = (1,) * (ndim - len(shape_b)) + tuple(shape_b)

    result = []
    for dim_a, dim_b in zip(padded_a, padded_b):
        if dim_a == dim_b or dim_b == 1:
            result.append(dim_a)
        elif dim_a == 1:
            result.append(dim_b)
        else:
            raise ShapeMismatch(shape_a, shape_b)
    return tuple(result)


def broadcast_strides(
    shape: Sequence[int], strides: Sequence[int], target_shape: Sequence[int]
) -> Shape:
    """
    Computes strides that present (shape, strides) as target_shape.

    Introduced leading axes and stretched size-1 axes get stride 0, every other
    axis keeps its original stride.

    Raises:
        ShapeMismatch: If shape cannot be broadcast to target_shape
    """
    lead = len(target_shape) - len(shape)
    if lead < 0:
        raise ShapeMismatch(shape, target_shape)

    result = [0] * lead
    for dim, stride, target in zip(shape, strides, target_shape[lead:]):
        if dim == target:
            result.append(stride)
        elif dim == 1:
            result.append(0)
        else:
            raise ShapeMismatch(shape, target_shape)
    return tuple(result)


def broadcast_view(array: Any, target_shape: Sequence[int]) -> Any:
    """
    Returns a zero-copy view of array presented with target_shape.

    The view shares the array's buffer and offset; expanded axes have stride 0.
    """
    target_shape = check_shape(target_shape)
    if target_shape == array.shape:
        return array
    strides = broadcast_strides(array.shape, array.strides, target_shape)
    return array._view(target_shape, strides, array.offset)


def matmul_shapes(
    shape_a: Sequence[int], shape_b: Sequence[int]
) -> Tuple[Shape, int, int, int]:
    """
    Validates operand shapes for a batched matrix product.

    Returns:
        Tuple of (batch_shape, m, k, n) for operands [..., m, k] and [..., k, n]

    Raises:
        ShapeMismatch: If an operand has fewer than 2 dimensions, the inner
            dimensions differ or the batch dimensions do not broadcast
    """
    if len(shape_a) < 2 or len(shape_b) < 2:
        raise ShapeMismatch(
            shape_a,
            shape_b,
            f"Matrix product needs at least 2-D operands. Got: {tuple(shape_a)} and "
            f"{tuple(shape_b)}",
        )
    m, k = shape_a[-2], shape_a[-1]
    k_b, n = shape_b[-2], shape_b[-1]
    if k != k_b:
        raise ShapeMismatch(
            shape_a,
            shape_b,
            f"Inner dimensions of the matrices don't match. Got: {tuple(shape_a)} and "
            f"{tuple(shape_b)}",
        )
    try:
        batch_shape = broadcast_shapes(shape_a[:-2], shape_b[:-2])
    except ShapeMismatch:
        raise ShapeMismatch(
            shape_a,
            shape_b,
            f"Batch dimensions cannot be broadcast. Got: {tuple(shape_a)} and "
            f"{tuple(shape_b)}",
        ) from None
    return batch_shape, m, k, n


def normalize_axes(axis: Any, shape: Sequence[int]) -> Optional[Shape]:
    """
    Validates a reduction axis specifier against shape.

    Returns:
        None for a full reduction, otherwise a tuple of non-negative axes

    Raises:
        IndexOutOfRange: If an axis is outside the shape or repeated
    """
    if axis is None:
        return None
    ndim = len(shape)
    axes = (axis,) if isinstance(axis, Integral) else tuple(axis)
    normalized = []
    for ax in axes:
        if isinstance(ax, bool) or not isinstance(ax, Integral) or not -ndim <= ax < ndim:
            raise IndexOutOfRange(ax, shape, f"Invalid reduction axis {ax!r} for shape {tuple(shape)}")
        normalized.append(int(ax) % ndim)
    if len(set(normalized)) != len(normalized):
        raise IndexOutOfRange(axis, shape, f"Repeated reduction axis in {axis!r}")
    return tuple(normalized)


def reduction_axes(grad_shape: Sequence[int], original_shape: Sequence[int]) -> Shape:
    """
    Finds the axes of grad_shape that broadcasting introduced or stretched.

    Summing a gradient over these axes (and dropping the introduced leading
    ones) restores original_shape.
    """
    lead = len(grad_shape) - len(original_shape)
    assert lead >= 0, f"Gradient shape {tuple(grad_shape)} has fewer axes than {tuple(original_shape)}"

    axes = list(range(lead))
    for i, dim in enumerate(original_shape):
        grad_dim = grad_shape[lead + i]
        if dim == 1 and grad_dim != 1:
            axes.append(lead + i)
        else:
            assert dim == grad_dim, (
                f"Gradient shape {tuple(grad_shape)} is not a broadcast of {tuple(original_shape)}"
            )
    return tuple(axes)
