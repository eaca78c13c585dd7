import logging
from typing import Any, Dict, List, Optional

from .array import Array, array
from .errors import GradError, ShapeMismatch
from .tensor import Tensor

logger = logging.getLogger(__name__)


class AutogradEngine:
    """
    Engine for reverse-mode gradient computation over Tensor graphs.

    The engine holds no graph state of its own: the graph is the web of parent
    references recorded by each Tensor's Operation. Gradient accumulators are
    created per ``grad`` call and discarded when it returns, so repeated calls on
    the same graph give identical results.
    """

    def __init__(self) -> None:
        self._currently_computing_gradients = False

    def grad(self, source: Tensor, target: Tensor, upstream: Optional[Any] = None) -> Array:
        """
        Computes the gradient of source with respect to target.

        Args:
            source: Tensor the backward pass starts from
            target: Gradient-tracking Tensor reachable from source
            upstream: Seed gradient shaped like source, defaults to ones

        Returns:
            Gradient shaped like target

        Raises:
            GradError: If target does not require grad, is not reachable from
                source, or a gradient computation is already running
            ShapeMismatch: If upstream is not shaped like source
        """
        if self._currently_computing_gradients:
            raise GradError("Nested gradient computation detected")
        if not target.requires_grad:
            raise GradError("Cannot compute the gradient of a tensor that does not require grad")

        seed = self._seed(source, upstream)

        self._currently_computing_gradients = True
        try:
            sorted_nodes = self._topological_sort(source)
            if not any(node is target for node in sorted_nodes):
                raise GradError("Target tensor is not reachable from the source tensor")

            logger.debug(
                "grad: %d reachable nodes from tensor of shape %s", len(sorted_nodes), source.shape
            )

            grads: Dict[int, Array] = {id(source): seed}

            # Reverse topological order: every node is visited after all of its consumers
            for node in reversed(sorted_nodes):
                current_grad = grads.get(id(node))
                if node is target:
                    return current_grad if current_grad is not None else Array.zeros(
                        target.shape, dtype=target.dtype
                    )
                if current_grad is None or node.op is None:
                    continue

                op = node.op
                contributions = op.function.backward(op.ctx, current_grad)
                for parent, contribution in zip(op.parents, contributions):
                    if contribution is None or not parent.requires_grad:
                        continue
                    assert contribution.shape == parent.shape, (
                        f"{op.kind} produced a gradient of shape {contribution.shape} "
                        f"for an input of shape {parent.shape}"
                    )
                    previous = grads.get(id(parent))
                    grads[id(parent)] = contribution if previous is None else previous + contribution
        finally:
            self._currently_computing_gradients = False

        raise AssertionError("Target was reachable but never visited")

    @staticmethod
    def _seed(source: Tensor, upstream: Optional[Any]) -> Array:
        if upstream is None:
            return Array.ones(source.shape, dtype=source.dtype)
        if not isinstance(upstream, Array):
            upstream = array(upstream, dtype=source.dtype)
        if upstream.shape != source.shape:
            raise ShapeMismatch(
                upstream.shape,
                source.shape,
                f"Upstream gradient of shape {upstream.shape} does not match "
                f"tensor shape {source.shape}",
            )
        return upstream.copy()

    @staticmethod
    def _topological_sort(start_tensor: Tensor) -> List[Tensor]:
        """
        Orders the gradient-tracking tensors reachable from start_tensor.

        Returns:
            Tensors in topological order (parents before the tensors computed
            from them), start_tensor last
        """
        result: List[Tensor] = []
        if not start_tensor.requires_grad:
            return result

        visited = set()
        # (tensor, children_pushed) pairs emulate a post-order recursive visit
        stack = [(start_tensor, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                result.append(node)
                continue
            if id(node) in visited:
                continue
            visited.add(id(node))
            stack.append((node, True))
            for parent in node.parents:
                if parent.requires_grad and id(parent) not in visited:
                    stack.append((parent, False))
        return result


# Global autograd engine instance
_autograd_engine = AutogradEngine()


def get_autograd_engine() -> AutogradEngine:
    """Returns the global autograd engine instance."""
    return _autograd_engine
