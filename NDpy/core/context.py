from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple


@dataclass
class Context:
    """
    Forward-pass state kept by an Operation for its backward rule.

    A Context is created for every operation applied to Tensors. The forward
    rule stores whatever its backward rule needs: operand values, original
    (pre-broadcast) shapes, scalar arguments.

    Attributes:
        needs_input_grad: One flag per parent telling whether it tracks gradients
        _saved_arrays: Arrays saved during the forward pass
        _arguments: Non-array arguments (shapes, exponents, axes)
        _intermediate_values: Values computed in forward and reused in backward
    """

    needs_input_grad: Tuple[bool, ...] = ()
    _saved_arrays: List[Any] = field(default_factory=list)
    _arguments: Dict[str, Any] = field(default_factory=dict)
    _intermediate_values: Dict[str, Any] = field(default_factory=dict)

    def save_for_backward(self, *arrays: Any) -> None:
        """
        Saves the arrays the backward rule will read.

        Args:
            *arrays: Forward operand values (or results)
        """
        self._saved_arrays = list(arrays)

    def save_arguments(self, **kwargs: Any) -> None:
        """Saves non-array arguments needed by the backward rule."""
        self._arguments.update(kwargs)

    def store_intermediate(self, name: str, value: Any) -> None:
        self._intermediate_values[name] = value

    @property
    def saved_arrays(self) -> Tuple[Any, ...]:
        return tuple(self._saved_arrays)

    @property
    def saved_arguments(self) -> Dict[str, Any]:
        """Returns a copy of the saved non-array arguments."""
        return self._arguments.copy()

    def get_intermediate(self, name: str) -> Any:
        """
        Retrieves a stored intermediate value.

        Raises:
            KeyError: If no value exists for the given name
        """
        return self._intermediate_values[name]
