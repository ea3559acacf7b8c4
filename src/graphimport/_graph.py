# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""The internal graph: variables, their shapes and arrays, and pending operators."""

from __future__ import annotations

__all__ = [
    "Graph",
    "Variable",
]

import dataclasses
import logging
import threading
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING

import numpy as np
import onnx_ir as ir

from graphimport._errors import GraphImportError

if TYPE_CHECKING:
    from graphimport._ops._base import Operator

logger = logging.getLogger(__name__)

_VISITING = 1
_VISITED = 2


@dataclasses.dataclass(eq=False)
class Variable:
    """A named value in the graph.

    Attributes:
        name: Unique name of the variable.
        dtype: Element type, if known.
        producer: The operator that produces the variable, or ``None`` for
            constants and placeholders.
    """

    name: str
    dtype: np.dtype | None = None
    producer: Operator | None = dataclasses.field(default=None, repr=False)


class Graph:
    """Mapping from variable names to shapes and arrays.

    The graph is the only authority that turns a variable name into a concrete
    tensor. Operators whose operands were not constant at import time are kept
    on a pending worklist until :meth:`resolve_pending` can bind them.

    Writes are serialized with a lock so that several importers may share one
    graph.
    """

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        self._variables: dict[str, Variable] = {}
        self._shapes: dict[str, ir.Shape] = {}
        self._arrays: dict[str, np.ndarray] = {}
        # Names whose array holds real data rather than allocated storage
        self._computed: set[str] = set()
        self._operators: list[Operator] = []
        # Ordered set of operators waiting for their references
        self._pending: dict[Operator, None] = {}
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name={self.name!r}, "
            f"variables={len(self._variables)}, operators={len(self._operators)}, "
            f"pending={len(self._pending)})"
        )

    # Variables

    def add_variable(
        self,
        name: str,
        *,
        dtype: np.dtype | None = None,
        producer: Operator | None = None,
    ) -> Variable:
        """Create a variable.

        Raises:
            ValueError: If a variable with the same name already exists.
        """
        with self._lock:
            if name in self._variables:
                raise ValueError(f"Variable {name!r} already exists in graph {self.name!r}")
            variable = Variable(name, dtype=dtype, producer=producer)
            self._variables[name] = variable
            return variable

    def get_variable(self, name: str) -> Variable:
        """Return the variable called ``name``.

        Raises:
            KeyError: If there is no such variable.
        """
        try:
            return self._variables[name]
        except KeyError:
            raise KeyError(f"Variable {name!r} not found in graph {self.name!r}") from None

    def has_variable(self, name: str) -> bool:
        return name in self._variables

    @property
    def variables(self) -> Sequence[Variable]:
        return tuple(self._variables.values())

    # Shapes and arrays

    def get_shape(self, name: str) -> ir.Shape | None:
        return self._shapes.get(name)

    def put_shape(self, name: str, shape: ir.Shape | Sequence[int]) -> None:
        self.get_variable(name)
        if not isinstance(shape, ir.Shape):
            shape = ir.Shape(shape)
        with self._lock:
            self._shapes[name] = shape

    def get_array(self, name: str) -> np.ndarray | None:
        return self._arrays.get(name)

    def put_array(self, name: str, array: np.ndarray, *, computed: bool = True) -> None:
        """Associate an array with a variable and record its shape.

        Args:
            name: The variable name.
            array: The array.
            computed: ``False`` when the array is only storage allocated for an
                output that has not been computed yet.
        """
        variable = self.get_variable(name)
        array = np.asarray(array)
        with self._lock:
            self._arrays[name] = array
            self._shapes[name] = ir.Shape(array.shape)
            if variable.dtype is None:
                variable.dtype = array.dtype
            if computed:
                self._computed.add(name)
            else:
                self._computed.discard(name)

    def has_value(self, name: str) -> bool:
        """Whether the variable holds computed data (not just allocated storage)."""
        return name in self._computed

    def feed(self, name: str, array: np.ndarray) -> None:
        """Supply the value of a placeholder."""
        logger.debug("Feeding %r", name)
        self.put_array(name, array)

    # Operators

    def add_operator(self, op: Operator) -> None:
        with self._lock:
            self._operators.append(op)
            op.graph = self

    @property
    def operators(self) -> Sequence[Operator]:
        return tuple(self._operators)

    def __iter__(self) -> Iterator[Operator]:
        return iter(self._operators)

    def evaluate(self, name: str) -> np.ndarray | None:
        """Return the computed array of a variable, executing its producer if needed.

        Returns:
            The array, or ``None`` if it cannot be computed yet (an unfed
            placeholder, a pending producer, or a producer that cannot execute).
        """
        if self.has_value(name):
            return self._arrays[name]
        producer = self.get_variable(name).producer
        if producer is None or self.is_pending(producer) or not producer.executable:
            return None
        for ref in producer.operand_refs or ():
            if self.evaluate(ref) is None:
                return None
        array = producer.execute()
        self.put_array(producer.output_variables[0].name, array)
        return array

    # Pending resolution

    def add_pending(self, op: Operator) -> None:
        with self._lock:
            self._pending[op] = None
        logger.debug("Operator %r waits for %s", op.name, op.operand_refs)

    def is_pending(self, op: Operator) -> bool:
        return op in self._pending

    @property
    def pending(self) -> Sequence[Operator]:
        return tuple(self._pending)

    def resolve_pending(self) -> list[Operator]:
        """Bind every pending operator whose referenced variables can be computed.

        Operators are visited depth-first through the producers of their
        references, so a producer is resolved (and executed) before its
        consumers. Operators whose references are still unavailable stay
        pending; calling this again after :meth:`feed` picks them up.

        An operator whose referenced values are rejected (a zero step, a
        non-scalar tensor) is left pending and unchanged. The remaining
        operators are still resolved, and the first such error is raised once
        the worklist has been walked.

        Returns:
            The operators resolved by this call, in resolution order.

        Raises:
            GraphImportError: If pending operators reference each other in a
                cycle.
            ValueError: If the values referenced by a pending operator are
                invalid for it.
        """
        resolved: list[Operator] = []
        errors: list[ValueError] = []
        state: dict[Operator, int] = {}

        def visit(op: Operator) -> None:
            mark = state.get(op)
            if mark == _VISITED:
                return
            if mark == _VISITING:
                raise GraphImportError(
                    f"Operator {op.name!r} depends on itself through its references",
                    node_name=op.name,
                )
            state[op] = _VISITING
            for ref in op.operand_refs or ():
                producer = self.get_variable(ref).producer
                if producer is not None and self.is_pending(producer):
                    visit(producer)
            arrays = [self.evaluate(ref) for ref in op.operand_refs or ()]
            state[op] = _VISITED
            if any(array is None for array in arrays):
                return
            try:
                shapes = op.calculate_output_shape_with(arrays)
            except ValueError as e:
                logger.warning("Operator %r stays pending: %s", op.name, e)
                errors.append(e)
                return
            op.bind_inputs(arrays)
            for variable, shape in zip(op.output_variables, shapes):
                self.put_shape(variable.name, shape)
            del self._pending[op]
            resolved.append(op)
            logger.debug("Resolved operator %r", op.name)

        with self._lock:
            for op in list(self._pending):
                visit(op)
        if errors:
            raise errors[0]
        return resolved
