# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Base class shared by all imported operators."""

from __future__ import annotations

__all__ = [
    "OpKind",
    "OpaqueOperator",
    "Operator",
]

import copy
import enum
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, ClassVar

import numpy as np
import onnx_ir as ir

from graphimport import _arguments
from graphimport._errors import GraphImportError
from graphimport._options import ImportOptions

if TYPE_CHECKING:
    from graphimport._foreign import ForeignGraph, ForeignNode
    from graphimport._graph import Graph, Variable

logger = logging.getLogger(__name__)


class OpKind(enum.Enum):
    """How the execution engine dispatches an operator."""

    CUSTOM = "custom"
    OPAQUE = "opaque"


class Operator:
    """An operator node of the internal graph.

    An operator's numeric parameters live in three generic slots:
    ``int_args``, ``float_args`` and ``input_arguments``. Which one is used is
    decided by :func:`~graphimport.resolve_argument_source`.

    Subclasses override :meth:`initialize_from_foreign_node`,
    :meth:`calculate_output_shape` and, when they can compute their output,
    :meth:`execute`.

    Attributes:
        name: Node name.
        graph: The owning graph, set once the operator is added to one.
        operand_refs: Names of the variables the operator waits for when its
            operands were not constant at import time, else ``None``.
        options: Import options, such as the argument source conflict policy.
    """

    op_num: ClassVar[int] = -1
    op_name: ClassVar[str] = ""
    onnx_name: ClassVar[str | None] = None
    tensorflow_name: ClassVar[str | None] = None
    executable: ClassVar[bool] = False
    differentiable: ClassVar[bool] = True

    def __init__(
        self,
        name: str | None = None,
        graph: Graph | None = None,
        *,
        options: ImportOptions | None = None,
    ) -> None:
        self.name = name
        self.graph: Graph | None = None
        self.options = options or ImportOptions()
        self.int_args: tuple[int, ...] = ()
        self.float_args: tuple[float, ...] = ()
        self.input_arguments: tuple[np.ndarray, ...] = ()
        self.output_variables: tuple[Variable, ...] = ()
        self.operand_refs: tuple[str, ...] | None = None
        if graph is not None:
            graph.add_operator(self)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"

    @property
    def op_type(self) -> OpKind:
        return OpKind.CUSTOM

    @property
    def conflict_policy(self) -> _arguments.SourceConflictPolicy:
        return self.options.conflict_policy

    def add_int_args(self, *values: int) -> None:
        self.int_args = (*self.int_args, *(int(v) for v in values))

    def add_float_args(self, *values: float) -> None:
        self.float_args = (*self.float_args, *(float(v) for v in values))

    def bind_inputs(self, arrays: Sequence[np.ndarray]) -> None:
        """Set the tensor inputs once the referenced variables hold values."""
        self.input_arguments = tuple(np.asarray(array) for array in arrays)

    def create_output_variables(self, graph: Graph, names: Sequence[str]) -> None:
        """Create (or adopt) the graph variables this operator produces.

        Raises:
            GraphImportError: If a variable with one of the names is already
                produced by another operator.
        """
        names = [name for name in names if name]
        for name in names:
            if not graph.has_variable(name):
                continue
            producer = graph.get_variable(name).producer
            if producer is not self:
                owner = f"operator {producer.name!r}" if producer is not None else "a constant"
                raise GraphImportError(
                    f"Output {name!r} of {self.name!r} is already defined by {owner}",
                    node_name=self.name,
                )
        self.output_variables = tuple(
            graph.get_variable(name)
            if graph.has_variable(name)
            else graph.add_variable(name, producer=self)
            for name in names
        )

    def initialize_from_foreign_node(
        self, node: ForeignNode, graph: Graph, foreign_graph: ForeignGraph
    ) -> None:
        """Initialize the operator from a node of a foreign graph.

        The base implementation names the operator, adds it to ``graph`` and
        creates its output variables.
        """
        del foreign_graph  # Unused
        if self.name is None:
            self.name = node.name
        if not self.output_variables:
            self.create_output_variables(graph, node.outputs)
        if self.graph is not graph:
            graph.add_operator(self)

    def calculate_output_shape(self) -> list[ir.Shape]:
        """Return the output shapes, or an empty list if not determinable yet."""
        raise NotImplementedError

    def calculate_output_shape_with(self, arrays: Sequence[np.ndarray]) -> list[ir.Shape]:
        """Infer the output shapes as if ``arrays`` were bound, leaving ``self`` as is.

        Raises:
            ValueError: If the arrays do not form valid inputs.
        """
        trial = copy.copy(self)
        trial.bind_inputs(arrays)
        return trial.calculate_output_shape()

    def is_shape_known(self) -> bool:
        """Whether an argument source is available to infer the output shape from."""
        return (
            _arguments.resolve_argument_source(self, conflict_policy="silent") is not None
        )

    def execute(self) -> np.ndarray:
        """Compute the output array."""
        raise NotImplementedError(f"{self.__class__.__name__} cannot be executed")


class OpaqueOperator(Operator):
    """Stand-in for foreign operators with no registered implementation.

    Its outputs exist as variables so that other operators can refer to them,
    but their shapes are never inferred.
    """

    def __init__(
        self, name: str | None = None, graph: Graph | None = None, *, foreign_op_type: str = ""
    ) -> None:
        super().__init__(name, graph)
        self.foreign_op_type = foreign_op_type

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, op_type={self.foreign_op_type!r})"

    @property
    def op_type(self) -> OpKind:
        return OpKind.OPAQUE

    def calculate_output_shape(self) -> list[ir.Shape]:
        return []

    def is_shape_known(self) -> bool:
        return False
