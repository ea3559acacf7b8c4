# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Range operator: generates ``start, start + delta, ...`` up to ``limit``."""

from __future__ import annotations

__all__ = [
    "Range",
]

import logging
from typing import TYPE_CHECKING

import numpy as np
import onnx_ir as ir

from graphimport import _arguments, _binder, _sequence
from graphimport._errors import InvalidOperandError
from graphimport._ops._base import Operator
from graphimport._options import ImportOptions
from graphimport._registry import registry

if TYPE_CHECKING:
    from graphimport._foreign import ForeignGraph, ForeignNode
    from graphimport._graph import Graph

logger = logging.getLogger(__name__)


@registry.register("", "Range", since_version=11)
class Range(Operator):
    """Range operator.

    The bounds are float attributes when every operand is constant at import
    time. Otherwise the operand variables are recorded in :attr:`operand_refs`
    and the operator is left on the graph's pending worklist until
    :meth:`~graphimport.Graph.resolve_pending` binds them as tensor inputs.

    Attributes:
        from_: Start value once finalized from constants.
        to: Exclusive stop value once finalized from constants.
        delta: Step once finalized from constants.
        start_dtype: Element type of the start constant, which the output
            takes when the bounds were finalized from constants.
    """

    op_num = 4
    op_name = "range"
    onnx_name = "Range"
    tensorflow_name = "Range"
    executable = True
    differentiable = False

    operand_positions = ("start", "limit", "delta")

    def __init__(
        self,
        name: str | None = None,
        graph: Graph | None = None,
        start: float | None = None,
        stop: float | None = None,
        step: float | None = None,
        *,
        options: ImportOptions | None = None,
    ) -> None:
        super().__init__(name, graph, options=options)
        self.from_: float | None = None
        self.to: float | None = None
        self.delta: float | None = None
        self.start_dtype: np.dtype | None = None
        bounds = (start, stop, step)
        if any(b is not None for b in bounds):
            if any(b is None for b in bounds):
                raise ValueError("start, stop and step must be given together")
            self._finalize(float(start), float(stop), float(step))  # type: ignore[arg-type]

    def _finalize(self, start: float, stop: float, step: float) -> None:
        self.from_, self.to, self.delta = start, stop, step
        self.add_float_args(start, stop, step)

    def initialize_from_foreign_node(
        self, node: ForeignNode, graph: Graph, foreign_graph: ForeignGraph
    ) -> None:
        """Import a Range node.

        If all three operands are constant the bounds are finalized as float
        arguments and the output shape and storage are recorded in ``graph``.
        Otherwise the operand variables are recorded for later resolution.

        Raises:
            GraphImportError: If an operand cannot be found or decoded. The
                operator is left untouched in that case.
            NonTerminatingSequenceError: If the constant bounds describe a
                sequence that never ends.
        """
        binding = _binder.bind_operands(node, graph, foreign_graph, self.operand_positions)
        bounds = None
        start_dtype = None
        if binding.is_constant:
            start, stop, step = binding.scalars()
            limit_node = binding.node("limit")
            if _binder.is_cardinality_marker(limit_node, self.options.cardinality_markers):
                stop, step = start + 1, 1.0
            # Validate before any state is written
            _sequence.sequence_length(start, stop, step)
            bounds = (start, stop, step)
            start_dtype = np.asarray(binding.constants[0]).dtype

        super().initialize_from_foreign_node(node, graph, foreign_graph)

        if bounds is None:
            self.operand_refs = binding.variable_names
            graph.add_pending(self)
            logger.debug(
                "Deferred %s %r until %s are resolved",
                self.op_name,
                self.name,
                ", ".join(binding.variable_names),
            )
            return

        self._finalize(*bounds)
        self.start_dtype = start_dtype
        if not self.output_variables:
            return
        output = self.output_variables[0]
        output.dtype = self.output_dtype().numpy()  # type: ignore[union-attr]
        if graph.get_array(output.name) is None:
            if graph.get_shape(output.name) is None:
                graph.put_shape(output.name, self.calculate_output_shape()[0])
            shape = graph.get_shape(output.name)
            dims = tuple(int(dim) for dim in shape.dims)  # type: ignore[union-attr]
            graph.put_array(output.name, np.zeros(dims, dtype=output.dtype), computed=False)

    def calculate_output_shape(self) -> list[ir.Shape]:
        """Infer the one-dimensional output shape.

        Returns:
            ``[Shape([n])]``, or ``[]`` while no argument source is populated.

        Raises:
            NonTerminatingSequenceError: If the bounds never terminate.
        """
        source = _arguments.resolve_argument_source(self, conflict_policy=self.conflict_policy)
        if source is None:
            return []
        return [ir.Shape([_sequence.sequence_length(*source.scalars())])]

    def output_dtype(self) -> ir.DataType | None:
        source = _arguments.resolve_argument_source(self, conflict_policy="silent")
        if source is None:
            return None
        if isinstance(source, _arguments.IntArgs):
            return ir.DataType.INT64
        if isinstance(source, _arguments.FloatArgs):
            if self.start_dtype is not None:
                return ir.DataType.from_numpy(self.start_dtype)
            return ir.DataType.DOUBLE
        return ir.DataType.from_numpy(source.dtype)

    def execute(self) -> np.ndarray:
        source = _arguments.resolve_argument_source(self, conflict_policy=self.conflict_policy)
        if source is None:
            raise InvalidOperandError(f"Range {self.name!r} has no resolved arguments")
        dtype = self.output_dtype().numpy()  # type: ignore[union-attr]
        values = source.scalars()
        if np.issubdtype(dtype, np.integer):
            values = tuple(int(v) for v in values)
        return np.fromiter(_sequence.enumerate_sequence(*values), dtype=dtype)
