# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Locate the operand nodes of a foreign node and bind them to graph variables.

Binding never writes to the operator being imported. The caller decides, from
the returned :class:`OperandBinding`, whether the operands are constant and
can be finalized right away or must be deferred to the graph's pending
worklist.
"""

from __future__ import annotations

__all__ = [
    "OperandBinding",
    "bind_operands",
    "is_cardinality_marker",
]

import dataclasses
import logging
from collections.abc import Collection, Sequence

import numpy as np

from graphimport._errors import GraphImportError
from graphimport._foreign import ForeignGraph, ForeignNode, variable_name
from graphimport._graph import Graph
from graphimport._options import CARDINALITY_MARKERS

logger = logging.getLogger(__name__)


def is_cardinality_marker(
    node: ForeignNode, markers: Collection[str] = CARDINALITY_MARKERS
) -> bool:
    """Whether ``node`` is a rank/count marker rather than a true bound."""
    return bool(node.name) and node.name.lower() in {m.lower() for m in markers}


@dataclasses.dataclass(frozen=True)
class OperandBinding:
    """Operand nodes of a foreign node, their constants and variable names.

    All sequences are in operand position order.
    """

    node_name: str
    positions: tuple[str, ...]
    nodes: tuple[ForeignNode, ...]
    constants: tuple[np.ndarray | None, ...]
    variable_names: tuple[str, ...]

    @property
    def is_constant(self) -> bool:
        """True when every operand carries a constant value."""
        return all(constant is not None for constant in self.constants)

    def node(self, position: str) -> ForeignNode:
        return self.nodes[self.positions.index(position)]

    def scalars(self) -> tuple[float, ...]:
        """Read the first element of every constant as a double.

        Raises:
            GraphImportError: If an operand is not constant or is empty.
        """
        values = []
        for position, constant in zip(self.positions, self.constants):
            if constant is None or np.size(constant) == 0:
                raise GraphImportError(
                    f"Operand {position!r} of node {self.node_name!r} has no scalar value",
                    node_name=self.node_name,
                    position=position,
                )
            values.append(float(np.asarray(constant).reshape(-1)[0]))
        return tuple(values)


def _variable_for(graph: Graph, reference: str) -> str | None:
    if graph.has_variable(reference):
        return reference
    name = variable_name(reference)
    if graph.has_variable(name):
        return name
    return None


def bind_operands(
    node: ForeignNode,
    graph: Graph,
    foreign_graph: ForeignGraph,
    positions: Sequence[str],
) -> OperandBinding:
    """Find the operand nodes of ``node`` and the variables they map to.

    The foreign graph's node list is scanned once, in order. For each operand
    the first node that provides the referenced value wins, and the scan stops
    as soon as every operand has been found.

    Args:
        node: The foreign node being imported.
        graph: The graph the node is imported into.
        foreign_graph: The graph ``node`` comes from.
        positions: Names of the positional operands, e.g.
            ``("start", "limit", "delta")``.

    Returns:
        The binding.

    Raises:
        GraphImportError: If an operand is missing from the node or the
            foreign graph, if its constant is malformed, or if it has no
            corresponding graph variable.
    """
    references = list(node.inputs[: len(positions)])
    for index, position in enumerate(positions):
        if index >= len(references) or not references[index]:
            raise GraphImportError(
                f"Node {node.name!r} ({node.op_type}) has no {position!r} operand "
                f"(input {index})",
                node_name=node.name,
                position=position,
            )

    found: list[ForeignNode | None] = [None] * len(positions)
    for candidate in foreign_graph.nodes:
        for index, reference in enumerate(references):
            if found[index] is None and candidate.provides(reference):
                found[index] = candidate
        if all(operand is not None for operand in found):
            break

    for index, position in enumerate(positions):
        if found[index] is None:
            raise GraphImportError(
                f"Operand {position!r} of node {node.name!r} refers to "
                f"{references[index]!r}, which is not in the foreign graph",
                node_name=node.name,
                position=position,
            )
    operand_nodes = tuple(n for n in found if n is not None)

    constants = []
    for position, operand in zip(positions, operand_nodes):
        try:
            constants.append(foreign_graph.get_constant(operand))
        except GraphImportError as e:
            raise GraphImportError(
                f"Operand {position!r} of node {node.name!r}: {e}",
                node_name=node.name,
                position=position,
            ) from e

    variable_names = []
    for position, reference in zip(positions, references):
        name = _variable_for(graph, reference)
        if name is None:
            raise GraphImportError(
                f"Operand {position!r} of node {node.name!r} refers to "
                f"{reference!r}, which has no variable in graph {graph.name!r}",
                node_name=node.name,
                position=position,
            )
        variable_names.append(name)

    return OperandBinding(
        node_name=node.name,
        positions=tuple(positions),
        nodes=operand_nodes,
        constants=tuple(constants),
        variable_names=tuple(variable_names),
    )
