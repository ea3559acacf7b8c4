# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Import a foreign graph into a :class:`~graphimport.Graph`."""

from __future__ import annotations

__all__ = [
    "GraphImporter",
    "ImportResult",
    "import_graph",
]

import dataclasses
import logging
from collections.abc import Collection, Sequence

from graphimport import _arguments, _options
from graphimport._errors import GraphImportError, ImportFailure
from graphimport._foreign import ForeignGraph, ForeignNode, GraphLike
from graphimport._graph import Graph
from graphimport._ops import _base
from graphimport._options import ImportOptions
from graphimport._registry import registry

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class ImportResult:
    """Result of importing a foreign graph.

    Attributes:
        graph: The imported graph.
        errors: Nodes that could not be imported.
    """

    graph: Graph
    errors: Sequence[ImportFailure] = ()


class GraphImporter:
    """Builds a :class:`~graphimport.Graph` from a foreign graph.

    Constants become variables holding arrays, graph inputs become
    placeholders, and every operator node is created through the registry and
    initialized from its foreign node. A node that fails to import is skipped
    and recorded; the rest of the graph is still imported.

    Example::

        import onnx
        from graphimport import GraphImporter

        result = GraphImporter()(onnx.load("model.onnx"))
        for op in result.graph.pending:
            ...
    """

    def __init__(
        self,
        *,
        strict: bool = False,
        warn_on_missing: bool = True,
        conflict_policy: _arguments.SourceConflictPolicy = "warn",
        cardinality_markers: Collection[str] = _options.CARDINALITY_MARKERS,
    ) -> None:
        """Initialize the importer.

        Args:
            strict: If True, the first node that fails to import raises
                instead of being recorded.
            warn_on_missing: If True, log a warning for operator types with no
                registered implementation.
            conflict_policy: Passed to every operator; see
                :data:`~graphimport.SourceConflictPolicy`.
            cardinality_markers: Limit node names treated as element counts.
        """
        self.strict = strict
        self.warn_on_missing = warn_on_missing
        self.options = ImportOptions(
            conflict_policy=conflict_policy,
            cardinality_markers=frozenset(cardinality_markers),
        )

    def __call__(self, proto: GraphLike | ForeignGraph) -> ImportResult:
        return self.import_graph(proto)

    def import_graph(self, proto: GraphLike | ForeignGraph) -> ImportResult:
        """Import an ONNX graph or model.

        Args:
            proto: An ``onnx.GraphProto``, ``onnx.ModelProto`` or an already
                built :class:`~graphimport.ForeignGraph`.

        Returns:
            The imported graph and the failures recorded along the way.

        Raises:
            GraphImportError: If ``strict`` is set and a node fails to import.
        """
        foreign_graph = proto if isinstance(proto, ForeignGraph) else ForeignGraph.from_onnx(proto)
        graph = Graph(foreign_graph.name)
        errors: list[ImportFailure] = []
        warned_ops: set[tuple[str, str]] = set()

        for node in foreign_graph:
            try:
                if node.kind == "node":
                    self._import_node(node, graph, foreign_graph, warned_ops)
                else:
                    _import_value(node, graph, foreign_graph)
            except (GraphImportError, ValueError) as e:
                if self.strict:
                    raise
                failure = ImportFailure.from_exception(node, e)
                errors.append(failure)
                logger.warning("%s", failure)

        logger.debug(
            "Imported graph %r: %d operators, %d pending, %d failed",
            graph.name,
            len(graph.operators),
            len(graph.pending),
            len(errors),
        )
        return ImportResult(graph, tuple(errors))

    def _import_node(
        self,
        node: ForeignNode,
        graph: Graph,
        foreign_graph: ForeignGraph,
        warned_ops: set[tuple[str, str]],
    ) -> None:
        if node.op_type == "Constant" and node.domain in ("", "ai.onnx"):
            constant = foreign_graph.get_constant(node)
            for name in node.outputs:
                graph.add_variable(name)
                graph.put_array(name, constant)  # type: ignore[arg-type]
            return

        version = foreign_graph.opset_version(node.domain)
        op_class = registry.get(node.domain, node.op_type, version=version)
        if op_class is None:
            key = (node.domain, node.op_type)
            if self.warn_on_missing and key not in warned_ops:
                logger.warning(
                    "No operator registered for %s::%s (opset %d)",
                    node.domain or "ai.onnx",
                    node.op_type,
                    version,
                )
                warned_ops.add(key)
            op: _base.Operator = _base.OpaqueOperator(node.name, foreign_op_type=node.op_type)
        else:
            op = op_class(node.name, options=self.options)
        op.initialize_from_foreign_node(node, graph, foreign_graph)


def _import_value(node: ForeignNode, graph: Graph, foreign_graph: ForeignGraph) -> None:
    """Create the variable of an initializer or a graph input."""
    if node.kind == "initializer":
        constant = foreign_graph.get_constant(node)
        if constant is None:
            raise GraphImportError(f"Initializer {node.name!r} has no value", node_name=node.name)
        graph.add_variable(node.name)
        graph.put_array(node.name, constant)
        return
    dtype, shape = foreign_graph.value_type(node.name)
    graph.add_variable(node.name, dtype=dtype)
    if shape is not None:
        graph.put_shape(node.name, shape)


def import_graph(proto: GraphLike | ForeignGraph, *, strict: bool = False) -> ImportResult:
    """Import an ONNX graph or model with default options.

    Convenience function that creates and runs a :class:`GraphImporter`.
    """
    return GraphImporter(strict=strict)(proto)
