# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Import foreign model graphs and infer operator output shapes.

Operators are created from the nodes of an ONNX graph. An operator whose
operands are constant is finalized at import time; one whose operands are
only known at run time (placeholders, computed values) is kept on the
graph's pending worklist and resolved later.

Example::

    import onnx
    import numpy as np
    from graphimport import import_graph

    result = import_graph(onnx.load("model.onnx"))
    graph = result.graph

    # Supply placeholder values, then bind deferred operators
    graph.feed("delta", np.array(2.0))
    graph.resolve_pending()

    for op in graph:
        print(op.name, op.calculate_output_shape())

Registering an operator::

    from graphimport import Operator, registry

    @registry.register("", "MyOp", since_version=1)
    class MyOp(Operator):
        def calculate_output_shape(self):
            ...
"""

from __future__ import annotations

__all__ = [
    # Main API
    "GraphImporter",
    "ImportOptions",
    "ImportResult",
    "import_graph",
    # Graphs
    "ForeignGraph",
    "ForeignNode",
    "Graph",
    "Variable",
    # Operators
    "OpKind",
    "OpaqueOperator",
    "Operator",
    "OperatorRegistry",
    "Range",
    "registry",
    # Argument resolution
    "ArgumentSource",
    "FloatArgs",
    "IntArgs",
    "OperandBinding",
    "SourceConflictPolicy",
    "TensorArgs",
    "bind_operands",
    "enumerate_sequence",
    "resolve_argument_source",
    "sequence_length",
    # Errors
    "GraphImportError",
    "ImportFailure",
    "InconsistentSourceError",
    "InconsistentSourceWarning",
    "InvalidOperandError",
    "NonTerminatingSequenceError",
]

import types

from graphimport._arguments import (
    ArgumentSource,
    FloatArgs,
    IntArgs,
    SourceConflictPolicy,
    TensorArgs,
    resolve_argument_source,
)
from graphimport._binder import OperandBinding, bind_operands
from graphimport._errors import (
    GraphImportError,
    ImportFailure,
    InconsistentSourceError,
    InconsistentSourceWarning,
    InvalidOperandError,
    NonTerminatingSequenceError,
)
from graphimport._foreign import ForeignGraph, ForeignNode
from graphimport._graph import Graph, Variable
from graphimport._importer import GraphImporter, ImportResult, import_graph
from graphimport._ops import OpaqueOperator, OpKind, Operator, Range
from graphimport._options import ImportOptions
from graphimport._registry import OperatorRegistry, registry
from graphimport._sequence import enumerate_sequence, sequence_length


def __set_module() -> None:
    """Set the module of all functions in this module to this public module."""
    global_dict = globals()
    for name in __all__:
        obj = global_dict[name]
        if isinstance(obj, (type, types.FunctionType)):
            obj.__module__ = __name__


__set_module()
