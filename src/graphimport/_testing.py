# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Common test infrastructure for building small ONNX graphs."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Union

import numpy as np
import onnx
import onnx.helper
import onnx.numpy_helper

from graphimport._foreign import ForeignGraph
from graphimport._graph import Graph

Operand = Union[float, int, None]


def const(name: str, value: float | int | Sequence[float], dtype=np.float32) -> onnx.NodeProto:
    """Create a ``Constant`` node named ``name`` whose output is also ``name``."""
    tensor = onnx.numpy_helper.from_array(np.array(value, dtype=dtype), name=name)
    return onnx.helper.make_node("Constant", [], [name], name=name, value=tensor)


def placeholder(name: str, elem_type: int = onnx.TensorProto.FLOAT) -> onnx.ValueInfoProto:
    """Create a scalar graph input."""
    return onnx.helper.make_tensor_value_info(name, elem_type, [])


def range_graph(
    start: Operand = 0.0,
    limit: Operand = 10.0,
    delta: Operand = 1.0,
    *,
    limit_name: str = "limit",
    extra_nodes: Sequence[onnx.NodeProto] = (),
    opset_version: int = 17,
    dtype=np.float32,
) -> onnx.ModelProto:
    """Build a model with a single ``Range`` node named ``range``.

    Each operand given as a number becomes a ``Constant`` node; ``None`` makes
    it a scalar graph input instead.

    Args:
        start: Start value, or None for a placeholder.
        limit: Limit value, or None for a placeholder.
        delta: Delta value, or None for a placeholder.
        limit_name: Name of the limit node and its output.
        extra_nodes: Nodes inserted before the constants.
        opset_version: Opset version of the default domain.
        dtype: Element type of the constants and graph inputs.
    """
    elem_type = onnx.helper.np_dtype_to_tensor_dtype(np.dtype(dtype))
    nodes = list(extra_nodes)
    inputs = []
    names = []
    for name, value in (("start", start), (limit_name, limit), ("delta", delta)):
        names.append(name)
        if value is None:
            inputs.append(placeholder(name, elem_type))
        else:
            nodes.append(const(name, value, dtype))
    nodes.append(onnx.helper.make_node("Range", names, ["output"], name="range"))
    graph = onnx.helper.make_graph(
        nodes,
        "range_graph",
        inputs,
        [onnx.helper.make_tensor_value_info("output", onnx.TensorProto.FLOAT, None)],
    )
    return onnx.helper.make_model(
        graph, opset_imports=[onnx.helper.make_opsetid("", opset_version)]
    )


def graph_with_variables(foreign_graph: ForeignGraph) -> Graph:
    """Create a graph with one variable per value the foreign graph produces."""
    graph = Graph(foreign_graph.name)
    for node in foreign_graph:
        for name in node.outputs:
            if not graph.has_variable(name):
                graph.add_variable(name)
    return graph
