# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Unit tests for operand binding."""

from __future__ import annotations

import unittest

import numpy as np
import onnx
import onnx.helper

from graphimport import _testing
from graphimport._binder import bind_operands, is_cardinality_marker
from graphimport._errors import GraphImportError
from graphimport._foreign import ForeignGraph, ForeignNode

_POSITIONS = ("start", "limit", "delta")


def _bind(model: onnx.ModelProto, node_name: str = "range"):
    foreign_graph = ForeignGraph.from_onnx(model)
    graph = _testing.graph_with_variables(foreign_graph)
    node = next(n for n in foreign_graph if n.name == node_name)
    return bind_operands(node, graph, foreign_graph, _POSITIONS)


class BindOperandsTest(unittest.TestCase):
    def test_constant_operands(self):
        binding = _bind(_testing.range_graph(1.0, 7.0, 2.0))
        self.assertTrue(binding.is_constant)
        self.assertEqual(binding.scalars(), (1.0, 7.0, 2.0))
        self.assertEqual(binding.variable_names, ("start", "limit", "delta"))
        self.assertEqual(binding.node("limit").name, "limit")

    def test_placeholder_operand_is_not_constant(self):
        binding = _bind(_testing.range_graph(0.0, 10.0, None))
        self.assertFalse(binding.is_constant)
        self.assertIsNone(binding.constants[2])
        self.assertEqual(binding.node("delta").kind, "placeholder")
        self.assertEqual(binding.variable_names, ("start", "limit", "delta"))
        with self.assertRaises(GraphImportError):
            binding.scalars()

    def test_first_matching_node_wins(self):
        # An earlier node also provides "start"
        model = _testing.range_graph(
            0.0, 10.0, 1.0, extra_nodes=[_testing.const("start", 5.0)]
        )
        binding = _bind(model)
        self.assertEqual(binding.scalars()[0], 5.0)

    def test_operand_missing_from_foreign_graph_raises(self):
        foreign_graph = ForeignGraph.from_onnx(_testing.range_graph())
        graph = _testing.graph_with_variables(foreign_graph)
        node = ForeignNode("r", "Range", inputs=("start", "limit", "nowhere"), outputs=("o",))
        with self.assertRaises(GraphImportError) as cm:
            bind_operands(node, graph, foreign_graph, _POSITIONS)
        self.assertEqual(cm.exception.position, "delta")
        self.assertEqual(cm.exception.node_name, "r")
        self.assertIn("nowhere", str(cm.exception))

    def test_operand_missing_from_node_raises(self):
        foreign_graph = ForeignGraph.from_onnx(_testing.range_graph())
        graph = _testing.graph_with_variables(foreign_graph)
        node = ForeignNode("r", "Range", inputs=("start", "limit"), outputs=("o",))
        with self.assertRaises(GraphImportError) as cm:
            bind_operands(node, graph, foreign_graph, _POSITIONS)
        self.assertEqual(cm.exception.position, "delta")

    def test_reference_without_variable_raises(self):
        foreign_graph = ForeignGraph.from_onnx(_testing.range_graph())
        graph = _testing.graph_with_variables(foreign_graph)
        node = ForeignNode(
            "r", "Range", inputs=("start", "limit", "range:0"), outputs=("o",)
        )
        with self.assertRaises(GraphImportError) as cm:
            bind_operands(node, graph, foreign_graph, _POSITIONS)
        self.assertEqual(cm.exception.position, "delta")

    def test_port_suffix_resolves_to_variable(self):
        foreign_graph = ForeignGraph.from_onnx(_testing.range_graph(0.0, 4.0, 1.0))
        graph = _testing.graph_with_variables(foreign_graph)
        node = ForeignNode(
            "r", "Range", inputs=("start:0", "limit:0", "^delta"), outputs=("o",)
        )
        binding = bind_operands(node, graph, foreign_graph, _POSITIONS)
        self.assertEqual(binding.variable_names, ("start", "limit", "delta"))
        self.assertTrue(binding.is_constant)

    def test_malformed_constant_names_position(self):
        tensor = onnx.TensorProto()
        tensor.name = "limit"
        tensor.data_type = onnx.TensorProto.FLOAT
        tensor.dims.extend([2])
        tensor.raw_data = b"\x00"
        bad_limit = onnx.helper.make_node("Constant", [], ["limit"], name="limit", value=tensor)
        model = _testing.range_graph(0.0, 1.0, 1.0, extra_nodes=[bad_limit])
        with self.assertRaises(GraphImportError) as cm:
            _bind(model)
        self.assertEqual(cm.exception.position, "limit")

    def test_empty_constant_has_no_scalar(self):
        model = _testing.range_graph(
            0.0, 1.0, 1.0, extra_nodes=[_testing.const("delta", np.zeros((0,)))]
        )
        binding = _bind(model)
        with self.assertRaises(GraphImportError) as cm:
            binding.scalars()
        self.assertEqual(cm.exception.position, "delta")


class CardinalityMarkerTest(unittest.TestCase):
    def test_rank_is_a_marker_case_insensitively(self):
        self.assertTrue(is_cardinality_marker(ForeignNode("Rank", "Constant")))
        self.assertTrue(is_cardinality_marker(ForeignNode("rank", "Constant")))

    def test_other_names_are_not_markers(self):
        self.assertFalse(is_cardinality_marker(ForeignNode("range/limit", "Constant")))
        self.assertFalse(is_cardinality_marker(ForeignNode("", "Constant")))

    def test_custom_markers(self):
        node = ForeignNode("Size", "Constant")
        self.assertTrue(is_cardinality_marker(node, {"size"}))
        self.assertFalse(is_cardinality_marker(node))


if __name__ == "__main__":
    unittest.main()
