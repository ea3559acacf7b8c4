# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""End-to-end tests for importing ONNX graphs."""

from __future__ import annotations

import unittest

import numpy as np
import onnx
import onnx.helper
import onnx.numpy_helper

import graphimport
from graphimport import _testing


def _model(nodes, inputs=(), initializers=(), opset_version=17) -> onnx.ModelProto:
    graph = onnx.helper.make_graph(
        list(nodes),
        "g",
        list(inputs),
        [],
        initializer=list(initializers),
    )
    return onnx.helper.make_model(
        graph, opset_imports=[onnx.helper.make_opsetid("", opset_version)]
    )


class ImportGraphTest(unittest.TestCase):
    def test_constant_range_is_imported(self):
        result = graphimport.import_graph(_testing.range_graph(0.0, 1.0, 0.3))
        self.assertEqual(result.errors, ())
        (op,) = result.graph.operators
        self.assertIsInstance(op, graphimport.Range)
        self.assertEqual(op.calculate_output_shape(), [[4]])
        self.assertEqual(result.graph.pending, ())

    def test_constant_nodes_become_variables_with_values(self):
        result = graphimport.import_graph(_testing.range_graph(2.0, 8.0, 3.0))
        graph = result.graph
        for name, value in (("start", 2.0), ("limit", 8.0), ("delta", 3.0)):
            self.assertTrue(graph.has_value(name))
            self.assertEqual(graph.get_array(name), value)
            self.assertIsNone(graph.get_variable(name).producer)

    def test_placeholder_keeps_static_type(self):
        model = _model(
            [],
            inputs=[onnx.helper.make_tensor_value_info("x", onnx.TensorProto.INT64, [3, 2])],
        )
        graph = graphimport.import_graph(model).graph
        self.assertEqual(graph.get_variable("x").dtype, np.dtype(np.int64))
        self.assertEqual(graph.get_shape("x"), [3, 2])
        self.assertFalse(graph.has_value("x"))

    def test_initializer_operands_are_constant(self):
        initializers = [
            onnx.numpy_helper.from_array(np.array(value, dtype=np.int64), name=name)
            for name, value in (("start", 0), ("limit", 6), ("delta", 2))
        ]
        model = _model(
            [onnx.helper.make_node("Range", ["start", "limit", "delta"], ["out"], name="r")],
            initializers=initializers,
        )
        graph = graphimport.import_graph(model).graph
        (op,) = graph.operators
        self.assertEqual((op.from_, op.to, op.delta), (0.0, 6.0, 2.0))
        self.assertEqual(graph.get_shape("out"), [3])

    def test_feed_and_resolve_pending(self):
        result = graphimport.import_graph(_testing.range_graph(None, 10.0, None))
        graph = result.graph
        (op,) = graph.pending
        self.assertFalse(op.is_shape_known())

        graph.feed("start", np.array(4.0, dtype=np.float32))
        self.assertEqual(graph.resolve_pending(), [])
        graph.feed("delta", np.array(2.0, dtype=np.float32))
        self.assertEqual(graph.resolve_pending(), [op])

        self.assertEqual(graph.get_shape("output"), [3])
        np.testing.assert_array_equal(graph.evaluate("output"), [4.0, 6.0, 8.0])
        self.assertEqual(graph.evaluate("output").dtype, np.dtype(np.float32))

    def test_chained_ranges_resolve_in_dependency_order(self):
        # The single element of "first" is the limit of "second"
        nodes = [
            _testing.const("zero", 0.0),
            _testing.const("one", 1.0),
            _testing.const("three", 3.0),
            onnx.helper.make_node("Range", ["n", "three", "one"], ["first"], name="first"),
            onnx.helper.make_node("Range", ["zero", "first", "one"], ["second"], name="second"),
        ]
        model = _model(nodes, inputs=[_testing.placeholder("n")])
        graph = graphimport.import_graph(model).graph
        self.assertEqual(len(graph.pending), 2)

        graph.feed("n", np.array(2.0, dtype=np.float32))
        resolved = graph.resolve_pending()
        self.assertEqual([op.name for op in resolved], ["first", "second"])
        self.assertEqual(graph.get_shape("first"), [1])
        np.testing.assert_array_equal(graph.get_array("first"), [2.0])
        self.assertEqual(graph.get_shape("second"), [2])

    def test_cardinality_marker_limit(self):
        result = graphimport.import_graph(
            _testing.range_graph(3.0, 0.0, 7.0, limit_name="Rank")
        )
        (op,) = result.graph.operators
        self.assertEqual(op.calculate_output_shape(), [[1]])


class GraphImporterOptionsTest(unittest.TestCase):
    def test_unregistered_op_is_opaque_and_warned_once(self):
        nodes = [
            onnx.helper.make_node("Mystery", [], ["a"], name="m1"),
            onnx.helper.make_node("Mystery", ["a"], ["b"], name="m2"),
        ]
        with self.assertLogs("graphimport._importer", level="WARNING") as cm:
            result = graphimport.GraphImporter()(_model(nodes))
        self.assertEqual(len(cm.records), 1)
        self.assertIn("Mystery", cm.output[0])
        ops = result.graph.operators
        self.assertEqual([op.op_type for op in ops], [graphimport.OpKind.OPAQUE] * 2)
        self.assertEqual(ops[0].calculate_output_shape(), [])
        self.assertIs(result.graph.get_variable("b").producer, ops[1])

    def test_old_opset_range_is_opaque(self):
        result = graphimport.GraphImporter(warn_on_missing=False)(
            _testing.range_graph(opset_version=10)
        )
        (op,) = result.graph.operators
        self.assertIsInstance(op, graphimport.OpaqueOperator)
        self.assertEqual(op.foreign_op_type, "Range")

    def test_failures_are_recorded(self):
        model = _testing.range_graph(0.0, 10.0, 0.0)
        with self.assertLogs("graphimport._importer", level="WARNING"):
            result = graphimport.GraphImporter()(model)
        (failure,) = result.errors
        self.assertEqual(failure.node_name, "range")
        self.assertEqual(failure.op_type, "Range")
        self.assertIn("does not terminate", failure.message)
        self.assertEqual(result.graph.operators, ())
        self.assertFalse(result.graph.has_variable("output"))

    def test_strict_raises_on_first_failure(self):
        model = _testing.range_graph(0.0, 10.0, 0.0)
        with self.assertRaises(graphimport.NonTerminatingSequenceError):
            graphimport.GraphImporter(strict=True)(model)

    def test_missing_operand_is_recorded(self):
        nodes = [onnx.helper.make_node("Range", ["a", "b", "c"], ["out"], name="r")]
        with self.assertLogs("graphimport._importer", level="WARNING"):
            result = graphimport.import_graph(_model(nodes))
        (failure,) = result.errors
        self.assertIn("'start'", failure.message)
        self.assertEqual(failure.position, "start")
        self.assertTrue(str(failure).startswith("Skipped Range node 'r' at operand 'start': "))

    def test_malformed_initializer_is_recorded(self):
        bad = onnx.TensorProto()
        bad.name = "w"
        bad.data_type = onnx.TensorProto.FLOAT
        bad.dims.extend([2])
        bad.raw_data = b"\x00"
        good = onnx.numpy_helper.from_array(np.array([1.0], dtype=np.float32), name="v")
        nodes = [
            _testing.const("start", 0.0),
            _testing.const("limit", 2.0),
            _testing.const("delta", 1.0),
            onnx.helper.make_node("Range", ["start", "limit", "delta"], ["out"], name="r"),
        ]
        model = _model(nodes, initializers=[bad, good])

        with self.assertLogs("graphimport._importer", level="WARNING"):
            result = graphimport.GraphImporter()(model)
        (failure,) = result.errors
        self.assertEqual(failure.node_name, "w")
        self.assertEqual(failure.op_type, "Initializer")
        self.assertFalse(result.graph.has_variable("w"))
        self.assertTrue(result.graph.has_value("v"))
        self.assertEqual(result.graph.get_shape("out"), [2])

    def test_malformed_initializer_raises_when_strict(self):
        bad = onnx.TensorProto()
        bad.name = "w"
        bad.data_type = onnx.TensorProto.FLOAT
        bad.dims.extend([2])
        bad.raw_data = b"\x00"
        with self.assertRaises(graphimport.GraphImportError):
            graphimport.GraphImporter(strict=True)(_model([], initializers=[bad]))

    def test_duplicate_initializer_is_recorded(self):
        initializers = [
            onnx.numpy_helper.from_array(np.array(value, dtype=np.float32), name="w")
            for value in (1.0, 2.0)
        ]
        with self.assertLogs("graphimport._importer", level="WARNING"):
            result = graphimport.GraphImporter()(_model([], initializers=initializers))
        (failure,) = result.errors
        self.assertEqual(failure.node_name, "w")
        self.assertIsNone(failure.position)
        self.assertEqual(result.graph.get_array("w"), 1.0)

    def test_conflict_policy_reaches_operators(self):
        result = graphimport.GraphImporter(conflict_policy="strict")(
            _testing.range_graph(0.0, 3.0, 1.0)
        )
        (op,) = result.graph.operators
        self.assertEqual(op.conflict_policy, "strict")
        op.add_int_args(0, 5, 1)
        with self.assertRaises(graphimport.InconsistentSourceError):
            op.calculate_output_shape()


if __name__ == "__main__":
    unittest.main()
