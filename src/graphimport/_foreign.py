# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Read-only view of a parsed foreign (ONNX protobuf) graph.

The importer needs the graph as an ordered list of named nodes, the way
graph formats that model constants and placeholders as nodes present it.
:meth:`ForeignGraph.from_onnx` therefore lists initializers and graph inputs
as pseudo-nodes ahead of the operator nodes.
"""

from __future__ import annotations

__all__ = [
    "ForeignGraph",
    "ForeignNode",
    "variable_name",
]

import dataclasses
import logging
import re
from collections.abc import Iterator, Mapping, Sequence
from typing import Any, Literal, Union

import numpy as np
import onnx
import onnx.defs
import onnx.helper
import onnx.numpy_helper

from graphimport._errors import GraphImportError

logger = logging.getLogger(__name__)

ForeignNodeKind = Literal["initializer", "placeholder", "node"]

_PORT_SUFFIX = re.compile(r":\d+$")


def variable_name(reference: str) -> str:
    """Strip control-dependency markers and output port suffixes from a reference.

    ``"^range/start"`` and ``"range/start:0"`` both refer to ``"range/start"``.
    """
    if reference.startswith("^"):
        reference = reference[1:]
    return _PORT_SUFFIX.sub("", reference)


@dataclasses.dataclass(frozen=True)
class ForeignNode:
    """A node of the foreign graph.

    Attributes:
        name: Node name. For pseudo-nodes this is the value name.
        op_type: Operator type; ``"Initializer"`` or ``"Placeholder"`` for
            pseudo-nodes.
        inputs: Names of the values the node consumes.
        outputs: Names of the values the node produces.
        domain: Operator domain.
        kind: Whether the node is an initializer, a graph input or an operator.
        proto: The underlying protobuf message.
    """

    name: str
    op_type: str
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()
    domain: str = ""
    kind: ForeignNodeKind = "node"
    proto: Any = dataclasses.field(default=None, compare=False, repr=False)

    def provides(self, reference: str) -> bool:
        """Whether ``reference`` names this node or one of its outputs."""
        if reference in self.outputs:
            return True
        return variable_name(reference) == self.name

    @property
    def attributes(self) -> Mapping[str, onnx.AttributeProto]:
        if self.kind != "node" or self.proto is None:
            return {}
        return {attr.name: attr for attr in self.proto.attribute}


GraphLike = Union[onnx.GraphProto, onnx.ModelProto]


def _value_type(value_info: onnx.ValueInfoProto) -> tuple[np.dtype | None, tuple[int, ...] | None]:
    if not value_info.type.HasField("tensor_type"):
        return None, None
    tensor_type = value_info.type.tensor_type
    dtype = None
    if tensor_type.elem_type != onnx.TensorProto.UNDEFINED:
        dtype = onnx.helper.tensor_dtype_to_np_dtype(tensor_type.elem_type)
    if not tensor_type.HasField("shape"):
        return dtype, None
    dims = []
    for dim in tensor_type.shape.dim:
        if not dim.HasField("dim_value"):
            return dtype, None
        dims.append(dim.dim_value)
    return dtype, tuple(dims)


class ForeignGraph:
    """An ordered, already-parsed foreign graph.

    Attributes:
        name: Graph name.
        opset_imports: Mapping from domain to opset version.
    """

    def __init__(
        self,
        nodes: Sequence[ForeignNode],
        *,
        name: str | None = None,
        opset_imports: Mapping[str, int] | None = None,
        value_types: Mapping[str, tuple[np.dtype | None, tuple[int, ...] | None]] | None = None,
    ) -> None:
        self._nodes = tuple(nodes)
        self.name = name
        self.opset_imports: Mapping[str, int] = opset_imports or {
            "": onnx.defs.onnx_opset_version()
        }
        self._value_types = dict(value_types or {})

    @classmethod
    def from_onnx(cls, proto: GraphLike) -> ForeignGraph:
        """Build the node list from an ONNX ``GraphProto`` or ``ModelProto``.

        Order: initializers, graph inputs that are not initializers, then the
        operator nodes in file order.
        """
        opset_imports = None
        if isinstance(proto, onnx.ModelProto):
            opset_imports = {opset.domain: opset.version for opset in proto.opset_import}
            proto = proto.graph

        nodes: list[ForeignNode] = []
        initializer_names = set()
        for tensor in proto.initializer:
            initializer_names.add(tensor.name)
            nodes.append(
                ForeignNode(
                    tensor.name,
                    "Initializer",
                    outputs=(tensor.name,),
                    kind="initializer",
                    proto=tensor,
                )
            )
        value_types = {}
        for value_info in proto.input:
            value_types[value_info.name] = _value_type(value_info)
            if value_info.name in initializer_names:
                continue
            nodes.append(
                ForeignNode(
                    value_info.name,
                    "Placeholder",
                    outputs=(value_info.name,),
                    kind="placeholder",
                    proto=value_info,
                )
            )
        for value_info in proto.value_info:
            value_types.setdefault(value_info.name, _value_type(value_info))
        for node in proto.node:
            nodes.append(
                ForeignNode(
                    node.name,
                    node.op_type,
                    inputs=tuple(node.input),
                    outputs=tuple(node.output),
                    domain=node.domain,
                    proto=node,
                )
            )
        logger.debug("Read foreign graph %r with %d nodes", proto.name, len(nodes))
        return cls(nodes, name=proto.name, opset_imports=opset_imports, value_types=value_types)

    @property
    def nodes(self) -> Sequence[ForeignNode]:
        return self._nodes

    def __iter__(self) -> Iterator[ForeignNode]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def find(self, reference: str) -> ForeignNode | None:
        """Return the first node that provides ``reference``, or ``None``."""
        for node in self._nodes:
            if node.provides(reference):
                return node
        return None

    def opset_version(self, domain: str) -> int:
        if domain in self.opset_imports:
            return self.opset_imports[domain]
        if domain in ("", "ai.onnx"):
            return self.opset_imports.get("", self.opset_imports.get("ai.onnx", 1))
        return 1

    def value_type(self, name: str) -> tuple[np.dtype | None, tuple[int, ...] | None]:
        """Return the declared dtype and static shape of a value, if any."""
        return self._value_types.get(name, (None, None))

    def get_constant(self, node: ForeignNode) -> np.ndarray | None:
        """Extract the constant tensor embedded in ``node``.

        Returns:
            The constant as an array, or ``None`` if the node is not
            constant-valued (a placeholder or a computed value).

        Raises:
            GraphImportError: If the node is a constant whose payload cannot be
                decoded.
        """
        if node.kind == "initializer":
            return self._decode(node, lambda: onnx.numpy_helper.to_array(node.proto))
        if node.kind != "node" or node.op_type != "Constant" or node.domain not in ("", "ai.onnx"):
            return None

        attributes = node.attributes
        if "value" in attributes:
            return self._decode(node, lambda: onnx.numpy_helper.to_array(attributes["value"].t))
        if "value_float" in attributes:
            return np.array(attributes["value_float"].f, dtype=np.float32)
        if "value_int" in attributes:
            return np.array(attributes["value_int"].i, dtype=np.int64)
        if "value_floats" in attributes:
            return np.array(attributes["value_floats"].floats, dtype=np.float32)
        if "value_ints" in attributes:
            return np.array(attributes["value_ints"].ints, dtype=np.int64)
        raise GraphImportError(
            f"Constant node {node.name!r} has no supported value attribute "
            f"(found {sorted(attributes)})",
            node_name=node.name,
        )

    @staticmethod
    def _decode(node: ForeignNode, extract) -> np.ndarray:
        try:
            return extract()
        except Exception as e:
            raise GraphImportError(
                f"Malformed constant in node {node.name!r}: {e}", node_name=node.name
            ) from e
