# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Errors and warnings raised while importing graphs and inferring shapes."""

from __future__ import annotations

__all__ = [
    "GraphImportError",
    "ImportFailure",
    "InconsistentSourceError",
    "InconsistentSourceWarning",
    "InvalidOperandError",
    "NonTerminatingSequenceError",
]

import dataclasses
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from graphimport._foreign import ForeignNode


class GraphImportError(Exception):
    """A foreign node could not be imported.

    Raised for structurally invalid input, for example an operand reference
    that does not exist in the foreign graph or a constant whose payload
    cannot be decoded.

    Attributes:
        node_name: Name of the foreign node being imported, if known.
        position: Name of the operand position at fault, if any.
    """

    def __init__(
        self, message: str, *, node_name: str | None = None, position: str | None = None
    ) -> None:
        super().__init__(message)
        self.node_name = node_name
        self.position = position


class NonTerminatingSequenceError(ValueError):
    """The start/stop/step triple describes a sequence that never ends."""


class InvalidOperandError(ValueError):
    """An operand does not have the form an operator requires."""


class InconsistentSourceError(ValueError):
    """More than one argument source is populated and the policy is strict."""


class InconsistentSourceWarning(UserWarning):
    """More than one argument source is populated; the first by priority is used."""


@dataclasses.dataclass(frozen=True)
class ImportFailure:
    """A foreign node skipped by a non-strict import.

    Attributes:
        node_name: Name of the skipped node, ``None`` if it is unnamed.
        op_type: Foreign operator type, or ``"Initializer"``/``"Placeholder"``
            for graph values.
        domain: Foreign operator domain.
        message: Why the node was skipped.
        position: Operand position at fault, when the failure concerns a
            single operand.
    """

    node_name: str | None
    op_type: str
    domain: str
    message: str
    position: str | None = None

    @classmethod
    def from_exception(cls, node: ForeignNode, error: Exception) -> ImportFailure:
        return cls(
            node_name=node.name or None,
            op_type=node.op_type,
            domain=node.domain,
            message=str(error),
            position=getattr(error, "position", None),
        )

    def __str__(self) -> str:
        qualified = f"{self.domain}.{self.op_type}" if self.domain else self.op_type
        node = repr(self.node_name) if self.node_name else "<unnamed>"
        operand = f" at operand {self.position!r}" if self.position else ""
        return f"Skipped {qualified} node {node}{operand}: {self.message}"
