# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Imported operators.

This module imports all operator classes to ensure they are registered with
the global registry.
"""

from graphimport._ops._base import OpaqueOperator, OpKind, Operator
from graphimport._ops._range import Range

__all__ = [
    "OpKind",
    "OpaqueOperator",
    "Operator",
    "Range",
]
