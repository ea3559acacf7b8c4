# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Options shared by the importer and the operators it creates."""

from __future__ import annotations

__all__ = [
    "ImportOptions",
]

import dataclasses
from collections.abc import Collection

from graphimport._arguments import SourceConflictPolicy

# Node names that stand for an element count rather than an explicit bound
CARDINALITY_MARKERS: frozenset[str] = frozenset({"rank"})


@dataclasses.dataclass(frozen=True)
class ImportOptions:
    """Options controlling how operators are imported and resolved.

    Attributes:
        conflict_policy: What to do when an operator has more than one argument
            source populated. See :data:`~graphimport.SourceConflictPolicy`.
        cardinality_markers: Case-insensitive names of limit nodes that stand
            for an element count (e.g. a folded ``Rank``) rather than an
            explicit bound.
    """

    conflict_policy: SourceConflictPolicy = "warn"
    cardinality_markers: Collection[str] = CARDINALITY_MARKERS
