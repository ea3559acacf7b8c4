# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Argument sources of an operator and the priority rule that picks one.

An operator's numeric parameters can arrive as integer attributes, float
attributes, or runtime tensor inputs. Exactly one :data:`ArgumentSource` is
used per shape inference call, chosen by priority:

1. integer attributes,
2. float attributes,
3. tensor inputs.

When several are populated the first wins. This precedence is kept for
compatibility with graphs produced by existing importers; the conflict is
reported through :class:`~graphimport.InconsistentSourceWarning` unless the
policy says otherwise.
"""

from __future__ import annotations

__all__ = [
    "ArgumentSource",
    "FloatArgs",
    "IntArgs",
    "SourceConflictPolicy",
    "TensorArgs",
    "resolve_argument_source",
]

import dataclasses
import logging
import warnings
from collections.abc import Sequence
from typing import TYPE_CHECKING, ClassVar, Literal, Union

import numpy as np

from graphimport._errors import (
    InconsistentSourceError,
    InconsistentSourceWarning,
    InvalidOperandError,
)

if TYPE_CHECKING:
    from graphimport._ops._base import Operator

logger = logging.getLogger(__name__)

SourceConflictPolicy = Literal["silent", "warn", "strict"]
"""What to do when more than one argument source is populated.

* ``"silent"``: Use the highest-priority source, log at debug level.
* ``"warn"``: Use the highest-priority source and emit
    :class:`~graphimport.InconsistentSourceWarning`.
* ``"strict"``: Raise :class:`~graphimport.InconsistentSourceError`.
"""


@dataclasses.dataclass(frozen=True)
class IntArgs:
    """Compile-time integer attributes."""

    kind: ClassVar[str] = "int"

    start: int
    stop: int
    step: int

    def scalars(self) -> tuple[int, int, int]:
        return self.start, self.stop, self.step


@dataclasses.dataclass(frozen=True)
class FloatArgs:
    """Compile-time floating-point attributes."""

    kind: ClassVar[str] = "float"

    start: float
    stop: float
    step: float

    def scalars(self) -> tuple[float, float, float]:
        return self.start, self.stop, self.step


@dataclasses.dataclass(frozen=True, eq=False)
class TensorArgs:
    """Runtime tensor inputs, each expected to hold a single element."""

    kind: ClassVar[str] = "tensor"

    start: np.ndarray
    stop: np.ndarray
    step: np.ndarray

    def scalars(self) -> tuple[float, float, float]:
        """Read the three tensors as doubles.

        Raises:
            InvalidOperandError: If a tensor does not hold exactly one element.
        """
        values = []
        for position, tensor in zip(("start", "stop", "step"), (self.start, self.stop, self.step)):
            array = np.asarray(tensor)
            if array.size != 1:
                raise InvalidOperandError(
                    f"Tensor argument {position!r} must hold exactly one element, "
                    f"got shape {array.shape}"
                )
            values.append(float(array.reshape(-1)[0]))
        return values[0], values[1], values[2]

    @property
    def dtype(self) -> np.dtype:
        return np.asarray(self.start).dtype


ArgumentSource = Union[IntArgs, FloatArgs, TensorArgs]


def _take_three(kind: str, values: Sequence[object], op_name: str | None) -> tuple:
    if len(values) < 3:
        raise InvalidOperandError(
            f"Operator {op_name!r} has {len(values)} {kind} argument(s), expected 3"
        )
    return values[0], values[1], values[2]


def resolve_argument_source(
    op: Operator,
    *,
    conflict_policy: SourceConflictPolicy = "warn",
) -> ArgumentSource | None:
    """Select the argument source an operator's shape is computed from.

    Args:
        op: The operator to inspect.
        conflict_policy: How to react when more than one source is populated.

    Returns:
        The active source, or ``None`` if nothing is populated yet (a valid
        state while references are still being resolved).

    Raises:
        InconsistentSourceError: If several sources are populated and
            ``conflict_policy`` is ``"strict"``.
        InvalidOperandError: If the active source does not hold three values.
    """
    populated = [
        kind
        for kind, values in (
            ("int", op.int_args),
            ("float", op.float_args),
            ("tensor", op.input_arguments),
        )
        if values
    ]
    if not populated:
        return None

    if len(populated) > 1:
        message = (
            f"Operator {op.name!r} has {', '.join(populated)} argument sources "
            f"populated; using {populated[0]}"
        )
        if conflict_policy == "strict":
            raise InconsistentSourceError(message)
        if conflict_policy == "warn":
            logger.warning("%s", message)
            warnings.warn(message, InconsistentSourceWarning, stacklevel=3)
        else:
            logger.debug("%s", message)

    active = populated[0]
    if active == "int":
        start, stop, step = _take_three(active, op.int_args, op.name)
        return IntArgs(int(start), int(stop), int(step))
    if active == "float":
        start, stop, step = _take_three(active, op.float_args, op.name)
        return FloatArgs(float(start), float(stop), float(step))
    start, stop, step = _take_three(active, op.input_arguments, op.name)
    return TensorArgs(np.asarray(start), np.asarray(stop), np.asarray(step))
