# Copyright (c) ONNX Project Contributors
# SPDX-License-Identifier: Apache-2.0
"""Length and elements of start/stop/step sequences.

Floating-point sequences are enumerated by repeated accumulation of ``step``
in double precision, the same way the reference numeric library walks them.
The length of ``(0.0, 1.0, 0.3)`` is therefore 4 (``0.0, 0.3, 0.6,
0.8999999999999999``) even though a closed-form ``ceil`` would disagree near
other boundaries. Integer sequences use the exact closed form, which always
agrees with enumeration.
"""

from __future__ import annotations

__all__ = [
    "enumerate_sequence",
    "sequence_length",
]

import math
import numbers
from collections.abc import Iterator
from typing import Union

from graphimport._errors import NonTerminatingSequenceError

Number = Union[int, float]

# Beyond this many elements the running value can no longer advance by ``step``.
_MAX_FLOAT_ELEMENTS = 2**53


def _is_integral(*values: object) -> bool:
    return all(isinstance(v, numbers.Integral) for v in values)


def _check_terminates(start: Number, stop: Number, step: Number) -> None:
    if step == 0:
        raise NonTerminatingSequenceError(
            f"Sequence from {start} to {stop} with step 0 does not terminate"
        )
    if start < stop and step < 0:
        raise NonTerminatingSequenceError(
            f"Ascending sequence from {start} to {stop} with negative step {step} "
            "does not terminate"
        )
    if not _is_integral(start, stop, step):
        if math.isinf(stop) and start == start:
            raise NonTerminatingSequenceError(
                f"Sequence from {start} to {stop} does not terminate"
            )
        span = abs(float(stop) - float(start))
        if span / abs(float(step)) > _MAX_FLOAT_ELEMENTS:
            raise NonTerminatingSequenceError(
                f"Sequence from {start} to {stop} with step {step} cannot be "
                "enumerated in double precision"
            )


def _accumulate(start: Number, stop: Number, step: Number) -> Iterator[Number]:
    e = start
    if start > stop:
        stride = -step if step > 0 else step
        while e > stop:
            yield e
            advanced = e + stride
            if advanced == e:
                raise NonTerminatingSequenceError(f"Sequence stalled at {e}")
            e = advanced
    else:
        while e < stop:
            yield e
            advanced = e + step
            if advanced == e:
                raise NonTerminatingSequenceError(f"Sequence stalled at {e}")
            e = advanced


def enumerate_sequence(start: Number, stop: Number, step: Number) -> Iterator[Number]:
    """Iterate over the elements of a start/stop/step sequence.

    When ``start > stop`` the sequence descends by ``abs(step)`` while the
    element is greater than ``stop``; otherwise it ascends by ``step`` while the
    element is less than ``stop``. Integer inputs yield ints, anything else
    yields floats.

    Raises:
        NonTerminatingSequenceError: Eagerly, if the sequence never ends.
    """
    if not _is_integral(start, stop, step):
        start, stop, step = float(start), float(stop), float(step)
    else:
        start, stop, step = int(start), int(stop), int(step)
    if start == stop:
        return iter(())
    _check_terminates(start, stop, step)
    return _accumulate(start, stop, step)


def sequence_length(start: Number, stop: Number, step: Number) -> int:
    """Return the number of elements in the sequence from ``start`` toward ``stop``.

    ``start == stop`` always gives 0, whatever the step. A zero step between
    distinct bounds, or a step pointing away from ``stop``, raises instead of
    looping. NaN bounds give 0.

    Args:
        start: First element.
        stop: Exclusive bound.
        step: Increment. Its sign is ignored for descending sequences.

    Returns:
        The element count, a non-negative int.

    Raises:
        NonTerminatingSequenceError: If the sequence never ends.
    """
    if _is_integral(start, stop, step):
        start, stop, step = int(start), int(stop), int(step)
        if start == stop:
            return 0
        _check_terminates(start, stop, step)
        if start > stop:
            span, stride = start - stop, abs(step)
        else:
            span, stride = stop - start, step
        return -(-span // stride)

    count = 0
    for _ in enumerate_sequence(start, stop, step):
        count += 1
    return count
