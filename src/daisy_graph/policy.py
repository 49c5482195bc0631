"""Numeric policy for patch parameters: type, range and encoder step size."""

from __future__ import annotations

import math
from typing import Optional

from daisy_graph.models import ParamType

# About four full twists of a detented encoder across the whole range.
IDEAL_STEPS = 100


def _is_integral(v: float) -> bool:
    return float(v).is_integer()


def _round_half_up(v: float) -> int:
    return math.floor(v + 0.5)


def stepsize(minimum: float, maximum: float, default: float, type_: ParamType = "float") -> float:
    """Return the control step size for a parameter.

    - ``int`` / ``bool``: 1
    - integral max and default, 2 < range < 10: 1/12 (a volt-per-octave span)
    - integral max and default, range >= 10: the power of two closest (in
      log2) to range / 100
    - otherwise: range / 100
    """
    if type_ in ("int", "bool"):
        return 1.0
    span = maximum - minimum
    if span > 2 and _is_integral(maximum) and _is_integral(default):
        if span < 10:
            return 1 / 12
        return 2.0 ** _round_half_up(math.log2(span / IDEAL_STEPS))
    return span / IDEAL_STEPS


def derive(
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
    default: Optional[float] = None,
    type_: ParamType = "float",
) -> tuple[ParamType, float]:
    """Return ``(type, stepsize)`` for a parameter.

    Missing bounds take ``min=0``, ``max=1``, ``default=0``.
    """
    lo = 0.0 if minimum is None else minimum
    hi = 1.0 if maximum is None else maximum
    init = 0.0 if default is None else default
    return type_, stepsize(lo, hi, init, type_)
