from __future__ import annotations

import logging
import math
import numbers

import numpy

from univar import ExpressionEvaluationException

logger = logging.getLogger(__name__)

SAMPLE_FAILURE = math.nan


def sample_arrays(function, start: float, end: float, count: int) -> tuple[numpy.ndarray, numpy.ndarray]:
    """Evaluate ``function`` at ``count`` evenly spaced points of [start, end].

    A point whose evaluation fails gets ``SAMPLE_FAILURE`` as its y value, the
    remaining points are still evaluated.
    """
    if start > end:
        raise ValueError(f"Sampling interval [{start}, {end}] is empty.")

    if isinstance(count, bool) or not isinstance(count, numbers.Integral) or count < 2:
        raise ValueError(f"Can't sample {count!r} points, at least 2 are needed.")

    xs = numpy.linspace(start, end, count)
    ys = numpy.empty(count)

    for i, x in enumerate(xs):
        try:
            ys[i] = function.evaluate(float(x))
        except ExpressionEvaluationException as e:
            logger.debug("Sample at x=%s failed: %s", x, e)
            ys[i] = SAMPLE_FAILURE

    return xs, ys


def sample(function, start: float, end: float, count: int) -> list[tuple[float, float]]:
    xs, ys = sample_arrays(function, start, end, count)

    return [(float(x), float(y)) for x, y in zip(xs, ys)]
