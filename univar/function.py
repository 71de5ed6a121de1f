from __future__ import annotations

import itertools
import logging
import threading
import typing

from univar import Expression, parse, simplify

logger = logging.getLogger(__name__)


class Representation(typing.Protocol):
    def evaluate(self, x: float) -> float:
        ...

    def differentiate(self) -> "Representation":
        ...


# ids start at 1 and are shared by every Function in the process
_ids = itertools.count(1)
_ids_lock = threading.Lock()


def _next_id() -> int:
    with _ids_lock:
        return next(_ids)


class Function:
    """A numbered function of x over any representation.

    The representation is an expression tree, a polynomial, or anything else
    with ``evaluate`` and ``differentiate``; text is parsed into a tree. Two
    functions are equal when their rendered text is equal, whatever their ids.
    """

    def __init__(self, representation: Representation | str):
        if isinstance(representation, str):
            representation = parse(representation)

        self.representation = representation
        self.id = _next_id()

        logger.debug("Created f%d(x) = %s", self.id, representation)

    def evaluate(self, x: float) -> float:
        return self.representation.evaluate(x)

    def derivative(self) -> Function:
        return Function(_tidy(self.representation.differentiate()))

    def simplified(self) -> Function:
        return Function(_tidy(self.representation))

    def __eq__(self, other):
        if not isinstance(other, Function):
            return False

        return str(self) == str(other)

    def __hash__(self):
        return hash(str(self))

    def __str__(self):
        return str(self.representation)

    def __repr__(self):
        return f"f{self.id}(x) = {self}"


def _tidy(representation: Representation) -> Representation:
    if isinstance(representation, Expression):
        return simplify(representation)

    return representation
