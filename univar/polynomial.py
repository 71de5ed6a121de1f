from __future__ import annotations

import logging
import re
from collections import defaultdict

from univar import (
    Expression,
    ParsingException,
    Power,
    Product,
    Sum,
    UnexpectedCharacterException,
    UnexpectedEndException,
    Value,
    Variable,
    format_number,
)

logger = logging.getLogger(__name__)

_TERM_RE = re.compile(
    r"(?P<sign>[+-])?"
    r"(?P<coefficient>\d+\.?\d*|\.\d+)?"
    r"(?:\*?(?P<variable>x)(?:\^(?P<power>\d+))?)?"
)


class Polynomial:
    """A polynomial in x stored as ascending coefficients.

    ``Polynomial([1, 0, 3])`` is ``3x^2 + 1``. Trailing zero coefficients are
    dropped so that equal polynomials compare equal.
    """

    def __init__(self, coefficients):
        coefficients = [float(coefficient) for coefficient in coefficients]

        while len(coefficients) > 1 and coefficients[-1] == 0:
            coefficients.pop()

        self.coefficients: tuple[float, ...] = tuple(coefficients) or (0.0,)

    @classmethod
    def parse(cls, text: str) -> Polynomial:
        text = "".join(text.split())

        if not text:
            raise UnexpectedEndException("Empty polynomial", 0)

        coefficients: dict[int, float] = defaultdict(float)
        position = 0

        while position < len(text):
            match = _TERM_RE.match(text, position)

            if not (match["coefficient"] or match["variable"]):
                raise UnexpectedCharacterException(
                    f"Unexpected character {text[position]!r} in polynomial", position, text[position]
                )

            if position > 0 and not match["sign"]:
                raise ParsingException("Expected '+' or '-' between terms", position, text[position])

            coefficient = float(match["coefficient"]) if match["coefficient"] else 1.0
            if match["sign"] == "-":
                coefficient = -coefficient

            if not match["variable"]:
                power = 0
            elif match["power"]:
                power = int(match["power"])
            else:
                power = 1

            coefficients[power] += coefficient
            position = match.end()

        polynomial = cls([coefficients[power] for power in range(max(coefficients) + 1)])
        logger.debug("Parsed polynomial %r into %r", text, polynomial)

        return polynomial

    @property
    def degree(self) -> int:
        return len(self.coefficients) - 1

    def evaluate(self, x: float) -> float:
        # Horner's rule
        result = 0.0
        for coefficient in reversed(self.coefficients):
            result = result * x + coefficient

        return result

    def differentiate(self) -> Polynomial:
        return Polynomial(
            [power * coefficient for power, coefficient in enumerate(self.coefficients)][1:]
        )

    def to_expression(self) -> Expression:
        terms = [
            Product(Value(coefficient), Power(Variable(), Value(power)))
            for power, coefficient in enumerate(self.coefficients)
            if coefficient != 0
        ]

        if not terms:
            return Value(0)

        expr = terms[0]
        for term in terms[1:]:
            expr = Sum(expr, term)

        return expr

    def to_str(self) -> str:
        out = ""

        for power in range(self.degree, -1, -1):
            coefficient = self.coefficients[power]
            if coefficient == 0:
                continue

            if out:
                out += " - " if coefficient < 0 else " + "
            elif coefficient < 0:
                out += "-"

            magnitude = format_number(abs(coefficient))

            if power == 0:
                out += magnitude
                continue

            if magnitude != "1":
                out += magnitude

            out += "x" if power == 1 else f"x^{power}"

        return out or "0"

    def __eq__(self, other):
        if not isinstance(other, Polynomial):
            return False

        return self.coefficients == other.coefficients

    def __hash__(self):
        return hash(self.coefficients)

    def __str__(self):
        return self.to_str()

    def __repr__(self):
        return f"Polynomial({list(self.coefficients)})"
