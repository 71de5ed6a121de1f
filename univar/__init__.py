from __future__ import annotations

import abc
import functools
import logging
import math
import string
import typing

import numpy

from univar import config

logger = logging.getLogger(__name__)

ADDITIVE = 1
MULTIPLICATIVE = 2
EXPONENTIAL = 3
ATOMIC = 4


def format_number(value: float) -> str:
    # positional only, the parser has no exponent notation
    return numpy.format_float_positional(value, trim="-")


class ParsingException(Exception):
    def __init__(self, message: str, position: int, character: str | None = None):
        super().__init__(f"{message} at position {position}.")
        self.message = message
        self.position = position
        self.character = character


class UnexpectedEndException(ParsingException): ...


class TrailingInputException(ParsingException): ...


class MissingParenthesisException(ParsingException): ...


class MalformedLogarithmException(ParsingException): ...


class UnexpectedCharacterException(ParsingException): ...


class MalformedNumberException(ParsingException): ...


class NestingTooDeepException(ParsingException): ...


class ExpressionEvaluationException(Exception): ...


class DivisionByZeroException(ExpressionEvaluationException): ...


class UnsupportedOperationException(ExpressionEvaluationException): ...


class InvalidStateException(ExpressionEvaluationException): ...


class Expression(abc.ABC):
    precedence: int = ATOMIC
    args: tuple[Expression, ...]
    depth: int

    def __init__(self, *args: Expression):
        object.__setattr__(self, "args", args)
        object.__setattr__(self, "depth", 1 + max((arg.depth for arg in args), default=0))
        # children are already hashed, so hashing a deep tree never recurses
        object.__setattr__(self, "_hash", hash((self.__class__.__name__, self.key(), args)))

    def __setattr__(self, key, value):
        raise AttributeError(f"{self.__class__.__name__} is immutable.")

    def __delattr__(self, key):
        raise AttributeError(f"{self.__class__.__name__} is immutable.")

    @staticmethod
    def from_str(text: str) -> Expression:
        return parse(text)

    def key(self) -> tuple:
        """What tells two nodes of the same class apart, apart from their children."""
        return ()

    def rebuild(self, *args: Expression) -> Expression:
        """Return a node of the same kind over new children."""
        return self.__class__(*args)

    def walk(self, visit: typing.Callable[[Expression, list], typing.Any]) -> typing.Any:
        """Combine the tree bottom-up.

        ``visit(node, results)`` receives the results of the node's children in
        order. An explicit stack is used instead of recursion, so the depth of
        the tree is not limited by the interpreter. Subtrees shared between
        several parents are visited once.
        """
        done: dict[int, typing.Any] = {}
        results: list = []
        stack: list[tuple[Expression, bool]] = [(self, False)]

        while stack:
            node, expanded = stack.pop()

            if not expanded:
                if id(node) in done:
                    results.append(done[id(node)])
                    continue

                stack.append((node, True))
                stack.extend((arg, False) for arg in reversed(node.args))
                continue

            start = len(results) - len(node.args)
            children = results[start:]
            del results[start:]

            done[id(node)] = result = visit(node, children)
            results.append(result)

        return results[0]

    def evaluate(self, x: float) -> float:
        return self.walk(lambda node, values: node.evaluate_node(x, values))

    def differentiate(self) -> Expression:
        return self.walk(lambda node, derivatives: node.differentiate_node(derivatives))

    def to_str(self) -> str:
        return self.walk(lambda node, texts: node.to_str_node(texts))

    def to_str_full(self) -> str:
        return self.walk(lambda node, texts: node.to_str_full_node(texts))

    @abc.abstractmethod
    def evaluate_node(self, x: float, values: list[float]) -> float:
        ...

    @abc.abstractmethod
    def differentiate_node(self, derivatives: list[Expression]) -> Expression:
        ...

    @abc.abstractmethod
    def to_str_node(self, texts: list[str]) -> str:
        ...

    def to_str_full_node(self, texts: list[str]) -> str:
        return f"{self.__class__.__name__}({', '.join(texts)})"

    def __eq__(self, other):
        if not isinstance(other, Expression):
            return False

        pending = [(self, other)]

        while pending:
            left, right = pending.pop()

            if left is right:
                continue

            if left._hash != right._hash or left.__class__ != right.__class__ or left.key() != right.key():
                return False

            pending.extend(zip(left.args, right.args))

        return True

    def __hash__(self):
        return self._hash

    def __str__(self):
        return self.to_str()

    def __repr__(self):
        return self.to_str_full()


def _grouped(expr: Expression, text: str, wrap: bool) -> str:
    # negative constants are grouped whenever they have a parent
    if wrap or (isinstance(expr, Value) and text.startswith("-")):
        return f"({text})"

    return text


class Value(Expression):
    def __init__(self, value: float):
        # adding 0.0 turns -0.0 into 0.0
        object.__setattr__(self, "value", float(value) + 0.0)
        super().__init__()

    def key(self) -> tuple:
        return (self.value,)

    def rebuild(self, *args: Expression) -> Expression:
        return self

    def evaluate_node(self, x: float, values: list[float]) -> float:
        return self.value

    def differentiate_node(self, derivatives: list[Expression]) -> Expression:
        return Value(0)

    def to_str_node(self, texts: list[str]) -> str:
        return format_number(self.value)

    def to_str_full_node(self, texts: list[str]) -> str:
        return f"Value({format_number(self.value)})"


class Variable(Expression):
    symbol = "x"

    def rebuild(self, *args: Expression) -> Expression:
        return self

    def evaluate_node(self, x: float, values: list[float]) -> float:
        return float(x)

    def differentiate_node(self, derivatives: list[Expression]) -> Expression:
        return Value(1)

    def to_str_node(self, texts: list[str]) -> str:
        return self.symbol


class UnaryOperation(Expression, abc.ABC):
    operator: str
    precedence = ADDITIVE

    def __init__(self, operand: Expression):
        super().__init__(operand)

    @property
    def operand(self) -> Expression:
        return self.args[0]

    @staticmethod
    def from_operator(operator: str, operand: Expression) -> UnaryOperation:
        try:
            return _UNARY_OPERATIONS[operator](operand)
        except KeyError as e:
            raise ValueError(f"Unknown unary operator {operator!r}.") from e

    def to_str_node(self, texts: list[str]) -> str:
        # "-(1+x)" and "-(-x)" would not read back as the same tree without them
        operand = _grouped(self.operand, texts[0], self.operand.precedence <= ADDITIVE)

        return f"{self.operator}{operand}"


class Negation(UnaryOperation):
    operator = "-"

    def evaluate_node(self, x: float, values: list[float]) -> float:
        return -values[0]

    def differentiate_node(self, derivatives: list[Expression]) -> Expression:
        return Negation(derivatives[0])


class Identity(UnaryOperation):
    operator = "+"

    def evaluate_node(self, x: float, values: list[float]) -> float:
        return values[0]

    def differentiate_node(self, derivatives: list[Expression]) -> Expression:
        return derivatives[0]


class BinaryOperation(Expression, abc.ABC):
    operator: str
    is_associative: bool = False

    def __init__(self, left: Expression, right: Expression):
        super().__init__(left, right)

    @property
    def left(self) -> Expression:
        return self.args[0]

    @property
    def right(self) -> Expression:
        return self.args[1]

    @staticmethod
    def from_operator(operator: str, left: Expression, right: Expression) -> BinaryOperation:
        try:
            return _BINARY_OPERATIONS[operator](left, right)
        except KeyError as e:
            raise ValueError(f"Unknown binary operator {operator!r}.") from e

    @abc.abstractmethod
    def apply(self, left: float, right: float) -> float:
        ...

    def evaluate_node(self, x: float, values: list[float]) -> float:
        return self.apply(*values)

    def to_str_node(self, texts: list[str]) -> str:
        left = _grouped(self.left, texts[0], self.left.precedence < self.precedence or (
                self.left.precedence == self.precedence and not self.is_associative))

        # equal precedence on the right is always grouped, even for + and *
        right = _grouped(self.right, texts[1], self.right.precedence <= self.precedence)

        return f"{left}{self.operator}{right}"


class Sum(BinaryOperation):
    operator = "+"
    precedence = ADDITIVE
    is_associative = True

    def apply(self, left: float, right: float) -> float:
        return left + right

    def differentiate_node(self, derivatives: list[Expression]) -> Expression:
        return Sum(*derivatives)


class Difference(BinaryOperation):
    operator = "-"
    precedence = ADDITIVE

    def apply(self, left: float, right: float) -> float:
        return left - right

    def differentiate_node(self, derivatives: list[Expression]) -> Expression:
        return Difference(*derivatives)


class Product(BinaryOperation):
    operator = "*"
    precedence = MULTIPLICATIVE
    is_associative = True

    def apply(self, left: float, right: float) -> float:
        return left * right

    def differentiate_node(self, derivatives: list[Expression]) -> Expression:
        d_left, d_right = derivatives

        return Sum(
            Product(d_left, self.right),
            Product(self.left, d_right)
        )


class Quotient(BinaryOperation):
    operator = "/"
    precedence = MULTIPLICATIVE

    def apply(self, left: float, right: float) -> float:
        if abs(right) < config.DIVISION_EPSILON:
            raise DivisionByZeroException(f"Division by {format_number(right)} in {self}.")

        return left / right

    def differentiate_node(self, derivatives: list[Expression]) -> Expression:
        d_left, d_right = derivatives

        return Quotient(
            Difference(
                Product(d_left, self.right),
                Product(self.left, d_right)
            ),
            Power(self.right, Value(2))
        )


class Power(BinaryOperation):
    operator = "^"
    precedence = EXPONENTIAL

    @property
    def base(self) -> Expression:
        return self.args[0]

    @property
    def exponent(self) -> Expression:
        return self.args[1]

    def apply(self, left: float, right: float) -> float:
        return _real_power(left, right)

    def differentiate_node(self, derivatives: list[Expression]) -> Expression:
        d_base, d_exponent = derivatives

        # both base and exponent may depend on x
        return Product(
            self,
            Sum(
                Product(d_exponent, FunctionCall("ln", self.base)),
                Quotient(Product(self.exponent, d_base), self.base)
            )
        )


class FunctionCall(Expression):
    def __init__(self, name: str, argument: Expression, base: int | None = None):
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "base", base)
        super().__init__(argument)

    @property
    def argument(self) -> Expression:
        return self.args[0]

    def key(self) -> tuple:
        return self.name, self.base

    def rebuild(self, *args: Expression) -> Expression:
        return FunctionCall(self.name, *args, base=self.base)

    def _log_base(self) -> int:
        if self.base is None:
            raise InvalidStateException(f"Logarithm {self} has no base.")

        if self.base in (0, 1):
            raise InvalidStateException(f"Logarithm {self} has an invalid base {self.base}.")

        return self.base

    def evaluate_node(self, x: float, values: list[float]) -> float:
        if self.name == "log":
            return _natural_log(values[0]) / math.log(self._log_base())

        if self.name not in _FUNCTIONS:
            raise UnsupportedOperationException(f"Can't evaluate unknown function {self.name!r}.")

        return _FUNCTIONS[self.name](values[0])

    def differentiate_node(self, derivatives: list[Expression]) -> Expression:
        if self.name == "log":
            outer = Quotient(
                Value(1),
                Product(self.argument, FunctionCall("ln", Value(self._log_base())))
            )
        elif self.name in _DERIVATIVES:
            outer = _DERIVATIVES[self.name](self.argument)
        else:
            raise UnsupportedOperationException(f"Can't differentiate unknown function {self.name!r}.")

        # chain rule
        return Product(outer, derivatives[0])

    def to_str_node(self, texts: list[str]) -> str:
        if self.name == "log" and self.base is not None:
            return f"log({self.base},{texts[0]})"

        return f"{self.name}({texts[0]})"

    def to_str_full_node(self, texts: list[str]) -> str:
        if self.base is None:
            return f"FunctionCall({self.name!r}, {texts[0]})"

        return f"FunctionCall({self.name!r}, {texts[0]}, base={self.base})"


def _real_power(base: float, exponent: float) -> float:
    try:
        result = base ** exponent
    except (OverflowError, ZeroDivisionError):
        if float(exponent).is_integer() and exponent % 2 == 1:
            return math.copysign(math.inf, base)

        return math.inf

    if isinstance(result, complex):
        # negative base, non-integer exponent
        return math.nan

    return result


def _natural_log(value: float) -> float:
    if value == 0:
        return -math.inf

    if value < 0:
        return math.nan

    return math.log(value)


def _periodic(function: typing.Callable[[float], float]) -> typing.Callable[[float], float]:
    @functools.wraps(function)
    def wrapper(value: float) -> float:
        # math raises for infinite angles
        if math.isinf(value):
            return math.nan

        return function(value)

    return wrapper


_FUNCTIONS: dict[str, typing.Callable[[float], float]] = {
    "sin": _periodic(math.sin),
    "cos": _periodic(math.cos),
    "tan": _periodic(math.tan),
    "ln": _natural_log,
}

# outer derivatives, the chain rule factor is applied by FunctionCall
_DERIVATIVES: dict[str, typing.Callable[[Expression], Expression]] = {
    "sin": lambda arg: FunctionCall("cos", arg),
    "cos": lambda arg: Product(Value(-1), FunctionCall("sin", arg)),
    "tan": lambda arg: Sum(Value(1), Power(FunctionCall("tan", arg), Value(2))),
    "ln": lambda arg: Quotient(Value(1), arg),
}

_UNARY_OPERATIONS: dict[str, type[UnaryOperation]] = {
    "-": Negation,
    "+": Identity,
}

_BINARY_OPERATIONS: dict[str, type[BinaryOperation]] = {
    "+": Sum,
    "-": Difference,
    "*": Product,
    "/": Quotient,
    "^": Power,
}


class Parser:
    signs = "+-"
    digits = string.digits + "."
    letters = string.ascii_letters

    def __init__(self, text: str):
        self.text = "".join(text.split())
        self.position = 0
        self.nesting = 0

    def peek(self) -> str | None:
        if self.position < len(self.text):
            return self.text[self.position]

        return None

    def accept(self, chars: str) -> str | None:
        char = self.peek()

        if char is not None and char in chars:
            self.position += 1
            return char

        return None

    def expect(self, char: str, exception: type[ParsingException], message: str):
        found = self.peek()

        if found != char:
            raise exception(message, self.position, found)

        self.position += 1

    def enter(self):
        self.nesting += 1

        if self.nesting > config.MAX_NESTING_DEPTH:
            raise NestingTooDeepException(
                f"Parentheses are nested deeper than {config.MAX_NESTING_DEPTH} levels", self.position
            )

    def leave(self):
        self.nesting -= 1

    def parse(self) -> Expression:
        expr = self.parse_expression()

        if self.position < len(self.text):
            raise TrailingInputException("Unexpected trailing input", self.position, self.peek())

        return expr

    def parse_signed(self, parse_operand: typing.Callable[[], Expression]) -> Expression:
        sign = self.accept(self.signs)
        operand = parse_operand()

        if sign is None:
            return operand

        return UnaryOperation.from_operator(sign, operand)

    def parse_expression(self) -> Expression:
        expr = self.parse_signed(self.parse_term)

        while (operator := self.accept("+-")) is not None:
            # the operator is itself a sign, so only one more may follow it
            right = self.parse_signed(functools.partial(self.parse_term, allow_sign=False))
            expr = BinaryOperation.from_operator(operator, expr, right)

        return expr

    def parse_term(self, allow_sign: bool = True) -> Expression:
        expr = self.parse_power(allow_sign)

        while (operator := self.accept("*/")) is not None:
            right = self.parse_signed(self.parse_power)
            expr = BinaryOperation.from_operator(operator, expr, right)

        return expr

    def parse_power(self, allow_sign: bool = True) -> Expression:
        # left-associative: a^b^c is (a^b)^c
        expr = self.parse_primary(allow_sign)

        while self.accept("^") is not None:
            right = self.parse_signed(self.parse_primary)
            expr = Power(expr, right)

        return expr

    def parse_primary(self, allow_sign: bool = True) -> Expression:
        # at most one further sign, a third one fails in parse_atom
        sign = self.accept(self.signs) if allow_sign else None

        if sign is not None:
            return UnaryOperation.from_operator(sign, self.parse_atom())

        return self.parse_atom()

    def parse_atom(self) -> Expression:
        char = self.peek()

        if char is None:
            raise UnexpectedEndException("Unexpected end of input", self.position)

        if char in self.digits:
            return self.parse_number()

        if char == Variable.symbol:
            self.position += 1
            return Variable()

        if char == "(":
            return self.parse_group()

        if char in self.letters:
            return self.parse_call()

        raise UnexpectedCharacterException(f"Unexpected character {char!r}", self.position, char)

    def parse_number(self) -> Expression:
        start = self.position

        while self.accept(self.digits) is not None:
            pass

        literal = self.text[start:self.position]

        try:
            return Value(float(literal))
        except ValueError as e:
            raise MalformedNumberException(f"Malformed number {literal!r}", start, literal[0]) from e

    def parse_group(self) -> Expression:
        self.position += 1
        self.enter()

        expr = self.parse_expression()
        self.expect(")", MissingParenthesisException, "Missing closing parenthesis")

        self.leave()
        return expr

    def parse_call(self) -> Expression:
        start = end = self.position

        while end < len(self.text) and self.text[end] in self.letters:
            end += 1

        if end >= len(self.text) or self.text[end] != "(":
            # not a call, the name is left unconsumed
            raise UnexpectedCharacterException(
                f"Unexpected character {self.text[start]!r}", start, self.text[start]
            )

        name = self.text[start:end]
        self.position = end + 1
        self.enter()

        if name == "log":
            base = self.parse_log_base()
            argument = self.parse_expression()
            self.expect(")", MalformedLogarithmException, "Missing closing parenthesis in log call")
        else:
            base = None
            argument = self.parse_expression()
            self.expect(")", MissingParenthesisException, f"Missing closing parenthesis in {name} call")

        self.leave()
        return FunctionCall(name, argument, base)

    def parse_log_base(self) -> int:
        start = self.position

        while self.accept(string.digits) is not None:
            pass

        if self.position == start:
            raise MalformedLogarithmException("Expected the logarithm base", self.position, self.peek())

        base = int(self.text[start:self.position])
        self.expect(",", MalformedLogarithmException, "Expected ',' after the logarithm base")

        return base


def parse(text: str) -> Expression:
    expr = Parser(text).parse()
    logger.debug("Parsed %r into %r", text, expr)

    return expr


def evaluate(expr: Expression, x: float) -> float:
    return expr.evaluate(x)


def differentiate(expr: Expression) -> Expression:
    return expr.differentiate()


def render(expr: Expression) -> str:
    return expr.to_str()


def _is_value(expr: Expression, value: float) -> bool:
    return isinstance(expr, Value) and expr.value == value


def _fold(expr: Expression) -> Expression | None:
    try:
        # no variable left, any x gives the same result
        value = expr.evaluate(0)
    except ExpressionEvaluationException as e:
        logger.debug("Not folding %s: %s", expr, e)
        return None

    if not math.isfinite(value):
        return None

    return Value(value)


def _simplify_node(expr: Expression, args: list[Expression]) -> Expression:
    if not expr.args:
        return expr

    expr = expr.rebuild(*args)

    if all(isinstance(arg, Value) for arg in expr.args):
        folded = _fold(expr)
        if folded is not None:
            return folded

    if isinstance(expr, Sum):
        if _is_value(expr.left, 0):
            return expr.right

        if _is_value(expr.right, 0):
            return expr.left

    elif isinstance(expr, Difference):
        if _is_value(expr.right, 0):
            return expr.left

    elif isinstance(expr, Product):
        if _is_value(expr.left, 0) or _is_value(expr.right, 0):
            return Value(0)

        if _is_value(expr.left, 1):
            return expr.right

        if _is_value(expr.right, 1):
            return expr.left

    elif isinstance(expr, Quotient):
        if _is_value(expr.right, 1):
            return expr.left

    elif isinstance(expr, Power):
        if _is_value(expr.exponent, 0):
            return Value(1)

        if _is_value(expr.exponent, 1):
            return expr.base

    elif isinstance(expr, Negation):
        if isinstance(expr.operand, Negation):
            return expr.operand.operand

    elif isinstance(expr, Identity):
        return expr.operand

    return expr


@functools.cache
def simplify(expr: Expression) -> Expression:
    # children are simplified before the node that holds them
    return expr.walk(_simplify_node)
