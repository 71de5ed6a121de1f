import math

import pytest
import sympy

from univar import (
    Difference,
    FunctionCall,
    Identity,
    InvalidStateException,
    Negation,
    Power,
    Product,
    Sum,
    UnsupportedOperationException,
    Value,
    Variable,
    differentiate,
    evaluate,
    parse,
    render,
)

x = Variable()
SAMPLES = (0.4, 1.3, 2.2)


class TestRules:
    def test_power_scenario(self):
        assert evaluate(differentiate(parse("x^2")), 3) == pytest.approx(6)

    @pytest.mark.parametrize("value", [0, 1, -3.5, 1e6])
    def test_constant(self, value):
        derivative = differentiate(Value(value))

        assert derivative == Value(0)
        assert all(evaluate(derivative, x) == 0 for x in SAMPLES)

    def test_variable(self):
        derivative = differentiate(x)

        assert derivative == Value(1)
        assert all(evaluate(derivative, x) == 1 for x in SAMPLES)

    def test_negation(self):
        assert differentiate(parse("-x")) == Negation(Value(1))

    def test_identity(self):
        assert differentiate(Identity(x)) == Value(1)

    def test_sum_and_difference(self):
        assert differentiate(parse("x+2")) == Sum(Value(1), Value(0))
        assert differentiate(parse("x-2")) == Difference(Value(1), Value(0))

    def test_product(self):
        assert differentiate(parse("2*x")) == Sum(
            Product(Value(0), x),
            Product(Value(2), Value(1))
        )

    def test_quotient(self):
        assert render(differentiate(parse("1/x"))) == "(0*x-1*1)/x^2"
        assert evaluate(differentiate(parse("1/x")), 2) == pytest.approx(-0.25)

    def test_power_keeps_the_logarithm_term(self):
        assert render(differentiate(parse("x^3"))) == "x^3*(0*ln(x)+(3*1)/x)"

    def test_power_with_variable_exponent(self):
        assert evaluate(differentiate(parse("x^x")), 2) == pytest.approx(4 * (math.log(2) + 1))

    def test_sin(self):
        assert differentiate(parse("sin(x)")) == Product(FunctionCall("cos", x), Value(1))

    def test_cos(self):
        assert differentiate(parse("cos(x)")) == Product(
            Product(Value(-1), FunctionCall("sin", x)),
            Value(1)
        )

    def test_tan(self):
        assert differentiate(parse("tan(x)")) == Product(
            Sum(Value(1), Power(FunctionCall("tan", x), Value(2))),
            Value(1)
        )
        assert evaluate(differentiate(parse("tan(x)")), 0.5) == pytest.approx(1 / math.cos(0.5) ** 2)

    def test_natural_logarithm(self):
        assert evaluate(differentiate(parse("ln(x)")), 2) == pytest.approx(0.5)

    def test_logarithm_base_is_not_differentiated(self):
        derivative = differentiate(parse("log(2,x)"))

        assert render(derivative) == "1/(x*ln(2))*1"
        assert evaluate(derivative, 4) == pytest.approx(1 / (4 * math.log(2)))

    def test_chain_rule(self):
        assert evaluate(differentiate(parse("sin(x^2)")), 1.5) == pytest.approx(2 * 1.5 * math.cos(1.5 ** 2))

    def test_unknown_function(self):
        with pytest.raises(UnsupportedOperationException):
            differentiate(parse("foo(x)"))

    def test_unknown_function_inside_a_sum(self):
        with pytest.raises(UnsupportedOperationException):
            differentiate(parse("x+foo(x)"))

    def test_logarithm_without_base(self):
        with pytest.raises(InvalidStateException):
            differentiate(FunctionCall("log", x))

    def test_input_is_left_untouched(self):
        expr = parse("x*sin(x)")
        differentiate(expr)

        assert expr == parse("x*sin(x)")


class TestProperties:
    @pytest.mark.parametrize("g, h", [
        ("x^2", "sin(x)"),
        ("ln(x)", "x+1"),
        ("3", "x"),
        ("tan(x)", "cos(x)"),
        ("x^x", "1/x"),
    ])
    def test_product_rule(self, g, h):
        g, h = parse(g), parse(h)
        derivative = differentiate(Product(g, h))

        for x in SAMPLES:
            expected = (evaluate(differentiate(g), x) * evaluate(h, x)
                        + evaluate(g, x) * evaluate(differentiate(h), x))
            assert evaluate(derivative, x) == pytest.approx(expected)

    @pytest.mark.parametrize("text", [
        "x^3-2*x",
        "sin(x)*cos(x)",
        "x/(1+x^2)",
        "ln(x^2+1)",
        "tan(2*x)",
        "x^x",
        "-(x+1)^2",
    ])
    def test_agrees_with_sympy(self, text):
        symbol = sympy.Symbol("x")
        reference = sympy.diff(
            sympy.sympify(text.replace("^", "**"), locals={"x": symbol, "ln": sympy.log}),
            symbol
        )
        derivative = differentiate(parse(text))

        for x in SAMPLES:
            assert evaluate(derivative, x) == pytest.approx(float(reference.subs(symbol, x)))
