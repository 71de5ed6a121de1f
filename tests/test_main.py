import pytest

import main
from univar import ParsingException, UnsupportedOperationException


def feed(monkeypatch, *lines):
    remaining = list(lines)

    def fake_input(prompt=""):
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    monkeypatch.setattr("builtins.input", fake_input)


class TestHandle:
    def test_split_input(self):
        assert main.split_input("x^2 @ 3") == ("x^2 ", 3)
        assert main.split_input("x^2") == ("x^2", None)

    def test_forms(self):
        lines = main.handle("0+x*1")

        assert lines[0] == " >  0+x*1"
        assert lines[1] == " =  x"
        assert lines[2] == " d/dx  1"

    def test_values(self):
        lines = main.handle("x^2 @ 3")

        assert " f(3) = 9" in lines
        assert any(line.startswith(" f'(3) = ") for line in lines)

    def test_failed_value(self):
        lines = main.handle("1/x @ 0")

        assert lines[-2].startswith(" f(0) = ?")

    def test_errors_propagate(self):
        with pytest.raises(ParsingException):
            main.handle("(1+2")

        with pytest.raises(UnsupportedOperationException):
            main.handle("foo(x)")


class TestLoop:
    def test_prints_results(self, monkeypatch, capsys):
        feed(monkeypatch, "sin(x)*2+1 @ 0", "", "x^2")
        main.main()

        out = capsys.readouterr().out
        assert " f(0) = 1" in out
        assert " >  x^2" in out

    def test_reports_errors_and_continues(self, monkeypatch, capsys):
        feed(monkeypatch, "(1+2", "foo(x)", "x @ abc", "x+1")
        main.main()

        out = capsys.readouterr().out
        assert "Missing closing parenthesis at position 4." in out
        assert "    (1+2\n        ^" in out
        assert "foo" in out
        assert " >  x+1" in out

    def test_long_power_chain(self, monkeypatch, capsys):
        feed(monkeypatch, "^".join(["x"] * 100) + " @ 1")
        main.main()

        out = capsys.readouterr().out
        assert " f(1) = 1\n" in out
        assert " f'(1) = 1\n" in out
