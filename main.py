from __future__ import annotations

import logging

from univar import (
    ExpressionEvaluationException,
    ParsingException,
    config,
    differentiate,
    format_number,
    parse,
    render,
    simplify,
)


def split_input(line: str) -> tuple[str, float | None]:
    if "@" not in line:
        return line, None

    text, x = line.rsplit("@", 1)
    return text, float(x)


def handle(line: str) -> list[str]:
    text, x = split_input(line)
    expr = parse(text)
    derivative = simplify(differentiate(expr))

    out = [
        f" >  {render(expr)}",
        f" =  {render(simplify(expr))}",
        f" d/dx  {render(derivative)}",
    ]

    if x is not None:
        for label, tree in (("f", expr), ("f'", derivative)):
            try:
                out.append(f" {label}({format_number(x)}) = {format_number(tree.evaluate(x))}")
            except ExpressionEvaluationException as e:
                out.append(f" {label}({format_number(x)}) = ? ({e})")

    return out


def main():
    logging.basicConfig(level=config.LOG_LEVEL)

    while 1:
        # sin(x)*2 + 1 @ 0.5
        try:
            line = input(" ~ ")
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not line.strip():
            continue

        try:
            print("\n".join(handle(line)))
        except ParsingException as e:
            print(f" !  {e}")
            print(f"    {''.join(line.split())}")
            print(f"    {' ' * e.position}^")
        except (ExpressionEvaluationException, ValueError) as e:
            print(f" !  {e}")

        print()


if __name__ == '__main__':
    main()
