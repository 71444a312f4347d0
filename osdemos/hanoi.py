"""Tower of Hanoi, solved recursively and with an explicit frame stack."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

MoveHandler = Callable[[str, str], None]

MAX_FRAMES = 64


def _print_move(source: str, target: str) -> None:
    print(f"{source} -> {target}")


def _check(n: int) -> None:
    if n < 1:
        raise ValueError(f"number of disks must be positive, got {n}")


def hanoi_recursive(
    n: int, source: str, target: str, via: str, emit: Optional[MoveHandler] = None
) -> int:
    """Move ``n`` disks, reporting each move to ``emit``; return the move count."""
    _check(n)
    return _solve(n, source, target, via, emit or _print_move)


def _solve(n: int, source: str, target: str, via: str, emit: MoveHandler) -> int:
    if n == 1:
        emit(source, target)
        return 1
    c1 = _solve(n - 1, source, via, target, emit)
    _solve(1, source, target, via, emit)
    c2 = _solve(n - 1, via, target, source, emit)
    return c1 + c2 + 1


@dataclass
class Frame:
    """One activation: arguments, locals and the index of the next statement."""

    n: int
    source: str
    target: str
    via: str
    pc: int = 0
    c1: int = 0
    c2: int = 0


def hanoi_stack(
    n: int, source: str, target: str, via: str, emit: Optional[MoveHandler] = None
) -> int:
    """Same as :func:`hanoi_recursive`, driven by a stack of at most 64 frames."""
    _check(n)
    emit = emit or _print_move
    stack: list[Frame] = []
    retval = 0

    def call(*args) -> None:
        if len(stack) >= MAX_FRAMES:
            raise OverflowError(f"frame stack exceeds {MAX_FRAMES} frames")
        stack.append(Frame(*args))

    call(n, source, target, via)
    while stack:
        f = stack[-1]
        next_pc = f.pc + 1
        if f.pc == 0:
            if f.n == 1:
                emit(f.source, f.target)
                stack.pop()
                retval = 1
        elif f.pc == 1:
            call(f.n - 1, f.source, f.via, f.target)
        elif f.pc == 2:
            f.c1 = retval
        elif f.pc == 3:
            call(1, f.source, f.target, f.via)
        elif f.pc == 4:
            call(f.n - 1, f.via, f.target, f.source)
        elif f.pc == 5:
            f.c2 = retval
        elif f.pc == 6:
            stack.pop()
            retval = f.c1 + f.c2 + 1
        else:
            raise RuntimeError(f"frame reached invalid pc {f.pc}")
        f.pc = next_pc
    return retval


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Solve the Tower of Hanoi.")
    parser.add_argument("n", nargs="?", type=int, default=3, help="number of disks")
    parser.add_argument("--stack", action="store_true", help="use the explicit frame stack")
    args = parser.parse_args(argv)
    source, target, via = "A", "B", "C"
    solver = hanoi_stack if args.stack else hanoi_recursive
    try:
        count = solver(args.n, source, target, via)
    except (ValueError, OverflowError) as error:
        parser.error(str(error))
    print(f"\nHanoi({args.n}, {source}, {target}, {via}) = {count}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())