"""Command-line front end for the RV32IMA machine: load an image, pass main arguments, run."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from osdemos.rv32 import MASK, CPUState, Csr, Reg

RAM_SIZE = 64 * 1024 * 1024
MAX_MAINARGS = 4
DEFAULT_LIMIT = 10000

_ATOI = re.compile(r"\s*([+-]?\d+)")

_REGISTER_ROWS = (
    (Reg.Z, Reg.RA, Reg.SP, Reg.GP),
    (Reg.TP, Reg.T0, Reg.T1, Reg.T2),
    (Reg.S0, Reg.S1, Reg.A0, Reg.A1),
    (Reg.A2, Reg.A3, Reg.A4, Reg.A5),
    (Reg.A6, Reg.A7, Reg.S2, Reg.S3),
    (Reg.S4, Reg.S5, Reg.S6, Reg.S7),
    (Reg.S8, Reg.S9, Reg.S10, Reg.S11),
    (Reg.T3, Reg.T4, Reg.T5, Reg.T6),
)

_USAGE = (
    "Usage: ./mini-rv32ima <path_testcase> <arg1> <arg2> ... <argn>",
    "- The testcase file should be a rv32i binary with 0 offset to the first line of instruction.",
    "- Note that we only support dec/hex int-type mainargs for simplicity.",
)


def _to_int32(value: int) -> int:
    value &= MASK
    return value - 0x1_0000_0000 if value & 0x8000_0000 else value


def xtoi(text: str) -> int:
    """Parse the digits after a two-character ``0x`` prefix.

    A letter digit replaces the accumulated value rather than adding to it.
    """
    result = 0
    for ch in text[2:]:
        result *= 16
        if "a" <= ch <= "f":
            result = ord(ch) - ord("a")
        else:
            result += ord(ch) - ord("0")
        result = _to_int32(result)
    return result


def _atoi(text: str) -> int:
    match = _ATOI.match(text)
    return _to_int32(int(match.group(1))) if match else 0


def parse_mainarg(text: str) -> int:
    """Turn one command-line argument into the integer handed to the guest."""
    if text.startswith("0x"):
        return xtoi(text)
    return _atoi(text)


def dump_state(cpu: CPUState) -> str:
    """Render the program counter, registers, counters and stack as text."""
    regs, csrs = cpu.regs, cpu.csrs
    pc = csrs[Csr.PC]
    text_end = cpu.mem_size // 2
    pc_offset = (pc - cpu.mem_offset) & MASK
    head = f" PC:{pc:08x}"
    if pc_offset < text_end - 3:
        head += f" [{cpu.read_u32(pc):08x}]"
    else:
        head += " [xxxxxxxx]"
    lines = [head]
    for row in _REGISTER_ROWS:
        fields = []
        for reg in row:
            label = "Z" if reg is Reg.Z else reg.name.lower()
            fields.append(f"{label:>3}:{regs[reg]:08x}")
        lines.append(" ".join(fields))
    lines.append(
        f"CYCLEL:{csrs[Csr.CYCLEL]:08x} CYCLEH:{csrs[Csr.CYCLEH]:08x} "
        f"EXTRAFLAGS:{csrs[Csr.EXTRAFLAGS]:08x}"
    )
    sp = regs[Reg.SP]
    lines.append(f"stack (sp:{sp:08x}):")
    lines.extend(f"{addr:08x}: {cpu.mem[addr]:08x}" for addr in range(sp, cpu.mem_size, 4))
    lines.append(f"{cpu.mem_size:#08x}")
    lines.append("")
    return "\n".join(lines) + "\n"


def _check_image_size(image: bytes, ram_size: int) -> None:
    if len(image) > ram_size // 2:
        raise ValueError(f"image file size too big ({len(image):#x} bytes)")


def prepare(image: bytes, mainargs: Iterable[int] = (), ram_size: int = RAM_SIZE) -> CPUState:
    """Build a machine with the image at address 0 and main arguments on the stack.

    Only the first four arguments are kept. The stack holds them as 32-bit words
    at its top; ``a0`` receives their count and ``a1`` and ``sp`` their address.
    """
    _check_image_size(image, ram_size)
    cpu = CPUState(ram_size, 0)
    cpu.load(image)
    cpu.csrs[Csr.PC] = cpu.mem_offset
    args = list(mainargs)[:MAX_MAINARGS]
    sp = ram_size - 4 * len(args)
    for index, value in enumerate(args):
        cpu.write_u32(sp + 4 * index, value & MASK)
    cpu.regs[Reg.SP] = sp
    cpu.regs[Reg.A0] = len(args)
    cpu.regs[Reg.A1] = sp
    return cpu


@dataclass(frozen=True)
class RunResult:
    """How a run ended: the last step's return value and the steps taken."""

    code: int
    steps: int
    exhausted: bool


def run(cpu: CPUState, limit: int = DEFAULT_LIMIT) -> RunResult:
    """Step until a non-zero return, a jump to address 0, or the step limit."""
    steps = 0
    while True:
        code = cpu.step(1)
        steps += 1
        if steps >= limit:
            return RunResult(code, steps, True)
        if code != 0 or cpu.csrs[Csr.PC] == 0:
            return RunResult(code, steps, False)


def main(argv: Sequence[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        for line in _USAGE:
            print(line)
        return 0

    image_path = args[0]
    print(f"[mini-rv32ima] load image file: {image_path}")
    print(f"[mini-rv32ima] alloc ram size = {RAM_SIZE:#x}")
    try:
        image = Path(image_path).read_bytes()
    except OSError:
        print(f'Error: image file "{image_path}" not found', file=sys.stderr)
        return 1
    try:
        _check_image_size(image, RAM_SIZE)
    except ValueError as error:
        print(f"Error: {error}", file=sys.stderr)
        return 1

    raw_args = args[1:]
    if len(raw_args) > MAX_MAINARGS:
        print(
            f"[mini-rv32ima] WARN: mainargs should <= {MAX_MAINARGS}, "
            "the excess ones will be discarded"
        )
    mainargs = [parse_mainarg(text) for text in raw_args[:MAX_MAINARGS]]
    print("[mini-rv32ima] mainargs:")
    for value in mainargs:
        print(f"- {value}")

    cpu = prepare(image, mainargs, RAM_SIZE)
    print("initially:")
    sys.stdout.write(dump_state(cpu))
    result = run(cpu, DEFAULT_LIMIT)
    if result.code != 0:
        print(f"minirv32ima ret={result.code} !=0")
    if result.exhausted:
        sys.stdout.flush()
        print("Error: debug_climit exceed", file=sys.stderr)
    print("finally:")
    sys.stdout.write(dump_state(cpu))
    return 0


if __name__ == "__main__":
    sys.exit(main())