# osdemos

Small, runnable models of the ideas that sit underneath an operating system.
Most of them are state machines that you can step, print and inspect.

## What is inside

| Module | What it does |
| --- | --- |
| `osdemos.rv32` | A compact RISC-V RV32IMA processor: 32 registers, machine-mode CSRs, a timer, traps and interrupts, all over a flat `bytearray` of RAM. |
| `osdemos.rv32_cli` | Loads a raw RV32 binary, places integer arguments on the stack and runs it, printing the machine state before and after. |
| `osdemos.hanoi` | Tower of Hanoi solved twice: by plain recursion and by an explicit stack of frames, each with its own program counter. |
| `osdemos.kexpr` | Kconfig-style tristate dependency expressions: building, comparing and printing them. |
| `osdemos.ksimplify` | Simplification of those expressions: negation rewriting, joining of terms and removal of duplicates. |
| `osdemos.dialog` | The text-layout parts of a console dialog: colour themes, item lists, hotkey lookup, prompt wrapping and buttons. |

## Installation

```
pip install .
```

No third-party libraries are needed. To run the test suite:

```
pip install .[test]
pytest
```

## Commands

### Run a RISC-V image

```
osdemos-rv32 program.bin 10 0x20
```

The image is a flat RV32 binary whose first instruction sits at offset 0.
Up to four integer arguments, decimal or `0x`-prefixed hexadecimal, are
pushed onto the stack; `a0` receives their count and `a1` and `sp` point at
them. Extra arguments are dropped with a warning. Execution stops when the
program jumps to address 0, when a step returns a non-zero status, or after
a budget of 10000 steps. Run with no arguments to see the usage text.

### Solve the Tower of Hanoi

```
osdemos-hanoi
osdemos-hanoi 5 --stack
```

Moves `n` disks (3 by default) from peg `A` to peg `B` through `C`, prints
every move and then the number of moves. `--stack` uses the explicit frame
stack, which is limited to 64 frames.

## Using the library

### The processor

```python
from osdemos.rv32 import CPUState, Csr, Reg

cpu = CPUState(mem_size=64 * 1024, mem_offset=0)
cpu.load(program_bytes, 0)
status = cpu.step(1)          # one instruction, one microsecond of timer
print(hex(cpu.csrs[Csr.PC]), cpu.regs[Reg.A0])
```

`read_u32` and `write_u32` give little-endian word access to RAM. `step`
returns 0 after a normal instruction, 1 while the core waits for an
interrupt, and the stored value when a program writes to the system
controller to power off or reboot.

`osdemos.rv32_cli` also offers `prepare(image, mainargs, ram_size)` to build a
machine with arguments on its stack, `run(cpu, limit)` to step it, and
`dump_state(cpu)` to render registers, counters and stack as text.

### Tower of Hanoi

```python
from osdemos.hanoi import hanoi_recursive, hanoi_stack

moves = []
count = hanoi_stack(3, "A", "B", "C", lambda source, target: moves.append((source, target)))
assert count == hanoi_recursive(3, "A", "B", "C", lambda source, target: None) == 7
```

Each solver reports a move by calling `emit(source, target)`; without one it
prints the move. A disk count below 1 raises `ValueError`.

### Kconfig expressions

`osdemos.kexpr` provides `Tristate` (`NO`, `MOD`, `YES`), `Symbol`, and
`Expr` with the constructors `Expr.symbol`, `Expr.one`, `Expr.two` and
`Expr.comp`. `expr_to_string` renders an expression with the minimum of
parentheses, `expr_eq` compares expressions treating `&&` and `||` as
commutative, `eliminate_yn` folds away constant `y`/`n` terms, and
`trans_compare` builds the comparison of an expression against a tristate
constant. `osdemos.ksimplify` adds `transform`, `join_or`, `join_and` and
`eliminate_dups`, which bring an expression into a simpler, equivalent form.

### Dialog helpers

```python
from osdemos.dialog import button_cells, first_alpha, theme_colors, wrap_prompt

first_alpha("(N) Networking", "YyNnMmHh")   # 5: index of the hotkey letter
colors = theme_colors("blackbg")            # element name -> DialogColor
wrap_prompt("Select an option", 40, 1, 3)   # [(row, column, text), ...]
button_cells(" Help ", True)                # [(text, element), ...]
```

`ItemList` holds the `DialogItem` entries of a menu or checklist together
with a current item.

## What it does not do

- There is no logic-circuit simulator and no clocked counter command.
- `osdemos.dialog` computes colours, layout and item state only; it does not
  open a terminal, draw windows or read keys.
- The expression modules work on expressions built in code; there is no
  parser for configuration files and no configuration front end.