"""Executable models of operating-system ideas: a RISC-V emulator, Tower of Hanoi, Kconfig expressions and dialog layout helpers."""

__version__ = "0.1.0"