"""A small RV32IMA machine: registers, CSRs, flat memory and a single-step interpreter."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

MASK = 0xFFFFFFFF


class Reg(IntEnum):
    """General-purpose registers by ABI name."""

    Z = 0
    RA = 1
    SP = 2
    GP = 3
    TP = 4
    T0 = 5
    T1 = 6
    T2 = 7
    S0 = 8
    S1 = 9
    A0 = 10
    A1 = 11
    A2 = 12
    A3 = 13
    A4 = 14
    A5 = 15
    A6 = 16
    A7 = 17
    S2 = 18
    S3 = 19
    S4 = 20
    S5 = 21
    S6 = 22
    S7 = 23
    S8 = 24
    S9 = 25
    S10 = 26
    S11 = 27
    T3 = 28
    T4 = 29
    T5 = 30
    T6 = 31


class Csr(IntEnum):
    """Processor state held outside the register file."""

    PC = 0
    MSTATUS = 1
    CYCLEL = 2
    CYCLEH = 3
    TIMERL = 4
    TIMERH = 5
    TIMERMATCHL = 6
    TIMERMATCHH = 7
    MSCRATCH = 8
    MTVEC = 9
    MIE = 10
    MIP = 11
    MEPC = 12
    MTVAL = 13
    MCAUSE = 14
    EXTRAFLAGS = 15


CSR_COUNT = len(Csr)

_CSR_NUMBERS = {
    0x340: Csr.MSCRATCH,
    0x305: Csr.MTVEC,
    0x304: Csr.MIE,
    0x344: Csr.MIP,
    0x341: Csr.MEPC,
    0x300: Csr.MSTATUS,
    0x342: Csr.MCAUSE,
    0x343: Csr.MTVAL,
}
_CSR_CONSTANTS = {0xF11: 0xFF0FF0FF, 0x301: 0x40401101}

_MMIO_LOW, _MMIO_HIGH = 0x10000000, 0x12000000
_LOAD_SPECS = {0: (1, True), 1: (2, True), 2: (4, False), 4: (1, False), 5: (2, False)}
_STORE_SIZES = {0: 1, 1: 2, 2: 4}


def _s32(value: int) -> int:
    value &= MASK
    return value - 0x1_0000_0000 if value & 0x8000_0000 else value


def _sext12(imm: int) -> int:
    return imm | 0xFFFFF000 if imm & 0x800 else imm


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return -q if (a < 0) != (b < 0) else q


class _Halt(Exception):
    """Ends a step early with the given return value."""

    def __init__(self, code: int) -> None:
        super().__init__(code)
        self.code = code


@dataclass
class _Outcome:
    pc: int
    rval: int = 0
    write_rd: bool = True
    trap: int = 0


class CPUState:
    """Register file, CSRs and memory of one hart."""

    def __init__(self, mem_size: int, mem_offset: int = 0) -> None:
        if not 0 < mem_size <= 1 << 32:
            raise ValueError(f"invalid memory size {mem_size}")
        self.regs = [0] * 32
        self.csrs = [0] * CSR_COUNT
        self.mem = bytearray(mem_size)
        self.mem_offset = mem_offset & MASK
        self.mem_size = mem_size

    # -- memory access from the host side ---------------------------------

    def _offset(self, address: int, size: int) -> int:
        off = address - self.mem_offset
        if off < 0 or off + size > self.mem_size:
            raise IndexError(f"address {address:#x} is outside memory")
        return off

    def read_u32(self, address: int) -> int:
        """Read a little-endian word at a guest address."""
        return self._load(self._offset(address, 4), 4)

    def write_u32(self, address: int, value: int) -> None:
        """Write a little-endian word at a guest address."""
        self._store(self._offset(address, 4), 4, value)

    def load(self, image: bytes, offset: int | None = None) -> None:
        """Copy an image into memory starting at a guest address (default: memory start)."""
        address = self.mem_offset if offset is None else offset
        off = address - self.mem_offset
        if off < 0 or off + len(image) > self.mem_size:
            raise ValueError(f"image of {len(image):#x} bytes does not fit at {address:#x}")
        self.mem[off : off + len(image)] = image

    def _load(self, off: int, size: int, signed: bool = False) -> int:
        return int.from_bytes(self.mem[off : off + size], "little", signed=signed) & MASK

    def _store(self, off: int, size: int, value: int) -> None:
        self.mem[off : off + size] = (value & ((1 << (8 * size)) - 1)).to_bytes(size, "little")

    def _reg(self, ir: int, shift: int) -> int:
        return self.regs[(ir >> shift) & 0x1F]

    # -- execution ---------------------------------------------------------

    def step(self, elapsed_us: int = 1) -> int:
        """Advance the timer and execute one instruction.

        Returns 0 normally, 1 while waiting for an interrupt, or the value
        written to the system controller.
        """
        c = self.csrs
        new_timer = (c[Csr.TIMERL] + elapsed_us) & MASK
        if new_timer < c[Csr.TIMERL]:
            c[Csr.TIMERH] = (c[Csr.TIMERH] + 1) & MASK
        c[Csr.TIMERL] = new_timer

        timer = (c[Csr.TIMERH] << 32) | c[Csr.TIMERL]
        timermatch = (c[Csr.TIMERMATCHH] << 32) | c[Csr.TIMERMATCHL]
        if (c[Csr.TIMERMATCHH] or c[Csr.TIMERMATCHL]) and timer > timermatch:
            c[Csr.EXTRAFLAGS] &= ~4 & MASK
            c[Csr.MIP] |= 1 << 7
        else:
            c[Csr.MIP] &= ~(1 << 7) & MASK

        if c[Csr.EXTRAFLAGS] & 4:
            return 1

        trap = 0
        rval = 0
        pc = c[Csr.PC]
        cycle = c[Csr.CYCLEL]

        if (c[Csr.MIP] & 0x80) and (c[Csr.MIE] & 0x80) and (c[Csr.MSTATUS] & 0x8):
            trap = 0x80000007
            pc = (pc - 4) & MASK
        else:
            cycle = (cycle + 1) & MASK
            ofs_pc = (pc - self.mem_offset) & MASK
            if ofs_pc >= self.mem_size:
                trap = 2
            elif ofs_pc & 3:
                trap = 1
            else:
                ir = self._load(ofs_pc, 4)
                try:
                    outcome = self._execute(ir, pc, cycle)
                except _Halt as halt:
                    return halt.code
                trap, rval = outcome.trap, outcome.rval
                if not trap:
                    rdid = (ir >> 7) & 0x1F
                    if outcome.write_rd and rdid:
                        self.regs[rdid] = rval & MASK
                    pc = (outcome.pc + 4) & MASK

        if trap:
            if trap & 0x80000000:
                c[Csr.MCAUSE] = trap
                c[Csr.MTVAL] = 0
                pc = (pc + 4) & MASK
            else:
                c[Csr.MCAUSE] = trap - 1
                c[Csr.MTVAL] = (rval if 5 < trap <= 8 else pc) & MASK
            c[Csr.MEPC] = pc
            c[Csr.MSTATUS] = ((c[Csr.MSTATUS] & 0x08) << 4) | ((c[Csr.EXTRAFLAGS] & 3) << 11)
            c[Csr.EXTRAFLAGS] |= 3
            pc = c[Csr.MTVEC]

        if c[Csr.CYCLEL] > cycle:
            c[Csr.CYCLEH] = (c[Csr.CYCLEH] + 1) & MASK
        c[Csr.CYCLEL] = cycle
        c[Csr.PC] = pc
        return 0

    def _execute(self, ir: int, pc: int, cycle: int) -> _Outcome:
        handler = self._DISPATCH.get(ir & 0x7F)
        if handler is None:
            return _Outcome(pc=pc, trap=3)
        return handler(self, ir, pc, cycle)

    def _op_lui(self, ir: int, pc: int, cycle: int) -> _Outcome:
        return _Outcome(pc=pc, rval=ir & 0xFFFFF000)

    def _op_auipc(self, ir: int, pc: int, cycle: int) -> _Outcome:
        return _Outcome(pc=pc, rval=(pc + (ir & 0xFFFFF000)) & MASK)

    def _op_jal(self, ir: int, pc: int, cycle: int) -> _Outcome:
        rel = (
            ((ir & 0x80000000) >> 11)
            | ((ir & 0x7FE00000) >> 20)
            | ((ir & 0x00100000) >> 9)
            | (ir & 0x000FF000)
        )
        if rel & 0x00100000:
            rel |= 0xFFE00000
        return _Outcome(pc=(pc + rel - 4) & MASK, rval=(pc + 4) & MASK)

    def _op_jalr(self, ir: int, pc: int, cycle: int) -> _Outcome:
        target = ((self._reg(ir, 15) + _sext12(ir >> 20)) & MASK) & ~1
        return _Outcome(pc=(target - 4) & MASK, rval=(pc + 4) & MASK)

    def _op_branch(self, ir: int, pc: int, cycle: int) -> _Outcome:
        imm = (
            ((ir & 0xF00) >> 7)
            | ((ir & 0x7E000000) >> 20)
            | ((ir & 0x80) << 4)
            | ((ir >> 31) << 12)
        )
        if imm & 0x1000:
            imm |= 0xFFFFE000
        a, b = _s32(self._reg(ir, 15)), _s32(self._reg(ir, 20))
        ua, ub = a & MASK, b & MASK
        conditions = {0: a == b, 1: a != b, 4: a < b, 5: a >= b, 6: ua < ub, 7: ua >= ub}
        taken = conditions.get((ir >> 12) & 0x7)
        if taken is None:
            return _Outcome(pc=pc, write_rd=False, trap=3)
        return _Outcome(pc=(pc + imm - 4) & MASK if taken else pc, write_rd=False)

    def _op_load(self, ir: int, pc: int, cycle: int) -> _Outcome:
        addr = (self._reg(ir, 15) + _sext12(ir >> 20) - self.mem_offset) & MASK
        if addr >= (self.mem_size - 3) & MASK:
            addr = (addr + self.mem_offset) & MASK
            if _MMIO_LOW <= addr < _MMIO_HIGH:
                rval = 0
                if addr == 0x1100BFFC:
                    rval = self.csrs[Csr.TIMERH]
                elif addr == 0x1100BFF8:
                    rval = self.csrs[Csr.TIMERL]
                return _Outcome(pc=pc, rval=rval)
            return _Outcome(pc=pc, rval=addr, trap=6)
        spec = _LOAD_SPECS.get((ir >> 12) & 0x7)
        if spec is None:
            return _Outcome(pc=pc, trap=3)
        size, signed = spec
        return _Outcome(pc=pc, rval=self._load(addr, size, signed))

    def _op_store(self, ir: int, pc: int, cycle: int) -> _Outcome:
        rs1, rs2 = self._reg(ir, 15), self._reg(ir, 20)
        addy = _sext12(((ir >> 7) & 0x1F) | ((ir & 0xFE000000) >> 20))
        addy = (addy + rs1 - self.mem_offset) & MASK
        if addy >= (self.mem_size - 3) & MASK:
            addy = (addy + self.mem_offset) & MASK
            if _MMIO_LOW <= addy < _MMIO_HIGH:
                if addy == 0x11004004:
                    self.csrs[Csr.TIMERMATCHH] = rs2
                elif addy == 0x11004000:
                    self.csrs[Csr.TIMERMATCHL] = rs2
                elif addy == 0x11100000:
                    self.csrs[Csr.PC] = (pc + 4) & MASK
                    raise _Halt(_s32(rs2))
                return _Outcome(pc=pc, write_rd=False)
            return _Outcome(pc=pc, rval=addy, write_rd=False, trap=8)
        size = _STORE_SIZES.get((ir >> 12) & 0x7)
        if size is None:
            return _Outcome(pc=pc, write_rd=False, trap=3)
        self._store(addy, size, rs2)
        return _Outcome(pc=pc, write_rd=False)

    def _op_alu(self, ir: int, pc: int, cycle: int) -> _Outcome:
        imm = _sext12(ir >> 20)
        rs1 = self._reg(ir, 15)
        is_reg = bool(ir & 0x20)
        rs2 = self.regs[imm & 0x1F] if is_reg else imm
        funct3 = (ir >> 12) & 7
        if is_reg and ir & 0x02000000:
            rval = self._muldiv(funct3, rs1, rs2)
        else:
            shamt = rs2 & 0x1F
            if funct3 == 0:
                rval = rs1 - rs2 if is_reg and ir & 0x40000000 else rs1 + rs2
            elif funct3 == 1:
                rval = rs1 << shamt
            elif funct3 == 2:
                rval = int(_s32(rs1) < _s32(rs2))
            elif funct3 == 3:
                rval = int(rs1 < rs2)
            elif funct3 == 4:
                rval = rs1 ^ rs2
            elif funct3 == 5:
                rval = _s32(rs1) >> shamt if ir & 0x40000000 else rs1 >> shamt
            elif funct3 == 6:
                rval = rs1 | rs2
            else:
                rval = rs1 & rs2
        return _Outcome(pc=pc, rval=rval & MASK)

    @staticmethod
    def _muldiv(funct3: int, rs1: int, rs2: int) -> int:
        a, b = _s32(rs1), _s32(rs2)
        overflow = a == -0x80000000 and b == -1
        if funct3 == 0:
            return rs1 * rs2
        if funct3 == 1:
            return (a * b) >> 32
        if funct3 == 2:
            return (a * rs2) >> 32
        if funct3 == 3:
            return (rs1 * rs2) >> 32
        if funct3 == 4:
            if rs2 == 0:
                return MASK
            return rs1 if overflow else _trunc_div(a, b)
        if funct3 == 5:
            return MASK if rs2 == 0 else rs1 // rs2
        if funct3 == 6:
            if rs2 == 0:
                return rs1
            return 0 if overflow else a - b * _trunc_div(a, b)
        return rs1 if rs2 == 0 else rs1 % rs2

    def _op_fence(self, ir: int, pc: int, cycle: int) -> _Outcome:
        return _Outcome(pc=pc, write_rd=False)

    def _op_system(self, ir: int, pc: int, cycle: int) -> _Outcome:
        c = self.csrs
        csrno = ir >> 20
        microop = (ir >> 12) & 0x7
        if microop & 3:
            rs1imm = (ir >> 15) & 0x1F
            rs1 = self.regs[rs1imm]
            if csrno in _CSR_NUMBERS:
                rval = c[_CSR_NUMBERS[csrno]]
            elif csrno == 0xC00:
                rval = cycle
            else:
                rval = _CSR_CONSTANTS.get(csrno, 0)
            writeval = {
                1: rs1,
                2: rval | rs1,
                3: rval & ~rs1,
                5: rs1imm,
                6: rval | rs1imm,
                7: rval & ~rs1imm,
            }[microop] & MASK
            if csrno in _CSR_NUMBERS:
                c[_CSR_NUMBERS[csrno]] = writeval
            return _Outcome(pc=pc, rval=rval)
        if microop != 0:
            return _Outcome(pc=pc, trap=3)
        if csrno == 0x105:
            c[Csr.MSTATUS] |= 8
            c[Csr.EXTRAFLAGS] |= 4
            c[Csr.PC] = (pc + 4) & MASK
            raise _Halt(1)
        if csrno & 0xFF == 0x02:
            start_mstatus = c[Csr.MSTATUS]
            start_flags = c[Csr.EXTRAFLAGS]
            c[Csr.MSTATUS] = ((start_mstatus & 0x80) >> 4) | ((start_flags & 3) << 11) | 0x80
            c[Csr.EXTRAFLAGS] = (start_flags & ~3 & MASK) | ((start_mstatus >> 11) & 3)
            return _Outcome(pc=(c[Csr.MEPC] - 4) & MASK, write_rd=False)
        if csrno == 0:
            trap = 12 if c[Csr.EXTRAFLAGS] & 3 else 9
        elif csrno == 1:
            trap = 4
        else:
            trap = 3
        return _Outcome(pc=pc, write_rd=False, trap=trap)

    def _op_atomic(self, ir: int, pc: int, cycle: int) -> _Outcome:
        c = self.csrs
        rs1 = (self._reg(ir, 15) - self.mem_offset) & MASK
        rs2 = self._reg(ir, 20)
        irmid = (ir >> 27) & 0x1F
        if rs1 >= (self.mem_size - 3) & MASK:
            return _Outcome(pc=pc, rval=(rs1 + self.mem_offset) & MASK, trap=8)
        rval = self._load(rs1, 4)
        dowrite = True
        if irmid == 2:
            dowrite = False
            c[Csr.EXTRAFLAGS] = (c[Csr.EXTRAFLAGS] & 0x07) | ((rs1 << 3) & MASK)
        elif irmid == 3:
            rval = int((c[Csr.EXTRAFLAGS] >> 3) != (rs1 & 0x1FFFFFFF))
            dowrite = not rval
        elif irmid == 1:
            pass
        elif irmid == 0:
            rs2 = (rs2 + rval) & MASK
        elif irmid == 4:
            rs2 ^= rval
        elif irmid == 12:
            rs2 &= rval
        elif irmid == 8:
            rs2 |= rval
        elif irmid == 16:
            rs2 = rs2 if _s32(rs2) < _s32(rval) else rval
        elif irmid == 20:
            rs2 = rs2 if _s32(rs2) > _s32(rval) else rval
        elif irmid == 24:
            rs2 = min(rs2, rval)
        elif irmid == 28:
            rs2 = max(rs2, rval)
        else:
            return _Outcome(pc=pc, rval=rval, trap=3)
        if dowrite:
            self._store(rs1, 4, rs2)
        return _Outcome(pc=pc, rval=rval)

    _DISPATCH = {
        0x37: _op_lui,
        0x17: _op_auipc,
        0x6F: _op_jal,
        0x67: _op_jalr,
        0x63: _op_branch,
        0x03: _op_load,
        0x23: _op_store,
        0x13: _op_alu,
        0x33: _op_alu,
        0x0F: _op_fence,
        0x73: _op_system,
        0x2F: _op_atomic,
    }