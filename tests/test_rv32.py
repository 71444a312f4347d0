import pytest

from osdemos.rv32 import CPUState, Csr, Reg

MASK = 0xFFFFFFFF


def i_type(op, rd, f3, rs1, imm):
    return ((imm & 0xFFF) << 20) | (rs1 << 15) | (f3 << 12) | (rd << 7) | op


def addi(rd, rs1, imm):
    return i_type(0x13, rd, 0, rs1, imm)


def r_type(f3, rd, rs1, rs2, f7=0):
    return (f7 << 25) | (rs2 << 20) | (rs1 << 15) | (f3 << 12) | (rd << 7) | 0x33


def s_type(f3, rs1, rs2, imm):
    return (
        (((imm >> 5) & 0x7F) << 25)
        | (rs2 << 20)
        | (rs1 << 15)
        | (f3 << 12)
        | ((imm & 0x1F) << 7)
        | 0x23
    )


def b_type(f3, rs1, rs2, imm):
    return (
        (((imm >> 12) & 1) << 31)
        | (((imm >> 5) & 0x3F) << 25)
        | (rs2 << 20)
        | (rs1 << 15)
        | (f3 << 12)
        | (((imm >> 1) & 0xF) << 8)
        | (((imm >> 11) & 1) << 7)
        | 0x63
    )


def j_type(rd, imm):
    return (
        (((imm >> 20) & 1) << 31)
        | (((imm >> 1) & 0x3FF) << 21)
        | (((imm >> 11) & 1) << 20)
        | (((imm >> 12) & 0xFF) << 12)
        | (rd << 7)
        | 0x6F
    )


def u_type(op, rd, imm20):
    return (imm20 << 12) | (rd << 7) | op


def csr_op(f3, rd, rs1, csrno):
    return (csrno << 20) | (rs1 << 15) | (f3 << 12) | (rd << 7) | 0x73


def amo(funct5, rd, rs1, rs2):
    return (funct5 << 27) | (rs2 << 20) | (rs1 << 15) | (2 << 12) | (rd << 7) | 0x2F


NOP = addi(0, 0, 0)
ECALL = 0x00000073
EBREAK = 0x00100073
MRET = 0x30200073
WFI = 0x10500073


def signed(value):
    return value - (1 << 32) if value & 0x80000000 else value


def make_cpu(*words, size=4096, offset=0):
    cpu = CPUState(size, offset)
    cpu.load(b"".join(w.to_bytes(4, "little") for w in words), offset)
    cpu.csrs[Csr.PC] = offset
    return cpu


def run(cpu, count, elapsed=1):
    return [cpu.step(elapsed) for _ in range(count)]


def test_addi_writes_register_and_advances():
    cpu = make_cpu(addi(1, 0, 5))
    assert run(cpu, 1) == [0]
    assert cpu.regs[Reg.RA] == 5
    assert cpu.csrs[Csr.PC] == 4
    assert cpu.csrs[Csr.CYCLEL] == 1


def test_zero_register_ignores_writes():
    cpu = make_cpu(addi(0, 0, 5))
    run(cpu, 1)
    assert cpu.regs[Reg.Z] == 0


def test_negative_immediate_is_sign_extended():
    cpu = make_cpu(addi(1, 0, -3))
    run(cpu, 1)
    assert signed(cpu.regs[1]) == -3


def test_lui_and_auipc():
    cpu = make_cpu(NOP, u_type(0x37, 1, 0x12345), u_type(0x17, 2, 0x1))
    run(cpu, 3)
    assert cpu.regs[1] == 0x12345000
    assert cpu.regs[2] == 8 + 0x1000


def test_branch_taken_and_not_taken():
    cpu = make_cpu(b_type(0, 0, 0, 8))
    run(cpu, 1)
    assert cpu.csrs[Csr.PC] == 8

    cpu = make_cpu(b_type(1, 0, 0, 8))
    run(cpu, 1)
    assert cpu.csrs[Csr.PC] == 4


def test_backward_branch():
    cpu = make_cpu(NOP, NOP, b_type(0, 0, 0, -8))
    cpu.csrs[Csr.PC] = 8
    run(cpu, 1)
    assert cpu.csrs[Csr.PC] == 0


def test_signed_and_unsigned_branches_differ():
    cpu = make_cpu(b_type(4, 1, 0, 16))
    cpu.regs[1] = MASK
    run(cpu, 1)
    assert cpu.csrs[Csr.PC] == 16

    cpu = make_cpu(b_type(6, 1, 0, 16))
    cpu.regs[1] = MASK
    run(cpu, 1)
    assert cpu.csrs[Csr.PC] == 4


def test_jal_links_and_jumps():
    cpu = make_cpu(j_type(1, 16))
    run(cpu, 1)
    assert cpu.regs[1] == 4
    assert cpu.csrs[Csr.PC] == 16


def test_jalr_clears_low_bit():
    cpu = make_cpu(addi(2, 0, 0x101), i_type(0x67, 1, 0, 2, 0))
    run(cpu, 2)
    assert cpu.csrs[Csr.PC] == 0x100
    assert cpu.regs[1] == 8


def test_store_then_load_word():
    cpu = make_cpu(addi(1, 0, 0x123), s_type(2, 0, 1, 0x200), i_type(0x03, 2, 2, 0, 0x200))
    run(cpu, 3)
    assert cpu.regs[2] == 0x123
    assert cpu.read_u32(0x200) == 0x123


def test_byte_loads_sign_and_zero_extend():
    cpu = make_cpu(
        addi(1, 0, -128),
        s_type(0, 0, 1, 0x200),
        i_type(0x03, 2, 0, 0, 0x200),
        i_type(0x03, 3, 4, 0, 0x200),
    )
    run(cpu, 4)
    assert cpu.regs[3] == 0x80
    assert cpu.regs[2] == cpu.regs[3] | 0xFFFFFF00


def test_load_access_fault_traps():
    cpu = make_cpu(u_type(0x37, 2, 0x2), i_type(0x03, 1, 2, 2, 0))
    cpu.csrs[Csr.MTVEC] = 0x100
    run(cpu, 2)
    assert cpu.csrs[Csr.MCAUSE] == 5
    assert cpu.csrs[Csr.MTVAL] == 0x2000
    assert cpu.csrs[Csr.MEPC] == 4
    assert cpu.csrs[Csr.PC] == 0x100
    assert cpu.regs[1] == 0


def test_store_access_fault_traps():
    cpu = make_cpu(u_type(0x37, 2, 0x2), s_type(2, 2, 0, 0))
    cpu.csrs[Csr.MTVEC] = 0x100
    run(cpu, 2)
    assert cpu.csrs[Csr.MCAUSE] == 7
    assert cpu.csrs[Csr.MTVAL] == 0x2000


def test_timer_registers_are_memory_mapped():
    cpu = make_cpu(u_type(0x37, 1, 0x1100C), i_type(0x03, 2, 2, 1, -8))
    run(cpu, 2)
    assert cpu.regs[2] == cpu.csrs[Csr.TIMERL]


def test_timer_match_store():
    cpu = make_cpu(u_type(0x37, 1, 0x11004), addi(2, 0, 77), s_type(2, 1, 2, 0))
    run(cpu, 3)
    assert cpu.csrs[Csr.TIMERMATCHL] == 77


def test_syscon_store_returns_value():
    cpu = make_cpu(u_type(0x37, 1, 0x11100), addi(2, 0, 0x555), s_type(2, 1, 2, 0))
    assert run(cpu, 3) == [0, 0, 0x555]
    assert cpu.csrs[Csr.PC] == 12


def test_division_by_zero():
    cpu = make_cpu(
        r_type(4, 3, 1, 0, 1),
        r_type(6, 4, 1, 0, 1),
        r_type(5, 5, 1, 0, 1),
        r_type(7, 6, 1, 0, 1),
    )
    cpu.regs[1] = 7
    run(cpu, 4)
    assert cpu.regs[3] == 0xFFFFFFFF
    assert cpu.regs[4] == 7
    assert cpu.regs[5] == 0xFFFFFFFF
    assert cpu.regs[6] == 7


def test_division_overflow():
    cpu = make_cpu(r_type(4, 3, 1, 2, 1), r_type(6, 4, 1, 2, 1))
    cpu.regs[1] = 0x80000000
    cpu.regs[2] = MASK
    run(cpu, 2)
    assert cpu.regs[3] == 0x80000000
    assert cpu.regs[4] == 0


def test_signed_division_truncates_toward_zero():
    cpu = make_cpu(r_type(4, 3, 1, 2, 1), r_type(6, 4, 1, 2, 1))
    cpu.regs[1] = -7 & MASK
    cpu.regs[2] = 2
    run(cpu, 2)
    quotient, remainder = signed(cpu.regs[3]), signed(cpu.regs[4])
    assert quotient * 2 + remainder == -7
    assert -2 < remainder <= 0


def test_unsigned_multiply_high_and_low_combine():
    a, b = 0x12345678, 0x9ABCDEF0
    cpu = make_cpu(r_type(0, 3, 1, 2, 1), r_type(3, 4, 1, 2, 1))
    cpu.regs[1], cpu.regs[2] = a, b
    run(cpu, 2)
    assert (cpu.regs[4] << 32) | cpu.regs[3] == a * b


def test_signed_multiply_high_and_low_combine():
    a, b = -123456789 & MASK, 987654321
    cpu = make_cpu(r_type(0, 3, 1, 2, 1), r_type(1, 4, 1, 2, 1))
    cpu.regs[1], cpu.regs[2] = a, b
    run(cpu, 2)
    product = (cpu.regs[4] << 32) | cpu.regs[3]
    assert product - (1 << 64) == signed(a) * b


def test_shifts_and_comparisons():
    cpu = make_cpu(
        i_type(0x13, 2, 5, 1, 0x400 | 2),
        i_type(0x13, 3, 5, 1, 2),
        r_type(2, 4, 1, 0),
        r_type(3, 5, 1, 0),
        r_type(0, 6, 1, 1, 0x20),
    )
    cpu.regs[1] = -16 & MASK
    run(cpu, 5)
    assert signed(cpu.regs[2]) == -4
    assert cpu.regs[3] == (-16 & MASK) >> 2
    assert cpu.regs[4] == 1
    assert cpu.regs[5] == 0
    assert cpu.regs[6] == 0


def test_csr_read_misa():
    cpu = make_cpu(csr_op(2, 1, 0, 0x301))
    run(cpu, 1)
    assert cpu.regs[1] == 0x40401101


def test_csr_write_and_read_back():
    cpu = make_cpu(
        addi(2, 0, 0x7B),
        csr_op(1, 0, 2, 0x340),
        csr_op(2, 3, 0, 0x340),
        csr_op(5, 0, 5, 0x305),
    )
    run(cpu, 4)
    assert cpu.csrs[Csr.MSCRATCH] == 0x7B
    assert cpu.regs[3] == 0x7B
    assert cpu.csrs[Csr.MTVEC] == 5


def test_cycle_csr_matches_counter():
    cpu = make_cpu(csr_op(2, 1, 0, 0xC00))
    run(cpu, 1)
    assert cpu.regs[1] == cpu.csrs[Csr.CYCLEL]


def test_illegal_instruction_traps():
    cpu = make_cpu(0)
    cpu.csrs[Csr.MTVEC] = 0x100
    cpu.csrs[Csr.MSTATUS] = 8
    assert run(cpu, 1) == [0]
    assert cpu.csrs[Csr.MCAUSE] == 2
    assert cpu.csrs[Csr.MEPC] == 0
    assert cpu.csrs[Csr.MTVAL] == 0
    assert cpu.csrs[Csr.PC] == 0x100
    assert cpu.csrs[Csr.EXTRAFLAGS] & 3 == 3
    assert cpu.csrs[Csr.MSTATUS] & 0x80
    assert not cpu.csrs[Csr.MSTATUS] & 8


@pytest.mark.parametrize(
    "word, flags, cause",
    [(ECALL, 0, 8), (ECALL, 3, 11), (EBREAK, 0, 3)],
)
def test_environment_traps(word, flags, cause):
    cpu = make_cpu(word)
    cpu.csrs[Csr.EXTRAFLAGS] = flags
    run(cpu, 1)
    assert cpu.csrs[Csr.MCAUSE] == cause


def test_misaligned_pc_traps():
    cpu = make_cpu(NOP, NOP)
    cpu.csrs[Csr.PC] = 2
    run(cpu, 1)
    assert cpu.csrs[Csr.MCAUSE] == 0
    assert cpu.csrs[Csr.MTVAL] == 2


def test_pc_outside_memory_traps():
    cpu = make_cpu(NOP)
    cpu.csrs[Csr.PC] = 4096
    run(cpu, 1)
    assert cpu.csrs[Csr.MCAUSE] == 1
    assert cpu.csrs[Csr.MTVAL] == 4096


def test_mret_returns_to_mepc():
    cpu = make_cpu(MRET)
    cpu.csrs[Csr.MEPC] = 0x40
    cpu.csrs[Csr.MSTATUS] = 0x80
    run(cpu, 1)
    assert cpu.csrs[Csr.PC] == 0x40
    assert cpu.csrs[Csr.MSTATUS] & 8


def test_wfi_sleeps_until_timer_interrupt():
    cpu = make_cpu(WFI, NOP)
    cpu.csrs[Csr.MIE] = 0x80
    cpu.csrs[Csr.MTVEC] = 0x40
    cpu.csrs[Csr.TIMERMATCHL] = 5
    assert cpu.step(1) == 1
    assert cpu.csrs[Csr.PC] == 4
    assert cpu.step(1) == 1
    assert cpu.csrs[Csr.PC] == 4
    assert cpu.step(10) == 0
    assert cpu.csrs[Csr.MCAUSE] == 0x80000007
    assert cpu.csrs[Csr.MEPC] == 4
    assert cpu.csrs[Csr.MTVAL] == 0
    assert cpu.csrs[Csr.PC] == 0x40


def test_timer_low_word_carries():
    cpu = make_cpu(NOP)
    cpu.csrs[Csr.TIMERL] = MASK
    cpu.step(2)
    assert cpu.csrs[Csr.TIMERL] == 1
    assert cpu.csrs[Csr.TIMERH] == 1


def test_amo_add_and_swap():
    cpu = make_cpu(amo(0, 3, 1, 2), amo(1, 4, 1, 2))
    cpu.regs[1] = 0x200
    cpu.regs[2] = 5
    cpu.write_u32(0x200, 10)
    run(cpu, 1)
    assert cpu.regs[3] == 10
    assert cpu.read_u32(0x200) == 15
    run(cpu, 1)
    assert cpu.regs[4] == 15
    assert cpu.read_u32(0x200) == 5


def test_amo_max_unsigned_and_signed_min():
    cpu = make_cpu(amo(28, 3, 1, 2), amo(16, 4, 1, 2))
    cpu.regs[1] = 0x200
    cpu.regs[2] = MASK
    cpu.write_u32(0x200, 7)
    run(cpu, 1)
    assert cpu.read_u32(0x200) == MASK
    cpu.write_u32(0x200, 7)
    run(cpu, 1)
    assert cpu.read_u32(0x200) == MASK


def test_load_reserved_store_conditional():
    cpu = make_cpu(amo(2, 3, 1, 0), amo(3, 4, 1, 2))
    cpu.regs[1] = 0x200
    cpu.regs[2] = 5
    cpu.write_u32(0x200, 99)
    run(cpu, 2)
    assert cpu.regs[3] == 99
    assert cpu.regs[4] == 0
    assert cpu.read_u32(0x200) == 5


def test_store_conditional_without_reservation_fails():
    cpu = make_cpu(amo(3, 4, 1, 2))
    cpu.regs[1] = 0x200
    cpu.regs[2] = 5
    cpu.write_u32(0x200, 99)
    run(cpu, 1)
    assert cpu.regs[4] == 1
    assert cpu.read_u32(0x200) == 99


def test_memory_offset_is_respected():
    base = 0x80000000
    cpu = make_cpu(addi(1, 0, 9), u_type(0x17, 2, 0), size=4096, offset=base)
    run(cpu, 2)
    assert cpu.regs[1] == 9
    assert cpu.regs[2] == base + 4
    assert cpu.csrs[Csr.PC] == base + 8
    cpu.write_u32(base + 0x100, 0xDEADBEEF)
    assert cpu.read_u32(base + 0x100) == 0xDEADBEEF


def test_word_round_trip_is_little_endian():
    cpu = CPUState(64)
    cpu.write_u32(8, 0x11223344)
    assert cpu.read_u32(8) == 0x11223344
    assert bytes(cpu.mem[8:12]) == bytes([0x44, 0x33, 0x22, 0x11])


@pytest.mark.parametrize("address", [-4, 61, 64])
def test_host_access_outside_memory_raises(address):
    cpu = CPUState(64)
    with pytest.raises(IndexError):
        cpu.read_u32(address)
    with pytest.raises(IndexError):
        cpu.write_u32(address, 1)


def test_load_rejects_oversized_image():
    cpu = CPUState(16)
    with pytest.raises(ValueError):
        cpu.load(bytes(17), 0)


def test_invalid_memory_size_raises():
    with pytest.raises(ValueError):
        CPUState(0)