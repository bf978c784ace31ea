"""
Emulator Integration Tests
==========================

Tests for the complete emulator system, verifying that all components
work together correctly.

These tests ensure:
- Emulator instantiation with different configurations
- Program loading and execution end to end
- UART input and output
- Breakpoint and watchpoint integration
- Fault reporting
"""

import logging
from dataclasses import replace

import pytest

from bitserial.cpu import Operation, Variant, encode
from bitserial.errors import ImageFormatError
from bitserial.image import save_image
from bitserial.emulator import (
    BreakReason,
    CpuConfig,
    Emulator,
    EmulatorConfig,
    StepStatus,
)


@pytest.fixture
def hello(hello_words):
    emu = Emulator()
    emu.load_words(hello_words)
    emu.reset()
    return emu


# =============================================================================
# Construction and Configuration
# =============================================================================

class TestEmulatorConfig:
    """Test emulator configuration."""

    def test_defaults(self):
        emu = Emulator()
        assert emu.config.cpu.width == 16
        assert emu.memory.size == 0x800
        assert "width=16" in repr(emu)

    def test_memory_size(self):
        emu = Emulator(EmulatorConfig(memory_words=64))
        assert emu.memory.size == 64

    def test_from_env_defaults(self, monkeypatch):
        for name in ("BITSERIAL_WIDTH", "BITSERIAL_VARIANT",
                     "BITSERIAL_JUMPZ_NONZERO", "BITSERIAL_TRACE"):
            monkeypatch.delenv(name, raising=False)
        config = EmulatorConfig.from_env()
        assert config.cpu == CpuConfig()
        assert config.trace is False

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("BITSERIAL_WIDTH", "12")
        monkeypatch.setenv("BITSERIAL_VARIANT", "Extended")
        monkeypatch.setenv("BITSERIAL_JUMPZ_NONZERO", "yes")
        monkeypatch.setenv("BITSERIAL_TRACE", "1")
        config = EmulatorConfig.from_env()
        assert config.cpu.width == 12
        assert config.cpu.variant is Variant.EXTENDED
        assert config.cpu.jumpz_on_nonzero
        assert config.trace

    def test_from_env_bad_width(self, monkeypatch):
        monkeypatch.setenv("BITSERIAL_WIDTH", "wide")
        with pytest.raises(ValueError, match="BITSERIAL_WIDTH"):
            EmulatorConfig.from_env()


# =============================================================================
# Program Loading
# =============================================================================

class TestLoading:
    """Test loading programs."""

    def test_load_words(self, hello_words):
        emu = Emulator()
        assert emu.load_words(hello_words) == len(hello_words)
        assert emu.read_word(0x40) == ord("H")

    def test_load_image(self, tmp_path, hello_words):
        path = tmp_path / "hello.hex"
        save_image(path, hello_words)
        emu = Emulator()
        assert emu.load_image(path) == len(hello_words)
        assert emu.memory.dump(0, 2) == [0xA005, 0x3006]

    def test_image_too_large(self, tmp_path):
        path = tmp_path / "big.bin"
        save_image(path, [0] * 8)
        emu = Emulator(EmulatorConfig(memory_words=4))
        with pytest.raises(ImageFormatError, match="do not fit"):
            emu.load_image(path)

    def test_disassemble_at(self, hello):
        assert hello.disassemble_at(0, 2) == [
            "$0000: A005  LITERAL $005",
            "$0001: 3006  ADD $006",
        ]


# =============================================================================
# Execution
# =============================================================================

class TestHelloProgram:
    """Run the HELLO program end to end."""

    def test_output(self, hello):
        assert hello.run_until_halt(200_000)
        assert hello.uart_output == b"HELLO\r\n"
        assert hello.halted

    def test_results(self, hello):
        hello.run_until_halt(200_000)
        assert hello.read_word(0x3F) == 11
        assert hello.read_word(0x30) == 0x47
        assert hello.cpu.pc == 0x11
        assert hello.step() is StepStatus.HALTED
        assert hello.cpu.last_signals.stop

    def test_sum_before_store(self, hello):
        assert hello.run_until_pc(0x02)
        assert hello.cpu.acc == 11
        assert hello.breakpoints.breakpoint_count == 0

    def test_halt_event(self, hello):
        event = hello.run(200_000)
        assert event.reason is BreakReason.HALTED
        assert event.cycles == hello.total_cycles
        assert hello.breakpoints.last_event is event

    def test_reset_reruns(self, hello):
        hello.run_until_halt(200_000)
        hello.reset()
        assert hello.uart_output == b""
        assert hello.total_cycles == 0
        assert hello.run_until_halt(200_000)
        # Memory survives reset: the string pointer is already at the terminator
        assert hello.uart_output == b""


class TestStepping:
    """Test cycle and instruction stepping."""

    def test_step(self, hello):
        assert hello.step() is StepStatus.NORMAL
        assert hello.total_cycles == 1

    def test_step_instruction(self, hello):
        event = hello.step_instruction()
        assert event.reason is BreakReason.STEP
        assert event.cycles == 17
        assert event.address == 0
        event = hello.step_instruction()
        assert event.cycles == 51
        assert event.address == 1

    def test_max_cycles(self, hello):
        event = hello.run(100)
        assert event.reason is BreakReason.MAX_CYCLES
        assert event.cycles == 100
        assert hello.total_cycles == 100

    def test_registers(self, hello):
        hello.run_until_pc(0x02)
        regs = hello.registers
        assert regs["state"] == "FETCH"
        assert regs["acc"] == 11
        assert regs["pc"] == 2
        assert "shadow" not in regs


# =============================================================================
# Debugging
# =============================================================================

class TestBreakpoints:
    """Test breakpoint integration."""

    def test_pc_breakpoint(self, hello):
        hello.add_breakpoint(0x07)
        event = hello.run(200_000)
        assert event.reason is BreakReason.PC_BREAKPOINT
        assert event.address == 0x07
        assert hello.uart_output == b""

        event = hello.run(200_000)
        assert event.address == 0x07
        assert hello.uart_output == b"H"

    def test_run_until_halt_ignores_breakpoints(self, hello):
        hello.add_breakpoint(0x07)
        assert hello.run_until_halt(200_000)
        assert hello.uart_output == b"HELLO\r\n"

    def test_remove_breakpoint(self, hello):
        hello.add_breakpoint(0x07)
        hello.remove_breakpoint(0x07)
        assert hello.run(200_000).reason is BreakReason.HALTED

    def test_write_watchpoint(self, hello):
        hello.add_watchpoint(0x3F)
        event = hello.run(200_000)
        assert event.reason is BreakReason.MEMORY_WRITE
        assert (event.address, event.value) == (0x3F, 11)

    def test_read_watchpoint(self, hello):
        hello.add_watchpoint(0x30, on_read=True, on_write=False)
        event = hello.run(200_000)
        assert event.reason is BreakReason.MEMORY_READ
        assert event.value == 0x40

    def test_register_condition(self, hello):
        hello.breakpoints.add_condition("acc", "==", ord("H"))
        event = hello.run(200_000)
        assert event.reason is BreakReason.REGISTER_CONDITION
        assert event.address == 0x06

    def test_condition_on_missing_flag(self, hello):
        with pytest.raises(ValueError, match="Unknown flag"):
            hello.breakpoints.add_condition("flag_u", "==", True)
        assert hello.run(200_000).reason is BreakReason.HALTED

    def test_flag_condition(self, hello):
        hello.breakpoints.add_condition("flag_z", "==", True)
        event = hello.run(200_000)
        assert event.reason is BreakReason.REGISTER_CONDITION

    def test_clear_breakpoints(self, hello):
        hello.add_breakpoint(0x07)
        hello.add_watchpoint(0x3F)
        hello.clear_breakpoints()
        assert hello.run(200_000).reason is BreakReason.HALTED

    def test_trace_log(self, caplog):
        emu = Emulator(EmulatorConfig(trace=True))
        emu.load_words([0xA005, 0x3006, 0xC002])
        emu.reset()
        with caplog.at_level(logging.DEBUG, logger="bitserial.emulator.emulator"):
            emu.run(200)
        assert "$0000  LITERAL" in caplog.text
        assert "$0001  ADD" in caplog.text


class TestFaults:
    """Test fault reporting through the emulator."""

    def test_fault_event(self, hello):
        hello.cpu.regs = replace(hello.cpu.regs, counter=99)
        event = hello.run(1000)
        assert event.reason is BreakReason.FAULT
        assert "cycle counter 99" in event.message
        assert hello.breakpoints.last_event is event
        assert not hello.run_until_halt(1000)

    def test_reset_clears_fault(self, hello):
        hello.cpu.regs = replace(hello.cpu.regs, counter=99)
        hello.run(10)
        hello.reset()
        assert hello.run_until_halt(200_000)


# =============================================================================
# I/O and Variants
# =============================================================================

class TestUartInput:
    """Test reading the UART through GET io."""

    def program(self, emu):
        emu.load_words([0xF800, 0x9020, 0xA080, 0xE001, 0xC004])
        emu.reset()

    def test_received_byte(self):
        emu = Emulator()
        self.program(emu)
        emu.feed_input(b"Z")
        assert emu.run_until_halt(10_000)
        assert emu.read_word(0x20) == ord("Z")

    def test_empty_receiver(self):
        emu = Emulator()
        self.program(emu)
        assert emu.run_until_halt(10_000)
        assert emu.read_word(0x20) == 0x100


class TestVariants:
    """Test other widths and the extended variant."""

    def test_width_8(self):
        emu = Emulator(EmulatorConfig(cpu=CpuConfig(width=8)))
        emu.load_words([0xA5, 0x36, 0x97, 0x86, 0xE1, 0xC5, 0x80, 0x00])
        emu.reset()
        assert emu.run_until_halt(10_000)
        assert emu.read_word(7) == 11
        assert emu.cpu.pc == 5

    def test_extended_interrupt(self):
        def ext(operation, operand=0):
            return encode(operation, operand, Variant.EXTENDED)

        emu = Emulator(EmulatorConfig(cpu=CpuConfig(variant=Variant.EXTENDED)))
        words = [0] * 0x40
        words[0x00:0x05] = [
            ext(Operation.LITERAL, 0x30),
            ext(Operation.SHADOW, 0),
            ext(Operation.LITERAL, 0x080),
            ext(Operation.SET, 1),
            ext(Operation.JUMP, 0x04),
        ]
        words[0x30:0x35] = [
            ext(Operation.LITERAL, ord("!")),
            ext(Operation.SET, 0x800),
            ext(Operation.LITERAL, 0x200),
            ext(Operation.SET, 1),
            ext(Operation.JUMP, 0x34),
        ]
        emu.load_words(words)
        emu.reset()

        assert emu.run_until_pc(0x04)
        emu.irq = True
        assert emu.irq
        assert emu.run_until_halt(10_000)
        assert emu.uart_output == b"!"
        assert emu.registers["shadow"] == 0x04
