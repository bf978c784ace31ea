"""
Memory and I/O Block Unit Tests
===============================

Tests for word RAM and the memory-mapped peripheral block.
"""

import pytest

from bitserial.emulator import IoBlock, Memory


# =============================================================================
# RAM Tests
# =============================================================================

class TestMemory:
    """Test word-addressed RAM."""

    def test_default_size(self):
        """RAM fills the space below the I/O-select bit."""
        assert Memory(16).size == 0x800
        assert Memory(8).size == 8

    def test_read_write(self):
        memory = Memory(16)
        memory.write(0x7FF, 0x1234)
        assert memory.read(0x7FF) == 0x1234

    def test_write_masks_to_width(self):
        memory = Memory(8)
        memory.write(0, 0x1FF)
        assert memory.read(0) == 0xFF

    def test_initialized_to_zero(self):
        assert Memory(16).dump(0, 4) == [0, 0, 0, 0]

    def test_unmapped_access(self, caplog):
        """Out-of-range reads return 0 and writes are dropped."""
        memory = Memory(16, size=4)
        memory.write(10, 5)
        assert memory.read(10) == 0
        assert "unmapped" in caplog.text

    def test_load_words(self):
        memory = Memory(16)
        assert memory.load_words([1, 2, 3], start=0x10) == 3
        assert memory.dump(0x10, 3) == [1, 2, 3]

    def test_load_words_too_large(self):
        memory = Memory(16, size=4)
        with pytest.raises(ValueError, match="do not fit"):
            memory.load_words([0] * 5)

    def test_clear(self):
        memory = Memory(16)
        memory.load_words([7, 7])
        memory.clear()
        assert memory.dump(0, 2) == [0, 0]


# =============================================================================
# I/O Block Tests
# =============================================================================

class TestIoBlock:
    """Test the UART, LEDs and switches."""

    def test_uart_output(self):
        io = IoBlock()
        for ch in b"OK":
            io.write(IoBlock.UART, ch)
        assert bytes(io.output) == b"OK"

    def test_uart_output_low_byte(self):
        io = IoBlock()
        io.write(IoBlock.UART, 0x1241)
        assert bytes(io.output) == b"A"

    def test_uart_input_queue(self):
        io = IoBlock()
        io.feed(b"xy")
        assert io.pending_input == 2
        assert io.read(IoBlock.UART) == ord("x")
        assert io.read(IoBlock.UART) == ord("y")
        assert io.read(IoBlock.UART) == IoBlock.UART_EMPTY

    def test_leds(self):
        io = IoBlock()
        io.write(IoBlock.LEDS, 0x0F)
        assert io.leds == 0x0F
        assert io.read(IoBlock.LEDS) == 0x0F

    def test_switches_read_only(self):
        io = IoBlock()
        io.switches = 3
        io.write(IoBlock.SWITCHES, 0)
        assert io.read(IoBlock.SWITCHES) == 3

    def test_unmapped_register(self):
        assert IoBlock().read(7) == 0

    def test_reset(self):
        io = IoBlock()
        io.feed(b"a")
        io.write(IoBlock.UART, 0x41)
        io.write(IoBlock.LEDS, 1)
        io.reset()
        assert io.output == bytearray()
        assert io.leds == 0
        assert io.pending_input == 0
