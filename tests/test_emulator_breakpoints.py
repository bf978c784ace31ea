"""
Breakpoint System Unit Tests
============================

Tests for PC breakpoints, word watchpoints, register conditions and the
break-event bookkeeping of BreakpointManager.
"""

import pytest

from bitserial.cpu import Variant
from bitserial.emulator import (
    BreakEvent,
    BreakpointManager,
    BreakReason,
    RegisterCondition,
)


# =============================================================================
# Mock CPU for Testing
# =============================================================================

class MockCPU:
    """Register view with the attributes RegisterCondition reads."""

    def __init__(self):
        self.acc = 0
        self.pc = 0
        self.op = 0
        self.flags = 0
        self.shadow = 0
        self.tcount = 0
        self.compare = 0
        self._flags = {"Z": False, "CY": False}

    def flag(self, name: str) -> bool:
        return self._flags[name.upper()]


@pytest.fixture
def mgr():
    return BreakpointManager()


# =============================================================================
# BreakpointManager Tests
# =============================================================================

class TestBreakpointManager:
    """Test initialization and bookkeeping."""

    def test_initial_state(self, mgr):
        """Manager starts with no breakpoints."""
        assert mgr.breakpoint_count == 0
        assert mgr.watchpoint_count == 0
        assert mgr.last_event is None
        assert mgr.step_mode is False

    def test_record(self, mgr):
        event = BreakEvent(BreakReason.HALTED, address=3)
        mgr.record(event)
        assert mgr.last_event is event

    def test_clear_all(self, mgr):
        mgr.add_breakpoint(1)
        mgr.add_watchpoint(2, on_read=True)
        mgr.add_condition("acc", "==", 0)
        mgr.step_mode = True
        mgr.clear_all()
        assert mgr.breakpoint_count == 0
        assert mgr.watchpoint_count == 0
        assert mgr.list_register_conditions() == []
        assert mgr.step_mode is False


# =============================================================================
# PC Breakpoint Tests
# =============================================================================

class TestPCBreakpoints:
    """Test PC breakpoint functionality."""

    def test_add_and_list(self, mgr):
        mgr.add_breakpoint(0x10)
        mgr.add_breakpoint(0x02)
        mgr.add_breakpoint(0x10)
        assert mgr.list_breakpoints() == [0x02, 0x10]
        assert mgr.has_breakpoint(0x10)

    def test_remove(self, mgr):
        mgr.add_breakpoint(0x10)
        mgr.remove_breakpoint(0x10)
        mgr.remove_breakpoint(0x99)
        assert mgr.breakpoint_count == 0

    def test_check_fetch_hit(self, mgr):
        mgr.add_breakpoint(0x07)
        assert mgr.check_fetch(MockCPU(), 0x06) is True
        assert mgr.check_fetch(MockCPU(), 0x07) is False
        event = mgr.last_event
        assert event.reason is BreakReason.PC_BREAKPOINT
        assert event.address == 0x07
        assert str(event) == "Breakpoint at $0007"

    def test_step_mode_breaks_once(self, mgr):
        mgr.step_mode = True
        assert mgr.check_fetch(MockCPU(), 4) is False
        assert mgr.last_event.reason is BreakReason.STEP
        assert mgr.check_fetch(MockCPU(), 5) is True

    def test_request_break(self, mgr):
        mgr.request_break()
        assert mgr.check_fetch(MockCPU(), 0) is False
        assert mgr.last_event.reason is BreakReason.USER_INTERRUPT
        assert mgr.check_fetch(MockCPU(), 0) is True

    def test_clear_break_request(self, mgr):
        mgr.request_break()
        mgr.clear_break_request()
        assert mgr.check_fetch(MockCPU(), 0) is True


# =============================================================================
# Watchpoint Tests
# =============================================================================

class TestWatchpoints:
    """Test word read/write watchpoints."""

    def test_write_watchpoint(self, mgr):
        mgr.add_write_watchpoint(0x20)
        assert mgr.check_write(0x21, 1) is True
        assert mgr.check_write(0x20, 0x41) is False
        assert mgr.last_event.reason is BreakReason.MEMORY_WRITE
        assert mgr.last_event.value == 0x41

    def test_read_watchpoint(self, mgr):
        mgr.add_read_watchpoint(0x30)
        assert mgr.check_write(0x30, 0) is True
        assert mgr.check_read(0x30, 0x40) is False
        assert str(mgr.last_event) == "Read $0040 from $0030"

    def test_add_watchpoint_default_is_write(self, mgr):
        mgr.add_watchpoint(0x20)
        assert mgr.list_write_watchpoints() == [0x20]
        assert mgr.list_read_watchpoints() == []

    def test_remove_watchpoint(self, mgr):
        mgr.add_watchpoint(0x20, on_read=True, on_write=True)
        assert mgr.watchpoint_count == 2
        mgr.remove_watchpoint(0x20)
        assert mgr.watchpoint_count == 0


# =============================================================================
# Register Condition Tests
# =============================================================================

class TestRegisterConditions:
    """Test conditions evaluated at each fetch."""

    @pytest.mark.parametrize("operator,value,expected", [
        ("==", 0x41, True),
        ("!=", 0x41, False),
        ("<", 0x42, True),
        ("<=", 0x40, False),
        (">", 0x40, True),
        (">=", 0x42, False),
        ("&", 0x01, True),
        ("&", 0x02, False),
    ])
    def test_operators(self, operator, value, expected):
        cpu = MockCPU()
        cpu.acc = 0x41
        assert RegisterCondition("acc", operator, value).check(cpu) is expected

    def test_flag_condition(self):
        cpu = MockCPU()
        cpu._flags["Z"] = True
        assert RegisterCondition("flag_z", "==", True).check(cpu)

    def test_unknown_register(self):
        with pytest.raises(ValueError, match="Unknown register"):
            RegisterCondition("x", "==", 0)

    def test_unknown_operator(self):
        with pytest.raises(ValueError, match="Unknown operator"):
            RegisterCondition("acc", "~", 0)

    def test_flag_checked_against_variant(self):
        RegisterCondition("flag_u", "==", True, variant=Variant.EXTENDED)
        with pytest.raises(ValueError, match="Unknown flag 'flag_u' for the base variant"):
            RegisterCondition("flag_u", "==", True, variant=Variant.BASE)

    def test_manager_rejects_missing_flag(self):
        mgr = BreakpointManager(Variant.BASE)
        with pytest.raises(ValueError, match="flag_ind"):
            mgr.add_condition("flag_te", "==", True)
        with pytest.raises(ValueError):
            mgr.add_register_condition(RegisterCondition("flag_ie", "==", True))
        assert mgr.list_register_conditions() == []
        mgr.add_condition("flag_IND", "==", True)
        assert len(mgr.list_register_conditions()) == 1

    def test_condition_breaks_fetch(self, mgr):
        cpu = MockCPU()
        mgr.add_condition("pc", ">=", 0x10, "past the loop")
        assert mgr.check_fetch(cpu, 0) is True
        cpu.pc = 0x10
        assert mgr.check_fetch(cpu, 0x10) is False
        assert mgr.last_event.reason is BreakReason.REGISTER_CONDITION
        assert str(mgr.last_event) == "Condition: past the loop"

    def test_ids_are_reused(self, mgr):
        first = mgr.add_condition("acc", "==", 1)
        second = mgr.add_condition("acc", "==", 2)
        mgr.remove_register_condition(first)
        assert [cid for cid, _ in mgr.list_register_conditions()] == [second]
        assert mgr.add_condition("acc", "==", 3) == first


class TestBreakEvent:
    """Test event descriptions."""

    def test_default_messages(self):
        assert str(BreakEvent(BreakReason.MEMORY_WRITE, address=0x3F, value=11)) == \
            "Write $000B to $003F"
        assert str(BreakEvent(BreakReason.HALTED)) == "CPU halted"
        assert str(BreakEvent(BreakReason.MAX_CYCLES)) == "Maximum cycles reached"

    def test_message_overrides(self):
        assert str(BreakEvent(BreakReason.FAULT, message="boom")) == "boom"
