"""
Cycle Sequencer
===============

Every state of the bit-serial CPU lasts exactly N+1 clock cycles:

    cycle 0        "first"  - setup, no bus strobe
    cycles 1..N    one bit shifted per cycle (bit k-1 on cycle k)
    cycle N        "last"   - the computed next state is committed

The final four data cycles (N-3..N) are the "last4" window. During FETCH
it routes incoming bits to the opcode nibble instead of the operand latch;
the base variant's AND uses it to decide when to consume its operand.

Hardware keeps a one-hot delay line for this; here it is a bounded integer
with derived markers. The CPU also carries registered copies of `first`
and `last4`, and `check()` cross-checks them against the counter every
cycle.

Copyright (c) 2026 bitserial Contributors
"""

from dataclasses import dataclass

from ..errors import StructuralInvariantViolation


@dataclass(frozen=True)
class CycleMarkers:
    """
    Markers derived from the cycle counter.

    Attributes:
        first: Setup cycle (counter == 0)
        last4: One of the final four data cycles (counter > N - 4)
        last: Commit cycle (counter == N)
    """
    first: bool
    last4: bool
    last: bool


def markers(counter: int, width: int) -> CycleMarkers:
    """Derive the cycle markers for a counter value."""
    return CycleMarkers(
        first=counter == 0,
        last4=counter > width - 4,
        last=counter == width,
    )


def next_counter(counter: int, width: int) -> int:
    """Counter value for the following cycle (wraps to 0 after `last`)."""
    return 0 if counter >= width else counter + 1


def check(counter: int, first: bool, last4: bool, width: int) -> None:
    """
    Verify the registered markers agree with the counter.

    Raises:
        StructuralInvariantViolation: If the counter is out of range or a
            registered marker disagrees with its derivation
    """
    if not 0 <= counter <= width:
        raise StructuralInvariantViolation(
            f"cycle counter {counter} outside 0..{width}"
        )
    derived = markers(counter, width)
    if first != derived.first:
        raise StructuralInvariantViolation(
            f"first={first} but cycle counter is {counter}"
        )
    if last4 != derived.last4:
        raise StructuralInvariantViolation(
            f"last4={last4} but cycle counter is {counter}"
        )
