"""
bitsim - Bit-Serial CPU Simulator Command-Line Interface
========================================================

Runs a program image on the cycle-accurate core. Bytes the program
writes to the UART are printed to stdout; a register summary follows
when the run stops.

Usage Examples
--------------
Run a hex image until it halts:
    $ bitsim hello.hex

Extended variant, bounded run:
    $ bitsim timer.bin --variant extended --max-cycles 200000

Feed UART input:
    $ bitsim echo.hex --input "abc"

Instruction trace (DEBUG log on stderr):
    $ bitsim hello.hex --trace

Stop at a breakpoint:
    $ bitsim hello.hex --break 0x07

Exit Codes
----------
    0  Program halted, hit a breakpoint, or reached --max-cycles
    1  Program image could not be loaded
    2  Invalid arguments
    3  Internal error
    4  Simulation fault
"""

import logging
from pathlib import Path
from typing import Optional

import click

from bitserial import __version__
from bitserial.cpu.isa import Variant
from bitserial.emulator import BreakReason, CpuConfig, Emulator, EmulatorConfig
from bitserial.cli.bitdis import FORMAT_CHOICES, VARIANT_CHOICES, image_format, parse_number
from bitserial.cli.errors import handle_cli_exception


def setup_logging(verbose: bool, trace: bool) -> None:
    """Configure logging based on verbosity."""
    if trace:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if verbose else "%(message)s",
    )


def format_summary(emu: Emulator) -> str:
    """Final register summary printed after the run."""
    regs = emu.registers
    parts = [f"{name}=${value:04X}" for name, value in regs.items() if name != "state"]
    return f"state={regs['state']} cycles={emu.total_cycles} " + " ".join(parts)


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-f", "--format", "fmt",
    type=FORMAT_CHOICES,
    default="auto",
    help="Image format (default: from extension, .hex is text)",
)
@click.option(
    "-w", "--width",
    type=click.IntRange(min=8),
    default=16,
    help="CPU word width N (default: 16)",
)
@click.option(
    "--variant",
    type=VARIANT_CHOICES,
    default="base",
    help="Instruction-set variant (default: base)",
)
@click.option(
    "--jumpz-nonzero",
    is_flag=True,
    help="JUMPZ jumps when the accumulator is non-zero",
)
@click.option(
    "-m", "--max-cycles",
    type=click.IntRange(min=1),
    default=10_000_000,
    help="Stop after this many clock cycles (default: 10,000,000)",
)
@click.option(
    "-i", "--input", "uart_input",
    type=str,
    default=None,
    help="Text queued on the UART receive line",
)
@click.option(
    "-b", "--break", "breakpoints",
    multiple=True,
    help="Stop when an instruction fetch begins at ADDRESS (repeatable)",
)
@click.option(
    "--trace",
    is_flag=True,
    help="Log every instruction fetch to stderr",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="bitsim")
def main(
    input_file: Path,
    fmt: str,
    width: int,
    variant: str,
    jumpz_nonzero: bool,
    max_cycles: int,
    uart_input: Optional[str],
    breakpoints: tuple[str, ...],
    trace: bool,
    verbose: bool,
) -> None:
    """
    Run a bit-serial CPU program image.

    INPUT_FILE is a binary (.bin) or hex (.hex) image loaded at address 0.
    The CPU starts in RESET and runs until it halts, hits a breakpoint,
    faults, or reaches --max-cycles.

    Examples:

        bitsim hello.hex

        bitsim echo.hex --input "hi" --max-cycles 100000
    """
    setup_logging(verbose, trace)

    try:
        config = EmulatorConfig(
            cpu=CpuConfig(
                width=width,
                variant=Variant.parse(variant),
                jumpz_on_nonzero=jumpz_nonzero,
            ),
            trace=trace,
        )
        emu = Emulator(config)
        loaded = emu.load_image(input_file, image_format(fmt))
        emu.reset()
        for text in breakpoints:
            emu.add_breakpoint(parse_number(text))
        if uart_input:
            emu.feed_input(uart_input.encode("latin-1"))

        if verbose:
            click.echo(f"Loaded {loaded} words from {input_file}", err=True)

        event = emu.run(max_cycles)

        output = emu.uart_output
        if output:
            click.echo(output.decode("latin-1"), nl=False)
            if not output.endswith(b"\n"):
                click.echo()

        if event.reason is BreakReason.FAULT and emu.cpu.fault is not None:
            raise emu.cpu.fault

        click.echo(f"Stopped: {event}", err=True)
        click.echo(format_summary(emu), err=True)

    except Exception as e:
        handle_cli_exception(e, verbose, "Image")


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    main()
