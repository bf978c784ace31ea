"""
bitdis - Bit-Serial CPU Disassembler Command-Line Interface
===========================================================

Disassembles a program image for either instruction-set variant.

Usage Examples
--------------
Disassemble a hex image:
    $ bitdis hello.hex

Extended instruction set:
    $ bitdis timer.bin --variant extended

Start listing at an address, limit the count:
    $ bitdis hello.hex --address 0x40 --count 8

Output to file:
    $ bitdis hello.hex -o hello.lst

Copyright (c) 2026 bitserial Contributors
"""

from pathlib import Path
from typing import Optional

import click

from bitserial import __version__
from bitserial.cpu.isa import Variant
from bitserial.disassembler import BitCpuDisassembler
from bitserial.image import ImageFormat, load_image
from bitserial.cli.errors import handle_cli_exception


def parse_number(text: str) -> int:
    """
    Parse a decimal, 0x-prefixed or $-prefixed number.

    Raises:
        click.BadParameter: If the text is not a number
    """
    try:
        if text.lower().startswith("0x"):
            return int(text, 16)
        if text.startswith("$"):
            return int(text[1:], 16)
        return int(text)
    except ValueError:
        raise click.BadParameter(f"Invalid number '{text}'") from None


FORMAT_CHOICES = click.Choice(["auto", "bin", "hex"], case_sensitive=False)
VARIANT_CHOICES = click.Choice([v.value for v in Variant], case_sensitive=False)


def image_format(name: str) -> Optional[ImageFormat]:
    """Map a --format choice to ImageFormat (None means guess from the extension)."""
    return None if name.lower() == "auto" else ImageFormat(name.lower())


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output file (default: stdout)",
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
    "-a", "--address",
    type=str,
    default="0",
    help="First address to list (hex with 0x/$ prefix or decimal). Default: 0",
)
@click.option(
    "-c", "--count",
    type=int,
    default=None,
    help="Maximum number of words to list (default: all)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="bitdis")
def main(
    input_file: Path,
    output: Optional[Path],
    fmt: str,
    width: int,
    variant: str,
    address: str,
    count: Optional[int],
    verbose: bool,
) -> None:
    """
    Disassemble a bit-serial CPU program image.

    INPUT_FILE is a binary (.bin) or hex (.hex) image; word 0 of the
    image is address 0.

    Examples:

        bitdis hello.hex

        bitdis timer.bin --variant extended --count 16
    """
    try:
        start = parse_number(address)
        words = load_image(input_file, width, image_format(fmt))

        if not 0 <= start < max(len(words), 1):
            raise click.BadParameter(
                f"Address ${start:04X} is outside the {len(words)}-word image"
            )

        if verbose:
            click.echo(f"Input file: {input_file} ({len(words)} words)", err=True)

        disasm = BitCpuDisassembler(Variant.parse(variant), width)
        instructions = disasm.disassemble(words[start:], start_address=start, count=count)

        lines = [
            f"; Disassembly of {input_file.name}",
            f"; Size: {len(words)} words, {width}-bit {variant} variant",
            "",
        ]
        lines.extend(str(instr) for instr in instructions)
        result = "\n".join(lines) + "\n"

        if output:
            output.write_text(result, encoding="utf-8")
            if verbose:
                click.echo(f"Output written to: {output}", err=True)
        else:
            click.echo(result, nl=False)

        if verbose:
            click.echo(f"Instructions disassembled: {len(instructions)}", err=True)

    except Exception as e:
        handle_cli_exception(e, verbose, "Image")


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    main()
