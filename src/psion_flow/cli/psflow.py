"""
psflow - Structured HD6303 Compiler Command-Line Interface
==========================================================

Compiles structured control-flow source (IF/ELSE/ENDIF, SWITCH/CASE,
DO/WHILE/UNTIL/ENDDO, FOREVER, LOOP, BREAK, CONTINUE) to raw HD6303 machine
code, without any labels in the source.

Usage Examples
--------------
Basic compilation:
    $ psflow menu.flw

With output file and listing:
    $ psflow menu.flw -o menu.bin -l menu.lst

At a specific origin, counting loops in B:
    $ psflow --origin '$2100' --counter B menu.flw

Verbose mode (also enables debug logging of every patch):
    $ psflow -v menu.flw
"""

import logging
from pathlib import Path
from typing import Optional

import click

from psion_flow import __version__
from psion_flow.cli.errors import handle_cli_exception
from psion_flow.config import FlowConfig
from psion_flow.encoder import Counter
from psion_flow.errors import SourceSyntaxError
from psion_flow.source import SourceCompiler, parse_number


def _parse_origin(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[int]:
    """Click callback: accept $XXXX, 0xXXXX or decimal origins."""
    if value is None:
        return None
    try:
        origin = parse_number(value)
    except SourceSyntaxError:
        raise click.BadParameter(f"invalid address '{value}'") from None
    if not 0 <= origin <= 0xFFFF:
        raise click.BadParameter(f"address '{value}' outside $0000-$FFFF")
    return origin


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
    help="Output binary file (default: input.bin)",
)
@click.option(
    "-l", "--listing",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Generate listing file",
)
@click.option(
    "--origin",
    callback=_parse_origin,
    help="Origin address, e.g. $2100 (overrides PSFLOW_ORIGIN; ORG in the source wins)",
)
@click.option(
    "--capacity",
    type=click.IntRange(min=1),
    help="Nesting capacity of each patch stack (default: 12)",
)
@click.option(
    "--counter",
    type=click.Choice(["X", "A", "B"], case_sensitive=False),
    default=None,
    help="Default LOOP counter register (default: X)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="psflow")
def main(
    input_file: Path,
    output: Optional[Path],
    listing: Optional[Path],
    origin: Optional[int],
    capacity: Optional[int],
    counter: Optional[str],
    verbose: bool,
) -> None:
    """
    Compile structured HD6303 source for Psion Organiser II.

    INPUT_FILE is the structured source file to compile.

    \b
    Examples:
        psflow menu.flw                 # Outputs menu.bin
        psflow menu.flw -o out.bin      # Specify output file
        psflow menu.flw -l menu.lst     # Also write a listing
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    output_file = output if output is not None else input_file.with_suffix(".bin")

    try:
        config = FlowConfig.from_env().with_overrides(
            origin=origin,
            control_capacity=capacity,
            loop_capacity=capacity,
            counter=Counter[counter.upper()] if counter else None,
        )

        if verbose:
            click.echo(f"Compiling {input_file}...")
            click.echo(
                f"Origin ${config.origin:04X}, stack capacity "
                f"{config.control_capacity}/{config.loop_capacity}, "
                f"LOOP counter {config.counter.name}"
            )

        compiler = SourceCompiler(config)
        code = compiler.compile_file(input_file)
        compiler.write_binary(output_file)

        if verbose:
            click.echo(f"Wrote {len(code)} bytes to {output_file}")

        if listing:
            compiler.write_listing(listing)
            if verbose:
                click.echo(f"Wrote listing to {listing}")

        if verbose:
            stream = compiler.compiler.stream
            click.echo(
                f"Compilation complete: {len(code)} bytes at ${stream.origin:04X}, "
                f"{stream.reservation_count()} forward reference(s) resolved"
            )

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Compilation")


if __name__ == "__main__":
    main()
