"""
Structured Source Driver
========================

A thin line-oriented front end for the structured compiler. It reads one
statement per line and calls the matching construct operation, in source
order, with the statement's source location.

Source Format
-------------
    ; comment (anything after ';' is ignored)
            ORG     $2100           ; origin, only before any code
            CLRA                    ; any HD6303 inherent instruction
            FCB     $86, 10         ; raw bytes
            FDB     $1234           ; raw big-endian words
            IF      NE
            ...
            ELSE
            ...
            ENDIF
            SWITCH / CASE cc / ENDCASE / ENDSWITCH
            DO / WHILE cc / UNTIL cc / BREAK / CONTINUE
            ENDDO / FOREVER / LOOP [X|A|B]

Keywords, mnemonics and condition names are case-insensitive. Numbers use
the same prefixes as the HD6303 assembler: `$` hex, `%` binary, `@` octal,
`0x` hex, otherwise decimal.

Example Usage
-------------
>>> from psion_flow.source import SourceCompiler
>>> sc = SourceCompiler()
>>> code = sc.compile_string('''
...     DO
...     DECB
...     WHILE NE
...     ENDDO
... ''')
"""

import logging
from pathlib import Path
from typing import Callable, Optional

from psion_flow.compiler import StructuredCompiler
from psion_flow.config import FlowConfig
from psion_flow.cpu import AddressingMode, get_instruction_info, is_inherent_instruction
from psion_flow.encoder import Condition, Counter
from psion_flow.errors import SourceLocation, SourceSyntaxError

logger = logging.getLogger(__name__)


# =============================================================================
# Number Parsing
# =============================================================================

def parse_number(text: str, location: Optional[SourceLocation] = None) -> int:
    """
    Parse a numeric literal: $FF, 0xFF, %1010, @17 or 255.

    Raises:
        SourceSyntaxError: If the text is not a valid number
    """
    value = text.strip()
    negative = value.startswith("-")
    if negative:
        value = value[1:]

    try:
        if value.startswith("$"):
            result = int(value[1:], 16)
        elif value.lower().startswith("0x"):
            result = int(value[2:], 16)
        elif value.startswith("%"):
            result = int(value[1:], 2)
        elif value.startswith("@"):
            result = int(value[1:], 8)
        else:
            result = int(value, 10)
    except ValueError:
        raise SourceSyntaxError(f"invalid number '{text.strip()}'", location=location) from None

    return -result if negative else result


# =============================================================================
# Source Compiler
# =============================================================================

class SourceCompiler:
    """
    Compiles structured source text to HD6303 machine code.

    Usage:
        sc = SourceCompiler(FlowConfig(origin=0x2100))
        code = sc.compile_file("menu.flw")
        sc.write_binary("menu.bin")
        sc.write_listing("menu.lst")
    """

    def __init__(self, config: Optional[FlowConfig] = None):
        self._config = config or FlowConfig()
        self._compiler = StructuredCompiler(self._config)
        self._filename = "<input>"

        # keyword -> (handler, operand required?)
        self._keywords: dict[str, tuple[Callable, Optional[bool]]] = {
            "IF": (self._if, True),
            "ELSE": (self._simple(lambda loc: self._compiler.else_branch(loc)), False),
            "ENDIF": (self._simple(lambda loc: self._compiler.end_if(loc)), False),
            "SWITCH": (self._simple(lambda loc: self._compiler.switch_open(loc)), False),
            "CASE": (self._case, True),
            "ENDCASE": (self._simple(lambda loc: self._compiler.end_case(loc)), False),
            "ENDSWITCH": (self._simple(lambda loc: self._compiler.end_switch(loc)), False),
            "DO": (self._simple(lambda loc: self._compiler.do_open(loc)), False),
            "WHILE": (self._while, True),
            "UNTIL": (self._until, True),
            "ENDDO": (self._simple(lambda loc: self._compiler.enddo(loc)), False),
            "FOREVER": (self._simple(lambda loc: self._compiler.forever(loc)), False),
            "LOOP": (self._loop, None),
            "BREAK": (self._simple(lambda loc: self._compiler.break_loop(loc)), False),
            "CONTINUE": (self._simple(lambda loc: self._compiler.continue_loop(loc)), False),
            "ORG": (self._org, True),
            "FCB": (self._fcb, True),
            "FDB": (self._fdb, True),
        }

    # =========================================================================
    # Public Interface
    # =========================================================================

    @property
    def compiler(self) -> StructuredCompiler:
        return self._compiler

    def compile_string(self, source: str, filename: str = "<input>") -> bytes:
        """
        Compile structured source text.

        Returns:
            The final machine code

        Raises:
            ConstructError: On the first syntax or construct error
        """
        self._filename = filename
        line_number = 0
        for line_number, line in enumerate(source.splitlines(), start=1):
            self._compile_line(line, line_number)

        end = SourceLocation(filename, line_number + 1, 1)
        return self._compiler.finish(end)

    def compile_file(self, filepath: str | Path) -> bytes:
        """
        Compile structured source from a file.

        Raises:
            ConstructError: On the first syntax or construct error
            FileNotFoundError: If the source file does not exist
        """
        filepath = Path(filepath)
        logger.info(f"Compiling {filepath}")
        return self.compile_string(filepath.read_text(), str(filepath))

    def get_code(self) -> bytes:
        return self._compiler.get_code()

    def get_origin(self) -> int:
        return self._compiler.stream.origin

    def get_listing(self) -> str:
        return self._compiler.get_listing()

    def write_binary(self, filepath: str | Path) -> None:
        """Write the raw machine code, without any header."""
        Path(filepath).write_bytes(self.get_code())

    def write_listing(self, filepath: str | Path) -> None:
        Path(filepath).write_text(self.get_listing() + "\n")

    # =========================================================================
    # Line Processing
    # =========================================================================

    def _compile_line(self, line: str, line_number: int) -> None:
        text = line.split(";", 1)[0].rstrip()
        stripped = text.strip()
        if not stripped:
            return

        column = len(text) - len(text.lstrip()) + 1
        location = SourceLocation(self._filename, line_number, column)

        parts = stripped.split(None, 1)
        keyword = parts[0].upper()
        operand = parts[1].strip() if len(parts) > 1 else ""

        start = self._compiler.here()

        if keyword in self._keywords:
            handler, needs_operand = self._keywords[keyword]
            if needs_operand is True and not operand:
                raise SourceSyntaxError(
                    f"{keyword} requires an operand", location=location, source_line=line
                )
            if needs_operand is False and operand:
                raise SourceSyntaxError(
                    f"{keyword} takes no operand", location=location, source_line=line
                )
            handler(operand, location, line)
        elif is_inherent_instruction(keyword):
            if operand:
                raise SourceSyntaxError(
                    f"{keyword} takes no operand", location=location, source_line=line
                )
            info = get_instruction_info(keyword, AddressingMode.INHERENT)
            self._compiler.emit(bytes([info.opcode]))
        else:
            raise SourceSyntaxError(
                f"unknown keyword or instruction '{parts[0]}'",
                location=location,
                source_line=line,
                hint="only structured keywords, FCB/FDB/ORG and inherent instructions are accepted",
            )

        if keyword != "ORG":
            self._compiler.add_listing_entry(start, stripped, location)

    # =========================================================================
    # Keyword Handlers
    # =========================================================================

    @staticmethod
    def _simple(action: Callable[[SourceLocation], None]):
        def handler(operand: str, location: SourceLocation, line: str) -> None:
            action(location)
        return handler

    def _if(self, operand: str, location: SourceLocation, line: str) -> None:
        self._compiler.if_open(Condition.parse(operand, location), location)

    def _case(self, operand: str, location: SourceLocation, line: str) -> None:
        self._compiler.case_test(Condition.parse(operand, location), location)

    def _while(self, operand: str, location: SourceLocation, line: str) -> None:
        self._compiler.while_cond(Condition.parse(operand, location), location)

    def _until(self, operand: str, location: SourceLocation, line: str) -> None:
        self._compiler.until_cond(Condition.parse(operand, location), location)

    def _loop(self, operand: str, location: SourceLocation, line: str) -> None:
        counter = Counter.parse(operand, location) if operand else None
        self._compiler.counted_loop(counter, location)

    def _org(self, operand: str, location: SourceLocation, line: str) -> None:
        origin = parse_number(operand, location)
        compiler = self._compiler
        if len(compiler.stream) or compiler.control_stack.depth or compiler.loop_stack.depth:
            raise SourceSyntaxError(
                "ORG must come before any code", location=location, source_line=line
            )
        if not 0 <= origin <= 0xFFFF:
            raise SourceSyntaxError(
                f"ORG address {operand} outside $0000-$FFFF", location=location, source_line=line
            )
        self._config = self._config.with_overrides(origin=origin)
        self._compiler = StructuredCompiler(self._config)
        logger.debug(f"origin set to ${origin:04X}")

    def _fcb(self, operand: str, location: SourceLocation, line: str) -> None:
        data = bytearray()
        for item in operand.split(","):
            value = parse_number(item, location)
            if not -128 <= value <= 255:
                raise SourceSyntaxError(
                    f"FCB value {item.strip()} does not fit in a byte",
                    location=location,
                    source_line=line,
                )
            data.append(value & 0xFF)
        self._compiler.emit(bytes(data))

    def _fdb(self, operand: str, location: SourceLocation, line: str) -> None:
        data = bytearray()
        for item in operand.split(","):
            value = parse_number(item, location)
            if not -32768 <= value <= 0xFFFF:
                raise SourceSyntaxError(
                    f"FDB value {item.strip()} does not fit in a word",
                    location=location,
                    source_line=line,
                )
            data.extend((value & 0xFFFF).to_bytes(2, "big"))
        self._compiler.emit(bytes(data))


# =============================================================================
# Convenience Functions
# =============================================================================

def compile_source(source: str, filename: str = "<input>",
                   config: Optional[FlowConfig] = None) -> bytes:
    """
    Convenience function to compile structured source text.

    Raises:
        ConstructError: If compilation fails
    """
    return SourceCompiler(config).compile_string(source, filename)


def compile_file(filepath: str | Path, config: Optional[FlowConfig] = None) -> bytes:
    """
    Convenience function to compile a structured source file.

    Raises:
        ConstructError: If compilation fails
    """
    return SourceCompiler(config).compile_file(filepath)
