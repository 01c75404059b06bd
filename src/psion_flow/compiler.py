"""
Structured Compiler
===================

One compilation unit: a CodeStream, the two patch stacks and the compilers
that work on them, behind the construct-invocation API the driving layer
calls in source order.

Example Usage
-------------
>>> from psion_flow import StructuredCompiler, Condition
>>> c = StructuredCompiler()
>>> c.if_open(Condition.NE)
>>> c.emit(b"\\x08")          # INX
>>> c.else_branch()
>>> c.emit(b"\\x09")          # DEX
>>> c.end_if()
>>> code = c.finish()

Every operation runs exactly once, synchronously, and never looks ahead.
`finish()` checks that every construct was closed and every reserved operand
was patched; otherwise it raises UnresolvedReferenceError.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from psion_flow.config import FlowConfig
from psion_flow.control import ControlCompiler
from psion_flow.encoder import BranchEncoder, Condition, Counter, HD6303BranchEncoder
from psion_flow.errors import SourceLocation, UnresolvedReferenceError
from psion_flow.loops import LoopCompiler
from psion_flow.patchstack import PatchStack
from psion_flow.stream import CodeStream

logger = logging.getLogger(__name__)


@dataclass
class ListingEntry:
    """One listed statement: where its code starts and its source text."""
    address: int
    text: str
    location: Optional[SourceLocation] = None


class StructuredCompiler:
    """
    Compiles structured control flow into a linear instruction stream.

    The compiler maintains:
    - The code stream (output bytes and cursor)
    - A control stack for IF/SWITCH and a loop stack for loops
    - Listing entries recorded by the driving layer
    """

    def __init__(
        self,
        config: Optional[FlowConfig] = None,
        encoder: Optional[BranchEncoder] = None,
    ):
        self._config = config or FlowConfig()
        self._encoder = encoder or HD6303BranchEncoder()
        self._stream = CodeStream(self._config.origin)
        self._control_stack = PatchStack("control", self._config.control_capacity)
        self._loop_stack = PatchStack("loop", self._config.loop_capacity)
        self._control = ControlCompiler(self._stream, self._control_stack, self._encoder)
        self._loops = LoopCompiler(
            self._stream, self._loop_stack, self._encoder, self._config.counter
        )
        self._listing: list[ListingEntry] = []

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def config(self) -> FlowConfig:
        return self._config

    @property
    def stream(self) -> CodeStream:
        return self._stream

    @property
    def control_stack(self) -> PatchStack:
        return self._control_stack

    @property
    def loop_stack(self) -> PatchStack:
        return self._loop_stack

    def here(self) -> int:
        return self._stream.here()

    def get_code(self) -> bytes:
        return self._stream.get_code()

    # =========================================================================
    # Straight-Line Code
    # =========================================================================

    def emit(self, data: bytes) -> int:
        """Append non-branching code; returns its start address."""
        return self._stream.emit(data)

    # =========================================================================
    # Control Constructs
    # =========================================================================

    def if_open(self, condition: Condition, location: Optional[SourceLocation] = None) -> None:
        self._control.if_open(condition, location)

    def else_branch(self, location: Optional[SourceLocation] = None) -> None:
        self._control.else_branch(location)

    def end_if(self, location: Optional[SourceLocation] = None) -> None:
        self._control.end_if(location)

    def switch_open(self, location: Optional[SourceLocation] = None) -> None:
        self._control.switch_open(location)

    def case_test(self, condition: Condition, location: Optional[SourceLocation] = None) -> None:
        self._control.case_test(condition, location)

    def end_case(self, location: Optional[SourceLocation] = None) -> None:
        self._control.end_case(location)

    def end_switch(self, location: Optional[SourceLocation] = None) -> None:
        self._control.end_switch(location)

    # =========================================================================
    # Loop Constructs
    # =========================================================================

    def do_open(self, location: Optional[SourceLocation] = None) -> None:
        self._loops.do_open(location)

    def while_cond(self, condition: Condition, location: Optional[SourceLocation] = None) -> None:
        self._loops.while_cond(condition, location)

    def until_cond(self, condition: Condition, location: Optional[SourceLocation] = None) -> None:
        self._loops.until_cond(condition, location)

    def enddo(self, location: Optional[SourceLocation] = None) -> None:
        self._loops.enddo(location)

    def forever(self, location: Optional[SourceLocation] = None) -> None:
        self._loops.forever(location)

    def counted_loop(
        self,
        counter: Optional[Counter] = None,
        location: Optional[SourceLocation] = None,
    ) -> None:
        self._loops.counted_loop(counter, location)

    def break_loop(self, location: Optional[SourceLocation] = None) -> None:
        self._loops.break_loop(location)

    def continue_loop(self, location: Optional[SourceLocation] = None) -> None:
        self._loops.continue_loop(location)

    # =========================================================================
    # Completion
    # =========================================================================

    def finish(self, location: Optional[SourceLocation] = None) -> bytes:
        """
        End the compilation unit and return the final code.

        Raises:
            UnresolvedReferenceError: If any construct is still open or any
                reserved operand was never patched
        """
        live = list(self._control_stack) + list(self._loop_stack)
        if live:
            # Report the oldest open construct: closing it usually fixes the rest
            oldest = min(
                live,
                key=lambda slot: slot.location.line if slot.location else 0,
            )
            hint = None
            if oldest.location is not None:
                hint = f"{oldest.kind} opened at {oldest.location} is never closed"
            raise UnresolvedReferenceError(
                f"{len(live)} construct slot(s) still open at end of input",
                pending=len(live),
                location=location,
                hint=hint,
            )

        unresolved = self._stream.unresolved()
        if unresolved:
            addresses = ", ".join(f"${address:04X}" for address in unresolved)
            raise UnresolvedReferenceError(
                f"{len(unresolved)} operand(s) never patched: {addresses}",
                pending=len(unresolved),
                location=location,
            )

        code = self._stream.get_code()
        logger.info(
            f"compiled {len(code)} bytes at ${self._stream.origin:04X}, "
            f"{self._stream.reservation_count()} operand(s) patched"
        )
        return code

    # =========================================================================
    # Listing
    # =========================================================================

    def add_listing_entry(
        self,
        address: int,
        text: str,
        location: Optional[SourceLocation] = None,
    ) -> None:
        """Record that the statement `text` starts at `address`."""
        self._listing.append(ListingEntry(address, text, location))

    def get_listing(self) -> str:
        """
        Render the listing: address, code bytes and source text per statement.

        Bytes are read from the final code, so patched operands show their
        resolved values. Call after finish() for a complete listing.
        """
        code = self._stream.get_code()
        origin = self._stream.origin
        lines = []
        for index, entry in enumerate(self._listing):
            if index + 1 < len(self._listing):
                end = self._listing[index + 1].address
            else:
                end = self._stream.here()
            data = code[entry.address - origin:end - origin]
            hex_bytes = " ".join(f"{b:02X}" for b in data)
            lines.append(f"{entry.address:04X}  {hex_bytes:<20}  {entry.text}")
        return "\n".join(lines)
